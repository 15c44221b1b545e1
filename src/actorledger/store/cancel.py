"""Cancellation scope shared by the concurrent stages of one ingestion cycle."""

from __future__ import annotations

import threading

from actorledger.core.errors import IngestError


class CancelScope:
    """Thread-safe cancellation flag.

    Stages run in worker threads and poll the scope at their suspension
    points; a cancelled stage raises and its open transaction rolls back.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None
        self._lock = threading.Lock()

    def cancel(self, reason: str) -> None:
        """Cancel the scope. The first reason given is kept."""
        with self._lock:
            if self._reason is None:
                self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def check(self, stage: str) -> None:
        """Raise IngestError.cancelled if the scope has been cancelled."""
        if self._event.is_set():
            raise IngestError.cancelled(stage)
