"""Bulk persistence of content-addressed actor state blobs."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import structlog

from actorledger.ingest.types import ActorDiff, iter_observations
from actorledger.models import ActorState
from actorledger.store.database import store_errors

if TYPE_CHECKING:
    from actorledger.store.cancel import CancelScope
    from actorledger.store.database import Database

logger = structlog.get_logger()


class ActorStateStore:
    """Writes state blobs keyed by (head, code); the first write for a key wins.

    Blobs are stored byte for byte and never parsed. The schema version tag
    is opaque as well and only recorded next to the blob.
    """

    def __init__(self, db: Database, schema_version: str | None = None) -> None:
        self.db = db
        self.schema_version = schema_version

    def rows(self, diff: ActorDiff) -> list[dict[str, Any]]:
        return [
            {
                "head": obs.head,
                "code": code,
                "state": bytes(obs.state),
                "schema_version": self.schema_version,
            }
            for code, _tipset, obs in iter_observations(diff)
        ]

    def store(self, diff: ActorDiff, cancel: CancelScope | None = None) -> int:
        """Persist the cycle's state blobs. Returns the number of new rows."""
        start = time.monotonic()
        records = self.rows(diff)

        with store_errors("store_actor_states"), self.db.bulk_writer(cancel) as writer:
            writer.check_cancelled("store_actor_states")
            inserted = writer.stage_and_merge(ActorState, records, conflict_columns=["head", "code"])

        logger.debug(
            "stored_actor_states",
            duration=f"{time.monotonic() - start:.3f}s",
            observed=len(records),
            inserted=inserted,
        )
        return inserted

    def get(self, head: str, code: str) -> bytes | None:
        with self.db.session() as session:
            row = session.get(ActorState, (head, code))
            return row.state if row else None
