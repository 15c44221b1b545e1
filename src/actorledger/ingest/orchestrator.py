"""Ingestion orchestrator: drives one cycle to completion or failure.

Cycle layout:
- address resolution runs first and alone, so heads and states never
  reference identifiers a reorg has invalidated
- head and state persistence then run concurrently in worker threads
  sharing one CancelScope
- the first failing stage cancels its sibling (best effort: a sibling that
  already committed stays committed) and is raised to the caller

Nothing is retried here; the caller owns retry policy. Every merge is
insert-if-absent, so a failed cycle can simply be submitted again.
"""

from __future__ import annotations

import asyncio
import contextvars
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import TYPE_CHECKING, Any, TypeVar

import structlog

from actorledger.core.logging import clear_cycle_id, set_cycle_id
from actorledger.ingest.addresses import AddressResolver
from actorledger.ingest.heads import ActorHeadStore
from actorledger.ingest.states import ActorStateStore
from actorledger.store.cancel import CancelScope

if TYPE_CHECKING:
    from actorledger.config.models import IngestConfig
    from actorledger.ingest.types import ActorDiff, AddressChangeEvaluator, AddressChangeSet
    from actorledger.store.database import Database

logger = structlog.get_logger()

T = TypeVar("T")

# Heads and states; the address stage runs before them, never beside them
FAN_OUT_WIDTH = 2


@dataclass
class IngestStats:
    """Row counts and timing of one completed cycle."""

    cycle_id: str
    addresses_corrected: int = 0
    addresses_inserted: int = 0
    heads_inserted: int = 0
    states_inserted: int = 0
    duration_seconds: float = 0.0


class IngestionOrchestrator:
    """Sequences AddressResolver ahead of the concurrent head and state stores."""

    def __init__(
        self,
        db: Database,
        resolver: AddressResolver | None = None,
        heads: ActorHeadStore | None = None,
        states: ActorStateStore | None = None,
        evaluator: AddressChangeEvaluator | None = None,
    ) -> None:
        self.db = db
        self.resolver = resolver or AddressResolver(db)
        self.heads = heads or ActorHeadStore(db)
        self.states = states or ActorStateStore(db)
        self.evaluator = evaluator
        self._executor: ThreadPoolExecutor | None = None

    @classmethod
    def from_config(
        cls,
        db: Database,
        config: IngestConfig,
        evaluator: AddressChangeEvaluator | None = None,
    ) -> IngestionOrchestrator:
        resolver = AddressResolver(
            db,
            network_prefix=config.network_prefix,
            init_actor_code=config.init_actor_code,
        )
        return cls(db, resolver=resolver, evaluator=evaluator)

    def close(self) -> None:
        """Shut down the worker threads, waiting for running stages.

        The orchestrator stays usable; the next cycle starts fresh workers.
        """
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> IngestionOrchestrator:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    async def handle_changes(
        self,
        diff: ActorDiff,
        address_changes: Sequence[AddressChangeSet] | None = None,
    ) -> IngestStats:
        """Run one ingestion cycle.

        Args:
            diff: Observations keyed by actor code, then tipset key
            address_changes: Address map transitions of the cycle. When None
                and an evaluator is configured, they are collected from the
                init actor entries of the diff.

        Raises:
            ActorLedgerError: The first failure of any stage.
        """
        stats = IngestStats(cycle_id=set_cycle_id())
        start = time.monotonic()
        scope = CancelScope()
        try:
            if address_changes is None:
                address_changes = await self._collect(diff)

            resolution = await self._run(self.resolver.resolve, address_changes, scope)
            stats.addresses_corrected = resolution.corrected
            stats.addresses_inserted = resolution.inserted

            stats.heads_inserted, stats.states_inserted = await self._fan_out(diff, scope)
        except asyncio.CancelledError:
            scope.cancel("cycle cancelled")
            logger.warning("ingest_cycle_cancelled")
            raise
        except Exception as e:
            logger.error("ingest_cycle_failed", error=str(e), error_type=type(e).__name__)
            raise
        else:
            stats.duration_seconds = time.monotonic() - start
            logger.info(
                "ingest_cycle_complete",
                addresses_corrected=stats.addresses_corrected,
                addresses_inserted=stats.addresses_inserted,
                heads_inserted=stats.heads_inserted,
                states_inserted=stats.states_inserted,
                duration=f"{stats.duration_seconds:.3f}s",
            )
            return stats
        finally:
            clear_cycle_id()

    async def _collect(self, diff: ActorDiff) -> list[AddressChangeSet]:
        if self.evaluator is None:
            return []
        return await self._run(self.resolver.collect, diff, self.evaluator)

    def _submit(self, fn: Callable[..., T], *args: Any) -> asyncio.Future[T]:
        # Worker threads see the cycle_id of the submitting coroutine
        ctx = contextvars.copy_context()
        loop = asyncio.get_running_loop()
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=FAN_OUT_WIDTH,
                thread_name_prefix="actorledger-ingest",
            )
        return loop.run_in_executor(self._executor, partial(ctx.run, fn, *args))

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        return await self._submit(fn, *args)

    async def _fan_out(self, diff: ActorDiff, scope: CancelScope) -> tuple[int, int]:
        """Run both stores concurrently; return their inserted counts or the first error."""
        stages: dict[str, asyncio.Future[int]] = {
            "store_actor_heads": self._submit(self.heads.store, diff, scope),
            "store_actor_states": self._submit(self.states.store, diff, scope),
        }

        finished: list[str] = []
        for name, fut in stages.items():
            fut.add_done_callback(lambda _fut, name=name: finished.append(name))

        await asyncio.wait(stages.values(), return_when=asyncio.FIRST_EXCEPTION)

        failures = [
            (name, error)
            for name, fut in stages.items()
            if fut.done() and (error := fut.exception()) is not None
        ]
        # Report the stage that failed first, not the first one submitted
        failures.sort(key=lambda f: finished.index(f[0]) if f[0] in finished else len(finished))
        if not failures:
            return stages["store_actor_heads"].result(), stages["store_actor_states"].result()

        name, error = failures[0]
        scope.cancel(f"{name} failed")
        # Let the sibling settle (commit or roll back) before reporting
        await asyncio.gather(*stages.values(), return_exceptions=True)
        for sibling, fut in stages.items():
            if sibling == name:
                continue
            sibling_error = fut.exception()
            logger.warning(
                "ingest_stage_sibling_settled",
                failed_stage=name,
                sibling=sibling,
                committed=sibling_error is None,
            )
        raise error
