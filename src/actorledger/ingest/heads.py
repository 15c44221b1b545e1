"""Bulk persistence of actor metadata observations."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import text

from actorledger.core.errors import IngestError
from actorledger.ingest.types import ActorDiff, iter_observations
from actorledger.models import Actor
from actorledger.store.database import store_errors

if TYPE_CHECKING:
    from actorledger.store.cancel import CancelScope
    from actorledger.store.database import Database

logger = structlog.get_logger()

# First staged observation whose identifier the address stage never registered.
# Checked here rather than by a foreign key, which would block in-place
# identifier corrections.
UNDEFINED_IDENTIFIERS_SQL = """
SELECT s.id, s.code
FROM temp.{stage} s
LEFT JOIN id_address_map m ON m.id = s.id
WHERE m.id IS NULL
ORDER BY s.rowid
LIMIT 1
"""


class ActorHeadStore:
    """Writes one actors row per observation, ignoring rows already stored.

    Observations are immutable: a changed actor shows up as a new row under
    a new state root, never as an update. Every identifier must already be
    bound in id_address_map, otherwise the whole batch is rejected.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    @staticmethod
    def rows(diff: ActorDiff) -> list[dict[str, Any]]:
        return [
            {
                "id": obs.identifier,
                "code": code,
                "head": obs.head,
                "nonce": obs.nonce,
                "balance": obs.balance,
                "stateroot": obs.stateroot,
            }
            for code, _tipset, obs in iter_observations(diff)
        ]

    def store(self, diff: ActorDiff, cancel: CancelScope | None = None) -> int:
        """Persist the cycle's observations. Returns the number of new rows.

        Raises:
            IngestError: An observation names an identifier that is not in
                id_address_map. Nothing of the batch is written.
        """
        start = time.monotonic()
        records = self.rows(diff)
        inserted = 0

        with store_errors("store_actor_heads"), self.db.bulk_writer(cancel) as writer:
            writer.check_cancelled("store_actor_heads")
            if records:
                stage = writer.stage(Actor, records)
                sql = UNDEFINED_IDENTIFIERS_SQL.format(stage=stage)
                if (undefined := writer.conn.execute(text(sql)).first()) is not None:
                    raise _undefined_identifier(diff, undefined.code, undefined.id)
                writer.check_cancelled("merge actors")
                inserted = writer.merge(Actor, stage, list(records[0].keys()))
                writer.drop_stage(stage)

        logger.debug(
            "stored_actor_heads",
            duration=f"{time.monotonic() - start:.3f}s",
            observed=len(records),
            inserted=inserted,
        )
        return inserted


def _undefined_identifier(diff: ActorDiff, code: str, identifier: str) -> IngestError:
    tipset = next(
        t for c, t, obs in iter_observations(diff) if c == code and obs.identifier == identifier
    )
    return IngestError.undefined_identifier(code, tipset, identifier)
