"""Temporal index: actor records as of an arbitrary epoch.

actor_tips(epoch) joins every observation to the lineage row whose parent
state root is the observation's state root, keeps rows strictly below the
epoch and returns the highest one per identifier. Ties at the maximal
height resolve to the smallest (stateroot, head, code, nonce, balance).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import text

from actorledger.models import ActorTip

if TYPE_CHECKING:
    from actorledger.store.database import Database

ACTOR_TIPS_SQL = """
SELECT id, code, head, nonce, balance, stateroot, height, parentstateroot
FROM (
    SELECT a.id, a.code, a.head, a.nonce, a.balance, a.stateroot,
           sh.height, sh.parentstateroot,
           ROW_NUMBER() OVER (
               PARTITION BY a.id
               ORDER BY sh.height DESC, a.stateroot, a.head, a.code, a.nonce, a.balance
           ) AS tip_rank
    FROM actors a
    JOIN state_heights sh ON sh.parentstateroot = a.stateroot
    WHERE sh.height < :epoch
      {identifier_filter}
)
WHERE tip_rank = 1
ORDER BY id
"""


class TemporalIndex:
    """Read-only point-in-time queries over the actors table."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def actor_tips(self, epoch: int) -> list[ActorTip]:
        """Most recent observation per identifier with lineage height below epoch."""
        return self._query(epoch, None)

    def actor_tip(self, identifier: str, epoch: int) -> ActorTip | None:
        """Most recent observation of one identifier below epoch, if any."""
        tips = self._query(epoch, identifier)
        return tips[0] if tips else None

    def _query(self, epoch: int, identifier: str | None) -> list[ActorTip]:
        sql = ACTOR_TIPS_SQL.format(
            identifier_filter="AND a.id = :identifier" if identifier is not None else ""
        )
        params: dict[str, object] = {"epoch": int(epoch)}
        if identifier is not None:
            params["identifier"] = identifier

        with self.db.read_connection() as conn:
            rows = conn.execute(text(sql), params).all()
        return [
            ActorTip(
                id=row.id,
                code=row.code,
                head=row.head,
                nonce=int(row.nonce),
                balance=row.balance,
                stateroot=row.stateroot,
                height=int(row.height),
                parentstateroot=row.parentstateroot,
            )
            for row in rows
        ]
