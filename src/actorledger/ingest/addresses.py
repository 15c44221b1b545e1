"""Address resolution: keeps id_address_map a bijection across reorgs.

One resolve() call applies every change set of an ingestion cycle in a
single write transaction:

1. in-place corrections for modified bindings (reorg repair), applied in
   two passes so that bindings may swap identifiers or addresses
2. insert-if-absent for added bindings, first writer per identifier wins
3. an address already held by another identifier fails the whole cycle

Readers therefore never observe an address bound to two identifiers or an
identifier bound to two addresses.
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import text
from sqlmodel import select

from actorledger.core.errors import StoreError
from actorledger.ingest.types import (
    ActorDiff,
    AddressChange,
    AddressChangeEvaluator,
    AddressChangeSet,
    AddressPair,
    iter_observations,
)
from actorledger.models import IdAddressMap
from actorledger.store.database import store_errors

if TYPE_CHECKING:
    from actorledger.store.cancel import CancelScope
    from actorledger.store.database import BulkWriter, Database

logger = structlog.get_logger()

# Staged bindings whose address ended up held by a different identifier.
# Identifier clashes are discarded by the merge; address clashes are not.
REBOUND_ADDRESSES_SQL = """
SELECT s.id, s.address, m.id AS bound_id
FROM temp.{stage} s
JOIN id_address_map m ON m.address = s.address AND m.id != s.id
ORDER BY s.rowid
LIMIT 1
"""

# Prefix for bindings parked mid-correction; no chain address starts with it.
PARKED_PREFIX = "~"

INIT_ACTOR_CODE = "bafkqactgnfwc6mjpnfxgs5a"

# Singleton system actors present from genesis; never reported by a diff.
SINGLETON_ACTOR_IDS: dict[str, int] = {
    "system": 0,
    "init": 1,
    "reward": 2,
    "cron": 3,
    "storage_power": 4,
    "storage_market": 5,
    "verified_registry": 6,
    "burnt_funds": 99,
}


def singleton_addresses(network_prefix: str = "f") -> list[AddressPair]:
    """ID addresses of the singleton actors, each mapped to itself."""
    pairs = []
    for actor_id in SINGLETON_ACTOR_IDS.values():
        addr = f"{network_prefix}0{actor_id}"
        pairs.append(AddressPair(identifier=addr, address=addr))
    return pairs


@dataclass
class AddressResolution:
    """Outcome of one resolve() call."""

    corrected: int
    inserted: int
    duration_seconds: float


class AddressResolver:
    """Maintains the address <-> identifier bijection."""

    def __init__(
        self,
        db: Database,
        network_prefix: str = "f",
        init_actor_code: str = INIT_ACTOR_CODE,
    ) -> None:
        self.db = db
        self.network_prefix = network_prefix
        self.init_actor_code = init_actor_code

    def seed(self) -> int:
        """Register the singleton actors. Returns the number of new rows."""
        return self.resolve([]).inserted

    def collect(
        self, diff: ActorDiff, evaluator: AddressChangeEvaluator
    ) -> list[AddressChangeSet]:
        """Ask the evaluator for the address map transition of every init actor tipset."""
        change_sets: list[AddressChangeSet] = []
        for code, tipset, observation in iter_observations(diff):
            if code != self.init_actor_code or observation.parent_tipset is None:
                continue
            change_set = evaluator.changes(observation.parent_tipset, tipset)
            if change_set:
                change_sets.append(change_set)
        return change_sets

    def resolve(
        self,
        change_sets: Sequence[AddressChangeSet],
        cancel: CancelScope | None = None,
    ) -> AddressResolution:
        """Apply corrections and new bindings for one cycle atomically."""
        start = time.monotonic()
        for change_set in change_sets:
            change_set.validate()

        additions, corrections = self._plan(change_sets)
        records = [{"id": p.identifier, "address": p.address} for p in additions]

        with store_errors("store_actor_addresses"), self.db.bulk_writer(cancel) as writer:
            corrected = self._correct(writer, corrections)
            writer.check_cancelled("store_actor_addresses")

            stage = writer.stage(IdAddressMap, records)
            inserted = writer.merge(IdAddressMap, stage, ["id", "address"])
            rebound = writer.conn.execute(text(REBOUND_ADDRESSES_SQL.format(stage=stage))).all()
            writer.drop_stage(stage)
            if rebound:
                row = rebound[0]
                raise StoreError.conflict(
                    "store_actor_addresses",
                    f"address {row.address} is bound to {row.bound_id}, not {row.id}",
                    address=row.address,
                    identifier=row.id,
                    bound_identifier=row.bound_id,
                )

        duration = time.monotonic() - start
        logger.debug(
            "stored_actor_addresses",
            duration=f"{duration:.3f}s",
            corrections=len(corrections),
            corrected=corrected,
            inserted=inserted,
        )
        return AddressResolution(corrected=corrected, inserted=inserted, duration_seconds=duration)

    @staticmethod
    def _correct(writer: BulkWriter, corrections: Sequence[AddressChange]) -> int:
        """Rewrite old bindings to new ones without transient unique clashes.

        Old rows are first moved to parked keys, then to their new pairs, so
        a cycle that swaps two identifiers never hits the unique constraints
        halfway through.
        """
        for change in corrections:
            writer.update_where(
                IdAddressMap,
                {
                    "id": PARKED_PREFIX + change.old.identifier,
                    "address": PARKED_PREFIX + change.old.address,
                },
                "id = :old_id AND address = :old_address",
                {"old_id": change.old.identifier, "old_address": change.old.address},
            )
        corrected = 0
        for change in corrections:
            corrected += writer.update_where(
                IdAddressMap,
                {"id": change.new.identifier, "address": change.new.address},
                "id = :parked_id AND address = :parked_address",
                {
                    "parked_id": PARKED_PREFIX + change.old.identifier,
                    "parked_address": PARKED_PREFIX + change.old.address,
                },
            )
        return corrected

    def _plan(
        self, change_sets: Sequence[AddressChangeSet]
    ) -> tuple[list[AddressPair], list[AddressChange]]:
        """Flatten change sets into ordered additions and corrections.

        An addition that a later modification in the same cycle replaces is
        carried forward as its new binding; the UPDATE still runs for rows
        stored by earlier cycles. Chained modifications of one binding are
        folded into a single correction.
        """
        additions: dict[AddressPair, None] = dict.fromkeys(singleton_addresses(self.network_prefix))
        corrections: list[AddressChange] = []
        for change_set in change_sets:
            for pair in change_set.added:
                additions.setdefault(pair, None)
            for change in change_set.modified:
                # A -> B followed by B -> C collapses to A -> C.
                folded = [
                    AddressChange(old=c.old, new=change.new) if c.new == change.old else c
                    for c in corrections
                ]
                if folded == corrections:
                    folded.append(change)
                corrections = folded
                if change.old in additions:
                    additions = {
                        (change.new if p == change.old else p): None for p in additions
                    }
        return list(additions), corrections

    def lookup_identifier(self, address: str) -> str | None:
        with self.db.session() as session:
            row = session.exec(select(IdAddressMap).where(IdAddressMap.address == address)).first()
            return row.id if row else None

    def lookup_address(self, identifier: str) -> str | None:
        with self.db.session() as session:
            row = session.exec(select(IdAddressMap).where(IdAddressMap.id == identifier)).first()
            return row.address if row else None

    def mappings(self) -> list[IdAddressMap]:
        """All bindings ordered by identifier."""
        with self.db.session() as session:
            return list(session.exec(select(IdAddressMap).order_by(IdAddressMap.id)).all())
