"""Tests for point-in-time actor queries."""

from __future__ import annotations

from actorledger.ingest.heads import ActorHeadStore
from actorledger.ingest.tips import TemporalIndex
from actorledger.store.database import Database
from tests.ingest.builders import ACCOUNT_CODE, add_heights, observation, register_identifiers


def _ingest(db: Database, *observations) -> None:
    register_identifiers(db, *sorted({obs.identifier for obs in observations}))
    ActorHeadStore(db).store({ACCOUNT_CODE: {"tipset": list(observations)}})


class TestActorTips:
    """Latest observation strictly below an epoch."""

    def _history(self, db: Database) -> None:
        _ingest(
            db,
            observation("f01000", head="h1", nonce=1, stateroot="S1"),
            observation("f01000", head="h2", nonce=2, stateroot="S2"),
        )
        add_heights(db, [("tsk-10", "S1", 10), ("tsk-20", "S2", 20)])

    def test_between_observations(self, temp_db: Database) -> None:
        self._history(temp_db)

        tips = TemporalIndex(temp_db).actor_tips(15)

        assert [(t.id, t.stateroot, t.height) for t in tips] == [("f01000", "S1", 10)]

    def test_after_last_observation(self, temp_db: Database) -> None:
        self._history(temp_db)

        tips = TemporalIndex(temp_db).actor_tips(25)

        assert [(t.id, t.stateroot, t.head, t.nonce) for t in tips] == [("f01000", "S2", "h2", 2)]

    def test_before_first_observation(self, temp_db: Database) -> None:
        self._history(temp_db)

        assert TemporalIndex(temp_db).actor_tips(5) == []

    def test_epoch_is_exclusive(self, temp_db: Database) -> None:
        self._history(temp_db)

        tips = TemporalIndex(temp_db).actor_tips(20)

        assert [t.stateroot for t in tips] == ["S1"]

    def test_one_tip_per_identifier_ordered_by_id(self, temp_db: Database) -> None:
        _ingest(
            temp_db,
            observation("f01001", head="hb", stateroot="S1"),
            observation("f01000", head="ha", stateroot="S1"),
        )
        add_heights(temp_db, [("tsk-10", "S1", 10)])

        tips = TemporalIndex(temp_db).actor_tips(100)

        assert [t.id for t in tips] == ["f01000", "f01001"]

    def test_observation_without_lineage_is_invisible(self, temp_db: Database) -> None:
        _ingest(temp_db, observation("f01000", stateroot="orphan"))

        assert TemporalIndex(temp_db).actor_tips(100) == []

    def test_tie_at_same_height_prefers_smallest_stateroot(self, temp_db: Database) -> None:
        _ingest(
            temp_db,
            observation("f01000", head="hb", stateroot="Sb"),
            observation("f01000", head="ha", stateroot="Sa"),
        )
        add_heights(temp_db, [("tsk-b", "Sb", 10), ("tsk-a", "Sa", 10)])

        tip = TemporalIndex(temp_db).actor_tip("f01000", 11)

        assert tip is not None
        assert (tip.stateroot, tip.head) == ("Sa", "ha")

    def test_tip_carries_lineage(self, temp_db: Database) -> None:
        self._history(temp_db)

        tip = TemporalIndex(temp_db).actor_tip("f01000", 15)

        assert tip is not None
        assert tip.parentstateroot == "S1"
        assert tip.code == ACCOUNT_CODE
        assert tip.balance == "1000"


class TestActorTip:
    def test_single_identifier(self, temp_db: Database) -> None:
        _ingest(
            temp_db,
            observation("f01000", head="ha", stateroot="S1"),
            observation("f01001", head="hb", stateroot="S1"),
        )
        add_heights(temp_db, [("tsk-10", "S1", 10)])

        tip = TemporalIndex(temp_db).actor_tip("f01001", 11)

        assert tip is not None
        assert tip.head == "hb"

    def test_unknown_identifier(self, temp_db: Database) -> None:
        assert TemporalIndex(temp_db).actor_tip("f09999", 100) is None
