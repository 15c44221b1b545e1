"""Tests for the ingestion input contract."""

from __future__ import annotations

import base64
import json
from pathlib import Path

import pytest

from actorledger.core.errors import ErrorCode, IngestError
from actorledger.ingest.types import (
    AddressChange,
    AddressChangeSet,
    AddressPair,
    iter_observations,
    load_diff,
)
from tests.ingest.builders import ACCOUNT_CODE, MINER_CODE, observation, sample_diff


class TestIterObservations:
    """Deterministic traversal of a diff."""

    def test_sorted_by_code_then_tipset_then_position(self) -> None:
        order = [
            (code, tipset, obs.identifier) for code, tipset, obs in iter_observations(sample_diff())
        ]

        assert order == [
            (ACCOUNT_CODE, "tipset-a", "f01000"),
            (ACCOUNT_CODE, "tipset-a", "f01001"),
            (MINER_CODE, "tipset-b", "f01002"),
        ]

    def test_tipsets_sorted_within_code(self) -> None:
        diff = {
            ACCOUNT_CODE: {
                "tipset-z": [observation("f01009")],
                "tipset-m": [observation("f01008")],
            }
        }

        assert [t for _, t, _ in iter_observations(diff)] == ["tipset-m", "tipset-z"]

    def test_empty_diff(self) -> None:
        assert list(iter_observations({})) == []

    def test_empty_identifier_raises(self) -> None:
        diff = {ACCOUNT_CODE: {"tipset-a": [observation("")]}}

        with pytest.raises(IngestError) as exc_info:
            list(iter_observations(diff))

        assert exc_info.value.code == ErrorCode.INGEST_UNDEFINED_IDENTIFIER
        assert exc_info.value.details["actor_code"] == ACCOUNT_CODE
        assert exc_info.value.details["tipset"] == "tipset-a"


class TestAddressChangeSet:
    """Truthiness and validation."""

    def test_empty_set_is_falsy(self) -> None:
        assert not AddressChangeSet()

    def test_set_with_additions_is_truthy(self) -> None:
        assert AddressChangeSet(added=[AddressPair("f01000", "f1x")])

    def test_valid_set_passes(self) -> None:
        AddressChangeSet(
            added=[AddressPair("f01000", "f1x")],
            modified=[AddressChange(AddressPair("f01001", "f1y"), AddressPair("f01002", "f1y"))],
        ).validate()

    def test_empty_address_rejected(self) -> None:
        with pytest.raises(IngestError) as exc_info:
            AddressChangeSet(added=[AddressPair("f01000", "")]).validate()

        assert exc_info.value.code == ErrorCode.INGEST_MALFORMED_CHANGE_SET

    def test_non_pair_entry_rejected(self) -> None:
        change_set = AddressChangeSet(added=[("f01000", "f1x")])  # type: ignore[list-item]

        with pytest.raises(IngestError):
            change_set.validate()


class TestLoadDiff:
    """JSON diff files."""

    def _write(self, path: Path, document: object) -> Path:
        path.write_text(json.dumps(document))
        return path

    def test_loads_actors_and_changes(self, temp_dir: Path) -> None:
        path = self._write(
            temp_dir / "diff.json",
            {
                "actors": {
                    ACCOUNT_CODE: {
                        "tipset-a": [
                            {
                                "id": "f01000",
                                "head": "bafyhead1",
                                "nonce": 3,
                                "balance": "42",
                                "stateroot": "bafyroot1",
                                "state": base64.b64encode(b"\x00\x01raw").decode(),
                                "parent_tipset": "tipset-0",
                            }
                        ]
                    }
                },
                "address_changes": [
                    {
                        "added": [{"id": "f01000", "address": "f1x"}],
                        "modified": [
                            {
                                "old": {"id": "f01001", "address": "f1y"},
                                "new": {"id": "f01002", "address": "f1y"},
                            }
                        ],
                    }
                ],
            },
        )

        actors, changes = load_diff(path)

        obs = actors[ACCOUNT_CODE]["tipset-a"][0]
        assert obs.identifier == "f01000"
        assert obs.nonce == 3
        assert obs.state == b"\x00\x01raw"
        assert obs.parent_tipset == "tipset-0"
        assert changes == [
            AddressChangeSet(
                added=[AddressPair("f01000", "f1x")],
                modified=[
                    AddressChange(AddressPair("f01001", "f1y"), AddressPair("f01002", "f1y"))
                ],
            )
        ]

    def test_missing_sections_default_empty(self, temp_dir: Path) -> None:
        path = self._write(temp_dir / "diff.json", {})

        assert load_diff(path) == ({}, [])

    def test_missing_file(self, temp_dir: Path) -> None:
        with pytest.raises(IngestError) as exc_info:
            load_diff(temp_dir / "nope.json")

        assert exc_info.value.code == ErrorCode.INGEST_MALFORMED_DIFF

    def test_invalid_json(self, temp_dir: Path) -> None:
        path = temp_dir / "diff.json"
        path.write_text("{not json")

        with pytest.raises(IngestError) as exc_info:
            load_diff(path)

        assert exc_info.value.code == ErrorCode.INGEST_MALFORMED_DIFF

    def test_top_level_must_be_object(self, temp_dir: Path) -> None:
        path = self._write(temp_dir / "diff.json", [1, 2])

        with pytest.raises(IngestError):
            load_diff(path)

    def test_missing_field(self, temp_dir: Path) -> None:
        path = self._write(
            temp_dir / "diff.json",
            {"actors": {ACCOUNT_CODE: {"tipset-a": [{"id": "f01000"}]}}},
        )

        with pytest.raises(IngestError) as exc_info:
            load_diff(path)

        assert "KeyError" in exc_info.value.details["reason"]

    def test_bad_base64_state(self, temp_dir: Path) -> None:
        path = self._write(
            temp_dir / "diff.json",
            {
                "actors": {
                    ACCOUNT_CODE: {
                        "tipset-a": [
                            {
                                "id": "f01000",
                                "head": "h",
                                "nonce": 0,
                                "balance": "0",
                                "stateroot": "r",
                                "state": "!!not-base64!!",
                            }
                        ]
                    }
                }
            },
        )

        with pytest.raises(IngestError):
            load_diff(path)
