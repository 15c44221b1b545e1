"""Input contract of the ingestion pipeline.

The diff evaluator hands over, per cycle:
- an ActorDiff: actor code -> tipset key -> observations at that tipset
- AddressChangeSets: one per tipset transition of the init actor

Every consumer walks the diff through iter_observations(), which sorts codes
and tipset keys so that a cycle is processed in the same order every time.
"""

from __future__ import annotations

import base64
import binascii
import json
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from actorledger.core.errors import IngestError


@dataclass(frozen=True, slots=True)
class AddressPair:
    """An (ID address, public address) binding."""

    identifier: str
    address: str


@dataclass(frozen=True, slots=True)
class AddressChange:
    """A binding that a competing chain history replaced."""

    old: AddressPair
    new: AddressPair


@dataclass(frozen=True, slots=True)
class AddressChangeSet:
    """Address map changes of the init actor for one tipset transition."""

    added: list[AddressPair] = field(default_factory=list)
    modified: list[AddressChange] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.added or self.modified)

    def validate(self) -> None:
        """Raise IngestError if any pair has an empty side."""
        for pair in self.added:
            _validate_pair(pair, "added")
        for change in self.modified:
            _validate_pair(change.old, "modified.old")
            _validate_pair(change.new, "modified.new")


def _validate_pair(pair: AddressPair, where: str) -> None:
    if not isinstance(pair, AddressPair):
        raise IngestError.malformed_change_set(f"{where} entry is not an address pair")
    if not pair.identifier or not pair.address:
        raise IngestError.malformed_change_set(
            f"{where} entry has an empty side",
            identifier=pair.identifier,
            address=pair.address,
        )


@dataclass(frozen=True, slots=True)
class ActorObservation:
    """One actor as seen in the state tree of a tipset."""

    identifier: str  # ID address
    head: str
    nonce: int
    balance: str
    stateroot: str
    state: bytes
    parent_tipset: str | None = None


ActorDiff = Mapping[str, Mapping[str, Sequence[ActorObservation]]]


class AddressChangeEvaluator(Protocol):
    """External predicate evaluator for init actor address map changes."""

    def changes(self, parent_tipset: str, tipset: str) -> AddressChangeSet | None:
        """Return the address map transition, or None if nothing changed."""
        ...


def iter_observations(diff: ActorDiff) -> Iterator[tuple[str, str, ActorObservation]]:
    """Yield (code, tipset_key, observation) in code, tipset, list order."""
    for code in sorted(diff):
        tipsets = diff[code]
        for tipset in sorted(tipsets):
            for observation in tipsets[tipset]:
                if not observation.identifier:
                    raise IngestError.undefined_identifier(code, tipset)
                yield code, tipset, observation


# =============================================================================
# JSON diff files
# =============================================================================


def load_diff(path: Path) -> tuple[dict[str, dict[str, list[ActorObservation]]], list[AddressChangeSet]]:
    """Load an actor diff and its address change sets from a JSON file.

    Layout::

        {
          "actors": {"<code>": {"<tipset>": [{"id": ..., "head": ..., "nonce": 0,
                                              "balance": "0", "stateroot": ...,
                                              "state": "<base64>",
                                              "parent_tipset": ...}]}},
          "address_changes": [{"added": [{"id": ..., "address": ...}],
                               "modified": [{"old": {...}, "new": {...}}]}]
        }
    """
    try:
        document = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        raise IngestError.malformed_diff(str(e), path=str(path)) from e
    if not isinstance(document, dict):
        raise IngestError.malformed_diff("top level must be an object", path=str(path))

    try:
        actors = {
            code: {
                tipset: [_observation_from_json(raw) for raw in observations]
                for tipset, observations in tipsets.items()
            }
            for code, tipsets in document.get("actors", {}).items()
        }
        changes = [_change_set_from_json(raw) for raw in document.get("address_changes", [])]
    except (KeyError, TypeError, ValueError, AttributeError, binascii.Error) as e:
        raise IngestError.malformed_diff(f"{type(e).__name__}: {e}", path=str(path)) from e
    return actors, changes


def _observation_from_json(raw: dict[str, Any]) -> ActorObservation:
    return ActorObservation(
        identifier=raw["id"],
        head=raw["head"],
        nonce=int(raw["nonce"]),
        balance=str(raw["balance"]),
        stateroot=raw["stateroot"],
        state=base64.b64decode(raw.get("state", ""), validate=True),
        parent_tipset=raw.get("parent_tipset"),
    )


def _pair_from_json(raw: dict[str, Any]) -> AddressPair:
    return AddressPair(identifier=raw["id"], address=raw["address"])


def _change_set_from_json(raw: dict[str, Any]) -> AddressChangeSet:
    return AddressChangeSet(
        added=[_pair_from_json(p) for p in raw.get("added", [])],
        modified=[
            AddressChange(old=_pair_from_json(m["old"]), new=_pair_from_json(m["new"]))
            for m in raw.get("modified", [])
        ],
    )
