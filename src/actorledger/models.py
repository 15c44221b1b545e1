"""SQLModel definitions for the actor ledger.

Single source of truth for all table schemas.

Tables:
- id_address_map: canonical bijection between chain addresses and ID addresses
- actors: append-only log of actor metadata observations
- actor_states: content-addressed actor state blobs keyed by (head, code)
- state_heights: height lineage, written by chain sync and only read here
"""

from dataclasses import dataclass

from sqlmodel import Field, SQLModel


class IdAddressMap(SQLModel, table=True):
    """Binding between a stable ID address and a public chain address.

    Rows are rewritten in place on reorg correction and never deleted.
    """

    __tablename__ = "id_address_map"

    id: str = Field(primary_key=True, unique=True)
    address: str = Field(primary_key=True, unique=True)


class Actor(SQLModel, table=True):
    """Actor metadata as observed at a given state root.

    The whole natural key is the primary key, so re-observing an unchanged
    actor at the same state root never produces a second row. There is no
    foreign key to id_address_map, since corrections rewrite identifiers in
    place; ActorHeadStore checks bindings per batch instead.
    """

    __tablename__ = "actors"

    id: str = Field(primary_key=True, index=True)
    code: str = Field(primary_key=True)
    head: str = Field(primary_key=True)
    nonce: int = Field(primary_key=True)
    balance: str = Field(primary_key=True)  # attoFIL, decimal string
    stateroot: str = Field(primary_key=True)


class ActorState(SQLModel, table=True):
    """Opaque serialized actor state, addressed by head and code."""

    __tablename__ = "actor_states"

    head: str = Field(primary_key=True)
    code: str = Field(primary_key=True)
    state: bytes
    schema_version: str | None = None


class StateHeight(SQLModel, table=True):
    """Tipset lineage: the height whose parent state root is parentstateroot.

    Maintained by the chain sync subsystem.
    """

    __tablename__ = "state_heights"

    tsk: str = Field(primary_key=True)
    parentstateroot: str = Field(index=True)
    height: int = Field(index=True)


@dataclass(frozen=True)
class ActorTip:
    """Row returned by the actor_tips temporal query."""

    id: str
    code: str
    head: str
    nonce: int
    balance: str
    stateroot: str
    height: int
    parentstateroot: str
