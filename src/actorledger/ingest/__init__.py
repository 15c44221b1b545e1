"""Ingestion pipeline: address resolution, head and state stores, temporal index."""

from actorledger.ingest.addresses import (
    INIT_ACTOR_CODE,
    SINGLETON_ACTOR_IDS,
    AddressResolution,
    AddressResolver,
    singleton_addresses,
)
from actorledger.ingest.heads import ActorHeadStore
from actorledger.ingest.orchestrator import IngestionOrchestrator, IngestStats
from actorledger.ingest.states import ActorStateStore
from actorledger.ingest.tips import TemporalIndex
from actorledger.ingest.types import (
    ActorDiff,
    ActorObservation,
    AddressChange,
    AddressChangeEvaluator,
    AddressChangeSet,
    AddressPair,
    iter_observations,
    load_diff,
)

__all__ = [
    "INIT_ACTOR_CODE",
    "SINGLETON_ACTOR_IDS",
    "ActorDiff",
    "ActorHeadStore",
    "ActorObservation",
    "ActorStateStore",
    "AddressChange",
    "AddressChangeEvaluator",
    "AddressChangeSet",
    "AddressPair",
    "AddressResolution",
    "AddressResolver",
    "IngestStats",
    "IngestionOrchestrator",
    "TemporalIndex",
    "iter_observations",
    "load_diff",
    "singleton_addresses",
]
