"""Core module exports."""

from actorledger.core.errors import (
    ActorLedgerError,
    ConfigError,
    ErrorCode,
    IngestError,
    StoreError,
)
from actorledger.core.logging import (
    clear_cycle_id,
    configure_logging,
    get_cycle_id,
    set_cycle_id,
)

__all__ = [
    # Errors
    "ActorLedgerError",
    "ConfigError",
    "ErrorCode",
    "IngestError",
    "StoreError",
    # Logging
    "clear_cycle_id",
    "configure_logging",
    "get_cycle_id",
    "set_cycle_id",
]
