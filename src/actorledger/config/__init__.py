"""Config module exports."""

from actorledger.config.loader import load_config
from actorledger.config.models import (
    ActorLedgerConfig,
    DatabaseConfig,
    IngestConfig,
    LoggingConfig,
    LogOutputConfig,
)

__all__ = [
    "load_config",
    "ActorLedgerConfig",
    "DatabaseConfig",
    "IngestConfig",
    "LoggingConfig",
    "LogOutputConfig",
]
