"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (ACTORLEDGER__SECTION__KEY)
3. YAML config file passed to load_config()
4. Global YAML (~/.config/actorledger/config.yaml)
5. Built-in defaults (this file)

Examples:
    ACTORLEDGER__LOGGING__LEVEL=DEBUG
    ACTORLEDGER__DATABASE__PATH=/var/lib/actorledger/ledger.db
    ACTORLEDGER__INGEST__NETWORK_PREFIX=t
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration."""

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        ACTORLEDGER__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG includes per-stage timings.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class DatabaseConfig(BaseModel):
    """Database connection configuration.

    Env vars:
        ACTORLEDGER__DATABASE__PATH: SQLite database file
        ACTORLEDGER__DATABASE__BUSY_TIMEOUT_MS: SQLite busy timeout
        ACTORLEDGER__DATABASE__MAX_RETRIES: Retries for a locked BEGIN
    """

    path: str = Field(
        default="actorledger.db",
        description="SQLite database file. Relative paths resolve against the working directory.",
    )
    busy_timeout_ms: int = Field(
        default=30000,
        description="SQLite busy timeout (ms). How long a writer waits for the lock. "
        "RISK: Too low fails concurrent head/state stages that contend for the writer lock.",
    )
    max_retries: int = Field(
        default=3,
        description="Max attempts to re-open a write transaction when the database is locked.",
    )
    retry_base_delay_sec: float = Field(
        default=0.1,
        description="Base delay between retries (exponential backoff).",
    )
    retry_max_delay_sec: float = Field(
        default=2.0,
        description="Upper bound for a single retry delay.",
    )

    @field_validator("busy_timeout_ms", "max_retries")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Must be >= 0, got {v}")
        return v


class IngestConfig(BaseModel):
    """Ingestion pipeline configuration.

    Env vars:
        ACTORLEDGER__INGEST__NETWORK_PREFIX: Address network prefix (f mainnet, t testnet)
        ACTORLEDGER__INGEST__INIT_ACTOR_CODE: Code CID of the init actor
    """

    network_prefix: Literal["f", "t"] = Field(
        default="f",
        description="Network prefix used for the well-known singleton identifiers.",
    )
    init_actor_code: str = Field(
        default="bafkqactgnfwc6mjpnfxgs5a",
        description="Code CID of the init actor, whose diffs carry address map changes.",
    )


class ActorLedgerConfig(BaseModel):
    """Root configuration for ActorLedger."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
