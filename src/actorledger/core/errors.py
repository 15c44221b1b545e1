"""ActorLedger error types with typed error codes.

Error code ranges:
- 2xxx: Config
- 3xxx: Store
- 4xxx: Ingest
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Typed error codes for programmatic handling."""

    # Config (2xxx)
    CONFIG_PARSE_ERROR = 2001
    CONFIG_INVALID_VALUE = 2002
    CONFIG_FILE_NOT_FOUND = 2004

    # Store (3xxx)
    STORE_WRITE_FAILED = 3001
    STORE_CONFLICT = 3002
    STORE_BUSY = 3003

    # Ingest (4xxx)
    INGEST_MALFORMED_CHANGE_SET = 4001
    INGEST_UNDEFINED_IDENTIFIER = 4002
    INGEST_CANCELLED = 4004
    INGEST_MALFORMED_DIFF = 4005


@dataclass(frozen=True)
class ActorLedgerError(Exception):
    """Base error with structured context."""

    code: ErrorCode
    message: str
    retryable: bool = False
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def error_name(self) -> str:
        """String identifier for logging (e.g., 'STORE_CONFLICT')."""
        return self.code.name

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "error": self.error_name,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.error_name}: {self.message}"


class ConfigError(ActorLedgerError):
    """Configuration-related errors."""

    @classmethod
    def parse_error(cls, path: str, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message=f"Failed to parse config at {path}: {reason}",
            details={"path": path, "reason": reason},
        )

    @classmethod
    def invalid_value(cls, field: str, value: Any, reason: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_INVALID_VALUE,
            message=f"Invalid value for '{field}': {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )

    @classmethod
    def file_not_found(cls, path: str) -> "ConfigError":
        return cls(
            code=ErrorCode.CONFIG_FILE_NOT_FOUND,
            message=f"Config file not found: {path}",
            details={"path": path},
        )


class StoreError(ActorLedgerError):
    """Errors raised by the relational store during a stage."""

    @classmethod
    def write_failed(cls, stage: str, reason: str, **details: Any) -> "StoreError":
        return cls(
            code=ErrorCode.STORE_WRITE_FAILED,
            message=f"{stage} failed: {reason}",
            retryable=True,
            details={"stage": stage, "reason": reason, **details},
        )

    @classmethod
    def conflict(cls, stage: str, reason: str, **details: Any) -> "StoreError":
        return cls(
            code=ErrorCode.STORE_CONFLICT,
            message=f"{stage} violated a uniqueness constraint: {reason}",
            details={"stage": stage, "reason": reason, **details},
        )

    @classmethod
    def busy(cls, attempts: int) -> "StoreError":
        return cls(
            code=ErrorCode.STORE_BUSY,
            message=f"Database still locked after {attempts} attempts",
            retryable=True,
            details={"attempts": attempts},
        )


class IngestError(ActorLedgerError):
    """Errors caused by malformed input or an aborted ingestion cycle."""

    @classmethod
    def malformed_change_set(cls, reason: str, **details: Any) -> "IngestError":
        return cls(
            code=ErrorCode.INGEST_MALFORMED_CHANGE_SET,
            message=f"Malformed address change set: {reason}",
            details={"reason": reason, **details},
        )

    @classmethod
    def malformed_diff(cls, reason: str, **details: Any) -> "IngestError":
        return cls(
            code=ErrorCode.INGEST_MALFORMED_DIFF,
            message=f"Malformed actor diff: {reason}",
            details={"reason": reason, **details},
        )

    @classmethod
    def undefined_identifier(
        cls, code: str, tipset: str, identifier: str = ""
    ) -> "IngestError":
        subject = "no identifier"
        if identifier:
            subject = f"identifier {identifier!r}, which id_address_map does not know"
        return cls(
            code=ErrorCode.INGEST_UNDEFINED_IDENTIFIER,
            message=f"Observation under code {code} at tipset {tipset} has {subject}",
            details={"actor_code": code, "tipset": tipset, "identifier": identifier},
        )

    @classmethod
    def cancelled(cls, stage: str) -> "IngestError":
        return cls(
            code=ErrorCode.INGEST_CANCELLED,
            message=f"{stage} cancelled before commit",
            retryable=True,
            details={"stage": stage},
        )

