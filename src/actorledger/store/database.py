"""Database engine and bulk writer for the actor ledger.

This module provides:
- Database: SQLite connection manager with WAL mode for concurrent access
- BulkWriter: staged bulk merges with insert-if-absent semantics
- store_errors: maps SQLAlchemy failures onto StoreError for a named stage

Transactions are opened explicitly: reads use BEGIN (a WAL snapshot), writes
use BEGIN IMMEDIATE so the temp staging table, the merge and any in-place
corrections commit or roll back together.
"""

from __future__ import annotations

import time
from collections.abc import Generator
from contextlib import contextmanager
from functools import partial
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import event, text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlmodel import Session, SQLModel, create_engine

from actorledger.core.errors import StoreError
from actorledger.store.indexes import create_additional_indexes

if TYPE_CHECKING:
    from sqlalchemy import Connection, Engine, RootTransaction

    from actorledger.config.models import DatabaseConfig
    from actorledger.store.cancel import CancelScope

logger = structlog.get_logger()

# Retry configuration for a locked BEGIN IMMEDIATE
DEFAULT_BUSY_TIMEOUT_MS = 30000
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 0.1  # 100ms base
DEFAULT_RETRY_MAX_DELAY = 2.0  # 2s max

_BEGIN_MODE_OPTION = "begin_mode"


def _is_database_locked_error(error: Exception) -> bool:
    """Check if error is a SQLite database locked error."""
    error_str = str(error).lower()
    return "database is locked" in error_str or "database is busy" in error_str


class Database:
    """SQLite connection manager with WAL mode for concurrent access.

    Writers retry BEGIN IMMEDIATE with exponential backoff when the
    database stays locked past the busy timeout. Work inside an open
    transaction is never retried.
    """

    def __init__(
        self,
        db_path: Path,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        retry_max_delay: float = DEFAULT_RETRY_MAX_DELAY,
    ) -> None:
        self.db_path = db_path
        self._busy_timeout_ms = busy_timeout_ms
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay
        self.engine = self._create_engine()

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> Database:
        return cls(
            Path(config.path).expanduser(),
            busy_timeout_ms=config.busy_timeout_ms,
            max_retries=config.max_retries,
            retry_base_delay=config.retry_base_delay_sec,
            retry_max_delay=config.retry_max_delay_sec,
        )

    def _create_engine(self) -> Engine:
        engine = create_engine(
            f"sqlite:///{self.db_path}",
            connect_args={"check_same_thread": False},
            pool_pre_ping=True,
        )
        event.listen(
            engine,
            "connect",
            partial(_configure_connection, busy_timeout_ms=self._busy_timeout_ms),
        )
        event.listen(engine, "begin", _emit_begin)
        return engine

    def create_all(self) -> None:
        """Create all tables from SQLModel metadata plus composite indexes."""
        # Importing the models registers their tables on SQLModel.metadata
        from actorledger import models  # noqa: F401

        SQLModel.metadata.create_all(self.engine)
        create_additional_indexes(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """ORM session for low-volume reads and fixtures."""
        with Session(self.engine) as session:
            yield session

    @contextmanager
    def read_connection(self) -> Generator[Connection, None, None]:
        """Connection inside a deferred transaction, i.e. one WAL snapshot."""
        with self.engine.connect() as conn, conn.begin():
            yield conn

    @contextmanager
    def bulk_writer(self, cancel: CancelScope | None = None) -> Generator[BulkWriter, None, None]:
        """
        Bulk writer inside a BEGIN IMMEDIATE transaction.

        Auto-commits on successful exit, rolls back on exception. When a
        cancel scope is given, cancellation is checked once more right
        before the commit.
        """
        conn, transaction = self._begin_immediate()
        writer = BulkWriter(conn, transaction, cancel)
        try:
            yield writer
            writer.commit()
        except Exception:
            writer.rollback()
            raise
        finally:
            writer.close()

    def _begin_immediate(self) -> tuple[Connection, RootTransaction]:
        for attempt in range(self._max_retries + 1):  # +1 for initial attempt
            conn = self.engine.connect()
            conn.execution_options(**{_BEGIN_MODE_OPTION: "IMMEDIATE"})
            try:
                return conn, conn.begin()
            except OperationalError as e:
                conn.close()
                if not _is_database_locked_error(e):
                    raise
                if attempt >= self._max_retries:
                    raise StoreError.busy(attempt + 1) from e
                delay = min(self._retry_base_delay * (2**attempt), self._retry_max_delay)
                logger.warning(
                    "sqlite_busy_retry",
                    attempt=attempt + 1,
                    max_retries=self._max_retries,
                    delay_sec=delay,
                )
                time.sleep(delay)
        raise StoreError.busy(self._max_retries + 1)


def _configure_connection(
    dbapi_conn: Any, _connection_record: Any, *, busy_timeout_ms: int
) -> None:
    """Configure SQLite for concurrent access and explicit transactions."""
    # Let the begin listener own BEGIN so DDL stays inside the transaction
    dbapi_conn.isolation_level = None
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)}")
    cursor.execute("PRAGMA synchronous=NORMAL")  # Safe with WAL
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _emit_begin(conn: Connection) -> None:
    mode = conn.get_execution_options().get(_BEGIN_MODE_OPTION, "DEFERRED")
    conn.exec_driver_sql(f"BEGIN {mode}")


@contextmanager
def store_errors(stage: str, **details: Any) -> Generator[None, None, None]:
    """Re-raise SQLAlchemy failures of a stage as StoreError."""
    try:
        yield
    except IntegrityError as e:
        raise StoreError.conflict(stage, str(e.orig), **details) from e
    except SQLAlchemyError as e:
        raise StoreError.write_failed(stage, str(e), **details) from e


class BulkWriter:
    """Staged bulk merges using Core SQL, bypassing ORM overhead."""

    def __init__(
        self,
        conn: Connection,
        transaction: RootTransaction,
        cancel: CancelScope | None = None,
    ) -> None:
        self.conn = conn
        self.transaction = transaction
        self.cancel = cancel

    def check_cancelled(self, stage: str) -> None:
        if self.cancel is not None:
            self.cancel.check(stage)

    def stage(self, model_class: type[SQLModel], records: list[dict[str, Any]]) -> str:
        """Load records into a fresh temp table shaped like the target; return its name."""
        table = model_class.__table__  # type: ignore[attr-defined]
        stage = f"stage_{table.name}"
        columns = list(records[0].keys())
        col_names = ", ".join(columns)
        placeholders = ", ".join(f":{col}" for col in columns)

        self.conn.execute(text(f"DROP TABLE IF EXISTS temp.{stage}"))
        self.conn.execute(
            text(f"CREATE TEMP TABLE {stage} AS SELECT {col_names} FROM {table.name} WHERE 0")
        )
        self.conn.execute(
            text(f"INSERT INTO temp.{stage} ({col_names}) VALUES ({placeholders})"),
            records,
        )
        return stage

    def merge(
        self,
        model_class: type[SQLModel],
        stage: str,
        columns: list[str],
        conflict_columns: list[str] | None = None,
    ) -> int:
        """
        Insert staged rows that are absent from the target.

        Rows are merged in staging order, so on a conflict inside one batch
        the earliest row wins. Without conflict_columns a violation of any
        uniqueness constraint discards the row.

        Returns:
            Number of rows actually inserted into the target table
        """
        table = model_class.__table__  # type: ignore[attr-defined]
        col_names = ", ".join(columns)
        conflict = f"({', '.join(conflict_columns)})" if conflict_columns else ""
        # WHERE true resolves the SELECT/upsert parsing ambiguity in SQLite
        result = self.conn.execute(
            text(
                f"INSERT INTO {table.name} ({col_names}) "
                f"SELECT {col_names} FROM temp.{stage} WHERE true ORDER BY rowid "
                f"ON CONFLICT{conflict} DO NOTHING"
            )
        )
        return int(result.rowcount)

    def drop_stage(self, stage: str) -> None:
        self.conn.execute(text(f"DROP TABLE IF EXISTS temp.{stage}"))

    def stage_and_merge(
        self,
        model_class: type[SQLModel],
        records: list[dict[str, Any]],
        conflict_columns: list[str] | None = None,
    ) -> int:
        """Stage records, check for cancellation, merge with insert-if-absent."""
        if not records:
            return 0

        table = model_class.__table__  # type: ignore[attr-defined]
        stage = self.stage(model_class, records)
        self.check_cancelled(f"merge {table.name}")
        inserted = self.merge(model_class, stage, list(records[0].keys()), conflict_columns)
        self.drop_stage(stage)
        return inserted

    def update_where(
        self,
        model_class: type[SQLModel],
        updates: dict[str, Any],
        condition: str,
        params: dict[str, Any],
    ) -> int:
        """
        Bulk update with condition. Values are always bound, never inlined.

        Returns:
            Number of rows affected
        """
        table = model_class.__table__  # type: ignore[attr-defined]
        set_clause = ", ".join(f"{k} = :upd_{k}" for k in updates)
        sql = f"UPDATE {table.name} SET {set_clause} WHERE {condition}"
        update_params = {f"upd_{k}": v for k, v in updates.items()}
        result = self.conn.execute(text(sql), {**update_params, **params})
        return int(result.rowcount)

    def commit(self) -> None:
        """Commit the current transaction."""
        self.check_cancelled("commit")
        self.transaction.commit()

    def rollback(self) -> None:
        """Rollback the current transaction."""
        if self.transaction.is_active:
            self.transaction.rollback()

    def close(self) -> None:
        """Close the connection."""
        self.conn.close()
