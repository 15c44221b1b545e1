"""Persistence layer for the actor ledger."""

from actorledger.store.cancel import CancelScope
from actorledger.store.database import BulkWriter, Database, store_errors
from actorledger.store.indexes import create_additional_indexes

__all__ = [
    "BulkWriter",
    "CancelScope",
    "Database",
    "create_additional_indexes",
    "store_errors",
]
