"""
Storage Services Package

Provides the abstract document store used by the ledger and its concrete
implementations: in-memory (tests, local use) and Google Sheets.
"""

from ledger.services.storage.interface import (
    ACCOUNTS,
    AUDIT_EVENTS,
    RECURRING_TRANSACTIONS,
    TRANSACTIONS,
    ConnectionError,
    DocumentStore,
    DuplicateError,
    NotFoundError,
    StorageError,
    WriteBatch,
    WriteKind,
    WriteOperation,
    compact_document,
)
from ledger.services.storage.memory import InMemoryDocumentStore
from ledger.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsDocumentStore,
)

__all__ = [
    # Collections
    "ACCOUNTS",
    "AUDIT_EVENTS",
    "RECURRING_TRANSACTIONS",
    "TRANSACTIONS",
    # Interface
    "DocumentStore",
    "WriteBatch",
    "WriteKind",
    "WriteOperation",
    "compact_document",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # Implementations
    "InMemoryDocumentStore",
    "GoogleSheetsClient",
    "GoogleSheetsDocumentStore",
]
