"""
Abstract Document Store Interface

DESIGN DECISION: The ledger depends on an abstract document store, never on a
database product. This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The contract is intentionally small: get by id, query by equality filters,
and an atomic batch of insert / update-with-increment / delete operations.
Single-document insert/update/delete are just one-operation batches.

CRITICAL: ``commit`` is all-or-nothing. Either every operation in the batch
is applied, or none is and StorageError is raised.

Balance changes are expressed as increments applied by the store at commit
time, so two batches touching the same account compose regardless of order.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


# Collection names
ACCOUNTS = "accounts"
TRANSACTIONS = "transactions"
RECURRING_TRANSACTIONS = "recurring_transactions"
AUDIT_EVENTS = "audit_events"


class WriteKind(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class WriteOperation(BaseModel):
    """One write inside a batch."""

    kind: WriteKind
    collection: str
    doc_id: str
    fields: dict[str, Any] = Field(default_factory=dict)
    increments: dict[str, Decimal] = Field(default_factory=dict)


class WriteBatch:
    """
    Ordered list of writes committed together.

    Usage:
        batch = store.batch()
        batch.insert(TRANSACTIONS, txn_id, fields)
        batch.update(ACCOUNTS, account_id, {"updated_at": now},
                     increments={"current_balance": delta})
        await store.commit(batch)
    """

    def __init__(self):
        self._operations: list[WriteOperation] = []

    def insert(self, collection: str, doc_id: str, fields: dict[str, Any]) -> "WriteBatch":
        self._operations.append(WriteOperation(
            kind=WriteKind.INSERT,
            collection=collection,
            doc_id=doc_id,
            fields=dict(fields),
        ))
        return self

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: Optional[dict[str, Any]] = None,
        increments: Optional[dict[str, Decimal]] = None,
    ) -> "WriteBatch":
        """
        Update an existing document.

        ``fields`` overwrite stored values (a None value stores null).
        ``increments`` are added to the stored numeric value at commit time.
        """
        self._operations.append(WriteOperation(
            kind=WriteKind.UPDATE,
            collection=collection,
            doc_id=doc_id,
            fields=dict(fields or {}),
            increments={k: Decimal(v) for k, v in (increments or {}).items()},
        ))
        return self

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        self._operations.append(WriteOperation(
            kind=WriteKind.DELETE,
            collection=collection,
            doc_id=doc_id,
        ))
        return self

    @property
    def operations(self) -> list[WriteOperation]:
        return list(self._operations)

    def __len__(self) -> int:
        return len(self._operations)


def compact_document(fields: dict[str, Any]) -> dict[str, Any]:
    """
    Drop absent (None) fields from a document being inserted.

    Models carry proper Optional fields; omitting them from new documents is
    a serialization concern of the store, not of the ledger.
    """
    return {key: value for key, value in fields.items() if value is not None}


class DocumentStore(ABC):
    """
    Abstract interface for ledger document storage.

    Any storage implementation (in-memory, Google Sheets, Firestore, etc.)
    must implement these methods. Returned documents always include their
    ``id``.
    """

    def new_id(self) -> str:
        """Generate an id for a new document."""
        return uuid4().hex

    def batch(self) -> WriteBatch:
        return WriteBatch()

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        """
        Retrieve a document by id.

        Returns:
            The document (with ``id``) if found, None otherwise

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        """
        List documents whose fields equal every value in ``filters``.

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def commit(self, batch: WriteBatch) -> None:
        """
        Apply every operation in the batch as one atomic unit.

        Raises:
            NotFoundError: An update targets a missing document (nothing applied)
            DuplicateError: An insert targets an existing id (nothing applied)
            StorageError: Backend failure (nothing applied)
        """
        pass

    async def get_many(
        self,
        collection: str,
        doc_ids: list[str],
    ) -> dict[str, Optional[dict[str, Any]]]:
        """Fetch several documents by id. Missing ids map to None."""
        return {doc_id: await self.get(collection, doc_id) for doc_id in doc_ids}

    async def insert(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        await self.commit(self.batch().insert(collection, doc_id, fields))

    async def update(
        self,
        collection: str,
        doc_id: str,
        fields: Optional[dict[str, Any]] = None,
        increments: Optional[dict[str, Decimal]] = None,
    ) -> None:
        await self.commit(self.batch().update(collection, doc_id, fields, increments))

    async def delete(self, collection: str, doc_id: str) -> None:
        await self.commit(self.batch().delete(collection, doc_id))


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


def apply_operations(
    collections: dict[str, dict[str, dict[str, Any]]],
    operations: list[WriteOperation],
) -> None:
    """
    Apply batch operations to staged ``{collection: {id: document}}`` data.

    Stores call this on a copy of their data and publish the copy only if it
    returns without raising. Inserts drop None fields; updates store them as
    null. Increments add to the stored value (missing counts as zero).
    """
    for op in operations:
        documents = collections.setdefault(op.collection, {})

        if op.kind == WriteKind.INSERT:
            if op.doc_id in documents:
                raise DuplicateError(
                    f"Document already exists: {op.collection}/{op.doc_id}"
                )
            documents[op.doc_id] = compact_document(op.fields)

        elif op.kind == WriteKind.UPDATE:
            document = documents.get(op.doc_id)
            if document is None:
                raise NotFoundError(
                    f"Document not found: {op.collection}/{op.doc_id}"
                )
            document.update(op.fields)
            for field, delta in op.increments.items():
                current = document.get(field)
                if current is None:
                    current = Decimal("0")
                if isinstance(current, bool) or not isinstance(current, (int, float, Decimal)):
                    raise StorageError(
                        f"Cannot increment non-numeric field {field} "
                        f"on {op.collection}/{op.doc_id}"
                    )
                document[field] = Decimal(str(current)) + delta

        elif op.kind == WriteKind.DELETE:
            documents.pop(op.doc_id, None)
