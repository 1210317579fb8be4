"""
Shared service plumbing: owned-document loading and batch commits.

CRITICAL: Services never read-modify-write balances. They load documents
only to validate, then hand a WriteBatch of field writes and increments to
the store.
"""

from typing import Any, Optional

from pydantic import ValidationError

from ledger.errors import (
    InternalError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
)
from ledger.services.storage import DocumentStore, StorageError, WriteBatch


async def read(store: DocumentStore, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
    """Get a document, surfacing backend failures as InternalError."""
    try:
        return await store.get(collection, doc_id)
    except StorageError as e:
        raise InternalError(f"Failed to read {collection}/{doc_id}: {e}")


async def read_all(
    store: DocumentStore,
    collection: str,
    filters: Optional[dict[str, Any]] = None,
) -> list[dict[str, Any]]:
    try:
        return await store.query(collection, filters)
    except StorageError as e:
        raise InternalError(f"Failed to query {collection}: {e}")


async def load_owned(
    store: DocumentStore,
    collection: str,
    doc_id: str,
    owner_id: str,
    label: str,
) -> dict[str, Any]:
    """
    Load a document the caller must own.

    Raises:
        NotFoundError: "<label> not found"
        PermissionDeniedError: "You do not own the <label>"
    """
    document = await read(store, collection, doc_id)
    if document is None:
        raise NotFoundError(f"{label[0].upper()}{label[1:]} not found")
    if document.get("owner_id") != owner_id:
        raise PermissionDeniedError(f"You do not own the {label}")
    return document


async def commit(store: DocumentStore, batch: WriteBatch, operation: str) -> None:
    """Commit a batch. Nothing is applied if this raises."""
    try:
        await store.commit(batch)
    except StorageError as e:
        raise InternalError(f"{operation} failed: {e}", details={"operation": operation})


def coerce_patch(patch: Any, model: type) -> Any:
    """
    Accept a patch model or a plain dict.

    Unknown fields (e.g. account_type on an account patch) are rejected with
    InvalidArgumentError naming them.
    """
    if isinstance(patch, model):
        return patch
    if not isinstance(patch, dict):
        raise InvalidArgumentError("Update must be an object")
    try:
        return model.model_validate(patch)
    except ValidationError as e:
        forbidden = [
            str(err["loc"][0]) for err in e.errors()
            if err["type"] == "extra_forbidden" and err["loc"]
        ]
        if forbidden:
            raise InvalidArgumentError(
                f"Fields cannot be updated: {', '.join(forbidden)}",
                details={"fields": forbidden},
            )
        raise InvalidArgumentError(f"Invalid update: {e.errors()[0]['msg']}")
