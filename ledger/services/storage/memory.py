"""
In-Memory Document Store

Backs the test suite and local development. Behaves like a document database
with atomic batched writes: the batch is applied to a copy, which replaces
the live data only if every operation succeeded.
"""

import asyncio
import copy
from typing import Any, Optional

from ledger.services.storage.interface import (
    DocumentStore,
    WriteBatch,
    apply_operations,
)


class InMemoryDocumentStore(DocumentStore):
    """Dict-of-dicts document store with all-or-nothing commits."""

    def __init__(self):
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()
        self.commit_count = 0

    async def get(self, collection: str, doc_id: str) -> Optional[dict[str, Any]]:
        document = self._collections.get(collection, {}).get(doc_id)
        if document is None:
            return None
        return {"id": doc_id, **copy.deepcopy(document)}

    async def query(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
    ) -> list[dict[str, Any]]:
        filters = filters or {}
        results = []
        for doc_id, document in self._collections.get(collection, {}).items():
            if all(document.get(key) == value for key, value in filters.items()):
                results.append({"id": doc_id, **copy.deepcopy(document)})
        return results

    async def commit(self, batch: WriteBatch) -> None:
        async with self._lock:
            staged = copy.deepcopy(self._collections)
            apply_operations(staged, copy.deepcopy(batch.operations))
            self._collections = staged
            self.commit_count += 1
