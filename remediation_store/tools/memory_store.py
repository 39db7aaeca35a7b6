"""
In-Memory Vector Store - Embedded Store for Local Use and Tests

A process-local Store with the capability profile of lightweight embedded
vector databases:

- metadata values must be scalars (lists are rejected)
- filters support equality only
- ranking is cosine similarity over embedder vectors

InMemoryStoreProvider gives each org/team/project its own InMemoryStore,
which is the per-scope physical isolation model.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional

import numpy as np

from remediation_store.tools.embedding_client import Embedder, HashingEmbedder
from remediation_store.tools.vector_store import (
    Document,
    MissingTenantError,
    SearchResult,
    Store,
    StoreError,
    StoreProvider,
    UnsupportedFilterError,
    current_tenant,
)

logger = logging.getLogger(__name__)


_SCALAR_TYPES = (str, int, float, bool, type(None))


@dataclass
class _Entry:
    id: str
    content: str
    metadata: dict[str, Any]
    vector: np.ndarray


@dataclass
class _Collection:
    vector_size: int
    entries: dict[str, _Entry]


class InMemoryStore(Store):
    """
    Dictionary-backed Store.

    Args:
        embedder: Embedder for document and query text (HashingEmbedder if None).
        payload_isolation: Require an active TenantInfo and pin every query to
            its tenant_id.
        array_metadata: Accept list-valued metadata instead of rejecting it.
    """

    def __init__(
        self,
        embedder: Optional[Embedder] = None,
        payload_isolation: bool = False,
        array_metadata: bool = False,
    ):
        self._embedder = embedder or HashingEmbedder()
        self._payload_isolation = payload_isolation
        self._array_metadata = array_metadata
        self._collections: dict[str, _Collection] = {}
        self._lock = threading.Lock()
        self._closed = False

    @property
    def supports_array_metadata(self) -> bool:
        return self._array_metadata

    def _check_open(self) -> None:
        if self._closed:
            raise StoreError("store is closed")

    def _tenant_filter(self) -> dict[str, Any]:
        if not self._payload_isolation:
            return {}
        tenant = current_tenant()
        if tenant is None:
            raise MissingTenantError("tenant info missing from context")
        return tenant.tenant_filter()

    def _validate_metadata(self, metadata: dict[str, Any]) -> None:
        for key, value in metadata.items():
            if isinstance(value, _SCALAR_TYPES):
                continue
            if self._array_metadata and isinstance(value, list):
                continue
            raise StoreError(f"unsupported metadata value for '{key}': {type(value).__name__}")

    async def add_documents(self, docs: list[Document]) -> list[str]:
        self._check_open()
        if not docs:
            raise StoreError("empty or nil documents")
        tenant_filter = self._tenant_filter()
        for doc in docs:
            self._validate_metadata(doc.metadata)
            for key, value in tenant_filter.items():
                if doc.metadata.setdefault(key, value) != value:
                    raise MissingTenantError(f"document {doc.id} belongs to another tenant")

        vectors = self._embedder.embed_batch([doc.content for doc in docs])

        with self._lock:
            for doc, vector in zip(docs, vectors):
                collection = self._collections.get(doc.collection)
                if collection is None:
                    raise StoreError(f"collection not found: {doc.collection}")
                array = np.asarray(vector, dtype=np.float32)
                if array.shape[0] != collection.vector_size:
                    raise StoreError(
                        f"expected {collection.vector_size} dimensions, got {array.shape[0]}"
                    )
                collection.entries[doc.id] = _Entry(doc.id, doc.content, dict(doc.metadata), array)
        logger.debug(f"Added {len(docs)} document(s)")
        return [doc.id for doc in docs]

    async def search_in_collection(
        self,
        collection_name: str,
        query: Optional[str],
        k: int,
        filters: Optional[dict[str, Any]] = None,
        vector: Optional[list[float]] = None,
    ) -> list[SearchResult]:
        self._check_open()
        conditions = dict(filters or {})
        for key, value in conditions.items():
            if isinstance(value, (dict, list, tuple, set)):
                raise UnsupportedFilterError(f"only equality filters are supported (field '{key}')")
        conditions.update(self._tenant_filter())

        if vector is not None:
            query_vector = np.asarray(vector, dtype=np.float32)
        elif query:
            query_vector = np.asarray(self._embedder.embed(query), dtype=np.float32)
        else:
            raise StoreError("query text or vector is required")

        with self._lock:
            collection = self._collections.get(collection_name)
            if collection is None:
                raise StoreError(f"collection not found: {collection_name}")
            if query_vector.shape[0] != collection.vector_size:
                raise StoreError(
                    f"expected {collection.vector_size} dimensions, got {query_vector.shape[0]}"
                )
            candidates = [
                entry for entry in collection.entries.values()
                if all(entry.metadata.get(key) == value for key, value in conditions.items())
            ]

        query_norm = float(np.linalg.norm(query_vector))
        scored = []
        for entry in candidates:
            denom = query_norm * float(np.linalg.norm(entry.vector))
            score = float(np.dot(query_vector, entry.vector) / denom) if denom else 0.0
            scored.append(SearchResult(entry.id, entry.content, score, dict(entry.metadata)))

        scored.sort(key=lambda r: r.score, reverse=True)
        return scored[:k] if k > 0 else scored

    async def delete_documents_from_collection(self, collection_name: str, ids: list[str]) -> None:
        self._check_open()
        tenant_filter = self._tenant_filter()
        with self._lock:
            collection = self._collections.get(collection_name)
            if collection is None:
                raise StoreError(f"collection not found: {collection_name}")
            for doc_id in ids:
                entry = collection.entries.get(doc_id)
                if entry is None:
                    continue
                if any(entry.metadata.get(key) != value for key, value in tenant_filter.items()):
                    continue
                del collection.entries[doc_id]

    async def collection_exists(self, collection_name: str) -> bool:
        self._check_open()
        with self._lock:
            return collection_name in self._collections

    async def create_collection(self, collection_name: str, vector_size: int = 0) -> None:
        self._check_open()
        size = vector_size or self._embedder.vector_dimension
        if size != self._embedder.vector_dimension:
            raise StoreError(
                f"vector size {size} does not match embedder dimension {self._embedder.vector_dimension}"
            )
        with self._lock:
            if collection_name in self._collections:
                raise StoreError(f"collection already exists: {collection_name}")
            self._collections[collection_name] = _Collection(vector_size=size, entries={})
        logger.info(f"Created collection '{collection_name}' with {size} dimensions")

    def count(self, collection_name: str) -> int:
        """Number of documents in a collection (0 if it does not exist)."""
        with self._lock:
            collection = self._collections.get(collection_name)
            return len(collection.entries) if collection else 0

    async def close(self) -> None:
        self._closed = True


class InMemoryStoreProvider(StoreProvider):
    """Creates one InMemoryStore per org, team and project on first use."""

    def __init__(self, embedder: Optional[Embedder] = None, payload_isolation: bool = False):
        self._embedder = embedder or HashingEmbedder()
        self._payload_isolation = payload_isolation
        self._stores: dict[tuple[str, ...], InMemoryStore] = {}
        self._lock = threading.Lock()

    def _store_for(self, key: tuple[str, ...]) -> InMemoryStore:
        with self._lock:
            store = self._stores.get(key)
            if store is None:
                store = InMemoryStore(self._embedder, payload_isolation=self._payload_isolation)
                self._stores[key] = store
                logger.debug(f"Opened in-memory store {key}")
            return store

    async def get_org_store(self, tenant: str) -> Store:
        if not tenant:
            raise StoreError("tenant is required")
        return self._store_for(("org", tenant))

    async def get_team_store(self, tenant: str, team: str) -> Store:
        if not tenant or not team:
            raise StoreError("tenant and team are required")
        return self._store_for(("team", tenant, team))

    async def get_project_store(self, tenant: str, team: str, project: str) -> Store:
        if not tenant or not project:
            raise StoreError("tenant and project are required")
        return self._store_for(("project", tenant, team or "", project))

    @property
    def stores(self) -> dict[tuple[str, ...], InMemoryStore]:
        """Snapshot of the stores handed out so far."""
        with self._lock:
            return dict(self._stores)

    async def close(self) -> None:
        for store in self.stores.values():
            await store.close()
        with self._lock:
            self._stores.clear()
