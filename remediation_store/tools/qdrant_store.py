"""
Qdrant Store - Store Implementation on the Qdrant Async Client

Handles collection management, embedding, and low-level vector operations
against Qdrant (server or embedded local mode).

- QdrantStore: one Qdrant database; supports array metadata and equality filters
- LocalQdrantStoreProvider: one embedded Qdrant database directory per
  org/team/project (per-scope physical isolation)
"""

import asyncio
import logging
import uuid
from pathlib import Path
from typing import Any, Optional

from qdrant_client import AsyncQdrantClient
from qdrant_client.http import models

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
    sanitize_name,
)

logger = logging.getLogger(__name__)


DEFAULT_QDRANT_URL = "http://localhost:6333"

# Payload keys reserved by the store
CONTENT_KEY = "_content"
DOC_ID_KEY = "_doc_id"

_POINT_NAMESPACE = uuid.UUID("6f1c2a4e-0f5e-4c55-9d0a-3b8f7a1e2c90")


def point_id_for(doc_id: str) -> str:
    """Qdrant point IDs must be UUIDs; map arbitrary document IDs onto one."""
    try:
        return str(uuid.UUID(doc_id))
    except ValueError:
        return str(uuid.uuid5(_POINT_NAMESPACE, doc_id))


class QdrantStore(Store):
    """
    Store backed by a Qdrant collection set.

    Args:
        client: Existing AsyncQdrantClient (created lazily from url/path if None).
        url: Qdrant server URL.
        api_key: Qdrant API key.
        path: Directory for embedded local mode (takes precedence over url).
        embedder: Embedder for document and query text.
        payload_isolation: Require an active TenantInfo and filter on tenant_id.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        client: Optional[AsyncQdrantClient] = None,
        url: str = DEFAULT_QDRANT_URL,
        api_key: Optional[str] = None,
        path: Optional[str] = None,
        embedder: Optional[Embedder] = None,
        payload_isolation: bool = False,
        timeout: int = 10,
    ):
        self.url = url
        self.api_key = api_key
        self.path = path
        self.timeout = timeout
        self._client = client
        self._embedder = embedder or HashingEmbedder()
        self._payload_isolation = payload_isolation

    @classmethod
    def from_config(cls, qdrant_config, embedder: Optional[Embedder] = None, payload_isolation: bool = False):
        """Build a store from a QdrantConfig."""
        return cls(
            url=qdrant_config.url,
            api_key=qdrant_config.api_key,
            path=qdrant_config.path,
            embedder=embedder,
            payload_isolation=payload_isolation,
            timeout=qdrant_config.timeout,
        )

    @property
    def supports_array_metadata(self) -> bool:
        return True

    def _get_client(self) -> AsyncQdrantClient:
        if self._client is None:
            if self.path:
                self._client = AsyncQdrantClient(path=self.path)
                logger.info(f"Opened embedded Qdrant at {self.path}")
            else:
                self._client = AsyncQdrantClient(url=self.url, api_key=self.api_key, timeout=self.timeout)
                logger.info(f"Connected to Qdrant at {self.url}")
        return self._client

    def _tenant_filter(self) -> dict[str, Any]:
        if not self._payload_isolation:
            return {}
        tenant = current_tenant()
        if tenant is None:
            raise MissingTenantError("tenant info missing from context")
        return tenant.tenant_filter()

    @staticmethod
    def _build_filter(conditions: dict[str, Any]) -> Optional[models.Filter]:
        must = []
        for key, value in conditions.items():
            if not isinstance(value, (str, int, bool)):
                raise UnsupportedFilterError(f"only equality filters on str/int/bool are supported (field '{key}')")
            must.append(models.FieldCondition(key=key, match=models.MatchValue(value=value)))
        return models.Filter(must=must) if must else None

    async def _embed(self, texts: list[str]) -> list[list[float]]:
        return await asyncio.to_thread(self._embedder.embed_batch, texts)

    async def add_documents(self, docs: list[Document]) -> list[str]:
        if not docs:
            raise StoreError("empty or nil documents")
        tenant_filter = self._tenant_filter()
        vectors = await self._embed([doc.content for doc in docs])

        by_collection: dict[str, list[models.PointStruct]] = {}
        for doc, vector in zip(docs, vectors):
            payload = dict(doc.metadata)
            for key, value in tenant_filter.items():
                if payload.setdefault(key, value) != value:
                    raise MissingTenantError(f"document {doc.id} belongs to another tenant")
            payload[CONTENT_KEY] = doc.content
            payload[DOC_ID_KEY] = doc.id
            by_collection.setdefault(doc.collection, []).append(
                models.PointStruct(id=point_id_for(doc.id), vector=vector, payload=payload)
            )

        client = self._get_client()
        for collection_name, points in by_collection.items():
            try:
                await client.upsert(collection_name=collection_name, points=points, wait=True)
            except Exception as e:
                raise StoreError(f"failed to upsert into {collection_name}: {e}") from e
            logger.debug(f"Upserted {len(points)} point(s) into {collection_name}")
        return [doc.id for doc in docs]

    async def search_in_collection(
        self,
        collection_name: str,
        query: Optional[str],
        k: int,
        filters: Optional[dict[str, Any]] = None,
        vector: Optional[list[float]] = None,
    ) -> list[SearchResult]:
        conditions = dict(filters or {})
        conditions.update(self._tenant_filter())
        query_filter = self._build_filter(conditions)

        if vector is None:
            if not query:
                raise StoreError("query text or vector is required")
            vector = (await self._embed([query]))[0]

        try:
            response = await self._get_client().query_points(
                collection_name=collection_name,
                query=vector,
                limit=k,
                query_filter=query_filter,
                with_payload=True,
            )
        except Exception as e:
            raise StoreError(f"search in {collection_name} failed: {e}") from e

        results = []
        for point in response.points:
            payload = dict(point.payload or {})
            content = payload.pop(CONTENT_KEY, "")
            doc_id = payload.pop(DOC_ID_KEY, str(point.id))
            results.append(SearchResult(id=doc_id, content=content, score=float(point.score), metadata=payload))
        return results

    async def delete_documents_from_collection(self, collection_name: str, ids: list[str]) -> None:
        if not ids:
            return
        tenant_filter = self._tenant_filter()
        if tenant_filter:
            must = [models.HasIdCondition(has_id=[point_id_for(i) for i in ids])]
            must.extend(self._build_filter(tenant_filter).must)
            selector = models.FilterSelector(filter=models.Filter(must=must))
        else:
            selector = models.PointIdsList(points=[point_id_for(i) for i in ids])
        try:
            await self._get_client().delete(collection_name=collection_name, points_selector=selector, wait=True)
        except Exception as e:
            raise StoreError(f"delete from {collection_name} failed: {e}") from e

    async def collection_exists(self, collection_name: str) -> bool:
        try:
            return await self._get_client().collection_exists(collection_name=collection_name)
        except Exception as e:
            raise StoreError(f"failed to check collection {collection_name}: {e}") from e

    async def create_collection(self, collection_name: str, vector_size: int = 0) -> None:
        size = vector_size or self._embedder.vector_dimension
        try:
            await self._get_client().create_collection(
                collection_name=collection_name,
                vectors_config=models.VectorParams(size=size, distance=models.Distance.COSINE),
            )
        except Exception as e:
            raise StoreError(f"failed to create collection {collection_name}: {e}") from e
        logger.info(f"Created collection '{collection_name}' with {size} dimensions")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
            logger.info("Disconnected from Qdrant")


class LocalQdrantStoreProvider(StoreProvider):
    """
    One embedded Qdrant database per scope.

    Layout under ``base_path``:
        {tenant}/org
        {tenant}/teams/{team}
        {tenant}/projects/{project}            (no team)
        {tenant}/teams/{team}/projects/{project}
    """

    def __init__(self, base_path: Path, embedder: Optional[Embedder] = None):
        self.base_path = Path(base_path)
        self._embedder = embedder or HashingEmbedder()
        self._stores: dict[Path, QdrantStore] = {}
        self._lock = asyncio.Lock()

    async def _store_at(self, path: Path) -> QdrantStore:
        async with self._lock:
            store = self._stores.get(path)
            if store is None:
                path.mkdir(parents=True, exist_ok=True)
                store = QdrantStore(path=str(path), embedder=self._embedder)
                self._stores[path] = store
            return store

    async def get_org_store(self, tenant: str) -> Store:
        if not tenant:
            raise StoreError("tenant is required")
        return await self._store_at(self.base_path / sanitize_name(tenant) / "org")

    async def get_team_store(self, tenant: str, team: str) -> Store:
        if not tenant or not team:
            raise StoreError("tenant and team are required")
        return await self._store_at(self.base_path / sanitize_name(tenant) / "teams" / sanitize_name(team))

    async def get_project_store(self, tenant: str, team: str, project: str) -> Store:
        if not tenant or not project:
            raise StoreError("tenant and project are required")
        root = self.base_path / sanitize_name(tenant)
        if team:
            root = root / "teams" / sanitize_name(team)
        return await self._store_at(root / "projects" / sanitize_name(project))

    async def close(self) -> None:
        async with self._lock:
            stores = list(self._stores.values())
            self._stores.clear()
        for store in stores:
            await store.close()
