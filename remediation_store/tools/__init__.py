# Tools Package
"""
Vector store integrations.

- vector_store.py: Store / StoreProvider contracts and tenant context
- embedding_client.py: Text to vector conversion
- memory_store.py: Embedded in-memory store and provider
- qdrant_store.py: Qdrant-backed store and per-scope local provider
"""

from remediation_store.tools.vector_store import (
    Document,
    MissingTenantError,
    SearchResult,
    Store,
    StoreError,
    StoreProvider,
    TenantInfo,
    UnsupportedFilterError,
    current_tenant,
    sanitize_name,
    tenant_context,
)
from remediation_store.tools.embedding_client import (
    EmbeddingModelError,
    HashingEmbedder,
    SentenceTransformerEmbedder,
)
from remediation_store.tools.memory_store import InMemoryStore, InMemoryStoreProvider

__all__ = [
    "Document",
    "MissingTenantError",
    "SearchResult",
    "Store",
    "StoreError",
    "StoreProvider",
    "TenantInfo",
    "UnsupportedFilterError",
    "current_tenant",
    "sanitize_name",
    "tenant_context",
    "EmbeddingModelError",
    "HashingEmbedder",
    "SentenceTransformerEmbedder",
    "InMemoryStore",
    "InMemoryStoreProvider",
]
