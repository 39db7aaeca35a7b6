"""
Unit Tests for the In-Memory Store

Tests:
- Collection lifecycle
- Scalar-only metadata and equality-only filters
- Cosine ranking
- Payload isolation through the tenant context
- Per-scope provider
"""

import pytest

from remediation_store.tools.embedding_client import HashingEmbedder
from remediation_store.tools.memory_store import InMemoryStore, InMemoryStoreProvider
from remediation_store.tools.vector_store import (
    Document,
    MissingTenantError,
    StoreError,
    TenantInfo,
    UnsupportedFilterError,
    tenant_context,
)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def store():
    return InMemoryStore(HashingEmbedder())


def doc(doc_id, content, collection="fixes", **metadata):
    return Document(id=doc_id, content=content, metadata=metadata, collection=collection)


# ============================================================================
# Collections
# ============================================================================

class TestCollections:
    """Tests for collection management."""

    @pytest.mark.asyncio
    async def test_create_and_exists(self, store):
        assert await store.collection_exists("fixes") is False
        await store.create_collection("fixes")
        assert await store.collection_exists("fixes") is True

    @pytest.mark.asyncio
    async def test_create_twice_fails(self, store):
        await store.create_collection("fixes")
        with pytest.raises(StoreError):
            await store.create_collection("fixes")

    @pytest.mark.asyncio
    async def test_dimension_mismatch_rejected(self, store):
        with pytest.raises(StoreError):
            await store.create_collection("fixes", vector_size=128)

    @pytest.mark.asyncio
    async def test_add_to_missing_collection(self, store):
        with pytest.raises(StoreError):
            await store.add_documents([doc("a", "text")])

    @pytest.mark.asyncio
    async def test_search_missing_collection(self, store):
        with pytest.raises(StoreError):
            await store.search_in_collection("fixes", "text", 5)

    @pytest.mark.asyncio
    async def test_closed_store_rejects_calls(self, store):
        await store.close()
        with pytest.raises(StoreError):
            await store.collection_exists("fixes")


# ============================================================================
# Documents and Search
# ============================================================================

class TestDocuments:
    """Tests for add, search and delete."""

    @pytest.mark.asyncio
    async def test_list_metadata_rejected(self, store):
        await store.create_collection("fixes")
        with pytest.raises(StoreError):
            await store.add_documents([doc("a", "text", tags=["x", "y"])])

    @pytest.mark.asyncio
    async def test_list_metadata_allowed_when_enabled(self):
        store = InMemoryStore(HashingEmbedder(), array_metadata=True)
        await store.create_collection("fixes")
        await store.add_documents([doc("a", "text", tags=["x", "y"])])

        rows = await store.search_in_collection("fixes", "text", 5)
        assert rows[0].metadata["tags"] == ["x", "y"]

    @pytest.mark.asyncio
    async def test_ranks_by_similarity(self, store):
        await store.create_collection("fixes")
        await store.add_documents([
            doc("linker", "undefined reference linker error"),
            doc("oom", "out of memory killed container"),
        ])

        rows = await store.search_in_collection("fixes", "linker undefined reference", 5)
        assert [r.id for r in rows] == ["linker", "oom"]
        assert rows[0].score > rows[1].score

    @pytest.mark.asyncio
    async def test_k_truncates(self, store):
        await store.create_collection("fixes")
        await store.add_documents([doc(str(i), f"error {i}") for i in range(5)])

        assert len(await store.search_in_collection("fixes", "error", 2)) == 2

    @pytest.mark.asyncio
    async def test_equality_filter(self, store):
        await store.create_collection("fixes")
        await store.add_documents([
            doc("a", "build failed", category="compile"),
            doc("b", "build failed", category="test"),
        ])

        rows = await store.search_in_collection("fixes", "build", 5, {"category": "test"})
        assert [r.id for r in rows] == ["b"]

    @pytest.mark.asyncio
    async def test_non_equality_filter_rejected(self, store):
        await store.create_collection("fixes")
        with pytest.raises(UnsupportedFilterError):
            await store.search_in_collection("fixes", "build", 5, {"confidence": {"$gte": 0.5}})

    @pytest.mark.asyncio
    async def test_search_by_vector(self, store):
        await store.create_collection("fixes")
        await store.add_documents([doc("a", "segfault in parser")])
        vector = HashingEmbedder().embed("segfault in parser")

        rows = await store.search_in_collection("fixes", None, 5, vector=vector)
        assert rows[0].score == pytest.approx(1.0, abs=1e-5)

    @pytest.mark.asyncio
    async def test_search_requires_query_or_vector(self, store):
        await store.create_collection("fixes")
        with pytest.raises(StoreError):
            await store.search_in_collection("fixes", None, 5)

    @pytest.mark.asyncio
    async def test_delete_ignores_unknown_ids(self, store):
        await store.create_collection("fixes")
        await store.add_documents([doc("a", "x"), doc("b", "y")])

        await store.delete_documents_from_collection("fixes", ["a", "missing"])
        assert store.count("fixes") == 1


# ============================================================================
# Payload Isolation
# ============================================================================

class TestPayloadIsolation:
    """Stores that pin every call to the active tenant."""

    @pytest.fixture
    def isolated(self):
        return InMemoryStore(HashingEmbedder(), payload_isolation=True)

    @pytest.mark.asyncio
    async def test_missing_tenant_context(self, isolated):
        await isolated.create_collection("fixes")
        with pytest.raises(MissingTenantError):
            await isolated.search_in_collection("fixes", "x", 5)
        with pytest.raises(MissingTenantError):
            await isolated.add_documents([doc("a", "x")])

    @pytest.mark.asyncio
    async def test_tenants_do_not_see_each_other(self, isolated):
        await isolated.create_collection("fixes")
        with tenant_context(TenantInfo("acme")):
            await isolated.add_documents([doc("a", "shared error text")])
        with tenant_context(TenantInfo("globex")):
            await isolated.add_documents([doc("b", "shared error text")])
            rows = await isolated.search_in_collection("fixes", "error", 5)

        assert [r.id for r in rows] == ["b"]
        assert rows[0].metadata["tenant_id"] == "globex"

    @pytest.mark.asyncio
    async def test_foreign_tenant_document_rejected(self, isolated):
        await isolated.create_collection("fixes")
        with tenant_context(TenantInfo("acme")):
            with pytest.raises(MissingTenantError):
                await isolated.add_documents([doc("a", "x", tenant_id="globex")])

    @pytest.mark.asyncio
    async def test_delete_only_touches_own_tenant(self, isolated):
        await isolated.create_collection("fixes")
        with tenant_context(TenantInfo("acme")):
            await isolated.add_documents([doc("a", "x")])
        with tenant_context(TenantInfo("globex")):
            await isolated.delete_documents_from_collection("fixes", ["a"])

        assert isolated.count("fixes") == 1


# ============================================================================
# Provider
# ============================================================================

class TestInMemoryStoreProvider:
    """Tests for per-scope store creation."""

    @pytest.mark.asyncio
    async def test_project_without_team(self):
        provider = InMemoryStoreProvider()
        with_team = await provider.get_project_store("acme", "platform", "/a")
        without_team = await provider.get_project_store("acme", "", "/a")
        assert with_team is not without_team

    @pytest.mark.asyncio
    async def test_missing_identifiers(self):
        provider = InMemoryStoreProvider()
        with pytest.raises(StoreError):
            await provider.get_org_store("")
        with pytest.raises(StoreError):
            await provider.get_team_store("acme", "")
        with pytest.raises(StoreError):
            await provider.get_project_store("acme", "platform", "")

    @pytest.mark.asyncio
    async def test_close_closes_every_store(self):
        provider = InMemoryStoreProvider()
        store = await provider.get_org_store("acme")
        await provider.close()

        assert provider.stores == {}
        with pytest.raises(StoreError):
            await store.collection_exists("fixes")
