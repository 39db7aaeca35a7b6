"""
Vector Store Contracts - Store, StoreProvider and Tenant Context

Defines the async interfaces the remediation service talks to:

- Store: one backing vector database (embeds documents itself)
- StoreProvider: hands out physically isolated Stores per org/team/project
- TenantInfo: tenant context propagated to stores that filter by payload

Stores that enforce payload-level isolation read the active TenantInfo from
a ContextVar; asyncio tasks copy the context, so each scope worker carries its
own value.
"""

import logging
import re
from abc import ABC, abstractmethod
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

logger = logging.getLogger(__name__)


_NAME_UNSAFE = re.compile(r"[^A-Za-z0-9_]")


class StoreError(Exception):
    """Raised when a store operation fails."""
    pass


class MissingTenantError(StoreError):
    """Raised by payload-isolated stores when no tenant context is active."""
    pass


class UnsupportedFilterError(StoreError):
    """Raised when a filter uses an operator the store cannot execute."""
    pass


def sanitize_name(value: str) -> str:
    """Map every character outside ``[A-Za-z0-9_]`` to ``_``."""
    return _NAME_UNSAFE.sub("_", value)


@dataclass(frozen=True)
class TenantInfo:
    """Tenant context attached to every store call."""

    tenant_id: str
    team_id: str = ""
    project_id: str = ""

    def tenant_filter(self) -> dict[str, Any]:
        """Equality filter that pins results to this tenant."""
        return {"tenant_id": self.tenant_id}


_tenant_var: ContextVar[Optional[TenantInfo]] = ContextVar("remediation_tenant", default=None)


def current_tenant() -> Optional[TenantInfo]:
    """Return the tenant context of the running task, if any."""
    return _tenant_var.get()


@contextmanager
def tenant_context(tenant: TenantInfo) -> Iterator[TenantInfo]:
    """
    Attach tenant context for the duration of the block.

    Usage:
        with tenant_context(TenantInfo("acme", team_id="platform")):
            await store.search_in_collection(...)
    """
    token = _tenant_var.set(tenant)
    try:
        yield tenant
    finally:
        _tenant_var.reset(token)


@dataclass
class Document:
    """A document handed to a Store; the store computes the embedding."""

    id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)
    collection: str = ""


@dataclass
class SearchResult:
    """A scored row returned by a Store search."""

    id: str
    content: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


class Store(ABC):
    """
    Async vector storage interface.

    Filters are flat ``{field: value}`` equality maps. Implementations raise
    UnsupportedFilterError for operators they cannot execute rather than
    silently ignoring them.
    """

    @property
    def supports_array_metadata(self) -> bool:
        """Whether list-valued metadata can be stored as-is."""
        return False

    @abstractmethod
    async def add_documents(self, docs: list[Document]) -> list[str]:
        """Embed and insert documents into ``doc.collection``. Returns their IDs."""

    @abstractmethod
    async def search_in_collection(
        self,
        collection_name: str,
        query: Optional[str],
        k: int,
        filters: Optional[dict[str, Any]] = None,
        vector: Optional[list[float]] = None,
    ) -> list[SearchResult]:
        """Similarity search by query text, or by ``vector`` when supplied."""

    @abstractmethod
    async def delete_documents_from_collection(self, collection_name: str, ids: list[str]) -> None:
        """Delete documents by ID. Unknown IDs are ignored."""

    @abstractmethod
    async def collection_exists(self, collection_name: str) -> bool:
        """Return True if the collection exists."""

    @abstractmethod
    async def create_collection(self, collection_name: str, vector_size: int = 0) -> None:
        """Create a collection. ``vector_size=0`` lets the store/embedder decide."""

    async def close(self) -> None:
        """Release resources held by the store."""


class StoreProvider(ABC):
    """Hands out one physically isolated Store per org, team or project."""

    @abstractmethod
    async def get_org_store(self, tenant: str) -> Store:
        """Store shared by the whole tenant."""

    @abstractmethod
    async def get_team_store(self, tenant: str, team: str) -> Store:
        """Store shared by one team."""

    @abstractmethod
    async def get_project_store(self, tenant: str, team: str, project: str) -> Store:
        """Store owned by one project; ``team`` may be empty."""

    async def close(self) -> None:
        """Close every store handed out by this provider."""
