"""
Scope Resolver - Mapping Scopes to Stores and Collections

Two interchangeable strategies, chosen once when the service is built:

- SharedStoreResolver: a single store; isolation comes from collection names
  ``<prefix>_<scope>_<tenant>[_<team-or-path>]``.
- PhysicalStoreResolver: a StoreProvider hands out one independent store per
  org/team/project; the collection name inside each is the constant
  PHYSICAL_COLLECTION_NAME.

The service is written against StoreResolver only and never inspects which
strategy is active.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from remediation_store.models.remediation import Scope, SearchRequest
from remediation_store.tools.vector_store import Store, StoreProvider, TenantInfo, sanitize_name
from remediation_store.utils.error_handling import StoreResolutionError

logger = logging.getLogger(__name__)


PHYSICAL_COLLECTION_NAME = "remediations"

# Lookup order when a record's scope is not known in advance
LOOKUP_ORDER = (Scope.PROJECT, Scope.TEAM, Scope.ORG)


@dataclass(frozen=True)
class ScopeDescriptor:
    """One logical scope to read from or write to."""

    scope: Scope
    tenant_id: str
    team_id: str = ""
    project_path: str = ""

    def tenant_info(self) -> TenantInfo:
        return TenantInfo(
            tenant_id=self.tenant_id,
            team_id=self.team_id if self.scope != Scope.ORG else "",
            project_id=self.project_path if self.scope == Scope.PROJECT else "",
        )


@dataclass(frozen=True)
class ScopeTarget:
    """A resolved scope: the store and collection that hold its records."""

    descriptor: ScopeDescriptor
    store: Store
    collection: str

    @property
    def scope(self) -> Scope:
        return self.descriptor.scope

    @property
    def tenant_info(self) -> TenantInfo:
        return self.descriptor.tenant_info()


def _require_identifiers(descriptor: ScopeDescriptor) -> None:
    if not descriptor.tenant_id:
        raise StoreResolutionError(f"{descriptor.scope.value} scope requires a tenant id")
    if descriptor.scope == Scope.TEAM and not descriptor.team_id:
        raise StoreResolutionError("team scope requires a team id")
    if descriptor.scope == Scope.PROJECT and not descriptor.project_path:
        raise StoreResolutionError("project scope requires a project path")


class StoreResolver(ABC):
    """Resolves a ScopeDescriptor to a ScopeTarget."""

    async def resolve(self, descriptor: ScopeDescriptor) -> ScopeTarget:
        """
        Resolve one scope.

        Raises:
            StoreResolutionError: If identifiers are missing or the store
                cannot be obtained.
        """
        _require_identifiers(descriptor)
        try:
            return await self._resolve(descriptor)
        except StoreResolutionError:
            raise
        except Exception as e:
            raise StoreResolutionError(f"failed to resolve {descriptor.scope.value} store", e) from e

    @abstractmethod
    async def _resolve(self, descriptor: ScopeDescriptor) -> ScopeTarget:
        """Strategy-specific resolution; identifiers are already validated."""


class SharedStoreResolver(StoreResolver):
    """One shared store with synthesized collection names."""

    def __init__(self, store: Store, collection_prefix: str = "remediations"):
        self._store = store
        self._prefix = collection_prefix

    def collection_name(self, descriptor: ScopeDescriptor) -> str:
        tenant = sanitize_name(descriptor.tenant_id)
        if descriptor.scope == Scope.TEAM:
            return f"{self._prefix}_team_{tenant}_{sanitize_name(descriptor.team_id)}"
        if descriptor.scope == Scope.PROJECT:
            return f"{self._prefix}_project_{tenant}_{sanitize_name(descriptor.project_path)}"
        return f"{self._prefix}_org_{tenant}"

    async def _resolve(self, descriptor: ScopeDescriptor) -> ScopeTarget:
        return ScopeTarget(descriptor, self._store, self.collection_name(descriptor))


class PhysicalStoreResolver(StoreResolver):
    """A StoreProvider with one physically isolated store per scope."""

    def __init__(self, provider: StoreProvider, collection_name: str = PHYSICAL_COLLECTION_NAME):
        self._provider = provider
        self._collection = collection_name

    async def _resolve(self, descriptor: ScopeDescriptor) -> ScopeTarget:
        if descriptor.scope == Scope.PROJECT:
            store = await self._provider.get_project_store(
                descriptor.tenant_id, descriptor.team_id, descriptor.project_path
            )
        elif descriptor.scope == Scope.TEAM:
            store = await self._provider.get_team_store(descriptor.tenant_id, descriptor.team_id)
        else:
            store = await self._provider.get_org_store(descriptor.tenant_id)
        return ScopeTarget(descriptor, store, self._collection)


def descriptor_for(
    scope: Scope,
    tenant_id: str,
    team_id: Optional[str] = None,
    project_path: Optional[str] = None,
) -> ScopeDescriptor:
    """Build a descriptor carrying only the identifiers the scope uses."""
    if scope == Scope.ORG:
        return ScopeDescriptor(Scope.ORG, tenant_id)
    if scope == Scope.TEAM:
        return ScopeDescriptor(Scope.TEAM, tenant_id, team_id=team_id or "")
    return ScopeDescriptor(Scope.PROJECT, tenant_id, team_id=team_id or "", project_path=project_path or "")


def lookup_scopes(
    tenant_id: str,
    team_id: Optional[str] = None,
    project_path: Optional[str] = None,
) -> list[ScopeDescriptor]:
    """Scopes reachable from the given identifiers, in LOOKUP_ORDER; org always."""
    scopes = []
    if project_path:
        scopes.append(descriptor_for(Scope.PROJECT, tenant_id, team_id, project_path))
    if team_id:
        scopes.append(descriptor_for(Scope.TEAM, tenant_id, team_id))
    scopes.append(descriptor_for(Scope.ORG, tenant_id))
    return scopes


def get_search_scopes(request: SearchRequest) -> list[ScopeDescriptor]:
    """
    Expand a request's scope and hierarchy flag into the scopes to query.

    project + hierarchy -> project, team (when a team id is given), org
    team + hierarchy    -> team, org
    org                 -> org
    unspecified         -> whichever of project, team are identified, plus org
    """
    tenant, team, project = request.tenant_id, request.team_id, request.project_path

    if request.scope == Scope.PROJECT:
        scopes = [descriptor_for(Scope.PROJECT, tenant, team, project)]
        if request.include_hierarchy:
            # a project outside any team has no team tier
            if team:
                scopes.append(descriptor_for(Scope.TEAM, tenant, team))
            scopes.append(descriptor_for(Scope.ORG, tenant))
        return scopes
    if request.scope == Scope.TEAM:
        scopes = [descriptor_for(Scope.TEAM, tenant, team)]
        if request.include_hierarchy:
            scopes.append(descriptor_for(Scope.ORG, tenant))
        return scopes
    if request.scope == Scope.ORG:
        return [descriptor_for(Scope.ORG, tenant)]
    return lookup_scopes(tenant, team, project)
