"""
Remediation Service - Record, Search, Feedback and Delete

Orchestrates a StoreResolver and the stores it yields:

- record(): persist a new remediation in exactly one scope
- search(): fan a query out over the resolved scopes concurrently, post-filter,
  merge, rank and truncate
- get() / get_by_scope(): look a remediation up by its ``id`` metadata field
- feedback(): adjust confidence and usage count (delete then reinsert)
- delete() / delete_by_scope(): remove a remediation from its owning scope

Every store call runs inside a tenant_context() so payload-isolated stores
see the tenant of the scope being touched. The only shared state is the
closed flag; all I/O happens outside its lock.
"""

import asyncio
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from opentelemetry import trace
from pydantic import ValidationError as PayloadValidationError

from remediation_store.config.settings import RemediationConfig
from remediation_store.models.document import RemediationMetadata, remediation_to_document
from remediation_store.models.remediation import (
    FeedbackRequest,
    RecordRequest,
    Remediation,
    Scope,
    ScoredRemediation,
    SearchRequest,
    utc_now,
)
from remediation_store.observability.metrics import RemediationMetrics
from remediation_store.services.confidence import adjust_confidence, clamp
from remediation_store.services.resolver import (
    PhysicalStoreResolver,
    ScopeDescriptor,
    ScopeTarget,
    SharedStoreResolver,
    StoreResolver,
    descriptor_for,
    get_search_scopes,
    lookup_scopes,
)
from remediation_store.tools.vector_store import SearchResult, Store, StoreProvider, tenant_context
from remediation_store.utils.error_handling import (
    AggregateSearchError,
    CollectionError,
    NotFoundError,
    PersistenceError,
    RemediationError,
    ServiceClosedError,
    StoreResolutionError,
    ValidationError,
    classify_error,
)

logger = logging.getLogger(__name__)


DEFAULT_LIMIT = 10
MIN_SEARCH_LIMIT = 30
MAX_SEARCH_LIMIT = 200
OVERFETCH_FACTOR = 3

# Query text for ID lookups; the ``id`` filter does the actual selection
ID_LOOKUP_QUERY = "remediation"


def over_fetch_limit(limit: int) -> int:
    """Candidates to request per scope so post-filtering can still fill ``limit``."""
    return max(MIN_SEARCH_LIMIT, min(limit * OVERFETCH_FACTOR, MAX_SEARCH_LIMIT))


def ranking_key(result: ScoredRemediation):
    """Score descending, then newest first, then id."""
    return (-result.score, -result.created_at.timestamp(), result.id)


def matches_filters(rem: Remediation, min_confidence: float, tags: list[str]) -> bool:
    """Filters the stores are not asked to execute."""
    if rem.confidence < min_confidence:
        return False
    if tags and not set(tags).intersection(rem.tags):
        return False
    return True


def belongs_to(rem: Remediation, descriptor: ScopeDescriptor) -> bool:
    """True if ``rem`` was recorded under exactly this scope."""
    if rem.tenant_id != descriptor.tenant_id or rem.scope != descriptor.scope:
        return False
    if descriptor.scope == Scope.TEAM:
        return rem.team_id == descriptor.team_id
    if descriptor.scope == Scope.PROJECT:
        return rem.project_path == descriptor.project_path and (rem.team_id or "") == descriptor.team_id
    return True


@dataclass
class ScopeOutcome:
    """Result slot owned by one scope worker during a search."""

    scope: Scope
    accessed: bool = False
    results: list[ScoredRemediation] = field(default_factory=list)
    error: Optional[RemediationError] = None


class RemediationService:
    """
    Multi-tenant remediation engine.

    Args:
        resolver: Strategy that maps scopes to stores and collections.
        config: Confidence bounds, feedback delta and collection settings.
        metrics: Prometheus metrics manager (created on the default registry if None).
    """

    def __init__(
        self,
        resolver: StoreResolver,
        config: Optional[RemediationConfig] = None,
        metrics: Optional[RemediationMetrics] = None,
    ):
        if resolver is None:
            raise ValueError("a store resolver is required")
        self._resolver = resolver
        self._config = config or RemediationConfig()
        self._metrics = metrics or RemediationMetrics()
        self._tracer = trace.get_tracer(__name__)
        self._lock = threading.Lock()
        self._closed = False

    @classmethod
    def with_shared_store(
        cls,
        store: Store,
        config: Optional[RemediationConfig] = None,
        metrics: Optional[RemediationMetrics] = None,
    ) -> "RemediationService":
        """Service over one store with prefixed collection names."""
        config = config or RemediationConfig()
        return cls(SharedStoreResolver(store, config.collection_prefix), config, metrics)

    @classmethod
    def with_store_provider(
        cls,
        provider: StoreProvider,
        config: Optional[RemediationConfig] = None,
        metrics: Optional[RemediationMetrics] = None,
    ) -> "RemediationService":
        """Service over a provider of physically isolated per-scope stores."""
        return cls(PhysicalStoreResolver(provider), config, metrics)

    @property
    def config(self) -> RemediationConfig:
        return self._config

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def _check_open(self) -> None:
        with self._lock:
            if self._closed:
                raise ServiceClosedError()

    # ------------------------------------------------------------------
    # Record
    # ------------------------------------------------------------------

    async def record(self, req: RecordRequest) -> Remediation:
        """
        Create and persist a new remediation.

        Raises:
            ServiceClosedError, ValidationError, StoreResolutionError,
            CollectionError, PersistenceError
        """
        with self._tracer.start_as_current_span("remediation.record") as span:
            span.set_attribute("tenant_id", req.tenant_id)
            span.set_attribute("scope", req.scope.value if req.scope else "")
            span.set_attribute("category", req.category.value)
            self._check_open()

            if not req.tenant_id:
                raise ValidationError("tenant_id is required")
            if req.scope is None:
                raise ValidationError("scope is required")
            if req.scope == Scope.TEAM and not req.team_id:
                raise ValidationError("team_id is required for team scope")
            if req.scope == Scope.PROJECT and not req.project_path:
                raise ValidationError("project_path is required for project scope")

            now = utc_now()
            rem = Remediation(
                id=str(uuid.uuid4()),
                title=req.title,
                problem=req.problem,
                symptoms=list(req.symptoms),
                root_cause=req.root_cause,
                solution=req.solution,
                code_diff=req.code_diff or None,
                affected_files=list(req.affected_files),
                category=req.category,
                confidence=clamp(
                    req.confidence or self._config.default_confidence,
                    self._config.min_confidence,
                    self._config.max_confidence,
                ),
                usage_count=0,
                tags=list(req.tags),
                scope=req.scope,
                tenant_id=req.tenant_id,
                team_id=req.team_id or None,
                project_path=req.project_path or None,
                session_id=req.session_id or None,
                created_at=now,
                updated_at=now,
            )

            target = await self._resolver.resolve(
                descriptor_for(req.scope, req.tenant_id, req.team_id, req.project_path)
            )
            with tenant_context(target.tenant_info):
                await self._ensure_collection(target)
                await self._insert(target, rem, "failed to store remediation")

            self._metrics.record_remediation(rem.scope.value, rem.category.value)
            logger.info(
                f"Recorded remediation {rem.id} '{rem.title}' "
                f"(category={rem.category.value}, scope={rem.scope.value})"
            )
            span.set_attribute("remediation_id", rem.id)
            return rem

    async def _ensure_collection(self, target: ScopeTarget) -> None:
        try:
            exists = await target.store.collection_exists(target.collection)
        except Exception as e:
            raise CollectionError(f"failed to check collection {target.collection}", e) from e
        if exists:
            return
        try:
            await target.store.create_collection(target.collection, self._config.vector_size)
        except Exception as e:
            # a concurrent record may have created it first
            try:
                exists = await target.store.collection_exists(target.collection)
            except Exception:
                exists = False
            if not exists:
                raise CollectionError(f"failed to create collection {target.collection}", e) from e

    async def _insert(self, target: ScopeTarget, rem: Remediation, message: str) -> None:
        doc = remediation_to_document(rem, target.collection, target.store.supports_array_metadata)
        try:
            await target.store.add_documents([doc])
        except Exception as e:
            raise PersistenceError(message, e) from e

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    async def search(self, req: SearchRequest) -> list[ScoredRemediation]:
        """
        Find remediations similar to ``req.query`` (or ``req.vector``).

        A scope whose collection does not exist yet contributes nothing. A
        scope that fails is logged and skipped; only when no scope could be
        searched and at least one failed does the call raise.

        Raises:
            ServiceClosedError, ValidationError, AggregateSearchError
        """
        with self._tracer.start_as_current_span("remediation.search") as span:
            span.set_attribute("tenant_id", req.tenant_id)
            span.set_attribute("scope", req.scope.value if req.scope else "")
            span.set_attribute("category", req.category.value if req.category else "")
            span.set_attribute("limit", req.limit)
            span.set_attribute("min_confidence", req.min_confidence)
            self._check_open()

            if not req.tenant_id:
                raise ValidationError("tenant_id is required")
            if not req.query and not req.vector:
                raise ValidationError("query or vector is required")

            started = time.perf_counter()
            limit = req.limit or DEFAULT_LIMIT
            search_limit = over_fetch_limit(limit)
            # confidence ranges and any-of tags are not portable across stores
            filters = {"category": req.category.value} if req.category else None

            outcomes = await asyncio.gather(
                *(self._search_scope(d, req, search_limit, filters) for d in get_search_scopes(req))
            )

            accessed = sum(1 for o in outcomes if o.accessed)
            errors = [o.error for o in outcomes if o.error is not None]
            if accessed == 0 and errors:
                raise AggregateSearchError(len(errors), errors[-1]) from errors[-1]

            candidates = [r for o in outcomes for r in o.results]
            candidates.sort(key=ranking_key)
            results = candidates[:limit]

            scope_label = req.scope.value if req.scope else "all"
            self._metrics.record_search(
                scope_label, req.project_path or "", len(results), time.perf_counter() - started
            )
            span.set_attribute("result_count", len(results))
            span.set_attribute("scopes_accessed", accessed)
            return results

    async def _search_scope(
        self,
        descriptor: ScopeDescriptor,
        req: SearchRequest,
        search_limit: int,
        filters: Optional[dict],
    ) -> ScopeOutcome:
        outcome = ScopeOutcome(scope=descriptor.scope)
        try:
            target = await self._resolver.resolve(descriptor)
        except StoreResolutionError as e:
            self._scope_failed(outcome, "resolve", e)
            return outcome

        with tenant_context(target.tenant_info):
            try:
                exists = await target.store.collection_exists(target.collection)
            except Exception as e:
                self._scope_failed(
                    outcome, "exists", CollectionError(f"failed to check collection {target.collection}", e)
                )
                return outcome
            if not exists:
                return outcome

            try:
                rows = await target.store.search_in_collection(
                    target.collection, req.query or None, search_limit, filters, vector=req.vector
                )
            except Exception as e:
                self._scope_failed(
                    outcome, "search", PersistenceError(f"search in {target.collection} failed", e)
                )
                return outcome

        outcome.accessed = True
        for row in rows:
            rem = self._to_remediation(row)
            if rem is None or not belongs_to(rem, descriptor):
                continue
            if not matches_filters(rem, req.min_confidence, req.tags):
                continue
            outcome.results.append(ScoredRemediation(**rem.model_dump(), score=row.score))
        return outcome

    def _scope_failed(self, outcome: ScopeOutcome, stage: str, error: RemediationError) -> None:
        outcome.error = error
        self._metrics.record_scope_error(outcome.scope.value, stage)
        logger.warning(
            f"Skipping {outcome.scope.value} scope after {stage} failure "
            f"({classify_error(error.cause or error)}): {error}"
        )

    @staticmethod
    def _to_remediation(row: SearchResult) -> Optional[Remediation]:
        try:
            return RemediationMetadata.from_payload(row.metadata, fallback_id=row.id).to_remediation()
        except (PayloadValidationError, TypeError, ValueError) as e:
            logger.debug(f"Ignoring row {row.id} with malformed metadata: {e}")
            return None

    # ------------------------------------------------------------------
    # Get
    # ------------------------------------------------------------------

    async def _find_in(self, target: ScopeTarget, remediation_id: str) -> Optional[Remediation]:
        """Look ``remediation_id`` up in one resolved scope; None if absent."""
        with tenant_context(target.tenant_info):
            try:
                exists = await target.store.collection_exists(target.collection)
            except Exception as e:
                raise CollectionError(f"failed to check collection {target.collection}", e) from e
            if not exists:
                return None
            try:
                rows = await target.store.search_in_collection(
                    target.collection, ID_LOOKUP_QUERY, 1, {"id": remediation_id}
                )
            except Exception as e:
                raise PersistenceError(f"lookup in {target.collection} failed", e) from e

        for row in rows:
            rem = self._to_remediation(row)
            if rem is not None and rem.id == remediation_id and belongs_to(rem, target.descriptor):
                return rem
        return None

    async def _locate(
        self,
        tenant_id: str,
        remediation_id: str,
        team_id: Optional[str],
        project_path: Optional[str],
        strict: bool = True,
    ) -> tuple[ScopeTarget, Remediation]:
        """
        Scan project, team, org (as identified) and return the owning scope.

        A miss is only reported as NotFoundError when every scanned scope
        answered. Otherwise the last scope error is raised: always when
        ``strict``, and only if no scope answered when not.
        """
        if not tenant_id or not remediation_id:
            raise ValidationError("tenant_id and remediation_id are required")
        answered = 0
        last_error: Optional[RemediationError] = None
        for descriptor in lookup_scopes(tenant_id, team_id, project_path):
            try:
                target = await self._resolver.resolve(descriptor)
                rem = await self._find_in(target, remediation_id)
            except RemediationError as e:
                logger.warning(f"Lookup skipped {descriptor.scope.value} scope: {e}")
                last_error = e
                continue
            answered += 1
            if rem is not None:
                return target, rem
        if last_error is not None and (strict or answered == 0):
            raise last_error
        raise NotFoundError(remediation_id)

    async def _locate_in_scope(
        self,
        tenant_id: str,
        remediation_id: str,
        scope: Scope,
        team_id: Optional[str],
        project_path: Optional[str],
    ) -> tuple[ScopeTarget, Remediation]:
        if not tenant_id or not remediation_id:
            raise ValidationError("tenant_id and remediation_id are required")
        target = await self._resolver.resolve(descriptor_for(Scope(scope), tenant_id, team_id, project_path))
        rem = await self._find_in(target, remediation_id)
        if rem is None:
            raise NotFoundError(remediation_id)
        return target, rem

    async def get(
        self,
        tenant_id: str,
        remediation_id: str,
        team_id: Optional[str] = None,
        project_path: Optional[str] = None,
    ) -> Remediation:
        """
        Best-effort lookup across project, team and org scopes.

        Project and team scopes are only reachable when their identifiers are
        given; org is always scanned. Scopes that fail are skipped as long as
        at least one scope answered.

        Raises:
            ServiceClosedError, ValidationError, NotFoundError,
            StoreResolutionError, CollectionError, PersistenceError
        """
        with self._tracer.start_as_current_span("remediation.get") as span:
            span.set_attribute("tenant_id", tenant_id)
            span.set_attribute("remediation_id", remediation_id)
            self._check_open()
            _, rem = await self._locate(tenant_id, remediation_id, team_id, project_path, strict=False)
            return rem

    async def get_by_scope(
        self,
        tenant_id: str,
        remediation_id: str,
        scope: Scope,
        team_id: Optional[str] = None,
        project_path: Optional[str] = None,
    ) -> Remediation:
        """
        Lookup in exactly one scope.

        Raises:
            ServiceClosedError, ValidationError, StoreResolutionError,
            CollectionError, PersistenceError, NotFoundError
        """
        with self._tracer.start_as_current_span("remediation.get") as span:
            span.set_attribute("tenant_id", tenant_id)
            span.set_attribute("remediation_id", remediation_id)
            span.set_attribute("scope", Scope(scope).value)
            self._check_open()
            _, rem = await self._locate_in_scope(tenant_id, remediation_id, scope, team_id, project_path)
            return rem

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    async def feedback(self, req: FeedbackRequest) -> Remediation:
        """
        Apply feedback: adjust confidence, bump usage count, touch updated_at.

        The update is a delete followed by a reinsert into the same collection.
        It is not atomic: if the reinsert fails the record is gone. A scope that
        cannot be searched while locating the record fails the call.

        Raises:
            ServiceClosedError, ValidationError, NotFoundError,
            StoreResolutionError, CollectionError, PersistenceError
        """
        with self._tracer.start_as_current_span("remediation.feedback") as span:
            span.set_attribute("tenant_id", req.tenant_id)
            span.set_attribute("remediation_id", req.remediation_id)
            span.set_attribute("rating", req.rating.value)
            self._check_open()

            target, rem = await self._locate(req.tenant_id, req.remediation_id, req.team_id, req.project_path)

            previous = rem.confidence
            rem.confidence = adjust_confidence(
                rem.confidence,
                req.rating,
                self._config.feedback_delta,
                self._config.min_confidence,
                self._config.max_confidence,
            )
            rem.usage_count += 1
            rem.updated_at = utc_now()

            with tenant_context(target.tenant_info):
                try:
                    await target.store.delete_documents_from_collection(target.collection, [rem.id])
                except Exception as e:
                    raise PersistenceError("failed to delete old remediation", e) from e
                try:
                    await self._insert(target, rem, "failed to reinsert remediation")
                except PersistenceError:
                    logger.error(f"Remediation {rem.id} was deleted but could not be reinserted")
                    raise

            self._metrics.record_feedback(req.rating.value, rem.project_path or "")
            logger.info(
                f"Recorded feedback for {rem.id}: rating={req.rating.value} "
                f"confidence {previous:.2f} -> {rem.confidence:.2f} usage_count={rem.usage_count}"
            )
            span.set_attribute("confidence", rem.confidence)
            return rem

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def _delete_from(self, target: ScopeTarget, remediation_id: str) -> None:
        with tenant_context(target.tenant_info):
            try:
                await target.store.delete_documents_from_collection(target.collection, [remediation_id])
            except Exception as e:
                raise PersistenceError(f"failed to delete remediation {remediation_id}", e) from e
        logger.info(f"Deleted remediation {remediation_id} from {target.scope.value} scope")

    async def delete(
        self,
        tenant_id: str,
        remediation_id: str,
        team_id: Optional[str] = None,
        project_path: Optional[str] = None,
    ) -> None:
        """
        Delete a remediation found by scanning project, team and org scopes.

        Any scope that cannot be searched fails the call.

        Raises:
            ServiceClosedError, ValidationError, NotFoundError,
            StoreResolutionError, CollectionError, PersistenceError
        """
        with self._tracer.start_as_current_span("remediation.delete") as span:
            span.set_attribute("tenant_id", tenant_id)
            span.set_attribute("remediation_id", remediation_id)
            self._check_open()
            target, _ = await self._locate(tenant_id, remediation_id, team_id, project_path)
            await self._delete_from(target, remediation_id)

    async def delete_by_scope(
        self,
        tenant_id: str,
        remediation_id: str,
        scope: Scope,
        team_id: Optional[str] = None,
        project_path: Optional[str] = None,
    ) -> None:
        """
        Delete a remediation from exactly one scope.

        Raises:
            ServiceClosedError, ValidationError, StoreResolutionError,
            CollectionError, PersistenceError, NotFoundError
        """
        with self._tracer.start_as_current_span("remediation.delete") as span:
            span.set_attribute("tenant_id", tenant_id)
            span.set_attribute("remediation_id", remediation_id)
            span.set_attribute("scope", Scope(scope).value)
            self._check_open()
            target, _ = await self._locate_in_scope(tenant_id, remediation_id, scope, team_id, project_path)
            await self._delete_from(target, remediation_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Reject new operations. In-flight operations are not awaited."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        logger.info("Remediation service closed")
