"""
Integration Tests for the Remediation Lifecycle

Runs every scenario against both isolation strategies (one shared store with
prefixed collections, and one store per scope) over in-memory stores.

Tests:
- record -> search -> feedback -> delete
- Scope and tenant isolation
- Hierarchical search
"""

import pytest

from remediation_store.models.remediation import (
    ErrorCategory,
    FeedbackRating,
    FeedbackRequest,
    Scope,
    SearchRequest,
)
from remediation_store.utils.error_handling import NotFoundError

from tests.factories import PROJECT, TEAM, TENANT, record_request


# ============================================================================
# Lifecycle
# ============================================================================

class TestLifecycle:
    """Record, find, rate and delete a remediation."""

    @pytest.mark.asyncio
    async def test_recorded_compile_error_is_found(self, any_service):
        rem = await any_service.record(record_request(scope=Scope.TEAM, team_id=TEAM))

        results = await any_service.search(SearchRequest(
            query="undefined reference to init_config",
            category=ErrorCategory.COMPILE,
            scope=Scope.TEAM,
            tenant_id=TENANT,
            team_id=TEAM,
        ))

        assert [r.id for r in results] == [rem.id]
        assert results[0].symptoms == ["linker error", "build fails"]
        assert results[0].tags == ["c", "linker"]
        assert results[0].score > 0

    @pytest.mark.asyncio
    async def test_category_filter(self, any_service):
        first = await any_service.record(record_request())
        second = await any_service.record(record_request(title="Missing header"))
        await any_service.record(record_request(title="Segfault", category=ErrorCategory.RUNTIME))

        results = await any_service.search(SearchRequest(
            query="undefined reference", category=ErrorCategory.COMPILE, tenant_id=TENANT,
        ))
        assert {r.id for r in results} == {first.id, second.id}

    @pytest.mark.asyncio
    async def test_tag_filter(self, any_service):
        tagged = await any_service.record(record_request(tags=["cgo"]))
        await any_service.record(record_request(tags=["rust"]))
        await any_service.record(record_request(tags=[]))

        results = await any_service.search(SearchRequest(
            query="undefined reference", tags=["cgo"], tenant_id=TENANT,
        ))
        assert [r.id for r in results] == [tagged.id]

    @pytest.mark.asyncio
    async def test_repeated_helpful_feedback_caps(self, any_service):
        rem = await any_service.record(record_request())

        for _ in range(8):
            updated = await any_service.feedback(FeedbackRequest(
                remediation_id=rem.id, tenant_id=TENANT, rating=FeedbackRating.HELPFUL,
            ))

        assert updated.confidence == 1.0
        assert updated.usage_count == 8

    @pytest.mark.asyncio
    async def test_feedback_sequence(self, any_service):
        rem = await any_service.record(record_request())

        await any_service.feedback(FeedbackRequest(
            remediation_id=rem.id, tenant_id=TENANT, rating=FeedbackRating.NOT_HELPFUL,
        ))
        updated = await any_service.feedback(FeedbackRequest(
            remediation_id=rem.id, tenant_id=TENANT, rating=FeedbackRating.OUTDATED,
        ))
        assert updated.confidence == pytest.approx(0.2)

        stored = await any_service.get(TENANT, rem.id)
        assert stored.confidence == pytest.approx(0.2)
        assert stored.usage_count == 2

    @pytest.mark.asyncio
    async def test_low_confidence_drops_out_of_filtered_search(self, any_service):
        rem = await any_service.record(record_request())
        await any_service.feedback(FeedbackRequest(
            remediation_id=rem.id, tenant_id=TENANT, rating=FeedbackRating.OUTDATED,
        ))

        results = await any_service.search(SearchRequest(
            query="undefined reference", min_confidence=0.4, tenant_id=TENANT,
        ))
        assert results == []

    @pytest.mark.asyncio
    async def test_delete_then_get(self, any_service):
        rem = await any_service.record(record_request(scope=Scope.PROJECT, team_id=TEAM, project_path=PROJECT))
        await any_service.delete(TENANT, rem.id, team_id=TEAM, project_path=PROJECT)

        with pytest.raises(NotFoundError):
            await any_service.get(TENANT, rem.id, team_id=TEAM, project_path=PROJECT)

    @pytest.mark.asyncio
    async def test_empty_tenant_search(self, any_service):
        results = await any_service.search(SearchRequest(
            query="anything", scope=Scope.PROJECT, include_hierarchy=True,
            tenant_id="newcomer", team_id=TEAM, project_path=PROJECT,
        ))
        assert results == []


# ============================================================================
# Isolation
# ============================================================================

class TestIsolation:
    """Non-hierarchical searches only see their own scope."""

    @pytest.fixture
    def scopes(self):
        return {
            "org": dict(scope=Scope.ORG),
            "team": dict(scope=Scope.TEAM, team_id=TEAM),
            "other-team": dict(scope=Scope.TEAM, team_id="data"),
            "project": dict(scope=Scope.PROJECT, team_id=TEAM, project_path=PROJECT),
            "other-project": dict(scope=Scope.PROJECT, team_id=TEAM, project_path="/repos/billing"),
        }

    @pytest.mark.asyncio
    async def test_scope_isolation(self, any_service, scopes):
        recorded = {}
        for name, fields in scopes.items():
            recorded[name] = await any_service.record(record_request(title=f"linker failure {name}", **fields))
        foreign = await any_service.record(record_request(tenant_id="globex"))

        for name, fields in scopes.items():
            results = await any_service.search(SearchRequest(
                query="linker failure", tenant_id=TENANT, limit=50, **fields,
            ))
            assert [r.id for r in results] == [recorded[name].id], name
            assert foreign.id not in {r.id for r in results}

    @pytest.mark.asyncio
    async def test_tenant_isolation(self, any_service):
        mine = await any_service.record(record_request())
        theirs = await any_service.record(record_request(tenant_id="globex"))

        results = await any_service.search(SearchRequest(query="undefined reference", tenant_id="globex"))
        assert [r.id for r in results] == [theirs.id]

        with pytest.raises(NotFoundError):
            await any_service.get("globex", mine.id)

    @pytest.mark.asyncio
    async def test_hierarchy_unions_ancestors(self, any_service, scopes):
        recorded = {}
        for name, fields in scopes.items():
            recorded[name] = await any_service.record(record_request(title=f"linker failure {name}", **fields))

        results = await any_service.search(SearchRequest(
            query="linker failure", scope=Scope.PROJECT, include_hierarchy=True,
            tenant_id=TENANT, team_id=TEAM, project_path=PROJECT, limit=50,
        ))

        assert {r.id for r in results} == {
            recorded["project"].id, recorded["team"].id, recorded["org"].id,
        }
        assert {r.scope for r in results} == {Scope.PROJECT, Scope.TEAM, Scope.ORG}

    @pytest.mark.asyncio
    async def test_results_are_ranked(self, any_service):
        for i in range(5):
            await any_service.record(record_request(title=f"variant {i}"))

        results = await any_service.search(SearchRequest(
            query="undefined reference linker", tenant_id=TENANT, limit=3,
        ))
        assert len(results) == 3
        scores = [r.score for r in results]
        assert scores == sorted(scores, reverse=True)
