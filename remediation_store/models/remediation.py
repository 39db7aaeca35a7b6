"""
Remediation Models - Error-Fix Patterns and Requests

A remediation records a problem, its root cause and the fix that resolved it.
It belongs to exactly one scope (project, team or org) of one tenant; the
scope is fixed at creation.

The embedding vector is a store concern and never appears on these models.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ErrorCategory(str, Enum):
    """Category of the error a remediation fixes."""
    COMPILE = "compile"
    RUNTIME = "runtime"
    TEST = "test"
    LINT = "lint"
    SECURITY = "security"
    PERFORMANCE = "performance"
    OTHER = "other"


class Scope(str, Enum):
    """Visibility boundary of a remediation."""
    PROJECT = "project"
    TEAM = "team"
    ORG = "org"


class FeedbackRating(str, Enum):
    """User verdict on a retrieved remediation."""
    HELPFUL = "helpful"
    NOT_HELPFUL = "not_helpful"
    OUTDATED = "outdated"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Remediation(BaseModel):
    """Stored error-fix pattern."""

    id: str = Field(..., description="Unique identifier within the tenant")
    title: str = Field("", description="Short title")
    problem: str = Field("", description="Description of the error or issue")
    symptoms: list[str] = Field(default_factory=list, description="Observable symptoms")
    root_cause: str = Field("", description="Underlying cause of the error")
    solution: str = Field("", description="Fix that resolved the error")
    code_diff: Optional[str] = Field(None, description="Diff showing the fix")
    affected_files: list[str] = Field(default_factory=list, description="Files changed by the fix")
    category: ErrorCategory = Field(ErrorCategory.OTHER, description="Error category")
    confidence: float = Field(..., description="Adaptive quality signal")
    usage_count: int = Field(0, ge=0, description="Number of feedback events received")
    tags: list[str] = Field(default_factory=list, description="Labels for filtering")

    scope: Scope = Field(..., description="Visibility scope, fixed at creation")
    tenant_id: str = Field(..., description="Owning organization")
    team_id: Optional[str] = Field(None, description="Owning team (team scope)")
    project_path: Optional[str] = Field(None, description="Owning project (project scope)")
    session_id: Optional[str] = Field(None, description="Session the remediation was extracted from")

    created_at: datetime = Field(default_factory=utc_now, description="Creation time, immutable")
    updated_at: datetime = Field(default_factory=utc_now, description="Time of last mutation")

    class Config:
        frozen = False  # Feedback adjusts confidence, usage_count and updated_at


class ScoredRemediation(Remediation):
    """Remediation plus the similarity score reported by the backing store."""

    score: float = Field(..., description="Ranking signal, not a probability")


class SearchRequest(BaseModel):
    """Parameters for a remediation search."""

    query: str = Field("", description="Error message or description to search for")
    vector: Optional[list[float]] = Field(None, description="Precomputed query embedding")
    limit: int = Field(0, ge=0, description="Maximum results (0 means the default of 10)")
    min_confidence: float = Field(0.0, description="Drop results below this confidence")
    category: Optional[ErrorCategory] = Field(None, description="Exact-match category filter")
    tags: list[str] = Field(default_factory=list, description="Any-of tag filter")
    scope: Optional[Scope] = Field(None, description="Target scope (all derivable scopes if None)")
    include_hierarchy: bool = Field(False, description="Also search ancestor scopes")

    tenant_id: str = Field("", description="Tenant performing the search")
    team_id: Optional[str] = Field(None, description="Team for team/project scopes")
    project_path: Optional[str] = Field(None, description="Project for project scope")


class RecordRequest(BaseModel):
    """Parameters for recording a remediation."""

    title: str = ""
    problem: str = ""
    symptoms: list[str] = Field(default_factory=list)
    root_cause: str = ""
    solution: str = ""
    code_diff: Optional[str] = None
    affected_files: list[str] = Field(default_factory=list)
    category: ErrorCategory = ErrorCategory.OTHER
    tags: list[str] = Field(default_factory=list)
    scope: Optional[Scope] = None
    tenant_id: str = ""
    team_id: Optional[str] = None
    project_path: Optional[str] = None
    session_id: Optional[str] = None
    confidence: float = Field(0.0, description="Initial confidence (0 means the configured default)")


class FeedbackRequest(BaseModel):
    """Feedback on a retrieved remediation."""

    remediation_id: str
    tenant_id: str
    rating: FeedbackRating
    session_id: Optional[str] = None
    comment: Optional[str] = None
    team_id: Optional[str] = Field(None, description="Needed to reach team-scoped records")
    project_path: Optional[str] = Field(None, description="Needed to reach project-scoped records")
