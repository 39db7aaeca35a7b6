# Remediation Store - Main Package
"""
Multi-tenant knowledge store for error-fix patterns.

This package provides:
- Scope resolution over shared or physically isolated vector stores
- Recording remediations in one org, team or project scope
- Hierarchical semantic search with post-filtering and ranking
- Feedback-driven confidence adjustment
"""

from remediation_store.models.remediation import (
    ErrorCategory,
    FeedbackRating,
    FeedbackRequest,
    RecordRequest,
    Remediation,
    Scope,
    ScoredRemediation,
    SearchRequest,
)
from remediation_store.services.remediation_service import RemediationService

__version__ = "0.1.0"

__all__ = [
    "ErrorCategory",
    "FeedbackRating",
    "FeedbackRequest",
    "RecordRequest",
    "Remediation",
    "Scope",
    "ScoredRemediation",
    "SearchRequest",
    "RemediationService",
]
