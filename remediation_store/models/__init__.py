# Models Package
"""
Pydantic models for typed data contracts.

- remediation.py: domain model and request types
- document.py: typed store metadata and document building
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
from remediation_store.models.document import (
    LIST_DELIMITER,
    RemediationMetadata,
    embedding_text,
    remediation_to_document,
)

__all__ = [
    "ErrorCategory",
    "FeedbackRating",
    "FeedbackRequest",
    "RecordRequest",
    "Remediation",
    "Scope",
    "ScoredRemediation",
    "SearchRequest",
    "LIST_DELIMITER",
    "RemediationMetadata",
    "embedding_text",
    "remediation_to_document",
]
