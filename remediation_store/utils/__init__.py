# Utils Package
"""
Cross-cutting utilities.

- error_handling.py: Error taxonomy and classification
- logging_context.py: Tenant-aware logging
"""

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
from remediation_store.utils.logging_context import TenantContextFilter, configure_logging

__all__ = [
    "AggregateSearchError",
    "CollectionError",
    "NotFoundError",
    "PersistenceError",
    "RemediationError",
    "ServiceClosedError",
    "StoreResolutionError",
    "ValidationError",
    "classify_error",
    "TenantContextFilter",
    "configure_logging",
]
