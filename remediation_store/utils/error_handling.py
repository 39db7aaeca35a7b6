"""
Error Handling - Remediation Error Taxonomy

Provides:
- One exception class per failure kind, all rooted at RemediationError
- Root-cause wrapping (``raise ... from err`` plus ``.cause``)
- Error classification for log fields

Every error leaving the service is classifiable by type and still carries the
underlying store/provider exception.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class RemediationError(Exception):
    """Base class for every error returned by the remediation service."""

    kind = "remediation"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    def __str__(self) -> str:
        message = super().__str__()
        if self.cause is not None:
            return f"{message}: {self.cause}"
        return message


class ServiceClosedError(RemediationError):
    """Raised when an operation is attempted after close()."""

    kind = "closed"

    def __init__(self, message: str = "service is closed"):
        super().__init__(message)


class ValidationError(RemediationError):
    """Raised when a request is missing a required field."""

    kind = "validation"


class StoreResolutionError(RemediationError):
    """Raised when a scope cannot be mapped to a store and collection."""

    kind = "store_resolution"


class CollectionError(RemediationError):
    """Raised when checking or creating a collection fails."""

    kind = "collection"


class PersistenceError(RemediationError):
    """Raised when inserting, searching or deleting documents fails."""

    kind = "persistence"


class NotFoundError(RemediationError):
    """Raised when a remediation ID is absent from every applicable scope."""

    kind = "not_found"

    def __init__(self, remediation_id: str):
        super().__init__(f"remediation not found: {remediation_id}")
        self.remediation_id = remediation_id


class AggregateSearchError(RemediationError):
    """Raised when no scope could be searched and at least one scope failed."""

    kind = "aggregate_search"

    def __init__(self, failed_scopes: int, cause: BaseException):
        super().__init__(f"search failed in all {failed_scopes} reachable scope(s)", cause)
        self.failed_scopes = failed_scopes


def classify_error(error: BaseException) -> str:
    """
    Classify an error for log fields and metric labels.

    Args:
        error: Exception to classify.

    Returns:
        Error category string.
    """
    if isinstance(error, RemediationError):
        return error.kind

    error_name = type(error).__name__.lower()
    error_msg = str(error).lower()

    # Network errors
    if any(x in error_name for x in ["connection", "network", "socket"]):
        return "network"
    if any(x in error_msg for x in ["connection refused", "network unreachable"]):
        return "network"

    # Timeout errors
    if "timeout" in error_name or "timeout" in error_msg:
        return "timeout"

    # Authentication / tenant isolation errors
    if any(x in error_name for x in ["auth", "permission", "forbidden", "tenant"]):
        return "auth"
    if any(x in error_msg for x in ["401", "403", "unauthorized"]):
        return "auth"

    if "validation" in error_name or "invalid" in error_msg:
        return "validation"

    return "unknown"
