# Services Package
"""
Remediation engine.

- resolver.py: scope to store/collection resolution strategies
- confidence.py: feedback-driven confidence model
- remediation_service.py: record, search, get, feedback, delete
"""

from remediation_store.services.resolver import (
    PhysicalStoreResolver,
    ScopeDescriptor,
    ScopeTarget,
    SharedStoreResolver,
    StoreResolver,
    get_search_scopes,
)
from remediation_store.services.confidence import adjust_confidence
from remediation_store.services.remediation_service import RemediationService
from remediation_store.services.factory import create_service

__all__ = [
    "PhysicalStoreResolver",
    "ScopeDescriptor",
    "ScopeTarget",
    "SharedStoreResolver",
    "StoreResolver",
    "get_search_scopes",
    "adjust_confidence",
    "RemediationService",
    "create_service",
]
