# Observability Package
"""Prometheus metrics for the remediation service."""

from remediation_store.observability.metrics import RemediationMetrics

__all__ = ["RemediationMetrics"]
