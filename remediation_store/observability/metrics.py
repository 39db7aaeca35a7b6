"""
Observability Metrics - Prometheus Metrics for the Remediation Service

Counters and histograms emitted as side effects of record/search/feedback.
Metrics are best-effort: an instrument that cannot be created (for example a
name already registered in the same registry) is logged once and skipped for
the lifetime of the manager. Recording never raises into a domain operation.
"""

import logging
from typing import Any, Dict, Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram

logger = logging.getLogger(__name__)


RESULT_COUNT_BUCKETS = (0, 1, 2, 5, 10, 20, 50, 100, 200)
DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)


class RemediationMetrics:
    """Prometheus metrics manager.

    Args:
        namespace: Prefix for every metric name.
        registry: Registry to register into (the process default if None).
    """

    def __init__(self, namespace: str = "remediation", registry: Optional[CollectorRegistry] = None):
        self.namespace = namespace
        self.registry = registry if registry is not None else REGISTRY
        self._metrics: Dict[str, Any] = {}
        self._init_metrics()

    def _create(self, key: str, factory, name: str, documentation: str, labels: list, **kwargs) -> None:
        try:
            self._metrics[key] = factory(
                f"{self.namespace}_{name}",
                documentation,
                labels,
                registry=self.registry,
                **kwargs,
            )
        except ValueError as e:
            logger.warning(f"Failed to create metric {self.namespace}_{name}; it will be skipped: {e}")

    def _init_metrics(self):
        """Create every instrument."""
        self._create(
            "records_total", Counter, "records_total",
            "Total number of remediations recorded",
            ["scope", "category"],
        )
        self._create(
            "searches_total", Counter, "searches_total",
            "Total number of remediation searches",
            ["scope", "project"],
        )
        self._create(
            "search_results", Histogram, "search_results",
            "Number of results returned per search",
            ["scope"],
            buckets=RESULT_COUNT_BUCKETS,
        )
        self._create(
            "search_duration", Histogram, "search_duration_seconds",
            "Remediation search latency",
            ["scope"],
            buckets=DURATION_BUCKETS,
        )
        self._create(
            "feedbacks_total", Counter, "feedbacks_total",
            "Total number of feedback events",
            ["rating", "project"],
        )
        self._create(
            "scope_errors_total", Counter, "scope_errors_total",
            "Per-scope failures downgraded to warnings during search",
            ["scope", "stage"],
        )

    def available(self, key: str) -> bool:
        """Whether the instrument was created successfully."""
        return key in self._metrics

    def record_remediation(self, scope: str, category: str):
        """Count a recorded remediation."""
        if "records_total" in self._metrics:
            self._metrics["records_total"].labels(scope=scope, category=category).inc()

    def record_search(self, scope: str, project: str, result_count: int, duration_seconds: float):
        """Count a search and observe its result count and latency."""
        if "searches_total" in self._metrics:
            self._metrics["searches_total"].labels(scope=scope, project=project).inc()
        if "search_results" in self._metrics:
            self._metrics["search_results"].labels(scope=scope).observe(result_count)
        if "search_duration" in self._metrics:
            self._metrics["search_duration"].labels(scope=scope).observe(duration_seconds)

    def record_feedback(self, rating: str, project: str):
        """Count a feedback event."""
        if "feedbacks_total" in self._metrics:
            self._metrics["feedbacks_total"].labels(rating=rating, project=project).inc()

    def record_scope_error(self, scope: str, stage: str):
        """Count a per-scope failure (stage: resolve, exists, search)."""
        if "scope_errors_total" in self._metrics:
            self._metrics["scope_errors_total"].labels(scope=scope, stage=stage).inc()
