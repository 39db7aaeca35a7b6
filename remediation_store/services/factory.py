"""
Service Factory - Build a RemediationService from Configuration

Selects the isolation strategy once, from ``vectorstore.isolation``:

- shared:   one QdrantStore (server or embedded at ``qdrant.path``)
- physical: LocalQdrantStoreProvider rooted at ``vectorstore.base_path``
"""

import logging
from typing import Optional

from remediation_store.config.settings import Config, get_config
from remediation_store.observability.metrics import RemediationMetrics
from remediation_store.services.remediation_service import RemediationService
from remediation_store.tools.embedding_client import Embedder
from remediation_store.tools.qdrant_store import LocalQdrantStoreProvider, QdrantStore

logger = logging.getLogger(__name__)


def create_service(
    config: Optional[Config] = None,
    embedder: Optional[Embedder] = None,
    metrics: Optional[RemediationMetrics] = None,
) -> RemediationService:
    """Build a service over Qdrant using the configured isolation strategy."""
    config = config or get_config()

    if config.vectorstore.isolation == "physical":
        provider = LocalQdrantStoreProvider(config.vectorstore.base_path, embedder=embedder)
        logger.info(f"Using per-scope stores under {config.vectorstore.base_path}")
        return RemediationService.with_store_provider(provider, config.remediation, metrics)

    store = QdrantStore.from_config(
        config.qdrant,
        embedder=embedder,
        payload_isolation=config.vectorstore.payload_isolation,
    )
    logger.info(f"Using shared store with collection prefix '{config.remediation.collection_prefix}'")
    return RemediationService.with_shared_store(store, config.remediation, metrics)
