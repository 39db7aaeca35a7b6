# Config Package
"""Environment-driven settings (pydantic-settings)."""

from remediation_store.config.settings import (
    Config,
    QdrantConfig,
    RemediationConfig,
    StoreProviderConfig,
    get_config,
    reload_config,
)

__all__ = [
    "Config",
    "QdrantConfig",
    "RemediationConfig",
    "StoreProviderConfig",
    "get_config",
    "reload_config",
]
