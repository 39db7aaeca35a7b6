"""
Centralized Configuration Management for the Remediation Store

Uses Pydantic Settings for type-safe environment variable loading.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RemediationConfig(BaseSettings):
    """Confidence model and collection naming."""

    collection_prefix: str = Field(
        default="remediations",
        description="Prefix for collection names in a shared store"
    )
    vector_size: int = Field(
        default=0,
        ge=0,
        description="Vector size hint for new collections (0 lets the store decide)"
    )
    default_confidence: float = Field(
        default=0.5,
        description="Initial confidence for new remediations"
    )
    feedback_delta: float = Field(
        default=0.1,
        description="Confidence change per feedback event"
    )
    min_confidence: float = Field(
        default=0.1,
        description="Lower confidence bound"
    )
    max_confidence: float = Field(
        default=1.0,
        description="Upper confidence bound"
    )

    model_config = SettingsConfigDict(
        env_prefix="REMEDIATION_",
        case_sensitive=False
    )

    @field_validator("collection_prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        if not v or not all(c.isalnum() or c == "_" for c in v):
            raise ValueError("collection_prefix must be non-empty and use only [A-Za-z0-9_]")
        return v

    @field_validator("default_confidence", "min_confidence", "max_confidence")
    @classmethod
    def validate_unit_interval(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError("confidence values must be within [0, 1]")
        return v

    @field_validator("feedback_delta")
    @classmethod
    def validate_delta(cls, v: float) -> float:
        if v <= 0.0:
            raise ValueError("feedback_delta must be positive")
        return v

    @model_validator(mode="after")
    def validate_bounds(self) -> "RemediationConfig":
        if not self.min_confidence <= self.default_confidence <= self.max_confidence:
            raise ValueError("expected min_confidence <= default_confidence <= max_confidence")
        return self


class QdrantConfig(BaseSettings):
    """Qdrant vector database configuration."""

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL"
    )
    api_key: Optional[str] = Field(
        default=None,
        description="Qdrant API key (optional for local)"
    )
    path: Optional[str] = Field(
        default=None,
        description="Directory for embedded local mode (overrides url)"
    )
    timeout: int = Field(
        default=10,
        description="Request timeout in seconds"
    )

    model_config = SettingsConfigDict(
        env_prefix="QDRANT_",
        case_sensitive=False
    )


class StoreProviderConfig(BaseSettings):
    """Store isolation strategy."""

    isolation: str = Field(
        default="shared",
        description="shared (one store, prefixed collections) or physical (store per scope)"
    )
    base_path: Path = Field(
        default=Path.home() / ".config" / "remediation-store" / "vectorstore",
        description="Root directory for per-scope embedded stores"
    )
    payload_isolation: bool = Field(
        default=False,
        description="Stores additionally filter every query by tenant_id"
    )

    model_config = SettingsConfigDict(
        env_prefix="VECTORSTORE_",
        case_sensitive=False
    )

    @field_validator("isolation")
    @classmethod
    def validate_isolation(cls, v: str) -> str:
        valid = ["shared", "physical"]
        if v.lower() not in valid:
            raise ValueError(f"isolation must be one of {valid}")
        return v.lower()


class Config(BaseSettings):
    """Main application configuration."""

    environment: str = Field(
        default="development",
        description="Application environment: development, staging, production"
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    remediation: RemediationConfig = Field(default_factory=RemediationConfig)
    qdrant: QdrantConfig = Field(default_factory=QdrantConfig)
    vectorstore: StoreProviderConfig = Field(default_factory=StoreProviderConfig)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        valid_envs = ["development", "staging", "production"]
        if v.lower() not in valid_envs:
            raise ValueError(f"environment must be one of {valid_envs}")
        return v.lower()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Reload configuration from environment (useful for testing)."""
    global _config
    _config = Config()
    return _config
