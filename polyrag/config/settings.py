"""
Settings Management

Provides centralized, type-safe configuration using Pydantic.
Supports environment variables, .env files, and hierarchical config.

Design decisions:
- Using pydantic-settings for validation and type coercion
- Immutable settings after initialization (frozen model)
- Separate concerns: index settings vs. embedding settings vs. retrieval defaults
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class VectorIndexSettings(BaseSettings):
    """Vector-index service configuration."""

    model_config = SettingsConfigDict(env_prefix="VECTOR_INDEX_")

    provider: Literal["memory", "pinecone"] = "memory"
    api_key: SecretStr | None = Field(default=None)

    # Index creation
    metric: Literal["cosine", "euclidean", "dotproduct"] = "cosine"
    cloud: str = Field(default="aws")
    region: str = Field(default="us-east-1")

    # Hard limit of the service
    upsert_batch_size: int = Field(default=100, ge=1, le=100)

    # Readiness polling after creation
    ready_poll_interval: float = Field(default=5.0, gt=0)
    ready_timeout: float = Field(default=300.0, gt=0)


class EmbeddingSettings(BaseSettings):
    """Embedding provider configuration."""

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    # hash = deterministic offline provider, no API key required
    provider: Literal["hash", "openai"] = "hash"
    model: str = Field(default="text-embedding-3-small")
    dimension: int = Field(default=768, ge=1)
    api_key: SecretStr | None = Field(default=None)
    base_url: str | None = Field(default=None)
    cache_enabled: bool = Field(default=True)


class RetrievalSettings(BaseSettings):
    """Orchestrator defaults."""

    model_config = SettingsConfigDict(env_prefix="RAG_")

    # Cross-domain search
    cross_domain_max_results: int = Field(default=5, ge=1)
    aggregate_limit: int = Field(default=20, ge=1)


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    model_config = SettingsConfigDict(env_prefix="OBS_")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: str | None = Field(default=None)


class Settings(BaseSettings):
    """
    Master settings aggregator.

    This is the single source of truth for all configuration.
    Sub-settings are composed here to maintain clear boundaries.
    """

    model_config = SettingsConfigDict(
        env_prefix="POLYRAG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,  # Immutable after creation
    )

    # Application metadata
    app_name: str = Field(default="polyrag")
    app_version: str = Field(default="0.1.0")
    environment: Literal["development", "staging", "production"] = "development"

    # Forces in-memory index + hash embeddings regardless of provider settings
    offline_mode: bool = Field(default=False)

    # Optional YAML file with per-domain overrides (enabled, priority, description)
    domains_file: str | None = Field(default=None)

    # Component settings (composed)
    vector_index: VectorIndexSettings = Field(default_factory=VectorIndexSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def effective_index_provider(self) -> str:
        """Index provider actually used (memory if offline)."""
        if self.offline_mode:
            return "memory"
        return self.vector_index.provider

    @property
    def effective_embedding_provider(self) -> str:
        """Embedding provider actually used (hash if offline)."""
        if self.offline_mode:
            return "hash"
        return self.embedding.provider


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure only one settings instance exists.
    This is safe because settings are frozen/immutable.
    """
    return Settings()
