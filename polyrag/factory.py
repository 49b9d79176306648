"""
System Factory

Wires the default four-domain system: one shared index adapter, the
domain services, the orchestrator and the legacy adapter.

Usage:
    system = create_rag_system()
    await system.orchestrator.search_cross_domain(CrossDomainQuery(...))
"""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from polyrag.compat.classifier import RAGType
from polyrag.compat.legacy_adapter import LegacyRAGAdapter
from polyrag.config.settings import Settings, get_settings
from polyrag.core.exceptions import ConfigurationError
from polyrag.core.interfaces import EmbeddingProvider, VectorIndexClient
from polyrag.core.types import RAGDomain
from polyrag.knowledge.embeddings import HashEmbeddings, OpenAIEmbeddings
from polyrag.knowledge.index_adapter import MultiIndexAdapter
from polyrag.knowledge.vector_index import InMemoryVectorIndexClient, PineconeIndexClient
from polyrag.observability.logging import configure_logging, get_logger
from polyrag.rag.base import BaseRAGService, RAGConfig
from polyrag.rag.chat import ChatRAGService
from polyrag.rag.flashcards import FlashcardRAGService
from polyrag.rag.orchestrator import RAGOrchestrator
from polyrag.rag.profile import ProfileRAGService
from polyrag.rag.simulation import SimulationRAGService

logger = get_logger(__name__)


@dataclass(frozen=True)
class DomainSpec:
    """How a default domain is registered."""

    service_class: type[BaseRAGService]
    priority: int
    description: str


DEFAULT_DOMAINS: dict[RAGType, DomainSpec] = {
    RAGType.FLASHCARDS: DomainSpec(
        FlashcardRAGService, 1, "Concepts and definitions for flashcard generation"
    ),
    RAGType.CHAT: DomainSpec(
        ChatRAGService, 2, "Conversational context for the chat assistant"
    ),
    RAGType.PROFILE: DomainSpec(
        ProfileRAGService, 3, "Learner profiles, study patterns and preferences"
    ),
    RAGType.SIMULATION: DomainSpec(
        SimulationRAGService, 4, "Exam questions for custom simulations"
    ),
}

_RETRIEVAL_KEYS = ("max_results", "min_similarity", "chunk_size", "overlap_size")


@dataclass
class DomainOverride:
    """Per-domain settings read from the domains file."""

    enabled: bool | None = None
    priority: int | None = None
    description: str | None = None
    retrieval: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DomainOverride":
        return cls(
            enabled=data.get("enabled"),
            priority=data.get("priority"),
            description=data.get("description"),
            retrieval={key: data[key] for key in _RETRIEVAL_KEYS if key in data},
        )

    def apply(self, config: RAGConfig) -> RAGConfig:
        return replace(config, **self.retrieval) if self.retrieval else config


@dataclass
class RAGSystem:
    """The assembled system."""

    settings: Settings
    adapter: MultiIndexAdapter
    orchestrator: RAGOrchestrator
    services: dict[RAGType, BaseRAGService]
    legacy: LegacyRAGAdapter

    @property
    def flashcards(self) -> FlashcardRAGService:
        return self.services[RAGType.FLASHCARDS]

    @property
    def chat(self) -> ChatRAGService:
        return self.services[RAGType.CHAT]

    @property
    def profile(self) -> ProfileRAGService:
        return self.services[RAGType.PROFILE]

    @property
    def simulation(self) -> SimulationRAGService:
        return self.services[RAGType.SIMULATION]


def load_domain_overrides(path: Path | str) -> dict[str, DomainOverride]:
    """
    Load per-domain overrides from a YAML file.

    Expected layout:
        domains:
          chat:
            enabled: false
            priority: 5
          simulation:
            min_similarity: 0.75

    Raises:
        ConfigurationError: File missing, unreadable or malformed
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Domains file not found: {path}", context={"path": str(path)})

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Invalid domains file {path}: {e}",
            context={"path": str(path)},
            cause=e,
        ) from e

    domains = data.get("domains", data) if isinstance(data, dict) else None
    if not isinstance(domains, dict):
        raise ConfigurationError(
            f"Domains file {path} must map domain names to settings",
            context={"path": str(path)},
        )

    overrides = {}
    for name, entry in domains.items():
        if not isinstance(entry, dict):
            raise ConfigurationError(
                f"Settings for domain '{name}' must be a mapping",
                context={"path": str(path), "domain": name},
            )
        overrides[str(name)] = DomainOverride.from_dict(entry)

    return overrides


def create_vector_client(settings: Settings) -> VectorIndexClient:
    """Vector-index client selected by settings."""
    if settings.effective_index_provider == "pinecone":
        api_key = settings.vector_index.api_key
        if api_key is None:
            raise ConfigurationError("VECTOR_INDEX_API_KEY is required for the pinecone provider")
        return PineconeIndexClient(api_key=api_key.get_secret_value())

    return InMemoryVectorIndexClient()


def create_embedding_service(settings: Settings) -> EmbeddingProvider:
    """Embedding provider selected by settings."""
    embedding = settings.embedding

    if settings.effective_embedding_provider == "openai":
        return OpenAIEmbeddings(
            api_key=embedding.api_key.get_secret_value() if embedding.api_key else None,
            model=embedding.model,
            dimensions=embedding.dimension,
            base_url=embedding.base_url,
            cache_enabled=embedding.cache_enabled,
        )

    return HashEmbeddings(dimension=embedding.dimension)


def configure_observability(settings: Settings) -> None:
    """Apply the observability settings to every polyrag logger."""
    configure_logging(
        level=settings.observability.log_level,
        json_output=settings.observability.log_format == "json",
        log_file=settings.observability.log_file,
    )


def create_rag_system(
    settings: Settings | None = None,
    vector_client: VectorIndexClient | None = None,
    embedding_service: EmbeddingProvider | None = None,
    domain_overrides: dict[str, DomainOverride] | None = None,
) -> RAGSystem:
    """
    Assemble the default system.

    Args:
        settings: Settings (defaults to ``get_settings()``)
        vector_client: Vector-index client (defaults to the configured one)
        embedding_service: Embedding provider (defaults to the configured one)
        domain_overrides: Per-domain overrides (defaults to ``settings.domains_file``)

    Returns:
        Wired RAGSystem
    """
    settings = settings or get_settings()

    if domain_overrides is None:
        domain_overrides = load_domain_overrides(settings.domains_file) if settings.domains_file else {}

    unknown = set(domain_overrides) - {rag_type.value for rag_type in DEFAULT_DOMAINS}
    if unknown:
        raise ConfigurationError(
            f"Overrides for unknown domains: {', '.join(sorted(unknown))}",
            context={"unknown_domains": sorted(unknown)},
        )

    adapter = MultiIndexAdapter(
        client=vector_client or create_vector_client(settings),
        embeddings=embedding_service or create_embedding_service(settings),
        settings=settings.vector_index,
    )
    orchestrator = RAGOrchestrator(
        default_max_results=settings.retrieval.cross_domain_max_results,
        aggregate_limit=settings.retrieval.aggregate_limit,
    )

    services: dict[RAGType, BaseRAGService] = {}
    for rag_type, spec in DEFAULT_DOMAINS.items():
        override = domain_overrides.get(rag_type.value, DomainOverride())
        config = override.apply(spec.service_class.DEFAULT_CONFIG)
        service = spec.service_class(adapter, config)
        services[rag_type] = service

        orchestrator.register_rag(
            RAGDomain(
                name=rag_type.value,
                service=service,
                index_name=config.index_name,
                description=override.description or spec.description,
                priority=spec.priority if override.priority is None else override.priority,
                enabled=True if override.enabled is None else override.enabled,
            )
        )

    logger.info(
        "RAG system created",
        index_provider=settings.effective_index_provider,
        embedding_provider=settings.effective_embedding_provider,
        domains=[domain.name for domain in orchestrator.list_domains()],
    )

    return RAGSystem(
        settings=settings,
        adapter=adapter,
        orchestrator=orchestrator,
        services=services,
        legacy=LegacyRAGAdapter(orchestrator, services),
    )
