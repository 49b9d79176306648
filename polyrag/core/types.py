"""
Core Types and Data Structures

Defines the records exchanged between the index adapter, the domain
services, the orchestrator and the compatibility facade.
These are intentionally simple dataclasses; only the domain registry
entry is mutable (its ``enabled`` flag).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from polyrag.rag.base import BaseRAGService


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# DOCUMENTS AND QUERIES
# =============================================================================

@dataclass
class RAGDocument:
    """
    A unit of source content to index.

    Handed once to ``process_document``; re-indexing is a new call,
    never a mutation of an existing document.
    """

    id: str = ""
    content: str = ""
    user_id: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None


@dataclass
class RAGQuery:
    """A retrieval request against a single domain."""

    query: str
    user_id: str
    filters: dict[str, Any] = field(default_factory=dict)
    max_results: int | None = None
    min_similarity: float | None = None


@dataclass
class RAGResult:
    """A scored match. ``similarity`` is in [0, 1]."""

    id: str
    content: str
    similarity: float
    metadata: dict[str, Any] = field(default_factory=dict)

    def with_metadata(self, **extra: Any) -> RAGResult:
        """Copy of this result with extra metadata keys."""
        return replace(self, metadata={**self.metadata, **extra})


@dataclass
class RAGSearchResponse:
    """A batch of results from one search."""

    results: list[RAGResult] = field(default_factory=list)
    total_found: int = 0
    processing_time: float = 0.0  # milliseconds
    query: str = ""

    @classmethod
    def empty(cls, query: str, processing_time: float = 0.0) -> RAGSearchResponse:
        return cls(results=[], total_found=0, processing_time=processing_time, query=query)


# =============================================================================
# DOMAIN REGISTRY
# =============================================================================

@dataclass
class RAGDomain:
    """Registry entry for one retrieval pipeline."""

    name: str
    service: BaseRAGService
    index_name: str
    description: str = ""
    priority: int = 100  # Ascending sort key
    enabled: bool = True


@dataclass
class CrossDomainQuery:
    """A query fanned out to several domains."""

    query: str
    user_id: str
    target_domains: list[str] | None = None  # None or empty -> every domain
    max_results_per_domain: int | None = None
    aggregate_results: bool = False


@dataclass
class CrossDomainResult:
    """Results of one domain within a cross-domain search."""

    domain: str
    results: RAGSearchResponse
    processing_time: float = 0.0  # milliseconds
    error: str | None = None


@dataclass
class AggregatedResponse:
    """Response of a cross-domain search."""

    query: str
    total_results: int
    total_processing_time: float
    domain_results: list[CrossDomainResult] = field(default_factory=list)
    aggregated_results: RAGSearchResponse | None = None

    def for_domain(self, name: str) -> CrossDomainResult | None:
        for result in self.domain_results:
            if result.domain == name:
                return result
        return None


# =============================================================================
# VECTOR INDEX RECORDS
# =============================================================================

@dataclass
class VectorRecord:
    """An (id, vector, metadata) triple sent to the vector index."""

    id: str
    values: list[float]
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class QueryMatch:
    """A raw match returned by the vector index."""

    id: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class IndexDescription:
    """Description of a named index as reported by the vector-index service."""

    name: str
    dimension: int
    ready: bool = False
    metric: str = "cosine"


@dataclass
class IndexQueryOptions:
    """Options for a similarity query against a named index."""

    index_name: str
    vector: list[float]
    top_k: int
    filter: dict[str, Any] = field(default_factory=dict)
    include_metadata: bool = True
