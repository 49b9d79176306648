"""
Core Module

Shared types, protocols and the exception hierarchy.
"""

from polyrag.core.exceptions import (
    ConfigurationError,
    DocumentValidationError,
    DomainDisabledError,
    DomainNotFoundError,
    EmbeddingError,
    IndexTimeoutError,
    KnowledgeError,
    NoEnabledDomainsError,
    PolyRAGError,
    RoutingError,
    VectorIndexError,
)
from polyrag.core.interfaces import (
    EmbeddingProvider,
    RAGServiceProtocol,
    VectorIndexClient,
    VectorIndexHandle,
)
from polyrag.core.types import (
    AggregatedResponse,
    CrossDomainQuery,
    CrossDomainResult,
    IndexDescription,
    IndexQueryOptions,
    QueryMatch,
    RAGDocument,
    RAGDomain,
    RAGQuery,
    RAGResult,
    RAGSearchResponse,
    VectorRecord,
)

__all__ = [
    # Types
    "AggregatedResponse",
    "CrossDomainQuery",
    "CrossDomainResult",
    "IndexDescription",
    "IndexQueryOptions",
    "QueryMatch",
    "RAGDocument",
    "RAGDomain",
    "RAGQuery",
    "RAGResult",
    "RAGSearchResponse",
    "VectorRecord",
    # Interfaces
    "EmbeddingProvider",
    "RAGServiceProtocol",
    "VectorIndexClient",
    "VectorIndexHandle",
    # Exceptions
    "ConfigurationError",
    "DocumentValidationError",
    "DomainDisabledError",
    "DomainNotFoundError",
    "EmbeddingError",
    "IndexTimeoutError",
    "KnowledgeError",
    "NoEnabledDomainsError",
    "PolyRAGError",
    "RoutingError",
    "VectorIndexError",
]
