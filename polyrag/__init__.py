"""
polyrag

Multi-domain retrieval-augmented-generation orchestration: per-domain
vector indexes, cross-domain search and a compatibility layer for the
legacy single-index API.
"""

from polyrag.compat import LegacyRAGAdapter, RAGType, determine_rag_type
from polyrag.core import (
    AggregatedResponse,
    CrossDomainQuery,
    PolyRAGError,
    RAGDocument,
    RAGDomain,
    RAGQuery,
    RAGResult,
    RAGSearchResponse,
)
from polyrag.factory import RAGSystem, create_rag_system, load_domain_overrides
from polyrag.knowledge import MultiIndexAdapter
from polyrag.rag import BaseRAGService, RAGConfig, RAGOrchestrator

__version__ = "0.1.0"

__all__ = [
    "AggregatedResponse",
    "BaseRAGService",
    "CrossDomainQuery",
    "LegacyRAGAdapter",
    "MultiIndexAdapter",
    "PolyRAGError",
    "RAGConfig",
    "RAGDocument",
    "RAGDomain",
    "RAGOrchestrator",
    "RAGQuery",
    "RAGResult",
    "RAGSearchResponse",
    "RAGSystem",
    "RAGType",
    "create_rag_system",
    "determine_rag_type",
    "load_domain_overrides",
]
