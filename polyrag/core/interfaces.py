"""
Core Interfaces and Protocols

Defines the contracts with the external collaborators (vector-index
service, embedding provider) and between the orchestrator and the
domain services, so tests can substitute fakes for any of them.

Design decisions:
- Protocol-based for structural subtyping
- Minimal interface surface
- No implementation details leak through
"""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from polyrag.core.types import (
    IndexDescription,
    QueryMatch,
    RAGDocument,
    RAGQuery,
    RAGSearchResponse,
    VectorRecord,
)


# =============================================================================
# VECTOR INDEX SERVICE PROTOCOLS
# =============================================================================

@runtime_checkable
class VectorIndexHandle(Protocol):
    """
    Connection to one named vector index.

    Implemented by: InMemoryIndex, PineconeIndexHandle
    Used by: MultiIndexAdapter
    """

    async def upsert(self, vectors: list[VectorRecord]) -> None:
        """Upsert a batch of at most 100 vectors."""
        ...

    async def query(
        self,
        vector: list[float],
        top_k: int,
        filter: dict[str, Any] | None = None,
        include_metadata: bool = True,
    ) -> list[QueryMatch]:
        """Return matches ranked by similarity, best first."""
        ...

    async def delete(
        self,
        ids: list[str] | None = None,
        filter: dict[str, Any] | None = None,
    ) -> None:
        """Delete vectors by id or by metadata filter."""
        ...

    async def describe_index_stats(self) -> dict[str, Any]:
        """Return index statistics."""
        ...


@runtime_checkable
class VectorIndexClient(Protocol):
    """
    Control plane of the vector-index service.

    Implemented by: InMemoryVectorIndexClient, PineconeIndexClient
    Used by: MultiIndexAdapter
    """

    async def list_indexes(self) -> list[str]:
        """Names of existing indexes."""
        ...

    async def create_index(
        self,
        name: str,
        dimension: int,
        metric: str,
        cloud: str,
        region: str,
    ) -> None:
        """Request creation of an index. Readiness is reported by describe_index."""
        ...

    async def describe_index(self, name: str) -> IndexDescription:
        """Describe an index, including its readiness."""
        ...

    def index(self, name: str) -> VectorIndexHandle:
        """Open a handle on an existing index."""
        ...


# =============================================================================
# EMBEDDING PROVIDER PROTOCOL
# =============================================================================

@runtime_checkable
class EmbeddingProvider(Protocol):
    """
    Text in, fixed-dimension vector out.

    Implemented by: OpenAIEmbeddings, HashEmbeddings
    Used by: MultiIndexAdapter
    """

    @property
    def dimension(self) -> int:
        ...

    async def embed(self, text: str) -> list[float]:
        ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        ...


# =============================================================================
# DOMAIN SERVICE PROTOCOL
# =============================================================================

@runtime_checkable
class RAGServiceProtocol(Protocol):
    """
    Contract every retrieval domain fulfils.

    Implemented by: BaseRAGService subclasses
    Used by: RAGOrchestrator, LegacyRAGAdapter
    """

    async def process_document(self, document: RAGDocument) -> None:
        ...

    async def search(self, query: RAGQuery) -> RAGSearchResponse:
        ...

    async def cleanup(self, user_id: str, older_than: datetime | None = None) -> None:
        ...
