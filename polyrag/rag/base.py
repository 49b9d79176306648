"""
Base Retrieval Service

Abstract contract shared by every retrieval domain.

Each concrete domain implements ``process_document``, ``search`` and
``cleanup`` with its own tagging and reranking. This base supplies the
common pieces: chunking, validation, embedding generation, instrumented
execution and the index round-trips every domain performs the same way.

Design decisions:
- Configuration is immutable after construction (frozen dataclass)
- The index adapter is injected and shared across domains
- ``user_id`` is always written last into filters and metadata so
  caller-supplied keys can never widen a query to another user
- Age-bounded deletes use the numeric ``created_at_ts`` key, since the
  vector-index range operators only apply to numbers
"""

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, TypeVar

from polyrag.core.exceptions import DocumentValidationError, EmbeddingError
from polyrag.core.types import (
    IndexQueryOptions,
    QueryMatch,
    RAGDocument,
    RAGQuery,
    RAGResult,
    RAGSearchResponse,
    VectorRecord,
    as_utc,
)
from polyrag.knowledge.chunking import chunk_text
from polyrag.knowledge.index_adapter import MultiIndexAdapter
from polyrag.observability.logging import get_logger

T = TypeVar("T")

MIN_CONTENT_LENGTH = 10
MAX_CONTENT_LENGTH = 100_000


@dataclass(frozen=True)
class RAGConfig:
    """Per-domain retrieval configuration."""

    index_name: str
    embedding_model: str = "text-embedding-3-small"
    max_results: int = 10
    min_similarity: float = 0.7
    chunk_size: int = 1000
    overlap_size: int = 200


class BaseRAGService(ABC):
    """
    Abstract retrieval service for one domain.

    Subclasses set ``domain_name``, ``chunk_type`` and ``DEFAULT_CONFIG``
    and implement the three abstract operations.
    """

    domain_name: str = "base"
    chunk_type: str = "generic"
    DEFAULT_CONFIG: RAGConfig

    def __init__(self, config: RAGConfig, adapter: MultiIndexAdapter):
        self._config = config
        self._adapter = adapter
        self._logger = get_logger(f"polyrag.rag.{self.domain_name}")

    @property
    def configuration(self) -> RAGConfig:
        """Read-only view of the configuration."""
        return self._config

    @property
    def index_name(self) -> str:
        return self._config.index_name

    # =========================================================================
    # Domain operations
    # =========================================================================

    @abstractmethod
    async def process_document(self, document: RAGDocument) -> None:
        """Segment, tag, embed and upsert a document."""
        pass

    @abstractmethod
    async def search(self, query: RAGQuery) -> RAGSearchResponse:
        """Search this domain, applying domain-specific reranking."""
        pass

    @abstractmethod
    async def cleanup(self, user_id: str, older_than: datetime | None = None) -> None:
        """Delete the user's vectors (optionally only older ones) and local state."""
        pass

    # =========================================================================
    # Shared facilities
    # =========================================================================

    def chunk_text(self, text: str) -> list[str]:
        """Split text with this domain's chunk and overlap sizes."""
        return chunk_text(text, self._config.chunk_size, self._config.overlap_size)

    def validate_document(self, document: RAGDocument) -> None:
        """
        Reject malformed documents.

        Raises:
            DocumentValidationError: Missing id, content or user_id, or
                content outside 10..100000 characters (inclusive)
        """
        if not document.id:
            raise DocumentValidationError("Document id is required", field="id")
        if not document.content:
            raise DocumentValidationError("Document content is required", field="content")
        if not document.user_id:
            raise DocumentValidationError("Document user_id is required", field="user_id")

        length = len(document.content)
        if length < MIN_CONTENT_LENGTH:
            raise DocumentValidationError(
                f"Document content too short: {length} characters (minimum {MIN_CONTENT_LENGTH})",
                field="content",
                context={"document_id": document.id, "length": length},
            )
        if length > MAX_CONTENT_LENGTH:
            raise DocumentValidationError(
                f"Document content too long: {length} characters (maximum {MAX_CONTENT_LENGTH})",
                field="content",
                context={"document_id": document.id, "length": length},
            )

    async def generate_embeddings(self, text: str) -> list[float]:
        """Embed one text, adding this domain's index to any failure."""
        try:
            return await self._adapter.generate_embedding(text)
        except Exception as e:
            self._logger.error(f"Embedding generation failed for {self.index_name}", error=e)
            raise EmbeddingError(
                f"Failed to generate embeddings: {e}",
                context={"index_name": self.index_name},
                cause=e,
            ) from e

    async def _generate_chunk_embeddings(self, texts: list[str]) -> list[list[float]]:
        try:
            embeddings = await self._adapter.generate_embeddings(texts)
        except Exception as e:
            self._logger.error(f"Embedding generation failed for {self.index_name}", error=e)
            raise EmbeddingError(
                f"Failed to generate embeddings: {e}",
                context={"index_name": self.index_name, "batch_size": len(texts)},
                cause=e,
            ) from e

        if len(embeddings) != len(texts):
            self._logger.error(
                f"Embedding count mismatch for {self.index_name}",
                expected=len(texts),
                received=len(embeddings),
            )
            raise EmbeddingError(
                f"Expected {len(texts)} embeddings, got {len(embeddings)}",
                context={"index_name": self.index_name, "batch_size": len(texts)},
            )
        return embeddings

    async def measure_performance(
        self,
        operation: str,
        func: Callable[[], Awaitable[T]],
    ) -> tuple[T, float]:
        """
        Run ``func`` and time it.

        Logs success or failure with the duration in milliseconds.
        Failures are re-raised unchanged.

        Returns:
            (result, duration_ms)
        """
        started = time.perf_counter()
        try:
            result = await func()
        except Exception as e:
            duration_ms = (time.perf_counter() - started) * 1000
            self._logger.error(
                f"{operation} failed",
                error=e,
                duration_ms=round(duration_ms, 2),
            )
            raise

        duration_ms = (time.perf_counter() - started) * 1000
        self._logger.info(f"{operation} completed", duration_ms=round(duration_ms, 2))
        return result, duration_ms

    def _log_context(self, user_id: str):
        return self._logger.context(domain=self.domain_name, user_id=user_id)

    # =========================================================================
    # Index round-trips
    # =========================================================================

    def _effective_max_results(self, query: RAGQuery) -> int:
        if query.max_results is None:
            return self._config.max_results
        return query.max_results

    def _effective_min_similarity(self, query: RAGQuery) -> float:
        if query.min_similarity is None:
            return self._config.min_similarity
        return query.min_similarity

    def _build_filter(self, user_id: str, extra: dict[str, Any] | None = None) -> dict[str, Any]:
        return {**(extra or {}), "chunk_type": self.chunk_type, "user_id": user_id}

    async def _index_chunks(self, document: RAGDocument, chunks: list[dict[str, Any]]) -> int:
        """
        Embed and upsert tagged chunks of a document.

        Each chunk is a dict with ``content`` plus the domain's tag keys.
        Returns the number of vectors written.
        """
        if not chunks:
            self._logger.warning(
                "Document produced no chunks",
                document_id=document.id,
                content_length=len(document.content),
            )
            return 0

        embeddings = await self._generate_chunk_embeddings([chunk["content"] for chunk in chunks])

        created_at = as_utc(document.created_at)
        document_metadata = {k: v for k, v in document.metadata.items() if v is not None}

        vectors = [
            VectorRecord(
                id=f"{document.id}_chunk_{index}",
                values=values,
                metadata={
                    **document_metadata,
                    **chunk,
                    "document_id": document.id,
                    "chunk_index": index,
                    "chunk_type": self.chunk_type,
                    "created_at": created_at.isoformat(),
                    "created_at_ts": created_at.timestamp(),
                    "user_id": document.user_id,
                },
            )
            for index, (chunk, values) in enumerate(zip(chunks, embeddings, strict=True))
        ]

        await self._adapter.upsert_vectors(self.index_name, vectors)
        return len(vectors)

    async def _query_matches(self, query: RAGQuery, text: str | None = None) -> list[RAGResult]:
        """
        Embed ``text`` (the query text by default), query this domain's
        index for the user and keep matches at or above the threshold.
        """
        vector = await self.generate_embeddings(query.query if text is None else text)
        matches = await self._adapter.query(
            IndexQueryOptions(
                index_name=self.index_name,
                vector=vector,
                top_k=self._effective_max_results(query),
                filter=self._build_filter(query.user_id, query.filters),
                include_metadata=True,
            )
        )

        threshold = self._effective_min_similarity(query)
        return [self._to_result(match) for match in matches if match.score >= threshold]

    @staticmethod
    def _to_result(match: QueryMatch) -> RAGResult:
        return RAGResult(
            id=match.id,
            content=str(match.metadata.get("content", "")),
            similarity=min(max(match.score, 0.0), 1.0),
            metadata=dict(match.metadata),
        )

    def _response(self, query: RAGQuery, results: list[RAGResult], duration_ms: float) -> RAGSearchResponse:
        return RAGSearchResponse(
            results=results,
            total_found=len(results),
            processing_time=duration_ms,
            query=query.query,
        )

    async def _delete_for_user(self, user_id: str, older_than: datetime | None = None) -> None:
        filter = self._build_filter(user_id)
        if older_than is not None:
            filter["created_at_ts"] = {"$lt": as_utc(older_than).timestamp()}
        await self._adapter.delete_by_filter(self.index_name, filter)
