"""
Legacy RAG Adapter

Serves the pre-existing single-index API on top of the multi-domain
system, so older callers keep working during the migration.

Requests are routed with ``determine_rag_type``. Read paths keep the
legacy contract of never raising: failures are logged and an empty or
placeholder result is returned. Writes propagate errors.
"""

import asyncio
import math
from datetime import datetime
from typing import Any

from polyrag.compat.classifier import RAGType, determine_rag_type
from polyrag.core.exceptions import DomainNotFoundError
from polyrag.core.types import CrossDomainQuery, RAGDocument, RAGQuery, RAGResult
from polyrag.observability.logging import get_logger
from polyrag.rag.base import BaseRAGService
from polyrag.rag.orchestrator import RAGOrchestrator

logger = get_logger(__name__)

UNTITLED = "Sem título"
NO_RESULTS_ANSWER = "Não foi possível encontrar informações relevantes."
NO_CONTENT_ANSWER = "Não encontrei informações específicas sobre sua consulta."
ERROR_ANSWER = "Erro ao processar consulta."

QUERY_RAG_RESULTS_PER_DOMAIN = 3
QUERY_RAG_MAX_SOURCES = 5


class LegacyRAGAdapter:
    """
    Compatibility facade over the orchestrator and the domain services.

    ``services`` maps each routable type to its domain service;
    ``GENERAL`` requests go through cross-domain search.
    """

    def __init__(
        self,
        orchestrator: RAGOrchestrator,
        services: dict[RAGType, BaseRAGService],
    ):
        self._orchestrator = orchestrator
        self._services = {RAGType(key): service for key, service in services.items()}

    async def search_similar_content(
        self,
        query: str,
        user_id: str,
        top_k: int = 10,
        category: str | None = None,
        min_similarity: float = 0.7,
        document_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Legacy similarity search.

        Returns:
            Dicts with ``content``, ``similarity``, ``title`` and ``category``
        """
        rag_type = determine_rag_type(query, category)
        service = self._services.get(rag_type)

        try:
            if service is None:
                return await self._search_all_domains(query, user_id, top_k)

            response = await service.search(
                RAGQuery(
                    query=query,
                    user_id=user_id,
                    max_results=top_k,
                    min_similarity=min_similarity,
                    filters={"document_id": document_id} if document_id else {},
                )
            )
        except Exception as e:
            logger.error("Legacy similarity search failed", error=e, rag_type=rag_type.value)
            return []

        legacy = [
            {
                "content": result.content,
                "similarity": result.similarity,
                "title": result.metadata.get("title") or result.metadata.get("document_id") or UNTITLED,
                "category": category or rag_type.value,
            }
            for result in response.results
        ]
        logger.info(f"Legacy search served by {rag_type.value}", results_found=len(legacy))
        return legacy

    async def _search_all_domains(self, query: str, user_id: str, top_k: int) -> list[dict[str, Any]]:
        response = await self._orchestrator.search_cross_domain(
            CrossDomainQuery(
                query=query,
                user_id=user_id,
                max_results_per_domain=math.ceil(top_k / 2),
                aggregate_results=True,
            )
        )
        if response.aggregated_results is None:
            return []

        # Aggregated results are already ordered by similarity
        return [
            {
                "content": result.content,
                "similarity": result.similarity,
                "title": result.metadata.get("title") or UNTITLED,
                "category": result.metadata["domain"],
            }
            for result in response.aggregated_results.results[:top_k]
        ]

    async def upsert_document(
        self,
        document_id: str,
        chunks: list[dict[str, Any]],
        metadata: dict[str, Any],
    ) -> RAGType:
        """
        Legacy document upload.

        Chunk contents are joined into one document and indexed by the
        domain matching its title and category (flashcards otherwise).

        Returns:
            The domain that indexed the document
        """
        rag_type = determine_rag_type(metadata.get("title") or "", metadata.get("category"))
        if rag_type not in self._services:
            rag_type = RAGType.FLASHCARDS

        service = self._services.get(rag_type)
        if service is None:
            raise DomainNotFoundError(rag_type.value)

        document = RAGDocument(
            id=document_id,
            user_id=metadata.get("user_id") or "",
            content="\n\n".join(chunk["content"] for chunk in chunks),
            metadata={
                **metadata,
                "original_chunks": len(chunks),
                "migrated_from_legacy": True,
            },
        )

        try:
            await service.process_document(document)
        except Exception as e:
            logger.error(f"Legacy upload of {document_id} failed", error=e, rag_type=rag_type.value)
            raise

        logger.info(f"Legacy document {document_id} processed by {rag_type.value}")
        return rag_type

    async def query_rag(
        self,
        query: str,
        user_id: str,
        context: str | None = None,
    ) -> dict[str, Any]:
        """
        Legacy question answering.

        The answer is a placeholder assembled from lines of the best
        sources; no text is generated.

        Args:
            query: Question text
            user_id: Owner whose content is searched
            context: Kept for the legacy call signature only; unused

        Returns:
            Dict with ``answer``, ``sources`` and ``confidence``
        """
        try:
            response = await self._orchestrator.search_cross_domain(
                CrossDomainQuery(
                    query=query,
                    user_id=user_id,
                    max_results_per_domain=QUERY_RAG_RESULTS_PER_DOMAIN,
                    aggregate_results=True,
                )
            )
        except Exception as e:
            logger.error("Legacy RAG query failed", error=e)
            return {"answer": ERROR_ANSWER, "sources": [], "confidence": 0.0}

        if response.aggregated_results is None:
            return {"answer": NO_RESULTS_ANSWER, "sources": [], "confidence": 0.0}

        top_sources = response.aggregated_results.results[:QUERY_RAG_MAX_SOURCES]

        return {
            "answer": build_placeholder_answer(query, top_sources),
            "sources": [
                {
                    "content": source.content,
                    "similarity": source.similarity,
                    "metadata": source.metadata,
                }
                for source in top_sources
            ],
            "confidence": top_sources[0].similarity if top_sources else 0.0,
        }

    async def cleanup_user_data(self, user_id: str, older_than: datetime | None = None) -> list[str]:
        """
        Remove a user's data from every domain service concurrently.

        Returns:
            Names of the domains whose cleanup failed
        """
        logger.info("Legacy cleanup of user data", user_id=user_id)

        names = list(self._services)
        outcomes = await asyncio.gather(
            *(self._services[name].cleanup(user_id, older_than) for name in names),
            return_exceptions=True,
        )

        failed = []
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, BaseException):
                failed.append(name.value)
                logger.error(f"Legacy cleanup failed in {name.value}", error=outcome, user_id=user_id)

        return failed

    def get_rag_stats(self) -> dict[str, Any]:
        domains = self._orchestrator.list_domains()
        return {
            "total_indexes": len(domains),
            "active_connections": sum(1 for domain in domains if domain.enabled),
            "domains": [domain.name for domain in domains],
        }


def build_placeholder_answer(query: str, sources: list[RAGResult]) -> str:
    """Pick up to three source lines sharing a word with the query."""
    lines = [
        line
        for source in sources
        for line in source.content.split("\n")
        if line.strip()
    ]
    if not lines:
        return NO_CONTENT_ANSWER

    words = query.lower().split()
    relevant = [line for line in lines if any(word in line.lower() for word in words)][:3]

    if relevant:
        return "Baseado nas informações encontradas:\n\n" + "\n\n".join(relevant)
    return "Informações relacionadas:\n\n" + "\n\n".join(lines[:2])
