"""
RAG Orchestrator

Central registry of retrieval domains with single-domain routing,
cross-domain search and bulk maintenance.

Design decisions:
- One orchestrator instance is constructed and injected; no module
  level singleton
- Cross-domain search and cleanup join every domain and collect each
  outcome; one failing domain never fails the whole call
- Single-domain calls propagate domain errors unchanged
"""

import asyncio
import time
from datetime import datetime
from typing import Any

from polyrag.core.exceptions import DomainDisabledError, DomainNotFoundError, NoEnabledDomainsError
from polyrag.core.types import (
    AggregatedResponse,
    CrossDomainQuery,
    CrossDomainResult,
    RAGDocument,
    RAGDomain,
    RAGQuery,
    RAGSearchResponse,
)
from polyrag.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_RESULTS_PER_DOMAIN = 5
DEFAULT_AGGREGATE_LIMIT = 20


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


class RAGOrchestrator:
    """
    Registry and router for retrieval domains.

    Usage:
        orchestrator = RAGOrchestrator()
        orchestrator.register_rag(RAGDomain(name="chat", service=chat, index_name="..."))
        response = await orchestrator.search_cross_domain(CrossDomainQuery(...))
    """

    def __init__(
        self,
        default_max_results: int = DEFAULT_MAX_RESULTS_PER_DOMAIN,
        aggregate_limit: int = DEFAULT_AGGREGATE_LIMIT,
    ):
        self._domains: dict[str, RAGDomain] = {}
        self._default_max_results = default_max_results
        self._aggregate_limit = aggregate_limit

    def __len__(self) -> int:
        return len(self._domains)

    def __contains__(self, name: str) -> bool:
        return name in self._domains

    # =========================================================================
    # Registry
    # =========================================================================

    def register_rag(self, domain: RAGDomain) -> None:
        """Register a domain. An existing domain with the same name is replaced."""
        if domain.name in self._domains:
            logger.warning(f"Replacing registered domain: {domain.name}")

        self._domains[domain.name] = domain
        logger.info(
            f"Registered RAG domain: {domain.name}",
            index_name=domain.index_name,
            priority=domain.priority,
            enabled=domain.enabled,
        )

    def unregister_rag(self, name: str) -> bool:
        """Remove a domain. Returns False when it was not registered."""
        if self._domains.pop(name, None) is None:
            return False

        logger.info(f"Unregistered RAG domain: {name}")
        return True

    def list_domains(self) -> list[RAGDomain]:
        """Registered domains by ascending priority."""
        return sorted(self._domains.values(), key=lambda domain: domain.priority)

    def get_domain(self, name: str) -> RAGDomain | None:
        return self._domains.get(name)

    def set_domain_status(self, name: str, enabled: bool) -> None:
        """Enable or disable a domain."""
        domain = self._domains.get(name)
        if domain is None:
            raise DomainNotFoundError(name)

        domain.enabled = enabled
        logger.info(f"Domain {name} {'enabled' if enabled else 'disabled'}")

    def get_stats(self) -> list[dict[str, Any]]:
        return [
            {
                "domain": domain.name,
                "index_name": domain.index_name,
                "enabled": domain.enabled,
                "priority": domain.priority,
            }
            for domain in self.list_domains()
        ]

    def _enabled_domain(self, name: str) -> RAGDomain:
        domain = self._domains.get(name)
        if domain is None:
            raise DomainNotFoundError(name)
        if not domain.enabled:
            raise DomainDisabledError(name)
        return domain

    # =========================================================================
    # Routing
    # =========================================================================

    async def search_in_domain(self, name: str, query: RAGQuery) -> RAGSearchResponse:
        """
        Search one domain.

        Raises:
            DomainNotFoundError: Unknown domain
            DomainDisabledError: Domain is disabled
        """
        return await self._enabled_domain(name).service.search(query)

    async def process_document_in_domain(self, name: str, document: RAGDocument) -> None:
        """
        Index a document in one domain.

        Raises:
            DomainNotFoundError: Unknown domain
            DomainDisabledError: Domain is disabled
        """
        await self._enabled_domain(name).service.process_document(document)

    async def search_cross_domain(self, query: CrossDomainQuery) -> AggregatedResponse:
        """
        Search several domains concurrently.

        Targets are the requested names that are registered (every
        registered domain when none are requested), restricted to enabled
        domains. A domain that fails contributes an empty result.

        Raises:
            NoEnabledDomainsError: No enabled domain to search
        """
        started = time.perf_counter()

        if query.target_domains:
            names = [name for name in dict.fromkeys(query.target_domains) if name in self._domains]
        else:
            names = list(self._domains)

        targets = [self._domains[name] for name in names if self._domains[name].enabled]
        if not targets:
            raise NoEnabledDomainsError(
                "No enabled domains available for search",
                context={"target_domains": query.target_domains},
            )

        max_results = query.max_results_per_domain
        if max_results is None:
            max_results = self._default_max_results

        with logger.context(user_id=query.user_id):
            logger.info(
                "Cross-domain search initiated",
                query=query.query,
                target_domains=[domain.name for domain in targets],
            )

            domain_results = list(
                await asyncio.gather(
                    *(self._search_domain(domain, query, max_results) for domain in targets)
                )
            )

            aggregated = None
            if query.aggregate_results:
                aggregated = self._aggregate(domain_results, query.query)

            domain_results.sort(key=lambda result: result.results.total_found, reverse=True)

            response = AggregatedResponse(
                query=query.query,
                total_results=sum(result.results.total_found for result in domain_results),
                total_processing_time=_elapsed_ms(started),
                domain_results=domain_results,
                aggregated_results=aggregated,
            )

            logger.info(
                "Cross-domain search completed",
                total_results=response.total_results,
                domains_searched=len(targets),
                processing_time_ms=round(response.total_processing_time, 2),
            )

        return response

    async def _search_domain(
        self,
        domain: RAGDomain,
        query: CrossDomainQuery,
        max_results: int,
    ) -> CrossDomainResult:
        started = time.perf_counter()
        try:
            results = await domain.service.search(
                RAGQuery(query=query.query, user_id=query.user_id, max_results=max_results)
            )
        except Exception as e:
            elapsed = _elapsed_ms(started)
            logger.error(f"Failed search in domain {domain.name}", error=e, domain=domain.name)
            return CrossDomainResult(
                domain=domain.name,
                results=RAGSearchResponse.empty(query.query, elapsed),
                processing_time=elapsed,
                error=str(e),
            )

        return CrossDomainResult(
            domain=domain.name,
            results=results,
            processing_time=_elapsed_ms(started),
        )

    def _aggregate(self, domain_results: list[CrossDomainResult], query: str) -> RAGSearchResponse:
        merged = [
            result.with_metadata(domain=domain_result.domain)
            for domain_result in domain_results
            for result in domain_result.results.results
        ]
        merged.sort(key=lambda result: result.similarity, reverse=True)

        return RAGSearchResponse(
            results=merged[: self._aggregate_limit],
            total_found=len(merged),
            processing_time=sum(result.processing_time for result in domain_results),
            query=query,
        )

    # =========================================================================
    # Maintenance
    # =========================================================================

    async def cleanup_all_domains(self, user_id: str, older_than: datetime | None = None) -> list[str]:
        """
        Clean up the user's data in every enabled domain concurrently.

        Every domain is attempted once regardless of the others.

        Returns:
            Names of the domains whose cleanup failed
        """
        domains = [domain for domain in self.list_domains() if domain.enabled]

        outcomes = await asyncio.gather(
            *(domain.service.cleanup(user_id, older_than) for domain in domains),
            return_exceptions=True,
        )

        failed = []
        for domain, outcome in zip(domains, outcomes):
            if isinstance(outcome, BaseException):
                failed.append(domain.name)
                logger.error(
                    f"Cleanup failed in domain {domain.name}",
                    error=outcome,
                    domain=domain.name,
                    user_id=user_id,
                )

        logger.info(
            "Cleanup completed across all domains",
            domains_processed=len(domains),
            domains_failed=len(failed),
            user_id=user_id,
        )
        return failed
