"""
Test Configuration

Shared fixtures: a counting vector-index service, deterministic
embeddings, fake domain services and a log buffer.
"""

import asyncio
from datetime import datetime
from typing import Callable

import pytest

from polyrag.config.settings import VectorIndexSettings
from polyrag.core.exceptions import VectorIndexError
from polyrag.core.types import (
    IndexDescription,
    RAGDocument,
    RAGDomain,
    RAGQuery,
    RAGResult,
    RAGSearchResponse,
)
from polyrag.knowledge.embeddings import HashEmbeddings
from polyrag.knowledge.index_adapter import MultiIndexAdapter
from polyrag.knowledge.vector_index import InMemoryVectorIndexClient
from polyrag.observability.logging import BufferHandler, LogLevel, configure_logging

TEST_DIMENSION = 64


class CountingVectorIndexClient(InMemoryVectorIndexClient):
    """
    In-memory vector-index service that counts calls and can fail on demand.

    Every control-plane call yields to the event loop first, so concurrent
    callers really interleave.
    """

    def __init__(self, ready_after: int = 0, create_failures: int = 0, describe_failures: int = 0):
        super().__init__(ready_after=ready_after)
        self.list_calls = 0
        self.create_attempts = 0
        self.describe_attempts = 0
        self._create_failures = create_failures
        self._describe_failures = describe_failures

    async def list_indexes(self) -> list[str]:
        self.list_calls += 1
        await asyncio.sleep(0)
        return await super().list_indexes()

    async def create_index(self, name, dimension, metric="cosine", cloud="aws", region="us-east-1") -> None:
        self.create_attempts += 1
        await asyncio.sleep(0)
        if self._create_failures > 0:
            self._create_failures -= 1
            raise VectorIndexError(f"Simulated create failure for {name}")
        await super().create_index(name, dimension, metric, cloud, region)

    async def describe_index(self, name: str) -> IndexDescription:
        self.describe_attempts += 1
        await asyncio.sleep(0)
        if self._describe_failures > 0:
            self._describe_failures -= 1
            raise ConnectionError("Simulated describe failure")
        return await super().describe_index(name)


class FakeRAGService:
    """Domain service double recording every call."""

    def __init__(
        self,
        name: str,
        results: list[RAGResult] | None = None,
        fail_search: bool = False,
        fail_cleanup: bool = False,
    ):
        self.name = name
        self.results = results or []
        self.fail_search = fail_search
        self.fail_cleanup = fail_cleanup
        self.search_calls: list[RAGQuery] = []
        self.cleanup_calls: list[tuple[str, datetime | None]] = []
        self.processed: list[RAGDocument] = []

    async def process_document(self, document: RAGDocument) -> None:
        await asyncio.sleep(0)
        self.processed.append(document)

    async def search(self, query: RAGQuery) -> RAGSearchResponse:
        self.search_calls.append(query)
        await asyncio.sleep(0)
        if self.fail_search:
            raise RuntimeError(f"{self.name} search failed")

        results = list(self.results)
        if query.max_results is not None:
            results = results[: query.max_results]
        return RAGSearchResponse(results=results, total_found=len(results), processing_time=1.0, query=query.query)

    async def cleanup(self, user_id: str, older_than: datetime | None = None) -> None:
        self.cleanup_calls.append((user_id, older_than))
        await asyncio.sleep(0)
        if self.fail_cleanup:
            raise RuntimeError(f"{self.name} cleanup failed")


@pytest.fixture(autouse=True)
def log_buffer():
    """Route every polyrag logger into a buffer for the test."""
    buffer = BufferHandler()
    configure_logging(level=LogLevel.DEBUG, handlers=[buffer])
    yield buffer
    configure_logging()


@pytest.fixture
def embeddings():
    """Deterministic offline embeddings."""
    return HashEmbeddings(dimension=TEST_DIMENSION)


@pytest.fixture
def index_settings():
    """Index settings with near-instant readiness polling."""
    return VectorIndexSettings(ready_poll_interval=0.001, ready_timeout=1.0)


@pytest.fixture
def vector_client():
    return CountingVectorIndexClient()


@pytest.fixture
def adapter(vector_client, embeddings, index_settings):
    return MultiIndexAdapter(vector_client, embeddings, index_settings)


@pytest.fixture
def make_result() -> Callable[..., RAGResult]:
    def factory(id: str, similarity: float, **metadata) -> RAGResult:
        return RAGResult(id=id, content=f"content of {id}", similarity=similarity, metadata=metadata)

    return factory


@pytest.fixture
def make_service() -> Callable[..., FakeRAGService]:
    return FakeRAGService


@pytest.fixture
def make_domain() -> Callable[..., RAGDomain]:
    def factory(name: str, service, priority: int = 1, enabled: bool = True) -> RAGDomain:
        return RAGDomain(
            name=name,
            service=service,
            index_name=f"{name}-index",
            description=f"{name} domain",
            priority=priority,
            enabled=enabled,
        )

    return factory


@pytest.fixture
def make_document() -> Callable[..., RAGDocument]:
    def factory(content: str, id: str = "doc-1", user_id: str = "user-1", **metadata) -> RAGDocument:
        return RAGDocument(id=id, content=content, user_id=user_id, metadata=metadata)

    return factory
