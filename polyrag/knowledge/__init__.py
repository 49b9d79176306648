"""
Knowledge Module

Chunking, embedding providers, vector-index clients and the
multi-index adapter shared by every retrieval domain.
"""

from polyrag.knowledge.chunking import chunk_spans, chunk_text
from polyrag.knowledge.embeddings import EmbeddingService, HashEmbeddings, OpenAIEmbeddings
from polyrag.knowledge.index_adapter import MultiIndexAdapter
from polyrag.knowledge.vector_index import (
    InMemoryVectorIndexClient,
    PineconeIndexClient,
    matches_filter,
)

__all__ = [
    # Chunking
    "chunk_spans",
    "chunk_text",
    # Embeddings
    "EmbeddingService",
    "HashEmbeddings",
    "OpenAIEmbeddings",
    # Vector index
    "InMemoryVectorIndexClient",
    "MultiIndexAdapter",
    "PineconeIndexClient",
    "matches_filter",
]
