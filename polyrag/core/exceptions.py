"""
Exception Hierarchy

Defines all exceptions raised by the polyrag orchestration layer.
Exceptions are organized by concern and carry context for debugging.

Design decisions:
- All exceptions inherit from PolyRAGError for easy catching
- Exceptions carry structured context, not just messages
- Error codes let the transport layer map errors to status codes
  (validation -> 4xx, infrastructure -> 5xx)
"""

from typing import Any


class PolyRAGError(Exception):
    """
    Base exception for all polyrag errors.

    Provides structured error information including:
    - Human-readable message
    - Machine-readable error code
    - Additional context for debugging
    """

    error_code: str = "POLYRAG_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.error_code
        self.context = context or {}
        self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Serialize exception for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "context": self.context,
        }


# ============================================================
# Configuration Errors
# ============================================================

class ConfigurationError(PolyRAGError):
    """Error in configuration or settings."""

    error_code = "CONFIGURATION_ERROR"


# ============================================================
# Knowledge / Index Errors
# ============================================================

class KnowledgeError(PolyRAGError):
    """Base error for document and index issues."""

    error_code = "KNOWLEDGE_ERROR"


class DocumentValidationError(KnowledgeError):
    """Document is malformed (missing fields, content too short or too long)."""

    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.field = field


class EmbeddingError(KnowledgeError):
    """The embedding provider failed. The provider's message is preserved."""

    error_code = "EMBEDDING_ERROR"


class VectorIndexError(KnowledgeError):
    """Error with vector index operations."""

    error_code = "VECTOR_INDEX_ERROR"


class IndexTimeoutError(VectorIndexError):
    """Index never reached the ready state within the readiness ceiling."""

    error_code = "INDEX_TIMEOUT"

    def __init__(
        self,
        message: str,
        *,
        index_name: str,
        waited_seconds: float,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.index_name = index_name
        self.waited_seconds = waited_seconds


# ============================================================
# Routing Errors
# ============================================================

class RoutingError(PolyRAGError):
    """Base error for domain routing issues."""

    error_code = "ROUTING_ERROR"


class DomainNotFoundError(RoutingError):
    """Requested domain is not registered."""

    error_code = "DOMAIN_NOT_FOUND"

    def __init__(self, name: str, **kwargs: Any):
        super().__init__(f"Domain '{name}' not found", **kwargs)
        self.name = name


class DomainDisabledError(RoutingError):
    """Requested domain is registered but disabled."""

    error_code = "DOMAIN_DISABLED"

    def __init__(self, name: str, **kwargs: Any):
        super().__init__(f"Domain '{name}' is disabled", **kwargs)
        self.name = name


class NoEnabledDomainsError(RoutingError):
    """Cross-domain search resolved to an empty set of enabled domains."""

    error_code = "NO_ENABLED_DOMAINS"
