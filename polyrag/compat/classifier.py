"""
Legacy Query Classifier

Maps a legacy (query, category) pair to the domain that should serve it.

Rules are checked in order and the first match wins. A rule matches
when any of its category keywords is a substring of the lower-cased
category, or any of its query keywords is a substring of the
lower-cased query. Nothing matching means ``GENERAL``.

Pure and deterministic, so it can be swapped for a model-based
classifier without touching the callers.
"""

from dataclasses import dataclass
from enum import Enum


class RAGType(str, Enum):
    """Domain a legacy request is routed to."""

    FLASHCARDS = "flashcards"
    CHAT = "chat"
    SIMULATION = "simulation"
    PROFILE = "profile"
    GENERAL = "general"


@dataclass(frozen=True)
class KeywordRule:
    """A keyword-based classification rule."""

    rag_type: RAGType
    category_keywords: tuple[str, ...]
    query_keywords: tuple[str, ...]

    def matches(self, query: str, category: str) -> bool:
        return any(k in category for k in self.category_keywords) or any(
            k in query for k in self.query_keywords
        )


CLASSIFICATION_RULES: tuple[KeywordRule, ...] = (
    KeywordRule(RAGType.SIMULATION, ("concurso", "questao"), ("simulado", "prova")),
    KeywordRule(RAGType.FLASHCARDS, ("flashcard",), ("conceito", "definição", "termo")),
    KeywordRule(RAGType.CHAT, ("chat", "conversa"), ("explique", "como")),
    KeywordRule(RAGType.PROFILE, ("perfil", "usuario"), ("estudo", "aprendizado")),
)


def determine_rag_type(query: str, category: str | None = None) -> RAGType:
    """Classify a legacy request."""
    query_lower = query.lower()
    category_lower = (category or "").lower()

    for rule in CLASSIFICATION_RULES:
        if rule.matches(query_lower, category_lower):
            return rule.rag_type

    return RAGType.GENERAL
