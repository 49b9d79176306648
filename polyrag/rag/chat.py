"""
Conversational Retrieval

Domain backing the chat assistant. Chunks are larger to keep
conversational context together and are tagged with topics, entities
and a conversational value used for reranking.

Keeps a bounded in-memory history of recent turns per user, used to
enrich queries with the topics of the ongoing conversation.
History is process-local and is not persisted.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from polyrag.core.types import RAGDocument, RAGQuery, RAGResult, RAGSearchResponse, as_utc, utcnow
from polyrag.knowledge.index_adapter import MultiIndexAdapter
from polyrag.rag.base import BaseRAGService, RAGConfig

MAX_HISTORY_TURNS = 10
ENRICHMENT_TURNS = 2
CONTEXT_TURNS = 3

_LOWER_WORDS = r"[a-záàâãéêíóôõú]+(?:\s+[a-záàâãéêíóôõú]+)*"

TOPIC_PATTERNS = (
    re.compile(rf"(?:sobre|acerca de|relativo a|quanto a)\s+({_LOWER_WORDS})", re.IGNORECASE),
    re.compile(rf"(?:tema|tópico|assunto|questão)\s+(?:de\s+)?({_LOWER_WORDS})", re.IGNORECASE),
)

ENTITY_PATTERNS = (
    re.compile(r"\b[A-Z][a-z]+\s+[A-Z][a-z]+\b"),  # Proper names
    re.compile(r"\b[A-Z]{2,}\b"),  # Acronyms
)

# (pattern, bonus) added to a base value of 0.5
CONVERSATIONAL_SIGNALS = (
    (re.compile(r"\?"), 0.2),
    (re.compile(r"exemplo|caso|situação", re.IGNORECASE), 0.15),
    (re.compile(r"como|quando|onde|por que|qual", re.IGNORECASE), 0.1),
    (re.compile(r"importante|fundamental|deve|precisa", re.IGNORECASE), 0.1),
    (re.compile(r"atenção|cuidado|observação", re.IGNORECASE), 0.05),
)

MAX_TOPICS = 3
MAX_ENTITIES = 5


@dataclass
class ConversationTurn:
    """One user message and the assistant's reply."""

    user_message: str
    ai_response: str
    context: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class ConversationSearch:
    """Search results together with the conversation they belong to."""

    search_results: RAGSearchResponse
    conversation_context: list[str]
    suggested_responses: list[str]


class ChatRAGService(BaseRAGService):
    """
    Conversational context knowledge base.

    Results are ordered by similarity x conversational value.
    """

    domain_name = "chat"
    chunk_type = "chat_context"

    DEFAULT_CONFIG = RAGConfig(
        index_name="nup-chat-context",
        max_results=8,
        min_similarity=0.7,
        chunk_size=1200,
        overlap_size=300,
    )

    def __init__(self, adapter: MultiIndexAdapter, config: RAGConfig | None = None):
        super().__init__(config or self.DEFAULT_CONFIG, adapter)
        self._history: dict[str, list[ConversationTurn]] = {}

    async def process_document(self, document: RAGDocument) -> None:
        self.validate_document(document)

        with self._log_context(document.user_id):
            chunks_processed, _ = await self.measure_performance(
                "Chat context document processing",
                lambda: self._index_chunks(document, self._chunk_for_conversation(document.content)),
            )
            self._logger.info(
                "Document processed for chat context",
                document_id=document.id,
                chunks_processed=chunks_processed,
            )

    async def search(self, query: RAGQuery) -> RAGSearchResponse:
        async def run() -> list[RAGResult]:
            enriched = self._enrich_query(query.query, query.user_id)
            results = await self._query_matches(query, enriched)
            return sorted(results, key=_conversational_score, reverse=True)

        with self._log_context(query.user_id):
            results, duration = await self.measure_performance("Chat contextual search", run)
            self._logger.info(
                "Chat contextual search completed",
                original_query=query.query,
                results_found=len(results),
            )

        return self._response(query, results, duration)

    async def cleanup(self, user_id: str, older_than: datetime | None = None) -> None:
        with self._log_context(user_id):
            self._purge_history(user_id, older_than)
            await self.measure_performance(
                "Chat context cleanup",
                lambda: self._delete_for_user(user_id, older_than),
            )
            self._logger.info("Chat context cleanup completed", older_than=older_than)

    # =========================================================================
    # Conversation history
    # =========================================================================

    def store_conversation_turn(
        self,
        user_id: str,
        user_message: str,
        ai_response: str,
        context: list[str] | None = None,
    ) -> None:
        """Append a turn, keeping only the most recent turns for the user."""
        history = self._history.setdefault(user_id, [])
        history.append(
            ConversationTurn(
                user_message=user_message,
                ai_response=ai_response,
                context=list(context or []),
            )
        )
        if len(history) > MAX_HISTORY_TURNS:
            del history[: len(history) - MAX_HISTORY_TURNS]

        self._logger.info("Conversation turn stored", user_id=user_id, total_turns=len(history))

    def get_conversation_context(self, user_id: str) -> list[str]:
        """The last few turns, formatted for a prompt."""
        history = self._history.get(user_id, [])
        return [
            f"Usuario: {turn.user_message} | IA: {turn.ai_response}"
            for turn in history[-CONTEXT_TURNS:]
        ]

    def get_history(self, user_id: str) -> list[ConversationTurn]:
        return list(self._history.get(user_id, []))

    async def search_with_conversation_context(self, user_message: str, user_id: str) -> ConversationSearch:
        """Search for a chat message and return it with conversation context and suggestions."""
        conversation_context = self.get_conversation_context(user_id)

        search_results = await self.search(RAGQuery(query=user_message, user_id=user_id, max_results=6))
        contexts = [result.content for result in search_results.results]

        suggestions = _suggest_responses(user_message, contexts, conversation_context)

        self._logger.info(
            "Conversation search with context completed",
            contexts_found=len(contexts),
            suggestions_generated=len(suggestions),
            user_id=user_id,
        )

        return ConversationSearch(
            search_results=search_results,
            conversation_context=conversation_context,
            suggested_responses=suggestions,
        )

    def _purge_history(self, user_id: str, older_than: datetime | None) -> None:
        if user_id not in self._history:
            return

        if older_than is None:
            del self._history[user_id]
            return

        cutoff = as_utc(older_than)
        self._history[user_id] = [turn for turn in self._history[user_id] if turn.timestamp > cutoff]

    def _enrich_query(self, query: str, user_id: str) -> str:
        history = self._history.get(user_id)
        if not history:
            return query

        terms = []
        for turn in history[-ENRICHMENT_TURNS:]:
            terms.extend(extract_topics(turn.user_message))
            terms.extend(extract_topics(turn.ai_response))

        if not terms:
            return query
        return f"{query} contexto: {' '.join(terms)}"

    # =========================================================================
    # Tagging
    # =========================================================================

    def _chunk_for_conversation(self, content: str) -> list[dict[str, Any]]:
        return [
            {
                "content": chunk,
                "topics": extract_topics(chunk),
                "entities": extract_entities(chunk),
                "conversational_value": assess_conversational_value(chunk),
            }
            for chunk in self.chunk_text(content)
        ]


def _conversational_score(result: RAGResult) -> float:
    value = result.metadata.get("conversational_value") or 0.0
    return result.similarity * float(value)


def _suggest_responses(user_message: str, contexts: list[str], history: list[str]) -> list[str]:
    suggestions = []
    if "?" in user_message:
        suggestions.append("Posso explicar melhor esse conceito se preferir.")
    if contexts:
        suggestions.append("Baseando-me nos documentos disponíveis...")
    if history:
        suggestions.append("Continuando nossa conversa anterior...")
    return suggestions


def extract_topics(text: str) -> list[str]:
    topics = []
    for pattern in TOPIC_PATTERNS:
        for match in pattern.finditer(text):
            topic = (match.group(1) or "").strip()
            if 3 < len(topic) < 30:
                topics.append(topic)

    return list(dict.fromkeys(topics))[:MAX_TOPICS]


def extract_entities(text: str) -> list[str]:
    entities: list[str] = []
    for pattern in ENTITY_PATTERNS:
        for match in pattern.finditer(text):
            if len(entities) >= MAX_ENTITIES:
                break
            entities.append(match.group(0))

    return list(dict.fromkeys(entities))


def assess_conversational_value(text: str) -> float:
    score = 0.5 + sum(bonus for pattern, bonus in CONVERSATIONAL_SIGNALS if pattern.search(text))
    return round(min(score, 1.0), 2)
