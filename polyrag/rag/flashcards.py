"""
Flashcard Retrieval

Domain tuned for study-card generation: small chunks tagged with the
concepts, definitions and importance they carry.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from polyrag.core.types import RAGDocument, RAGQuery, RAGResult, RAGSearchResponse
from polyrag.knowledge.index_adapter import MultiIndexAdapter
from polyrag.rag.base import BaseRAGService, RAGConfig

Level = Literal["easy", "medium", "hard"]
Importance = Literal["high", "medium", "low"]

_WORD = r"[A-Z][a-záàâãéêíóôõú]+(?:\s+[A-Z][a-záàâãéêíóôõú]+)*"

CONCEPT_PATTERNS = (
    re.compile(rf"({_WORD})\s*(?:é|são|refere-se|define-se)", re.IGNORECASE),
    re.compile(rf"(?:conceito|termo|definição)\s+(?:de\s+)?({_WORD})", re.IGNORECASE),
    re.compile(rf"({_WORD})\s*:"),
)

DEFINITION_PATTERNS = (
    re.compile(r"(.+?)\s+(?:é|são|refere-se|define-se|significa)\s+(.+?)(?:\.|;|!|\?)", re.IGNORECASE),
    re.compile(r"(?:define-se|entende-se)\s+(.+?)\s+como\s+(.+?)(?:\.|;|!|\?)", re.IGNORECASE),
)

HIGH_IMPORTANCE_PATTERNS = (
    re.compile(r"importante|fundamental|essencial|crítico|obrigatório", re.IGNORECASE),
    re.compile(r"lei|artigo|inciso|parágrafo", re.IGNORECASE),
    re.compile(r"princípio|conceito|definição", re.IGNORECASE),
)

MEDIUM_IMPORTANCE_PATTERNS = (
    re.compile(r"recomenda|sugere|pode|deve", re.IGNORECASE),
    re.compile(r"exemplo|ilustração|caso", re.IGNORECASE),
)

MAX_CONCEPTS = 5
MAX_DEFINITIONS = 3


@dataclass
class Flashcard:
    """A question/answer pair drafted from indexed content."""

    question: str
    answer: str
    concept: str
    difficulty: Level
    source: str


class FlashcardRAGService(BaseRAGService):
    """
    Flashcard knowledge base.

    Results keep similarity order.
    """

    domain_name = "flashcards"
    chunk_type = "flashcard"

    DEFAULT_CONFIG = RAGConfig(
        index_name="nup-flashcards-kb",
        max_results=15,
        min_similarity=0.75,
        chunk_size=800,
        overlap_size=150,
    )

    def __init__(self, adapter: MultiIndexAdapter, config: RAGConfig | None = None):
        super().__init__(config or self.DEFAULT_CONFIG, adapter)

    async def process_document(self, document: RAGDocument) -> None:
        self.validate_document(document)

        with self._log_context(document.user_id):
            chunks_processed, _ = await self.measure_performance(
                "Flashcard document processing",
                lambda: self._index_chunks(document, self._chunk_for_flashcards(document.content)),
            )
            self._logger.info(
                "Document processed for flashcards",
                document_id=document.id,
                chunks_processed=chunks_processed,
            )

    async def search(self, query: RAGQuery) -> RAGSearchResponse:
        with self._log_context(query.user_id):
            results, duration = await self.measure_performance(
                "Flashcard search",
                lambda: self._query_matches(query),
            )
            self._logger.info("Flashcard search completed", query=query.query, results_found=len(results))

        return self._response(query, results, duration)

    async def cleanup(self, user_id: str, older_than: datetime | None = None) -> None:
        with self._log_context(user_id):
            await self.measure_performance(
                "Flashcard cleanup",
                lambda: self._delete_for_user(user_id, older_than),
            )
            self._logger.info("Flashcard cleanup completed", older_than=older_than)

    async def generate_flashcards(self, query: str, user_id: str, max_cards: int = 10) -> list[Flashcard]:
        """
        Draft flashcards from the user's most relevant content.

        Question and answer are extracted heuristically from each match.
        """
        response = await self.search(
            RAGQuery(query=query, user_id=user_id, max_results=min(max_cards * 2, 20))
        )
        if not response.results:
            return []

        flashcards = [self._draft_flashcard(result) for result in response.results[:max_cards]]

        self._logger.info(
            "Flashcards generated",
            query=query,
            cards_generated=len(flashcards),
            user_id=user_id,
        )
        return flashcards

    # =========================================================================
    # Tagging
    # =========================================================================

    def _chunk_for_flashcards(self, content: str) -> list[dict[str, Any]]:
        return [
            {
                "content": chunk,
                "concepts": extract_concepts(chunk),
                "definitions": extract_definitions(chunk),
                "importance": assess_importance(chunk),
            }
            for chunk in self.chunk_text(content)
        ]

    def _draft_flashcard(self, result: RAGResult) -> Flashcard:
        concepts = result.metadata.get("concepts") or []
        return Flashcard(
            question=extract_question(result.content),
            answer=extract_answer(result.content),
            concept=concepts[0] if concepts else "Conceito Geral",
            difficulty=assess_difficulty(result.content),
            source=str(result.metadata.get("document_id", "")),
        )


def extract_concepts(text: str) -> list[str]:
    """Capitalized terms introduced as a definition or a heading."""
    concepts = []
    for pattern in CONCEPT_PATTERNS:
        for match in pattern.finditer(text):
            concept = (match.group(1) or "").strip()
            if 3 < len(concept) < 50:
                concepts.append(concept)

    return list(dict.fromkeys(concepts))[:MAX_CONCEPTS]


def extract_definitions(text: str) -> list[str]:
    definitions: list[str] = []
    for pattern in DEFINITION_PATTERNS:
        for match in pattern.finditer(text):
            if len(definitions) >= MAX_DEFINITIONS:
                return definitions
            definition = (match.group(2) or "").strip()
            if len(definition) > 10:
                definitions.append(definition)

    return definitions


def assess_importance(text: str) -> Importance:
    score = sum(2 for pattern in HIGH_IMPORTANCE_PATTERNS if pattern.search(text))
    score += sum(1 for pattern in MEDIUM_IMPORTANCE_PATTERNS if pattern.search(text))

    if score >= 3:
        return "high"
    if score >= 1:
        return "medium"
    return "low"


def extract_question(content: str) -> str:
    concepts = extract_concepts(content)
    if concepts:
        return f"O que é {concepts[0]}?"
    return "Explique o conceito apresentado no seguinte trecho."


def extract_answer(content: str) -> str:
    sentences = [s for s in content.split(".") if len(s.strip()) > 20]
    return ". ".join(sentences[:2]) + "."


def assess_difficulty(content: str) -> Level:
    complex_words = sum(1 for word in content.split(" ") if len(word) > 10)

    # Running average weighted towards the last sentences
    sentence_length = 0.0
    for sentence in content.split("."):
        sentence_length = (sentence_length + len(sentence.split(" "))) / 2

    if complex_words > 3 or sentence_length > 15:
        return "hard"
    if complex_words > 1 or sentence_length > 10:
        return "medium"
    return "easy"
