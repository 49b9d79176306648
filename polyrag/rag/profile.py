"""
Learner Profile Retrieval

Domain holding what is known about each learner: strengths and
weaknesses, study schedule, preferences and learning style.
Study activity is fed back in as small profile documents.
"""

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from polyrag.core.types import RAGDocument, RAGQuery, RAGResult, RAGSearchResponse, utcnow
from polyrag.knowledge.index_adapter import MultiIndexAdapter
from polyrag.rag.base import BaseRAGService, RAGConfig

_LOWER_WORDS = r"[a-záàâãéêíóôõú]+(?:\s+[a-záàâãéêíóôõú]+)*"

PROFILE_PATTERNS = (
    re.compile(rf"(?:forte em|bom em|facilidade com)\s+({_LOWER_WORDS})", re.IGNORECASE),
    re.compile(rf"(?:dificuldade em|fraco em|problema com)\s+({_LOWER_WORDS})", re.IGNORECASE),
    re.compile(rf"(?:prefere|gosta de|melhor com)\s+({_LOWER_WORDS})", re.IGNORECASE),
)

STUDY_TIME_PATTERNS = (
    re.compile(r"(?:estuda|estudou)\s+(?:das?\s+)?(\d{1,2}:\d{2}|\d{1,2}h)", re.IGNORECASE),
    re.compile(r"manhã|tarde|noite|madrugada", re.IGNORECASE),
    re.compile(r"segunda|terça|quarta|quinta|sexta|sábado|domingo", re.IGNORECASE),
)

PREFERENCE_PATTERNS = (
    re.compile(r"visual|auditivo|prático|teórico", re.IGNORECASE),
    re.compile(r"resumos|mapas mentais|flashcards|exercícios", re.IGNORECASE),
    re.compile(r"sozinho|grupo|silêncio|música", re.IGNORECASE),
)

LEARNING_STYLE_SIGNALS = {
    "visual": re.compile(r"visual|imagem|gráfico|diagrama|cor", re.IGNORECASE),
    "auditivo": re.compile(r"áudio|escuta|música|conversa|explica", re.IGNORECASE),
    "cinestesico": re.compile(r"prática|movimento|fazer|experiência|tatil", re.IGNORECASE),
    "leitura": re.compile(r"texto|leitura|escrever|lista|resumo", re.IGNORECASE),
}

CLOCK_TIME = re.compile(r"\d{1,2}:\d{2}")

MAX_PROFILE_DATA = 5
MAX_STUDY_PATTERNS = 8
MAX_PREFERENCES = 6

DEFAULT_STUDY_TIMES = ["20:00-22:00"]
DEFAULT_SCHEDULE = ["Segunda: 2h", "Quarta: 2h", "Sexta: 2h"]

PATTERN_ANALYSIS_QUERY = "padrões de estudo performance histórico"


@dataclass
class StudyActivity:
    """A completed study session."""

    subject: str
    performance: float  # percent
    time_spent: int  # minutes
    difficulty: Literal["easy", "medium", "hard"]
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class StudyAnalysis:
    """Summary of a learner's study habits."""

    study_times: list[str] = field(default_factory=lambda: list(DEFAULT_STUDY_TIMES))
    preferred_subjects: list[str] = field(default_factory=list)
    strong_areas: list[str] = field(default_factory=list)
    improvement_areas: list[str] = field(default_factory=list)
    recommended_schedule: list[str] = field(default_factory=lambda: list(DEFAULT_SCHEDULE))


class ProfileRAGService(BaseRAGService):
    """
    Learner profile knowledge base.

    Results keep similarity order.
    """

    domain_name = "profile"
    chunk_type = "user_profile"

    DEFAULT_CONFIG = RAGConfig(
        index_name="nup-user-profiles",
        max_results=12,
        min_similarity=0.65,
        chunk_size=600,
        overlap_size=100,
    )

    def __init__(self, adapter: MultiIndexAdapter, config: RAGConfig | None = None):
        super().__init__(config or self.DEFAULT_CONFIG, adapter)

    async def process_document(self, document: RAGDocument) -> None:
        self.validate_document(document)

        with self._log_context(document.user_id):
            chunks_processed, _ = await self.measure_performance(
                "Profile document processing",
                lambda: self._index_chunks(document, self._chunk_for_profile(document.content)),
            )
            self._logger.info(
                "Profile document processed",
                document_id=document.id,
                chunks_processed=chunks_processed,
            )

    async def search(self, query: RAGQuery) -> RAGSearchResponse:
        with self._log_context(query.user_id):
            results, duration = await self.measure_performance(
                "Profile search",
                lambda: self._query_matches(query),
            )
            self._logger.info("Profile search completed", query=query.query, results_found=len(results))

        return self._response(query, results, duration)

    async def cleanup(self, user_id: str, older_than: datetime | None = None) -> None:
        with self._log_context(user_id):
            await self.measure_performance(
                "Profile cleanup",
                lambda: self._delete_for_user(user_id, older_than),
            )
            self._logger.info("Profile cleanup completed", older_than=older_than)

    async def analyze_study_patterns(self, user_id: str) -> StudyAnalysis:
        """Summarize study times and subjects from the learner's profile."""
        response = await self.search(
            RAGQuery(query=PATTERN_ANALYSIS_QUERY, user_id=user_id, max_results=20)
        )
        if not response.results:
            return StudyAnalysis()

        analysis = _summarize(response.results)
        self._logger.info("Study patterns analyzed", user_id=user_id, patterns_found=len(response.results))
        return analysis

    async def update_profile(self, user_id: str, activity: StudyActivity) -> str:
        """
        Index a study activity into the learner's profile.

        Returns:
            Id of the activity document
        """
        document = RAGDocument(
            id=f"activity_{uuid.uuid4().hex}",
            user_id=user_id,
            content=format_activity(activity),
            metadata={
                "type": "activity_update",
                "subject": activity.subject,
                "performance": activity.performance,
            },
        )
        await self.process_document(document)

        self._logger.info(
            "Profile updated with new activity",
            user_id=user_id,
            subject=activity.subject,
            performance=activity.performance,
        )
        return document.id

    # =========================================================================
    # Tagging
    # =========================================================================

    def _chunk_for_profile(self, content: str) -> list[dict[str, Any]]:
        return [
            {
                "content": chunk,
                "profile_data": extract_profile_data(chunk),
                "study_patterns": extract_study_patterns(chunk),
                "preferences": extract_preferences(chunk),
                "learning_style": detect_learning_style(chunk),
            }
            for chunk in self.chunk_text(content)
        ]


def _summarize(results: list[RAGResult]) -> StudyAnalysis:
    study_times = [
        pattern
        for result in results
        for pattern in result.metadata.get("study_patterns") or []
        if CLOCK_TIME.search(pattern)
    ][:3]

    subjects = [str(r.metadata["subject"]) for r in results if r.metadata.get("subject")][:5]

    return StudyAnalysis(
        study_times=study_times or list(DEFAULT_STUDY_TIMES),
        preferred_subjects=list(dict.fromkeys(subjects)),
    )


def _collect(patterns: tuple[re.Pattern, ...], text: str, limit: int) -> list[str]:
    found: list[str] = []
    for pattern in patterns:
        for match in pattern.finditer(text):
            if len(found) >= limit:
                break
            found.append(match.group(0))
    return list(dict.fromkeys(found))


def extract_profile_data(text: str) -> list[str]:
    data: list[str] = []
    for pattern in PROFILE_PATTERNS:
        for match in pattern.finditer(text):
            if len(data) >= MAX_PROFILE_DATA:
                break
            value = (match.group(1) or "").strip()
            if len(value) > 3:
                data.append(value)
    return list(dict.fromkeys(data))


def extract_study_patterns(text: str) -> list[str]:
    return _collect(STUDY_TIME_PATTERNS, text, MAX_STUDY_PATTERNS)


def extract_preferences(text: str) -> list[str]:
    return _collect(PREFERENCE_PATTERNS, text, MAX_PREFERENCES)


def detect_learning_style(text: str) -> str:
    """Predominant learning style; the first listed style wins ties."""
    scores = {style: 1 if pattern.search(text) else 0 for style, pattern in LEARNING_STYLE_SIGNALS.items()}
    return max(scores, key=scores.__getitem__)


def format_activity(activity: StudyActivity) -> str:
    return (
        f"Atividade de estudo: {activity.subject}.\n"
        f"Performance: {activity.performance}%.\n"
        f"Tempo gasto: {activity.time_spent} minutos.\n"
        f"Dificuldade: {activity.difficulty}.\n"
        f"Data: {activity.timestamp.strftime('%d/%m/%Y')}."
    )
