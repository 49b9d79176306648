"""
Exam Simulation Retrieval

Domain holding exam questions. Chunks are small so each one carries a
single question, tagged with subjects, difficulty, exam type, year and
the organizing institution.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from polyrag.core.types import RAGDocument, RAGQuery, RAGResult, RAGSearchResponse, utcnow
from polyrag.knowledge.index_adapter import MultiIndexAdapter
from polyrag.rag.base import BaseRAGService, RAGConfig

Difficulty = Literal["easy", "medium", "hard"]

# Results closer than this are considered equally relevant
SIMILARITY_BAND = 0.05

DIFFICULTY_ORDER = {"easy": 1, "medium": 2, "hard": 3}

QUESTION_PATTERNS = (
    re.compile(r"(\d+)\.\s*(.+?)(?=\n\d+\.|$)"),
    re.compile(r"(?:QUESTÃO|Questão)\s*(\d+)[:.]?\s*(.+?)(?=(?:QUESTÃO|Questão)|$)"),
)

COMMON_SUBJECTS = (
    "português", "matemática", "direito", "informática", "inglês",
    "administração", "contabilidade", "economia", "geografia", "história",
    "física", "química", "biologia", "estatística", "raciocínio lógico",
)

# (pattern, weight)
COMPLEXITY_SIGNALS = (
    (re.compile(r"calcule|determine|demonstre|prove", re.IGNORECASE), 2),
    (re.compile(r"analise|interprete|compare|avalie", re.IGNORECASE), 1),
    (re.compile(r"fórmula|equação|integral|derivada", re.IGNORECASE), 2),
)

EXAM_TYPES = (
    (re.compile(r"enem", re.IGNORECASE), "ENEM"),
    (re.compile(r"vestibular", re.IGNORECASE), "Vestibular"),
    (re.compile(r"concurso", re.IGNORECASE), "Concurso Público"),
    (re.compile(r"oab", re.IGNORECASE), "OAB"),
    (re.compile(r"cfc", re.IGNORECASE), "CFC"),
)

INSTITUTIONS = ("CESPE", "CEBRASPE", "FCC", "VUNESP", "ESAF", "FGV", "CESGRANRIO", "CONSULPLAN")

YEAR = re.compile(r"20\d{2}")
NUMBER = re.compile(r"\d+")

MAX_QUESTIONS = 10
UNKNOWN_INSTITUTION = "Não identificada"


@dataclass
class SimulationCriteria:
    """What a custom exam simulation should contain."""

    subjects: list[str]
    difficulty: Literal["easy", "medium", "hard", "mixed"] = "mixed"
    question_count: int = 10
    exam_type: str | None = None
    time_limit: int | None = None  # minutes


@dataclass
class SimulationQuestion:
    """A question selected for a simulation."""

    id: str
    question: str
    subject: str
    difficulty: str
    source: str
    alternatives: list[str] = field(default_factory=list)
    correct_answer: str | None = None
    explanation: str | None = None


class SimulationRAGService(BaseRAGService):
    """
    Exam question bank.

    Results are ordered by similarity; results within 0.05 of each
    other are ordered by difficulty, easiest first.
    """

    domain_name = "simulation"
    chunk_type = "simulation"

    DEFAULT_CONFIG = RAGConfig(
        index_name="nup-simulations-kb",
        max_results=20,
        min_similarity=0.8,
        chunk_size=400,
        overlap_size=50,
    )

    def __init__(self, adapter: MultiIndexAdapter, config: RAGConfig | None = None):
        super().__init__(config or self.DEFAULT_CONFIG, adapter)

    async def process_document(self, document: RAGDocument) -> None:
        self.validate_document(document)

        with self._log_context(document.user_id):
            chunks_processed, _ = await self.measure_performance(
                "Simulation document processing",
                lambda: self._index_chunks(document, self._chunk_for_simulations(document.content)),
            )
            self._logger.info(
                "Simulation document processed",
                document_id=document.id,
                chunks_processed=chunks_processed,
            )

    async def search(self, query: RAGQuery) -> RAGSearchResponse:
        async def run() -> list[RAGResult]:
            return rank_by_difficulty(await self._query_matches(query))

        with self._log_context(query.user_id):
            results, duration = await self.measure_performance("Simulation search", run)
            self._logger.info("Simulation search completed", query=query.query, results_found=len(results))

        return self._response(query, results, duration)

    async def cleanup(self, user_id: str, older_than: datetime | None = None) -> None:
        with self._log_context(user_id):
            await self.measure_performance(
                "Simulation cleanup",
                lambda: self._delete_for_user(user_id, older_than),
            )
            self._logger.info("Simulation cleanup completed", older_than=older_than)

    async def generate_custom_simulation(
        self,
        user_id: str,
        criteria: SimulationCriteria,
    ) -> list[SimulationQuestion]:
        """
        Assemble a simulation from the user's question bank.

        Each subject is searched in turn. When a difficulty is requested,
        matching questions are preferred; the rest fill remaining slots.
        """
        if not criteria.subjects or criteria.question_count < 1:
            return []

        per_subject = math.ceil(criteria.question_count / len(criteria.subjects)) + 5
        filters: dict[str, Any] = {"exam_type": criteria.exam_type} if criteria.exam_type else {}

        candidates: dict[str, RAGResult] = {}
        for subject in criteria.subjects:
            text = f"questões {subject}"
            if criteria.difficulty != "mixed":
                text = f"{text} {criteria.difficulty}"

            response = await self.search(
                RAGQuery(query=text, user_id=user_id, max_results=per_subject, filters=filters)
            )
            for result in response.results:
                candidates.setdefault(result.id, result)

        selected = _select_questions(list(candidates.values()), criteria)

        self._logger.info(
            "Custom simulation generated",
            user_id=user_id,
            question_count=len(selected),
            subjects=criteria.subjects,
        )
        return selected

    # =========================================================================
    # Tagging
    # =========================================================================

    def _chunk_for_simulations(self, content: str) -> list[dict[str, Any]]:
        return [
            {
                "content": chunk,
                "questions": extract_questions(chunk),
                "subjects": extract_subjects(chunk),
                "difficulty": assess_question_difficulty(chunk),
                "exam_type": detect_exam_type(chunk),
                "year": extract_year(chunk),
                "institution": extract_institution(chunk),
            }
            for chunk in self.chunk_text(content)
        ]


def rank_by_difficulty(results: list[RAGResult]) -> list[RAGResult]:
    """
    Sort by similarity, descending, then reorder by difficulty inside
    each band of results within ``SIMILARITY_BAND`` of the band's best.
    """
    ordered = sorted(results, key=lambda r: r.similarity, reverse=True)

    ranked: list[RAGResult] = []
    band: list[RAGResult] = []
    for result in ordered:
        if band and band[0].similarity - result.similarity >= SIMILARITY_BAND:
            ranked.extend(sorted(band, key=_difficulty_rank))
            band = []
        band.append(result)
    ranked.extend(sorted(band, key=_difficulty_rank))

    return ranked


def _difficulty_rank(result: RAGResult) -> int:
    return DIFFICULTY_ORDER.get(str(result.metadata.get("difficulty")), DIFFICULTY_ORDER["medium"])


def _select_questions(candidates: list[RAGResult], criteria: SimulationCriteria) -> list[SimulationQuestion]:
    if criteria.difficulty != "mixed":
        # Stable: keeps relevance order inside each group
        candidates = sorted(candidates, key=lambda r: r.metadata.get("difficulty") != criteria.difficulty)

    return [
        SimulationQuestion(
            id=f"q_{number}",
            question=first_line(result.content),
            subject=(result.metadata.get("subjects") or ["Geral"])[0],
            difficulty=str(result.metadata.get("difficulty") or "medium"),
            source=str(result.metadata.get("institution") or UNKNOWN_INSTITUTION),
        )
        for number, result in enumerate(candidates[: criteria.question_count], start=1)
    ]


def first_line(content: str) -> str:
    line = content.strip().split("\n", 1)[0].strip()
    if line:
        return line
    return content[:200] + "..."


def extract_questions(text: str) -> list[str]:
    questions: list[str] = []
    for pattern in QUESTION_PATTERNS:
        for match in pattern.finditer(text):
            if len(questions) >= MAX_QUESTIONS:
                return questions
            question = (match.group(2) or "").strip()
            if len(question) > 20:
                questions.append(question)
    return questions


def extract_subjects(text: str) -> list[str]:
    lowered = text.lower()
    return [subject for subject in COMMON_SUBJECTS if subject in lowered]


def assess_question_difficulty(text: str) -> Difficulty:
    score = sum(weight for pattern, weight in COMPLEXITY_SIGNALS if pattern.search(text))
    if len(text) > 500:
        score += 1
    if len(NUMBER.findall(text)) > 5:
        score += 1

    if score >= 4:
        return "hard"
    if score >= 2:
        return "medium"
    return "easy"


def detect_exam_type(text: str) -> str:
    for pattern, exam_type in EXAM_TYPES:
        if pattern.search(text):
            return exam_type
    return "Geral"


def extract_year(text: str) -> int:
    match = YEAR.search(text)
    return int(match.group(0)) if match else utcnow().year


def extract_institution(text: str) -> str:
    upper = text.upper()
    for institution in INSTITUTIONS:
        if institution in upper:
            return institution
    return UNKNOWN_INSTITUTION
