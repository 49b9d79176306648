"""
RAG Module

Retrieval domains and the orchestrator that routes between them.
"""

from polyrag.rag.base import BaseRAGService, RAGConfig
from polyrag.rag.chat import ChatRAGService, ConversationSearch, ConversationTurn
from polyrag.rag.flashcards import Flashcard, FlashcardRAGService
from polyrag.rag.orchestrator import RAGOrchestrator
from polyrag.rag.profile import ProfileRAGService, StudyActivity, StudyAnalysis
from polyrag.rag.simulation import SimulationCriteria, SimulationQuestion, SimulationRAGService

__all__ = [
    # Base
    "BaseRAGService",
    "RAGConfig",
    # Domains
    "ChatRAGService",
    "ConversationSearch",
    "ConversationTurn",
    "Flashcard",
    "FlashcardRAGService",
    "ProfileRAGService",
    "SimulationCriteria",
    "SimulationQuestion",
    "SimulationRAGService",
    "StudyActivity",
    "StudyAnalysis",
    # Orchestration
    "RAGOrchestrator",
]
