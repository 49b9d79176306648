"""
Compatibility Module

Legacy single-index API served by the multi-domain system.
"""

from polyrag.compat.classifier import CLASSIFICATION_RULES, KeywordRule, RAGType, determine_rag_type
from polyrag.compat.legacy_adapter import LegacyRAGAdapter, build_placeholder_answer

__all__ = [
    "CLASSIFICATION_RULES",
    "KeywordRule",
    "LegacyRAGAdapter",
    "RAGType",
    "build_placeholder_answer",
    "determine_rag_type",
]
