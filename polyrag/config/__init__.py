"""
Configuration Module

Centralized configuration management for polyrag.
"""

from polyrag.config.settings import (
    EmbeddingSettings,
    ObservabilitySettings,
    RetrievalSettings,
    Settings,
    VectorIndexSettings,
    get_settings,
)

__all__ = [
    "EmbeddingSettings",
    "ObservabilitySettings",
    "RetrievalSettings",
    "Settings",
    "VectorIndexSettings",
    "get_settings",
]
