"""
Configuration module for docgraph.
"""

from .logging import configure_logging
from .settings import BatchSettings, EmbeddingSettings

__all__ = [
    "configure_logging",
    "BatchSettings",
    "EmbeddingSettings",
]
