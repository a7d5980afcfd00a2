"""
docgraph Core
=============

Facade, error taxonomy and retry policy.
"""

from docgraph.core.document_graph import (
    NO_INFORMATION_ANSWER,
    Answer,
    DocGraphConfig,
    DocumentGraph,
    Summarizer,
)
from docgraph.core.exceptions import (
    ChainIntegrityError,
    DocGraphError,
    EmbeddingProviderError,
    GraphStoreError,
)
from docgraph.core.retry import RetryPolicy

__all__ = [
    "DocumentGraph",
    "DocGraphConfig",
    "Answer",
    "Summarizer",
    "NO_INFORMATION_ANSWER",
    "DocGraphError",
    "EmbeddingProviderError",
    "GraphStoreError",
    "ChainIntegrityError",
    "RetryPolicy",
]
