"""
docgraph Retriever
==================

Multi-strategy hybrid search with context expansion.

Components:
- HybridRetriever: vector + lexical search, fusion, context expansion
- StrategyRegistry / SearchStrategy: named search configurations
- RetrieverConfig: scoring constants
- DocumentRecord: document-level lookup result
- fuse / normalize_score: result fusion helpers
"""

from docgraph.storage.retriever.fusion import dedup_key, fuse, normalize_score
from docgraph.storage.retriever.hybrid import HybridRetriever
from docgraph.storage.retriever.models import DocumentRecord, RetrieverConfig, SearchResult, SearchStrategy
from docgraph.storage.retriever.strategies import DEFAULT_STRATEGY, StrategyRegistry, builtin_strategies

__all__ = [
    "HybridRetriever",
    "DocumentRecord",
    "RetrieverConfig",
    "SearchResult",
    "SearchStrategy",
    "StrategyRegistry",
    "builtin_strategies",
    "DEFAULT_STRATEGY",
    "fuse",
    "normalize_score",
    "dedup_key",
]
