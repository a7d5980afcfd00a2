"""
Storage Layer
=============

FalkorDB chunk graph, embeddings and retrieval.

Components:
- graph/: FalkorDB client, Cypher builders, GraphStore protocol
- vectors/: embedding providers, TTL cache, CachedEmbedder
- retriever/: HybridRetriever with strategies and fusion

Architecture:
    query --> CachedEmbedder --> vector_search ----+
      |                              |             |
      |                       chunk_window (+/-W)  +--> fuse --> results
      |                                            |
      +--------------------> lexical_search -------+
"""

from docgraph.storage.graph import CypherQuery, FalkorDBClient, FalkorDBConfig, GraphStore
from docgraph.storage.retriever import HybridRetriever, RetrieverConfig, SearchResult, SearchStrategy
from docgraph.storage.vectors import CachedEmbedder, EmbeddingCache, EmbeddingProvider

__all__ = [
    # FalkorDB
    "FalkorDBClient",
    "FalkorDBConfig",
    "CypherQuery",
    "GraphStore",
    # Retrieval
    "HybridRetriever",
    "RetrieverConfig",
    "SearchResult",
    "SearchStrategy",
    # Embeddings
    "CachedEmbedder",
    "EmbeddingCache",
    "EmbeddingProvider",
]
