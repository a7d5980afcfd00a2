"""
docgraph Vector Storage
=======================

Embedding providers with caching and retry.

Components:
- EmbeddingProvider: protocol for embedding backends
- SentenceTransformerProvider / HTTPEmbeddingProvider: concrete backends
- EmbeddingCache: TTL cache keyed by text hash
- CachedEmbedder: cache + retry front-end

Example:
    from docgraph.storage.vectors import CachedEmbedder, SentenceTransformerProvider

    embedder = CachedEmbedder(SentenceTransformerProvider())
    vector = await embedder.embed_one("What changed in the third quarter?")
"""

from docgraph.storage.vectors.cache import EmbeddingCache
from docgraph.storage.vectors.embedder import CachedEmbedder
from docgraph.storage.vectors.embeddings import (
    EmbeddingProvider,
    HTTPEmbeddingProvider,
    SentenceTransformerProvider,
    create_provider,
)

__all__ = [
    "EmbeddingCache",
    "CachedEmbedder",
    "EmbeddingProvider",
    "SentenceTransformerProvider",
    "HTTPEmbeddingProvider",
    "create_provider",
]
