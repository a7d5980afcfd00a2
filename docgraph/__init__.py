"""
docgraph: Graph-backed retrieval for unstructured documents
===========================================================

Chunks documents with overlap, embeds the chunks, stores them as an ordered
chain in FalkorDB and answers queries by fusing vector and lexical search,
expanding hits along document order.

Quick Start:
    from docgraph import DocumentGraph, DocGraphConfig, DocumentInput

    graph = DocumentGraph(DocGraphConfig())
    await graph.connect()

    # Ingestion
    await graph.ingest(DocumentInput(key="handbook.txt", text=text))

    # Search
    results = await graph.search("parental leave policy")

    await graph.close()

Components:
- core: DocumentGraph, DocGraphConfig, RetryPolicy, exceptions
- pipeline: TextChunker, GraphWriter, IngestionPipeline
- storage: FalkorDBClient, CachedEmbedder, HybridRetriever
"""

__version__ = "0.1.0"

# Core API
from docgraph.core import (
    Answer,
    DocGraphConfig,
    DocumentGraph,
    RetryPolicy,
)
from docgraph.core.exceptions import (
    ChainIntegrityError,
    DocGraphError,
    EmbeddingProviderError,
    GraphStoreError,
)

# Convenience exports
from docgraph.pipeline import ChunkingOptions, DocumentInput, TextChunker
from docgraph.storage import CachedEmbedder, FalkorDBClient, HybridRetriever, SearchResult

__all__ = [
    # Core
    "DocumentGraph",
    "DocGraphConfig",
    "Answer",
    "RetryPolicy",
    "DocGraphError",
    "EmbeddingProviderError",
    "GraphStoreError",
    "ChainIntegrityError",
    # Pipeline
    "ChunkingOptions",
    "DocumentInput",
    "TextChunker",
    # Storage
    "CachedEmbedder",
    "FalkorDBClient",
    "HybridRetriever",
    "SearchResult",
]
