"""
docgraph Pipeline
=================

Ingestion side: chunking, graph writing, batch orchestration.

Components:
- TextChunker / ChunkingOptions: overlapping sentence-aware chunking
- GraphWriter: documents, chunks and order chain in the graph
- IngestionPipeline: chunk -> embed -> write, one or many documents
"""

from docgraph.pipeline.chunking import (
    Chunk,
    ChunkingOptions,
    ChunkSequence,
    TextChunker,
    TextStats,
    build_chunks,
)
from docgraph.pipeline.graph_writer import GraphWriter
from docgraph.pipeline.ingestion import IngestionPipeline
from docgraph.pipeline.models import (
    BatchIngestionResult,
    DocumentInput,
    IngestionResult,
    WriteResult,
)

__all__ = [
    "Chunk",
    "ChunkingOptions",
    "ChunkSequence",
    "TextChunker",
    "TextStats",
    "build_chunks",
    "GraphWriter",
    "IngestionPipeline",
    "DocumentInput",
    "WriteResult",
    "IngestionResult",
    "BatchIngestionResult",
]
