"""
Document Graph
==============

Entry point coordinating the docgraph components:
- FalkorDB (chunk graph storage)
- Embedding provider + cache/retry (CachedEmbedder)
- Chunker, GraphWriter, IngestionPipeline (ingestion)
- HybridRetriever (search)

Every collaborator can be injected; what is not injected is built from
DocGraphConfig when connect() runs. Nothing is process-global.

Usage:
    from docgraph import DocumentGraph, DocGraphConfig, DocumentInput

    graph = DocumentGraph(DocGraphConfig.for_environment())
    await graph.connect()

    await graph.ingest(DocumentInput(key="report.txt", text=text))
    results = await graph.search("revenue by region", strategy_name="vector-with-context")
    answer = await graph.ask("How did revenue change?", summarizer)
    original = await graph.get_document_text("report.txt")

    await graph.close()
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

import structlog

from docgraph.config.settings import BatchSettings, EmbeddingSettings
from docgraph.pipeline.chunking import ChunkingOptions, TextChunker
from docgraph.pipeline.graph_writer import GraphWriter
from docgraph.pipeline.ingestion import IngestionPipeline
from docgraph.pipeline.models import BatchIngestionResult, DocumentInput, IngestionResult
from docgraph.storage.graph.client import FalkorDBClient
from docgraph.storage.graph.config import FalkorDBConfig
from docgraph.storage.graph.store import GraphStore
from docgraph.storage.retriever.hybrid import HybridRetriever
from docgraph.storage.retriever.models import DocumentRecord, RetrieverConfig, SearchResult
from docgraph.storage.retriever.strategies import StrategyRegistry
from docgraph.storage.vectors.embedder import CachedEmbedder
from docgraph.storage.vectors.embeddings import EmbeddingProvider, create_provider

log = structlog.get_logger()

NO_INFORMATION_ANSWER = "No relevant information was found in the indexed documents."


class Summarizer(Protocol):
    """Turns retrieved passages into an answer."""

    async def summarize(self, question: str, passages: List[str]) -> str:
        ...


@dataclass
class Answer:
    """Answer plus the passages it was built from."""
    question: str
    answer: str
    sources: List[SearchResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "answer": self.answer,
            "sources": [s.to_dict() for s in self.sources],
        }


@dataclass
class DocGraphConfig:
    """
    Configuration for DocumentGraph.

    Attributes:
        falkordb: Graph store connection
        embedding: Embedding provider, retry and cache settings
        chunking: Chunker options
        batch: Ingestion batch size and worker limit
        retriever: Scoring constants
        strategies_path: Optional YAML file with extra search strategies
    """
    falkordb: FalkorDBConfig = field(default_factory=FalkorDBConfig)
    embedding: EmbeddingSettings = field(default_factory=EmbeddingSettings)
    chunking: ChunkingOptions = field(default_factory=ChunkingOptions.from_env)
    batch: BatchSettings = field(default_factory=BatchSettings)
    retriever: RetrieverConfig = field(default_factory=RetrieverConfig)
    strategies_path: Optional[str] = None

    @classmethod
    def for_environment(cls, environment: Optional[str] = None, **overrides) -> "DocGraphConfig":
        """Config pointing at the graph of an environment (DOCGRAPH_ENV by default)."""
        return cls(falkordb=FalkorDBConfig.for_environment(environment), **overrides)


class DocumentGraph:
    """
    Ingestion and retrieval over one chunk graph.

    Architecture:
        DocumentGraph
        ├── GraphStore (FalkorDBClient by default)
        ├── CachedEmbedder (provider + TTL cache + RetryPolicy)
        ├── IngestionPipeline (TextChunker -> CachedEmbedder -> GraphWriter)
        └── HybridRetriever (strategies, fusion, context expansion)
    """

    def __init__(
        self,
        config: Optional[DocGraphConfig] = None,
        store: Optional[GraphStore] = None,
        embedder: Optional[CachedEmbedder] = None,
        provider: Optional[EmbeddingProvider] = None,
        chunker: Optional[TextChunker] = None,
    ):
        """
        Components are created but not connected until connect() is called.

        Args:
            config: DocGraphConfig (environment defaults when omitted)
            store: Graph store; a FalkorDBClient is created when omitted
            embedder: Ready embedder; built from ``provider`` or settings when omitted
            provider: Embedding provider used to build the embedder
            chunker: Text chunker; built from config.chunking when omitted
        """
        self.config = config or DocGraphConfig()

        self._store = store
        self._owns_store = store is None
        self._provider = provider
        self._owns_provider = False
        self._embedder = embedder
        self._chunker = chunker

        self._writer: Optional[GraphWriter] = None
        self._pipeline: Optional[IngestionPipeline] = None
        self._retriever: Optional[HybridRetriever] = None

        self._connected = False

        log.info(f"DocumentGraph initialized with graph: {self.config.falkordb.graph_name}")

    async def connect(self) -> None:
        """
        Connect the graph store and wire the pipelines.

        Must be called before any operation.
        """
        if self._connected:
            log.warning("Already connected")
            return

        if self._store is None:
            client = FalkorDBClient(self.config.falkordb)
            await client.connect()
            self._store = client
            log.info(f"FalkorDB connected: {self.config.falkordb.graph_name}")

        if self._embedder is None:
            if self._provider is None:
                self._provider = create_provider(self.config.embedding)
                self._owns_provider = True
            self._embedder = CachedEmbedder.from_settings(self._provider, self.config.embedding)

        if self._chunker is None:
            self._chunker = TextChunker(self.config.chunking)

        self._writer = GraphWriter(self._store, batch_size=self.config.batch.chunk_batch_size)
        self._pipeline = IngestionPipeline(
            chunker=self._chunker,
            embedder=self._embedder,
            writer=self._writer,
            settings=self.config.batch,
            embedding_dimension=self.config.embedding.dimension,
        )

        registry = StrategyRegistry()
        if self.config.strategies_path:
            registry.load_yaml(self.config.strategies_path)
        self._retriever = HybridRetriever(
            store=self._store,
            embedder=self._embedder,
            config=self.config.retriever,
            registry=registry,
        )

        self._connected = True
        log.info("DocumentGraph connected successfully")

    async def close(self) -> None:
        """Close owned connections."""
        if self._owns_store and self._store is not None and hasattr(self._store, "close"):
            await self._store.close()
            self._store = None
        if self._owns_provider and hasattr(self._provider, "close"):
            await self._provider.close()

        self._connected = False
        log.info("DocumentGraph connections closed")

    async def __aenter__(self) -> "DocumentGraph":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def retriever(self) -> HybridRetriever:
        self._require_connection()
        return self._retriever

    @property
    def writer(self) -> GraphWriter:
        self._require_connection()
        return self._writer

    def _require_connection(self) -> None:
        if not self._connected:
            raise RuntimeError("DocumentGraph not connected. Call connect() first.")

    # ========================================================================
    # Ingestion
    # ========================================================================

    async def ingest(self, document: DocumentInput) -> IngestionResult:
        self._require_connection()
        return await self._pipeline.ingest(document)

    async def ingest_many(self, documents: List[DocumentInput]) -> BatchIngestionResult:
        self._require_connection()
        return await self._pipeline.ingest_many(documents)

    # ========================================================================
    # Retrieval
    # ========================================================================

    async def search(
        self,
        query: str,
        strategy_name: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[SearchResult]:
        self._require_connection()
        return await self._retriever.search(query, strategy_name, limit)

    async def get_chunk_text(self, chunk_id: str) -> Optional[str]:
        self._require_connection()
        return await self._retriever.get_chunk_text(chunk_id)

    async def get_document_text(self, document_key: str) -> Optional[str]:
        self._require_connection()
        return await self._retriever.get_document_text(document_key)

    async def get_document(self, document_key: str) -> Optional[DocumentRecord]:
        self._require_connection()
        return await self._retriever.get_document(document_key)

    async def find_documents(
        self,
        doc_type: Optional[str] = None,
        contains: Optional[str] = None,
        limit: int = 20,
    ) -> List[DocumentRecord]:
        self._require_connection()
        return await self._retriever.find_documents(doc_type=doc_type, contains=contains, limit=limit)

    async def ask(
        self,
        question: str,
        summarizer: Summarizer,
        strategy_name: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Answer:
        """
        Retrieve passages and let the summarizer answer from them.

        With no passages the summarizer is not called and a fixed
        "no information" answer is returned.
        """
        results = await self.search(question, strategy_name, limit)
        if not results:
            return Answer(question=question, answer=NO_INFORMATION_ANSWER)

        text = await summarizer.summarize(question, [r.text for r in results])
        return Answer(question=question, answer=text, sources=results)

    # ========================================================================
    # Maintenance
    # ========================================================================

    async def health_check(self) -> Dict[str, bool]:
        self._require_connection()
        graph_ok = True
        if hasattr(self._store, "health_check"):
            graph_ok = await self._store.health_check()
        return {
            "graph": graph_ok,
            "embeddings": await self._embedder.health_check(),
        }

    async def stats(self) -> Dict[str, Any]:
        self._require_connection()
        stats: Dict[str, Any] = await self._writer.stats()
        stats["embedding_cache"] = self._embedder.cache_stats()
        return stats


__all__ = [
    "DocumentGraph",
    "DocGraphConfig",
    "Answer",
    "Summarizer",
    "NO_INFORMATION_ANSWER",
]
