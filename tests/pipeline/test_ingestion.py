"""
Tests for IngestionPipeline
===========================

Verifica:
1. Chunk -> embed -> write for one document
2. Per-chunk embedding fallback and dimension checks
3. Failure isolation across documents
4. Bounded concurrency and batch summaries
"""

import asyncio

import pytest

from docgraph.config.settings import BatchSettings
from docgraph.pipeline.chunking import ChunkingOptions, TextChunker
from docgraph.pipeline.graph_writer import GraphWriter
from docgraph.pipeline.ingestion import IngestionPipeline
from docgraph.pipeline.models import DocumentInput, WriteResult
from docgraph.storage.vectors.cache import EmbeddingCache
from docgraph.storage.vectors.embedder import CachedEmbedder


class PipeChunker:
    """Splits on '|' so tests control chunk boundaries exactly."""

    def chunk(self, text):
        if "boom" in text:
            raise ValueError("cannot chunk")
        return [part for part in text.split("|") if part.strip()]


class SinglesOnlyProvider:
    """Rejects multi-text calls and any text mentioning 'hiring'."""

    def __init__(self):
        self.calls = []

    async def embed(self, texts):
        self.calls.append(list(texts))
        if len(texts) > 1 or "hiring" in texts[0]:
            raise ConnectionError("batch rejected")
        return [[1.0, 0.0, 0.0, 0.1]]


class ConcurrencyTrackingWriter:
    """GraphWriter stand-in that records how many writes overlap."""

    def __init__(self):
        self.in_flight = 0
        self.max_in_flight = 0
        self.written = []

    async def write(self, document, chunks):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        self.written.append(document.key)
        return WriteResult(document_key=document.key, chunks_written=len(chunks))


@pytest.fixture
def writer(graph_store):
    return GraphWriter(graph_store, batch_size=100)


@pytest.fixture
def embedder(keyword_provider, fast_retry):
    return CachedEmbedder(keyword_provider, EmbeddingCache(), fast_retry)


def settings(batch_size=100, workers=4):
    return BatchSettings(document_batch_size=batch_size, max_workers=workers, chunk_batch_size=100)


# ═══════════════════════════════════════════════════════════════════════════════
# TEST: single document
# ═══════════════════════════════════════════════════════════════════════════════

class TestIngest:
    """IngestionPipeline.ingest()"""

    @pytest.mark.asyncio
    async def test_ingest_embeds_and_writes(self, graph_store, writer, embedder):
        pipeline = IngestionPipeline(PipeChunker(), embedder, writer, settings(), embedding_dimension=4)

        result = await pipeline.ingest(DocumentInput(key="q1.txt", text="revenue grew|hiring slowed|weather fine"))

        assert result.success
        assert result.chunks_created == 3
        assert result.embedded_chunks == 3
        assert result.unembedded_chunks == 0
        assert [c["text"] for c in graph_store.chunks_of("q1.txt")] == [
            "revenue grew", "hiring slowed", "weather fine"
        ]
        assert all("embedding" in c for c in graph_store.chunks_of("q1.txt"))

    @pytest.mark.asyncio
    async def test_ingest_with_real_chunker(self, graph_store, writer, embedder, sample_report_text):
        chunker = TextChunker(ChunkingOptions(target_size=120, overlap_size=20))
        pipeline = IngestionPipeline(chunker, embedder, writer, settings())

        result = await pipeline.ingest(DocumentInput(key="report.txt", text=sample_report_text))

        assert result.success
        assert result.chunks_created > 1
        stored = graph_store.chunks_of("report.txt")
        assert [c["position"] for c in stored] == list(range(1, result.chunks_created + 1))
        offsets = [c["content_offset"] for c in stored]
        assert offsets == sorted(offsets)

    @pytest.mark.asyncio
    async def test_empty_text_writes_document_without_chunks(self, graph_store, writer, embedder):
        pipeline = IngestionPipeline(PipeChunker(), embedder, writer, settings())

        result = await pipeline.ingest(DocumentInput(key="empty.txt", text="   "))

        assert result.success
        assert result.chunks_created == 0
        assert "empty.txt" in graph_store.documents

    @pytest.mark.asyncio
    async def test_without_embedder_chunks_have_no_vectors(self, graph_store, writer):
        pipeline = IngestionPipeline(PipeChunker(), None, writer, settings())

        result = await pipeline.ingest(DocumentInput(key="plain.txt", text="a|b"))

        assert result.success
        assert result.unembedded_chunks == 2
        assert all("embedding" not in c for c in graph_store.chunks_of("plain.txt"))

    @pytest.mark.asyncio
    async def test_batch_failure_falls_back_per_chunk(self, graph_store, writer, fast_retry):
        provider = SinglesOnlyProvider()
        embedder = CachedEmbedder(provider, EmbeddingCache(), fast_retry)
        pipeline = IngestionPipeline(PipeChunker(), embedder, writer, settings())

        result = await pipeline.ingest(DocumentInput(key="mixed.txt", text="revenue grew|hiring slowed|weather fine"))

        assert result.success
        assert result.embedded_chunks == 2
        assert result.unembedded_chunks == 1
        stored = {c["text"]: c for c in graph_store.chunks_of("mixed.txt")}
        assert "embedding" not in stored["hiring slowed"]
        assert "embedding" in stored["revenue grew"]
        assert "embedding" in stored["weather fine"]

    @pytest.mark.asyncio
    async def test_wrong_dimension_stored_without_embedding(self, graph_store, writer, embedder):
        pipeline = IngestionPipeline(PipeChunker(), embedder, writer, settings(), embedding_dimension=768)

        result = await pipeline.ingest(DocumentInput(key="dim.txt", text="revenue|weather"))

        assert result.success
        assert result.embedded_chunks == 0
        assert result.unembedded_chunks == 2

    @pytest.mark.asyncio
    async def test_errors_are_captured_not_raised(self, writer, embedder):
        pipeline = IngestionPipeline(PipeChunker(), embedder, writer, settings())

        result = await pipeline.ingest(DocumentInput(key="bad.txt", text="boom"))

        assert not result.success
        assert result.errors == ["ValueError: cannot chunk"]
        assert result.to_dict()["errors"] == ["ValueError: cannot chunk"]

    @pytest.mark.asyncio
    async def test_store_failure_captured(self, graph_store, writer, embedder):
        graph_store.fail_on("merge_document", ConnectionError("graph down"))
        pipeline = IngestionPipeline(PipeChunker(), embedder, writer, settings())

        result = await pipeline.ingest(DocumentInput(key="x.txt", text="revenue"))

        assert result.errors == ["ConnectionError: graph down"]


# ═══════════════════════════════════════════════════════════════════════════════
# TEST: many documents
# ═══════════════════════════════════════════════════════════════════════════════

class TestIngestMany:
    """IngestionPipeline.ingest_many()"""

    @pytest.mark.asyncio
    async def test_failing_document_does_not_stop_others(self, graph_store, writer, embedder):
        pipeline = IngestionPipeline(PipeChunker(), embedder, writer, settings(batch_size=2))
        documents = [
            DocumentInput(key="a.txt", text="revenue|hiring"),
            DocumentInput(key="b.txt", text="boom"),
            DocumentInput(key="c.txt", text="weather"),
        ]

        result = await pipeline.ingest_many(documents)

        assert result.total_documents == 3
        assert result.successful == 2
        assert result.failed == 1
        assert result.total_chunks == 3
        assert [r.document_key for r in result.results] == ["a.txt", "b.txt", "c.txt"]
        assert result.errors == [{"document_key": "b.txt", "errors": ["ValueError: cannot chunk"]}]
        assert set(graph_store.documents) == {"a.txt", "c.txt"}

    @pytest.mark.asyncio
    async def test_concurrency_bounded_by_max_workers(self):
        tracker = ConcurrencyTrackingWriter()
        pipeline = IngestionPipeline(PipeChunker(), None, tracker, settings(batch_size=10, workers=2))

        documents = [DocumentInput(key=f"d{i}.txt", text="text") for i in range(6)]
        result = await pipeline.ingest_many(documents)

        assert result.successful == 6
        assert tracker.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_batches_processed_one_after_another(self):
        tracker = ConcurrencyTrackingWriter()
        pipeline = IngestionPipeline(PipeChunker(), None, tracker, settings(batch_size=2, workers=8))

        documents = [DocumentInput(key=f"d{i}.txt", text="text") for i in range(5)]
        await pipeline.ingest_many(documents)

        assert tracker.max_in_flight == 2
        assert set(tracker.written[:2]) == {"d0.txt", "d1.txt"}
        assert tracker.written[-1] == "d4.txt"

    @pytest.mark.asyncio
    async def test_empty_input(self, writer):
        pipeline = IngestionPipeline(PipeChunker(), None, writer, settings())

        result = await pipeline.ingest_many([])

        assert result.total_documents == 0
        assert result.results == []

    @pytest.mark.asyncio
    async def test_summary(self, writer, embedder):
        pipeline = IngestionPipeline(PipeChunker(), embedder, writer, settings())

        result = await pipeline.ingest_many([DocumentInput(key="a.txt", text="revenue|weather")])

        assert result.summary().startswith("Batch Ingestion: 1/1 documents, 2 chunks (2 embedded), 0 failed")
