"""
Ingestion Pipeline
==================

Document -> chunks -> embeddings -> graph.

Per document:
1. Chunk the text (TextChunker) and position the chunks (build_chunks)
2. Embed all chunk texts in one batch; when the batch call fails, fall back
   to one call per chunk. A chunk that still fails, or whose vector has the
   wrong size, is stored without an embedding.
3. Write document, chunks and order chain (GraphWriter)

Many documents:
- fixed-size batches, processed one after another
- inside a batch at most ``max_workers`` documents in flight (asyncio.Semaphore);
  the rest wait their turn
- a failing document is reported in the result and never stops its siblings

Example:
    pipeline = IngestionPipeline(chunker, embedder, writer)
    result = await pipeline.ingest_many(documents)
    print(result.summary())
"""

import asyncio
import time
from typing import List, Optional

import structlog

from docgraph.config.settings import BatchSettings
from docgraph.core.exceptions import EmbeddingProviderError
from docgraph.pipeline.chunking import Chunk, TextChunker, build_chunks
from docgraph.pipeline.graph_writer import GraphWriter
from docgraph.pipeline.models import BatchIngestionResult, DocumentInput, IngestionResult
from docgraph.storage.vectors.embedder import CachedEmbedder

log = structlog.get_logger()


class IngestionPipeline:
    """
    Orchestrates chunking, embedding and graph writes.

    Args:
        chunker: Text chunker
        embedder: Cached embedder (None = store chunks without vectors)
        writer: Graph writer
        settings: Batch size and worker limit
        embedding_dimension: Expected vector size; other sizes are dropped
    """

    def __init__(
        self,
        chunker: TextChunker,
        embedder: Optional[CachedEmbedder],
        writer: GraphWriter,
        settings: Optional[BatchSettings] = None,
        embedding_dimension: Optional[int] = None,
    ):
        self.chunker = chunker
        self.embedder = embedder
        self.writer = writer
        self.settings = settings or BatchSettings()
        self.embedding_dimension = embedding_dimension

    async def ingest(self, document: DocumentInput) -> IngestionResult:
        """
        Ingest one document.

        Failures are captured in ``IngestionResult.errors``; nothing is raised.
        """
        start = time.monotonic()
        result = IngestionResult(document_key=document.key)

        try:
            segments = self.chunker.chunk(document.text)
            chunks = build_chunks(document.key, document.text, segments)
            await self._embed_chunks(document.key, chunks)

            await self.writer.write(document, chunks)

            result.chunks_created = len(chunks)
            result.embedded_chunks = sum(1 for c in chunks if c.embedding is not None)
            result.unembedded_chunks = result.chunks_created - result.embedded_chunks

        except Exception as e:
            log.error(f"Ingestion failed for {document.key}: {e}", error_type=type(e).__name__)
            result.errors.append(f"{type(e).__name__}: {e}")

        result.duration_seconds = time.monotonic() - start

        if result.success:
            log.info(
                f"Ingested {document.key}: {result.chunks_created} chunks",
                embedded=result.embedded_chunks,
                duration=round(result.duration_seconds, 3),
            )
        return result

    async def _embed_chunks(self, document_key: str, chunks: List[Chunk]) -> None:
        """Attach embeddings in place; failures leave ``embedding`` as None."""
        if not chunks or self.embedder is None:
            return

        texts = [c.text for c in chunks]

        try:
            vectors: List[Optional[List[float]]] = await self.embedder.embed_batch(texts)
        except EmbeddingProviderError as e:
            log.warning(
                f"Batch embedding failed for {document_key}, falling back to per-chunk: {e}"
            )
            outcomes = await asyncio.gather(
                *(self.embedder.embed_one(text) for text in texts),
                return_exceptions=True,
            )
            vectors = []
            for chunk, outcome in zip(chunks, outcomes):
                if isinstance(outcome, Exception):
                    log.warning(
                        f"Chunk {chunk.position} of {document_key} stored without embedding: {outcome}"
                    )
                    vectors.append(None)
                else:
                    vectors.append(outcome)

        for chunk, vector in zip(chunks, vectors):
            if vector is None:
                continue
            if self.embedding_dimension is not None and len(vector) != self.embedding_dimension:
                log.warning(
                    f"Chunk {chunk.position} of {document_key}: vector size {len(vector)} "
                    f"!= {self.embedding_dimension}, stored without embedding"
                )
                continue
            chunk.embedding = list(vector)

    async def ingest_many(self, documents: List[DocumentInput]) -> BatchIngestionResult:
        """
        Ingest documents in batches with bounded concurrency.

        Returns:
            BatchIngestionResult with one IngestionResult per document, in input order
        """
        start = time.monotonic()
        total = len(documents)
        batch_size = self.settings.document_batch_size
        total_batches = (total + batch_size - 1) // batch_size

        result = BatchIngestionResult(total_documents=total)
        log.info(f"Starting batch ingestion: {total} documents")

        for i in range(0, total, batch_size):
            batch = documents[i:i + batch_size]
            log.info(f"Processing batch {i // batch_size + 1}/{total_batches}: {len(batch)} documents")

            for document_result in await self._process_batch(batch):
                result.add(document_result)

        result.duration_seconds = time.monotonic() - start
        log.info(result.summary())
        return result

    async def _process_batch(self, batch: List[DocumentInput]) -> List[IngestionResult]:
        semaphore = asyncio.Semaphore(self.settings.max_workers)

        async def ingest_single(document: DocumentInput) -> IngestionResult:
            async with semaphore:
                return await self.ingest(document)

        outcomes = await asyncio.gather(
            *(ingest_single(d) for d in batch),
            return_exceptions=True,
        )

        results = []
        for document, outcome in zip(batch, outcomes):
            if isinstance(outcome, IngestionResult):
                results.append(outcome)
            else:
                log.error(f"Ingestion task for {document.key} crashed: {outcome}")
                results.append(IngestionResult(
                    document_key=document.key,
                    errors=[f"{type(outcome).__name__}: {outcome}"],
                ))
        return results


__all__ = ["IngestionPipeline"]
