"""
Graph Writer
============

Persists a document, its chunks and the order chain.

Write sequence for one document (awaited in order):
1. MERGE the Document node
2. delete chunks of this document that are no longer produced, and drop
   the old FIRST_CHUNK / NEXT_CHUNK edges
3. per batch of ``batch_size`` chunks:
   a. MERGE chunk nodes + PART_OF
   b. FIRST_CHUNK edge (batch containing position 1)
   c. NEXT_CHUNK edges ending in this batch

Edges are derived from the document's ChunkSequence, never from the graph.
An edge batch that links fewer pairs than requested means an endpoint is
missing: ChainIntegrityError aborts this document only.

Example:
    writer = GraphWriter(falkordb_client, batch_size=100)
    result = await writer.write(document, chunks)
"""

from typing import Any, Dict, List

import structlog

from docgraph.core.exceptions import ChainIntegrityError
from docgraph.pipeline.chunking import Chunk, ChunkSequence
from docgraph.pipeline.models import DocumentInput, WriteResult
from docgraph.storage.graph import cypher as cq
from docgraph.storage.graph.store import GraphStore

log = structlog.get_logger()


class GraphWriter:
    """
    Writes documents and chunk chains to a GraphStore.

    Attributes:
        store: Graph store (FalkorDBClient in production)
        batch_size: Chunks per write call
    """

    def __init__(self, store: GraphStore, batch_size: int = 100):
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.store = store
        self.batch_size = batch_size
        self._indexes_ready = False

    async def ensure_indexes(self) -> None:
        """Create lookup indexes once per writer; existing indexes are fine."""
        if self._indexes_ready:
            return

        for statement in cq.index_statements():
            try:
                await self.store.run(statement)
                log.debug(f"Index created: {statement.text}")
            except Exception as e:
                log.debug(f"Index already present or not created: {e}")

        self._indexes_ready = True

    async def write(self, document: DocumentInput, chunks: List[Chunk]) -> WriteResult:
        """
        Write one document and its ordered chunks.

        Idempotent: writing the same document and chunks again changes nothing.

        Raises:
            ChainIntegrityError: an order edge could not be created
            GraphStoreError: the store failed a batch
        """
        sequence = ChunkSequence(document.key, list(chunks))
        result = WriteResult(document_key=document.key)

        await self.ensure_indexes()

        await self.store.run(cq.merge_document(
            document.key, document.doc_type, document.domain, document.source_path
        ))

        rows = await self.store.run(cq.prune_stale_chunks(document.key, [c.id for c in sequence]))
        result.pruned_chunks = int(rows[0].get("pruned", 0)) if rows else 0
        if result.pruned_chunks:
            log.info(f"Pruned {result.pruned_chunks} stale chunks of {document.key}")

        await self.store.run(cq.reset_chain(document.key))

        for start in range(0, len(sequence), self.batch_size):
            batch = sequence.chunks[start:start + self.batch_size]
            await self._write_batch(sequence, batch)

            result.batches += 1
            result.chunks_written += len(batch)
            result.embedded_chunks += sum(1 for c in batch if c.embedding is not None)

        log.debug(
            f"Wrote {document.key}: {result.chunks_written} chunks in {result.batches} batches",
            embedded=result.embedded_chunks,
        )
        return result

    async def _write_batch(self, sequence: ChunkSequence, batch: List[Chunk]) -> None:
        key = sequence.document_key

        await self.store.run(cq.merge_chunks(key, [c.to_properties() for c in batch]))

        if batch[0].position == 1:
            linked = await self._linked(cq.link_first_chunk(key, batch[0].id))
            if linked != 1:
                raise ChainIntegrityError(key, 1, linked, cq.FIRST_CHUNK)

        pairs = [
            (sequence.at(chunk.position - 1).id, chunk.id)
            for chunk in batch
            if chunk.position > 1
        ]
        if pairs:
            linked = await self._linked(cq.link_next_chunks(pairs))
            if linked != len(pairs):
                raise ChainIntegrityError(key, len(pairs), linked, cq.NEXT_CHUNK)

    async def _linked(self, query: cq.CypherQuery) -> int:
        rows = await self.store.run(query)
        return int(rows[0].get("linked", 0)) if rows else 0

    async def document_chain(self, document_key: str) -> List[Dict[str, Any]]:
        """
        Chunks reached from the document's FIRST_CHUNK edge along NEXT_CHUNK.

        Returns:
            Rows ``{chunk_id, position, hops}`` in chain order ([] for unknown keys)
        """
        return await self.store.run(cq.document_chain(document_key))

    async def stats(self) -> Dict[str, int]:
        """Document, chunk and embedded-chunk counts."""
        rows = await self.store.run(cq.database_stats())
        row = rows[0] if rows else {}
        return {
            "documents": int(row.get("documents", 0) or 0),
            "chunks": int(row.get("chunks", 0) or 0),
            "embedded_chunks": int(row.get("embedded_chunks", 0) or 0),
        }

    async def clear(self) -> None:
        """Delete every Document and Chunk node."""
        await self.store.run(cq.clear_graph())
        log.warning("Graph cleared: all documents and chunks deleted")


__all__ = ["GraphWriter"]
