"""
HybridRetriever
===============

Multi-strategy search over the chunk graph.

Core algorithm:
1. Resolve the strategy (unknown names fall back to the default)
2. Run the vector and lexical branches the strategy asks for, concurrently
   - vector: embed the query, cosine search over embedded chunks, threshold
     filter; hits are optionally expanded with their order-chain neighbours
   - lexical: case-insensitive substring match, exact phrase scored higher
3. Concatenate vector results then lexical results
4. Fuse: normalize, stable sort, dedupe, quality floor, truncate

A vector branch that fails (embedding provider or store) is replaced by a
lexical search when the strategy has no lexical branch of its own and
fallback is allowed. ``search`` never raises; total failure yields [].
"""

import asyncio
from typing import Any, Dict, List, Optional, Tuple

import structlog

from docgraph.storage.graph import cypher as cq
from docgraph.storage.graph.store import GraphStore
from docgraph.storage.retriever.fusion import fuse
from docgraph.storage.retriever.models import DocumentRecord, RetrieverConfig, SearchResult, SearchStrategy
from docgraph.storage.retriever.strategies import StrategyRegistry
from docgraph.storage.vectors.embedder import CachedEmbedder

log = structlog.get_logger()


def query_terms(query: str) -> Tuple[List[str], str]:
    """Lower-cased unique terms in order, and the whitespace-normalized phrase."""
    words = query.lower().split()
    terms = list(dict.fromkeys(words))
    return terms, " ".join(words)


def stitch_chunks(rows: List[Dict[str, Any]]) -> str:
    """
    Rebuild a document from its chunk rows in chain order.

    The overlap between neighbours is cut using ``content_offset``;
    whitespace the chunker stripped between two chunks becomes one space.
    """
    parts: List[str] = []
    end = 0
    for row in rows:
        text = row.get("text") or ""
        offset = int(row.get("content_offset") or 0)
        if not parts:
            parts.append(text)
        elif offset > end:
            parts.append(" " + text)
        else:
            parts.append(text[end - offset:])
        end = max(end, offset + len(text))
    return "".join(parts)


class HybridRetriever:
    """
    Retrieval strategy engine.

    Flow:
        query --> [vector branch] --> hits --> context expansion --+
              \\                                                   +--> fuse --> results
               -> [lexical branch] --------------------------------+

    Example:
        >>> retriever = HybridRetriever(store=falkordb_client, embedder=embedder)
        >>> results = await retriever.search("quarterly revenue", "vector-with-context", limit=5)
    """

    def __init__(
        self,
        store: GraphStore,
        embedder: Optional[CachedEmbedder],
        config: Optional[RetrieverConfig] = None,
        registry: Optional[StrategyRegistry] = None,
    ):
        """
        Args:
            store: Graph store holding Document/Chunk nodes
            embedder: Query embedder (None disables the vector branch)
            config: Retriever configuration
            registry: Strategy registry (built-ins when omitted)
        """
        self.store = store
        self.embedder = embedder
        self.config = config or RetrieverConfig()
        self.registry = registry or StrategyRegistry()

        self.registry.add_validator(self._check_strategy)

        log.info(
            f"HybridRetriever initialized - "
            f"strategies={self.registry.names()}, "
            f"default={self.registry.default}"
        )

    def _check_strategy(self, strategy: SearchStrategy) -> None:
        """Context neighbours must score below every primary hit of the strategy."""
        if strategy.expand_context and strategy.threshold <= self.config.context_score:
            raise ValueError(
                f"strategy {strategy.name!r}: threshold {strategy.threshold} must exceed "
                f"context_score {self.config.context_score}"
            )

    def register_strategy(self, strategy: SearchStrategy) -> None:
        self.registry.register(strategy)

    def strategies(self) -> List[Dict]:
        """Available strategies as dicts, default flagged."""
        return [
            {**s.to_dict(), "default": s.name == self.registry.default}
            for s in self.registry.all()
        ]

    async def search(
        self,
        query: str,
        strategy_name: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[SearchResult]:
        """
        Search chunks.

        Args:
            query: Natural-language query
            strategy_name: Strategy name (default strategy when None or unknown)
            limit: Maximum results (config.default_limit when None)

        Returns:
            Ranked, deduplicated results; [] when nothing matches or every branch failed
        """
        limit = self.config.default_limit if limit is None else limit
        if not query or not query.strip() or limit < 1:
            return []

        strategy = self.registry.resolve(strategy_name)

        try:
            branches = []
            if strategy.use_vector:
                branches.append(self._vector_branch(query, strategy, limit))
            if strategy.use_lexical:
                branches.append(self._lexical_branch(
                    query, strategy, strategy.lexical_limit, strategy.lexical_weight
                ))

            outcomes = await asyncio.gather(*branches, return_exceptions=True)

            candidates: List[SearchResult] = []
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    log.error(f"Search branch failed: {outcome}", strategy=strategy.name)
                    continue
                candidates.extend(outcome)

            results = fuse(candidates, limit, self.config)

        except Exception as e:
            log.error(f"Search failed: {e}", strategy=strategy.name)
            return []

        log.debug(
            f"Search '{query[:50]}' -> {len(results)} results",
            strategy=strategy.name,
            candidates=len(candidates),
        )
        return results

    # ========================================================================
    # Vector branch
    # ========================================================================

    async def _vector_branch(self, query: str, strategy: SearchStrategy, limit: int) -> List[SearchResult]:
        try:
            if self.embedder is None:
                raise RuntimeError("No embedder configured")
            vector = await self.embedder.embed_one(query)
            rows = await self.store.run(cq.vector_search(
                vector, max(limit, strategy.top_k), strategy.threshold
            ))
        except Exception as e:
            if self.config.allow_lexical_fallback and not strategy.use_lexical:
                log.warning(f"Vector search failed, falling back to lexical: {e}", strategy=strategy.name)
                return await self._lexical_branch(query, strategy, max(limit, strategy.top_k), 1.0)
            raise

        hits = [
            SearchResult(
                chunk_id=row["chunk_id"],
                text=row.get("text") or "",
                score=row.get("score"),
                source=row.get("document_key") or "",
                position=row.get("position"),
                strategy=strategy.name,
                method="vector",
            )
            for row in rows
        ]

        if strategy.expand_context and strategy.context_window > 0 and hits:
            hits.extend(await self._expand_context(hits, strategy))

        return hits

    async def _expand_context(self, hits: List[SearchResult], strategy: SearchStrategy) -> List[SearchResult]:
        """Neighbours within context_window positions of each hit, at context_score."""
        anchors = []
        seen = set()
        for hit in hits:
            anchor = (hit.source, hit.position)
            if hit.position is None or anchor in seen:
                continue
            seen.add(anchor)
            anchors.append(hit)

        outcomes = await asyncio.gather(
            *(self.store.run(cq.chunk_window(h.source, h.position, strategy.context_window)) for h in anchors),
            return_exceptions=True,
        )

        neighbours: List[SearchResult] = []
        for hit, outcome in zip(anchors, outcomes):
            if isinstance(outcome, BaseException):
                log.warning(f"Context expansion failed for {hit.chunk_id}: {outcome}")
                continue
            for row in outcome:
                neighbours.append(SearchResult(
                    chunk_id=row["chunk_id"],
                    text=row.get("text") or "",
                    score=self.config.context_score,
                    source=row.get("document_key") or hit.source,
                    position=row.get("position"),
                    strategy=strategy.name,
                    method="context",
                    metadata={"expanded_from": hit.chunk_id},
                ))
        return neighbours

    # ========================================================================
    # Lexical branch
    # ========================================================================

    async def _lexical_branch(
        self,
        query: str,
        strategy: SearchStrategy,
        limit: int,
        weight: float,
    ) -> List[SearchResult]:
        terms, phrase = query_terms(query)
        if not terms:
            return []

        rows = await self.store.run(cq.lexical_search(terms, phrase, limit))

        results = []
        for row in rows:
            if row.get("exact"):
                base = self.config.exact_match_score
            else:
                matched = int(row.get("matched") or 0)
                base = self.config.weak_match_score * min(1.0, matched / len(terms))

            results.append(SearchResult(
                chunk_id=row["chunk_id"],
                text=row.get("text") or "",
                score=base * weight,
                source=row.get("document_key") or "",
                position=row.get("position"),
                strategy=strategy.name,
                method="lexical",
                metadata={"exact": bool(row.get("exact")), "matched_terms": row.get("matched")},
            ))
        return results

    # ========================================================================
    # Lookup
    # ========================================================================

    async def get_chunk_text(self, chunk_id: str) -> Optional[str]:
        """Text of a chunk, None when the id is unknown."""
        rows = await self.store.run(cq.chunk_text(chunk_id))
        if not rows:
            return None
        return rows[0].get("text")

    async def get_document_text(self, document_key: str) -> Optional[str]:
        """Document text reassembled along its chunk chain, None when the key is unknown."""
        rows = await self.store.run(cq.document_text(document_key))
        if not rows:
            return None
        return stitch_chunks(rows)

    async def get_document(self, document_key: str) -> Optional[DocumentRecord]:
        records = await self.find_documents(key=document_key, limit=1)
        return records[0] if records else None

    async def find_documents(
        self,
        doc_type: Optional[str] = None,
        contains: Optional[str] = None,
        limit: int = 20,
        key: Optional[str] = None,
    ) -> List[DocumentRecord]:
        """
        Documents by type and/or a case-insensitive substring of key or source path.

        Returns:
            Records ordered by key ([] when nothing matches)
        """
        if limit < 1:
            return []
        needle = contains.strip().lower() if contains and contains.strip() else None
        rows = await self.store.run(cq.find_documents(key=key, doc_type=doc_type, contains=needle, limit=limit))
        return [DocumentRecord.from_row(row) for row in rows]


__all__ = ["HybridRetriever", "query_terms", "stitch_chunks"]
