"""
docgraph Test Configuration
===========================

Shared fixtures for all tests.

InMemoryGraphStore interprets the named queries built in
docgraph.storage.graph.cypher, so writer and retriever run their real
code paths without a FalkorDB server.
"""

import math
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest
from unittest.mock import AsyncMock, MagicMock

from docgraph.core.retry import RetryPolicy
from docgraph.storage.graph.cypher import CypherQuery


# ═══════════════════════════════════════════════════════════════════════════════
# In-memory graph store
# ═══════════════════════════════════════════════════════════════════════════════

class InMemoryGraphStore:
    """Dict-backed GraphStore understanding docgraph's named queries."""

    def __init__(self):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.chunks: Dict[str, Dict[str, Any]] = {}
        self.part_of: Set[Tuple[str, str]] = set()
        self.first: Dict[str, Set[str]] = {}
        self.next: Set[Tuple[str, str]] = set()
        self.calls: List[str] = []
        self.failures: Dict[str, Exception] = {}

    def fail_on(self, query_name: str, error: Exception) -> None:
        self.failures[query_name] = error

    async def run(self, query: CypherQuery) -> List[Dict[str, Any]]:
        self.calls.append(query.name)
        if query.name in self.failures:
            raise self.failures[query.name]
        handler = getattr(self, f"_{query.name}")
        return handler(**query.params)

    # ── helpers ────────────────────────────────────────────────────────────
    def _row(self, chunk: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "chunk_id": chunk["id"],
            "text": chunk["text"],
            "document_key": chunk["document_key"],
            "position": chunk["position"],
        }

    def _delete_chunk(self, chunk_id: str) -> None:
        self.chunks.pop(chunk_id, None)
        self.part_of = {(c, d) for c, d in self.part_of if c != chunk_id}
        self.next = {(a, b) for a, b in self.next if chunk_id not in (a, b)}
        for targets in self.first.values():
            targets.discard(chunk_id)

    def chunks_of(self, document_key: str) -> List[Dict[str, Any]]:
        return sorted(
            (c for c in self.chunks.values() if c["document_key"] == document_key),
            key=lambda c: c["position"],
        )

    # ── ingestion ──────────────────────────────────────────────────────────
    def _create_index(self):
        return []

    def _merge_node(self, key, attrs):
        return [{"key": key}]

    def _merge_edge(self, from_key, to_key):
        return [{"linked": 1}]

    def _merge_document(self, key, type, domain, source_path):
        self.documents[key] = {"key": key, "type": type, "domain": domain, "source_path": source_path}
        return [{"key": key}]

    def _prune_stale_chunks(self, document_key, keep_ids):
        keep = set(keep_ids)
        stale = [
            cid for cid, c in self.chunks.items()
            if c["document_key"] == document_key and cid not in keep
        ]
        for cid in stale:
            self._delete_chunk(cid)
        return [{"pruned": len(stale)}]

    def _reset_chain(self, document_key):
        self.first.pop(document_key, None)
        owned = {cid for cid, c in self.chunks.items() if c["document_key"] == document_key}
        self.next = {(a, b) for a, b in self.next if a not in owned}
        return []

    def _merge_chunks(self, document_key, rows):
        for row in rows:
            props = {k: v for k, v in row.items() if v is not None}
            self.chunks[row["id"]] = props
            if document_key in self.documents:
                self.part_of.add((row["id"], document_key))
        return [{"merged": len(rows)}]

    def _link_first_chunk(self, document_key, chunk_id):
        if document_key in self.documents and chunk_id in self.chunks:
            self.first.setdefault(document_key, set()).add(chunk_id)
            return [{"linked": 1}]
        return [{"linked": 0}]

    def _link_next_chunks(self, pairs):
        linked = 0
        for pair in pairs:
            if pair["from_id"] in self.chunks and pair["to_id"] in self.chunks:
                self.next.add((pair["from_id"], pair["to_id"]))
                linked += 1
        return [{"linked": linked}]

    # ── retrieval ──────────────────────────────────────────────────────────
    def _vector_search(self, vector, top_k, threshold):
        rows = []
        for chunk in self.chunks.values():
            embedding = chunk.get("embedding")
            if embedding is None:
                continue
            dot = sum(a * b for a, b in zip(vector, embedding))
            norm = math.sqrt(sum(a * a for a in vector)) * math.sqrt(sum(b * b for b in embedding))
            score = dot / norm if norm else 0.0
            if score >= threshold:
                rows.append({**self._row(chunk), "score": score})
        rows.sort(key=lambda r: r["score"], reverse=True)
        return rows[:top_k]

    def _lexical_search(self, terms, phrase, limit):
        rows = []
        for chunk in self.chunks.values():
            body = chunk["text"].lower()
            matched = sum(1 for t in terms if t in body)
            if matched:
                rows.append({**self._row(chunk), "exact": phrase in body, "matched": matched})
        rows.sort(key=lambda r: (not r["exact"], -r["matched"], r["document_key"], r["position"]))
        return rows[:limit]

    def _chunk_window(self, document_key, position, low, high):
        return [
            self._row(c) for c in self.chunks_of(document_key)
            if low <= c["position"] <= high and c["position"] != position
        ]

    def _chunk_text(self, chunk_id):
        chunk = self.chunks.get(chunk_id)
        return [{"text": chunk["text"]}] if chunk else []

    def _document_text(self, document_key):
        return [
            {
                "text": self.chunks[row["chunk_id"]]["text"],
                "content_offset": self.chunks[row["chunk_id"]]["content_offset"],
                "hops": row["hops"],
            }
            for row in self._document_chain(document_key)
        ]

    def _find_documents(self, key, type, contains, limit):
        rows = []
        for doc in sorted(self.documents.values(), key=lambda d: d["key"]):
            if key is not None and doc["key"] != key:
                continue
            if type is not None and doc["type"] != type:
                continue
            if contains is not None and not (
                contains in doc["key"].lower() or contains in (doc["source_path"] or "").lower()
            ):
                continue
            chunks = sum(1 for _, d in self.part_of if d == doc["key"])
            rows.append({**doc, "chunks": chunks})
        return rows[:limit]

    # ── maintenance ────────────────────────────────────────────────────────
    def _document_chain(self, document_key):
        rows = []
        for start in sorted(self.first.get(document_key, ())):
            current: Optional[str] = start
            visited: Set[str] = set()
            hops = 0
            while current is not None and current not in visited:
                visited.add(current)
                rows.append({
                    "chunk_id": current,
                    "position": self.chunks[current]["position"],
                    "hops": hops,
                })
                successors = [b for a, b in self.next if a == current]
                current = successors[0] if len(successors) == 1 else None
                hops += 1
        return rows

    def _database_stats(self):
        return [{
            "documents": len(self.documents),
            "chunks": len(self.chunks),
            "embedded_chunks": sum(1 for c in self.chunks.values() if "embedding" in c),
        }]

    def _clear_graph(self):
        self.documents.clear()
        self.chunks.clear()
        self.part_of.clear()
        self.first.clear()
        self.next.clear()
        return []


# ═══════════════════════════════════════════════════════════════════════════════
# Fake embedding providers
# ═══════════════════════════════════════════════════════════════════════════════

class KeywordProvider:
    """
    Deterministic 4-d embeddings: one axis per keyword, plus a bias axis.

    Texts sharing keywords get high cosine similarity.
    """

    KEYWORDS = ("revenue", "hiring", "weather")

    def __init__(self):
        self.calls: List[List[str]] = []

    async def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls.append(list(texts))
        vectors = []
        for text in texts:
            lowered = text.lower()
            vector = [float(lowered.count(k)) for k in self.KEYWORDS]
            vector.append(0.1)
            vectors.append(vector)
        return vectors


class FlakyProvider:
    """Fails the first ``failures`` calls, then returns a fixed vector per text."""

    def __init__(self, failures: int, vector: Optional[List[float]] = None):
        self.failures = failures
        self.vector = vector or [0.1, 0.2, 0.3]
        self.calls = 0

    async def embed(self, texts: List[str]) -> List[List[float]]:
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError(f"provider unavailable (call {self.calls})")
        return [list(self.vector) for _ in texts]


# ═══════════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════════

@pytest.fixture
def graph_store():
    """Empty in-memory graph store."""
    return InMemoryGraphStore()


@pytest.fixture
def keyword_provider():
    return KeywordProvider()


@pytest.fixture
def flaky_provider_factory():
    """Build FlakyProvider instances: flaky_provider_factory(failures=2)."""
    return FlakyProvider


@pytest.fixture
def sleep_recorder():
    """Async sleep replacement recording requested delays."""
    delays: List[float] = []

    async def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays
    return sleep


@pytest.fixture
def fast_retry(sleep_recorder):
    """RetryPolicy with 3 attempts that never actually sleeps."""
    return RetryPolicy(max_attempts=3, base_delay=1.0, sleep=sleep_recorder)


@pytest.fixture
def mock_falkordb():
    """Mock FalkorDB client for unit tests."""
    client = MagicMock()
    client.connect = AsyncMock()
    client.close = AsyncMock()
    client.query = AsyncMock(return_value=[])
    client.run = AsyncMock(return_value=[])
    return client


@pytest.fixture
def sample_report_text():
    """Multi-paragraph sample document."""
    return (
        "Quarterly report. Revenue grew in every region this quarter. "
        "The sales team closed several large contracts in the north.\n\n"
        "Hiring slowed down. The company added only twelve engineers, "
        "mostly in the platform group. Attrition stayed flat.\n\n"
        "Outlook. Management expects revenue to keep growing next quarter, "
        "while hiring will resume once the new office opens."
    )
