"""
Cypher Query Builders
=====================

Every statement docgraph sends to the graph store is built here.

Each builder returns a CypherQuery carrying a stable ``name`` (used for
logging and by test doubles), the statement text and its parameters.
Values always travel as parameters; the only things formatted into the
text are labels, relationship types and property names, and those go
through ``identifier()`` first.

Schema:
    (:Document {key, type, domain, source_path})
    (:Chunk {id, content_hash, document_key, text, position, length,
             content_offset, tokens, embedding})
    (:Chunk)-[:PART_OF]->(:Document)
    (:Document)-[:FIRST_CHUNK]->(:Chunk)
    (:Chunk)-[:NEXT_CHUNK]->(:Chunk)
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

DOCUMENT = "Document"
CHUNK = "Chunk"
PART_OF = "PART_OF"
FIRST_CHUNK = "FIRST_CHUNK"
NEXT_CHUNK = "NEXT_CHUNK"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class CypherQuery:
    """A named, parameterized Cypher statement."""
    name: str
    text: str
    params: Dict[str, Any] = field(default_factory=dict)


def identifier(value: str) -> str:
    """Validate a label, relationship type or property name."""
    if not isinstance(value, str) or not _IDENTIFIER.match(value):
        raise ValueError(f"Invalid Cypher identifier: {value!r}")
    return value


# ============================================================================
# Generic primitives
# ============================================================================

def merge_node(label: str, key_property: str, key: Any, attrs: Optional[Dict[str, Any]] = None) -> CypherQuery:
    label = identifier(label)
    key_property = identifier(key_property)
    return CypherQuery(
        name="merge_node",
        text=(
            f"MERGE (n:{label} {{{key_property}: $key}}) "
            f"SET n += $attrs "
            f"RETURN n.{key_property} AS key"
        ),
        params={"key": key, "attrs": attrs or {}},
    )


def merge_edge(
    rel_type: str,
    from_label: str,
    from_key_property: str,
    from_key: Any,
    to_label: str,
    to_key_property: str,
    to_key: Any,
) -> CypherQuery:
    rel_type = identifier(rel_type)
    from_label = identifier(from_label)
    from_key_property = identifier(from_key_property)
    to_label = identifier(to_label)
    to_key_property = identifier(to_key_property)
    return CypherQuery(
        name="merge_edge",
        text=(
            f"MATCH (a:{from_label} {{{from_key_property}: $from_key}}) "
            f"MATCH (b:{to_label} {{{to_key_property}: $to_key}}) "
            f"MERGE (a)-[r:{rel_type}]->(b) "
            f"RETURN count(r) AS linked"
        ),
        params={"from_key": from_key, "to_key": to_key},
    )


# ============================================================================
# Ingestion
# ============================================================================

def merge_document(key: str, doc_type: str, domain: Optional[str], source_path: Optional[str]) -> CypherQuery:
    return CypherQuery(
        name="merge_document",
        text=(
            f"MERGE (d:{DOCUMENT} {{key: $key}}) "
            "SET d.type = $type, d.domain = $domain, d.source_path = $source_path "
            "RETURN d.key AS key"
        ),
        params={"key": key, "type": doc_type, "domain": domain, "source_path": source_path},
    )


def merge_chunks(document_key: str, rows: List[Dict[str, Any]]) -> CypherQuery:
    """
    Merge a batch of chunk nodes and their PART_OF edge.

    ``rows`` are Chunk.to_properties() dicts; a None embedding removes the property.
    """
    return CypherQuery(
        name="merge_chunks",
        text=(
            "UNWIND $rows AS row "
            f"MERGE (c:{CHUNK} {{id: row.id}}) "
            "SET c.content_hash = row.content_hash, "
            "    c.document_key = row.document_key, "
            "    c.text = row.text, "
            "    c.position = row.position, "
            "    c.length = row.length, "
            "    c.content_offset = row.content_offset, "
            "    c.tokens = row.tokens, "
            "    c.embedding = CASE WHEN row.embedding IS NULL THEN NULL "
            "                       ELSE vecf32(row.embedding) END "
            "WITH c "
            f"MATCH (d:{DOCUMENT} {{key: $document_key}}) "
            f"MERGE (c)-[:{PART_OF}]->(d) "
            "RETURN count(c) AS merged"
        ),
        params={"document_key": document_key, "rows": rows},
    )


def link_first_chunk(document_key: str, chunk_id: str) -> CypherQuery:
    return CypherQuery(
        name="link_first_chunk",
        text=(
            f"MATCH (d:{DOCUMENT} {{key: $document_key}}) "
            f"MATCH (c:{CHUNK} {{id: $chunk_id}}) "
            f"MERGE (d)-[:{FIRST_CHUNK}]->(c) "
            "RETURN count(c) AS linked"
        ),
        params={"document_key": document_key, "chunk_id": chunk_id},
    )


def link_next_chunks(pairs: Sequence[Tuple[str, str]]) -> CypherQuery:
    """NEXT_CHUNK edges for (previous_id, next_id) pairs."""
    return CypherQuery(
        name="link_next_chunks",
        text=(
            "UNWIND $pairs AS pair "
            f"MATCH (a:{CHUNK} {{id: pair.from_id}}) "
            f"MATCH (b:{CHUNK} {{id: pair.to_id}}) "
            f"MERGE (a)-[:{NEXT_CHUNK}]->(b) "
            "RETURN count(b) AS linked"
        ),
        params={"pairs": [{"from_id": a, "to_id": b} for a, b in pairs]},
    )


def reset_chain(document_key: str) -> CypherQuery:
    """Drop the FIRST/NEXT edges of a document before relinking it."""
    return CypherQuery(
        name="reset_chain",
        text=(
            f"MATCH (c:{CHUNK} {{document_key: $document_key}}) "
            f"OPTIONAL MATCH (c)-[n:{NEXT_CHUNK}]->() "
            f"OPTIONAL MATCH (:{DOCUMENT} {{key: $document_key}})-[f:{FIRST_CHUNK}]->(c) "
            "DELETE n, f"
        ),
        params={"document_key": document_key},
    )


def prune_stale_chunks(document_key: str, keep_ids: List[str]) -> CypherQuery:
    """Delete chunks of a document whose id is not in ``keep_ids``."""
    return CypherQuery(
        name="prune_stale_chunks",
        text=(
            f"MATCH (c:{CHUNK} {{document_key: $document_key}}) "
            "WHERE NOT c.id IN $keep_ids "
            "WITH c, c.id AS id "
            "DETACH DELETE c "
            "RETURN count(id) AS pruned"
        ),
        params={"document_key": document_key, "keep_ids": list(keep_ids)},
    )


def index_statements() -> List[CypherQuery]:
    return [
        CypherQuery(name="create_index", text=f"CREATE INDEX FOR (d:{DOCUMENT}) ON (d.key)"),
        CypherQuery(name="create_index", text=f"CREATE INDEX FOR (c:{CHUNK}) ON (c.id)"),
        CypherQuery(name="create_index", text=f"CREATE INDEX FOR (c:{CHUNK}) ON (c.document_key)"),
    ]


# ============================================================================
# Retrieval
# ============================================================================

_CHUNK_COLUMNS = (
    "c.id AS chunk_id, c.text AS text, c.document_key AS document_key, "
    "c.position AS position"
)


def vector_search(vector: List[float], top_k: int, threshold: float) -> CypherQuery:
    """Cosine similarity (1 - distance) over chunks that carry an embedding."""
    return CypherQuery(
        name="vector_search",
        text=(
            f"MATCH (c:{CHUNK}) "
            "WHERE c.embedding IS NOT NULL "
            "WITH c, 1 - vec.cosineDistance(c.embedding, vecf32($vector)) AS score "
            "WHERE score >= $threshold "
            f"RETURN {_CHUNK_COLUMNS}, score "
            "ORDER BY score DESC "
            "LIMIT $top_k"
        ),
        params={"vector": list(vector), "top_k": int(top_k), "threshold": float(threshold)},
    )


def lexical_search(terms: List[str], phrase: str, limit: int) -> CypherQuery:
    """
    Case-insensitive containment search.

    ``terms`` and ``phrase`` must already be lower-cased. Rows carry
    ``exact`` (phrase contained) and ``matched`` (number of terms contained).
    """
    return CypherQuery(
        name="lexical_search",
        text=(
            f"MATCH (c:{CHUNK}) "
            "WITH c, toLower(c.text) AS body "
            "WHERE any(term IN $terms WHERE body CONTAINS term) "
            f"RETURN {_CHUNK_COLUMNS}, "
            "       body CONTAINS $phrase AS exact, "
            "       size([term IN $terms WHERE body CONTAINS term]) AS matched "
            "ORDER BY exact DESC, matched DESC, document_key, position "
            "LIMIT $limit"
        ),
        params={"terms": list(terms), "phrase": phrase, "limit": int(limit)},
    )


def chunk_window(document_key: str, position: int, window: int) -> CypherQuery:
    """Chunks within ``window`` positions of ``position`` (itself excluded), in order."""
    return CypherQuery(
        name="chunk_window",
        text=(
            f"MATCH (c:{CHUNK} {{document_key: $document_key}}) "
            "WHERE c.position >= $low AND c.position <= $high AND c.position <> $position "
            f"RETURN {_CHUNK_COLUMNS} "
            "ORDER BY c.position"
        ),
        params={
            "document_key": document_key,
            "position": int(position),
            "low": max(1, int(position) - int(window)),
            "high": int(position) + int(window),
        },
    )


def chunk_text(chunk_id: str) -> CypherQuery:
    return CypherQuery(
        name="chunk_text",
        text=f"MATCH (c:{CHUNK} {{id: $chunk_id}}) RETURN c.text AS text LIMIT 1",
        params={"chunk_id": chunk_id},
    )


def document_text(document_key: str) -> CypherQuery:
    """Chunk texts and offsets along FIRST_CHUNK then NEXT_CHUNK*, in chain order."""
    return CypherQuery(
        name="document_text",
        text=(
            f"MATCH (d:{DOCUMENT} {{key: $document_key}})-[:{FIRST_CHUNK}]->(first:{CHUNK}) "
            f"MATCH path = (first)-[:{NEXT_CHUNK}*0..]->(c:{CHUNK}) "
            "RETURN c.text AS text, c.content_offset AS content_offset, length(path) AS hops "
            "ORDER BY hops"
        ),
        params={"document_key": document_key},
    )


def find_documents(
    key: Optional[str] = None,
    doc_type: Optional[str] = None,
    contains: Optional[str] = None,
    limit: int = 20,
) -> CypherQuery:
    """
    Documents filtered by exact key, type and a lower-cased substring of key or source path.

    A filter left as None matches every document.
    """
    return CypherQuery(
        name="find_documents",
        text=(
            f"MATCH (d:{DOCUMENT}) "
            "WHERE ($key IS NULL OR d.key = $key) "
            "  AND ($type IS NULL OR d.type = $type) "
            "  AND ($contains IS NULL "
            "       OR toLower(d.key) CONTAINS $contains "
            "       OR toLower(coalesce(d.source_path, '')) CONTAINS $contains) "
            f"OPTIONAL MATCH (c:{CHUNK})-[:{PART_OF}]->(d) "
            "RETURN d.key AS key, d.type AS type, d.domain AS domain, "
            "       d.source_path AS source_path, count(c) AS chunks "
            "ORDER BY key "
            "LIMIT $limit"
        ),
        params={"key": key, "type": doc_type, "contains": contains, "limit": int(limit)},
    )


# ============================================================================
# Maintenance
# ============================================================================

def document_chain(document_key: str) -> CypherQuery:
    """Walk FIRST_CHUNK then NEXT_CHUNK* from a document, in chain order."""
    return CypherQuery(
        name="document_chain",
        text=(
            f"MATCH (d:{DOCUMENT} {{key: $document_key}})-[:{FIRST_CHUNK}]->(first:{CHUNK}) "
            f"MATCH path = (first)-[:{NEXT_CHUNK}*0..]->(c:{CHUNK}) "
            "RETURN c.id AS chunk_id, c.position AS position, length(path) AS hops "
            "ORDER BY hops"
        ),
        params={"document_key": document_key},
    )


def database_stats() -> CypherQuery:
    return CypherQuery(
        name="database_stats",
        text=(
            f"OPTIONAL MATCH (d:{DOCUMENT}) WITH count(d) AS documents "
            f"OPTIONAL MATCH (c:{CHUNK}) "
            "RETURN documents, count(c) AS chunks, count(c.embedding) AS embedded_chunks"
        ),
    )


def clear_graph() -> CypherQuery:
    return CypherQuery(
        name="clear_graph",
        text=f"MATCH (n) WHERE n:{DOCUMENT} OR n:{CHUNK} DETACH DELETE n",
    )


__all__ = [
    "CypherQuery",
    "identifier",
    "DOCUMENT",
    "CHUNK",
    "PART_OF",
    "FIRST_CHUNK",
    "NEXT_CHUNK",
    "merge_node",
    "merge_edge",
    "merge_document",
    "merge_chunks",
    "link_first_chunk",
    "link_next_chunks",
    "reset_chain",
    "prune_stale_chunks",
    "index_statements",
    "vector_search",
    "lexical_search",
    "chunk_window",
    "chunk_text",
    "document_chain",
    "document_text",
    "find_documents",
    "database_stats",
    "clear_graph",
]
