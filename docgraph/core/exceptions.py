"""
docgraph Exceptions
===================

Error taxonomy shared by ingestion and retrieval.

- EmbeddingProviderError: embedding provider failed after all retries
- GraphStoreError: graph store query failed
- ChainIntegrityError: FIRST/NEXT chain could not be linked (aborts one document)

Not-found lookups never raise: they return None or an empty list.
Unknown strategy names never raise: the registry substitutes the default.
"""


class DocGraphError(RuntimeError):
    """Base class for docgraph errors."""


class EmbeddingProviderError(DocGraphError):
    """Embedding provider failed (transient errors exhausted, or bad output)."""


class GraphStoreError(DocGraphError):
    """Graph store rejected or failed a query."""


class ChainIntegrityError(GraphStoreError):
    """
    Order chain of a document could not be written consistently.

    Raised when a FIRST or NEXT edge batch links fewer pairs than expected,
    i.e. one of the endpoints does not exist.
    """

    def __init__(self, document_key: str, expected: int, linked: int, edge_type: str):
        self.document_key = document_key
        self.expected = expected
        self.linked = linked
        self.edge_type = edge_type
        super().__init__(
            f"{edge_type} chain broken for '{document_key}': "
            f"expected {expected} links, created {linked}"
        )


__all__ = [
    "DocGraphError",
    "EmbeddingProviderError",
    "GraphStoreError",
    "ChainIntegrityError",
]
