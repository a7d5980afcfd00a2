"""
Pipeline data models: documents going in, results coming out.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class DocumentInput:
    """
    A document to ingest.

    Attributes:
        key: Stable document identity (file name or URI)
        text: Raw text
        doc_type: Document type tag ("text", "pdf", ...)
        domain: Optional domain tag
        source_path: Where the text came from
    """
    key: str
    text: str
    doc_type: str = "text"
    domain: Optional[str] = None
    source_path: Optional[str] = None

    def __post_init__(self):
        if not self.key or not self.key.strip():
            raise ValueError("Document key must be a non-empty string")


@dataclass
class WriteResult:
    """Outcome of writing one document to the graph."""
    document_key: str
    chunks_written: int = 0
    embedded_chunks: int = 0
    pruned_chunks: int = 0
    batches: int = 0


@dataclass
class IngestionResult:
    """Outcome of ingesting one document."""
    document_key: str
    chunks_created: int = 0
    embedded_chunks: int = 0
    unembedded_chunks: int = 0
    duration_seconds: float = 0.0
    errors: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "document_key": self.document_key,
            "chunks_created": self.chunks_created,
            "embedded_chunks": self.embedded_chunks,
            "unembedded_chunks": self.unembedded_chunks,
            "duration_seconds": self.duration_seconds,
            "errors": self.errors,
        }


@dataclass
class BatchIngestionResult:
    """Aggregated outcome of ingesting many documents."""
    total_documents: int = 0
    successful: int = 0
    failed: int = 0
    total_chunks: int = 0
    embedded_chunks: int = 0
    duration_seconds: float = 0.0
    results: List[IngestionResult] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def add(self, result: IngestionResult) -> None:
        self.results.append(result)
        if result.success:
            self.successful += 1
            self.total_chunks += result.chunks_created
            self.embedded_chunks += result.embedded_chunks
        else:
            self.failed += 1
            self.errors.append({
                "document_key": result.document_key,
                "errors": list(result.errors),
            })

    def summary(self) -> str:
        """Human-readable summary."""
        return (
            f"Batch Ingestion: {self.successful}/{self.total_documents} documents, "
            f"{self.total_chunks} chunks ({self.embedded_chunks} embedded), "
            f"{self.failed} failed, "
            f"{self.duration_seconds:.1f}s"
        )


__all__ = [
    "DocumentInput",
    "WriteResult",
    "IngestionResult",
    "BatchIngestionResult",
]
