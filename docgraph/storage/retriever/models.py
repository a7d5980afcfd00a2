"""
Retriever Models
================

Dataclasses for search results, strategies and retriever configuration.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional


@dataclass
class SearchResult:
    """
    One ranked passage.

    Attributes:
        chunk_id: Chunk node id
        text: Chunk text
        score: Raw score as produced by the branch (number or compound object)
        normalized_score: Score mapped onto [0, 1] during fusion
        source: Key of the owning document
        position: Chunk position in the document
        strategy: Name of the strategy that produced the result
        method: "vector", "lexical" or "context"
        metadata: Branch-specific details
    """
    chunk_id: str
    text: str
    score: Any
    source: str
    position: Optional[int] = None
    strategy: str = ""
    method: str = "vector"
    normalized_score: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chunk_id": self.chunk_id,
            "text": self.text,
            "score": self.normalized_score,
            "source": self.source,
            "position": self.position,
            "strategy": self.strategy,
            "method": self.method,
            "metadata": self.metadata,
        }

    def __repr__(self) -> str:
        return (
            f"<SearchResult(source={self.source}, position={self.position}, "
            f"score={self.normalized_score:.3f}, method={self.method})>"
        )


@dataclass
class DocumentRecord:
    """A Document node and the number of chunks attached to it."""
    key: str
    doc_type: Optional[str] = None
    domain: Optional[str] = None
    source_path: Optional[str] = None
    chunk_count: int = 0

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "DocumentRecord":
        return cls(
            key=row["key"],
            doc_type=row.get("type"),
            domain=row.get("domain"),
            source_path=row.get("source_path"),
            chunk_count=int(row.get("chunks") or 0),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SearchStrategy:
    """
    Named, versioned search configuration.

    Attributes:
        name: Strategy name used by callers
        version: Free-form version tag
        description: Human-readable description
        use_vector: Run the vector branch
        use_lexical: Run the lexical branch
        top_k: Vector hits to fetch (at least the request limit is fetched)
        threshold: Minimum cosine similarity for vector hits
        expand_context: Add order-chain neighbours of vector hits
        context_window: Positions to expand on each side
        lexical_limit: Lexical hits to fetch
        lexical_weight: Multiplier applied to lexical scores
    """
    name: str
    version: str = "1.0"
    description: str = ""
    use_vector: bool = True
    use_lexical: bool = False
    top_k: int = 8
    threshold: float = 0.5
    expand_context: bool = False
    context_window: int = 2
    lexical_limit: int = 10
    lexical_weight: float = 1.0

    def __post_init__(self):
        """Validate configuration values."""
        if not self.name or not self.name.strip():
            raise ValueError("strategy name must be non-empty")
        if not (self.use_vector or self.use_lexical):
            raise ValueError(f"strategy {self.name!r} enables no search branch")
        if self.top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {self.top_k}")
        if not 0 <= self.threshold <= 1:
            raise ValueError(f"threshold must be in [0, 1], got {self.threshold}")
        if self.context_window < 0:
            raise ValueError(f"context_window must be >= 0, got {self.context_window}")
        if self.lexical_limit < 1:
            raise ValueError(f"lexical_limit must be >= 1, got {self.lexical_limit}")
        if not 0 <= self.lexical_weight <= 1:
            raise ValueError(f"lexical_weight must be in [0, 1], got {self.lexical_weight}")
        if self.expand_context and not self.use_vector:
            raise ValueError(f"strategy {self.name!r} expands context without a vector branch")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchStrategy":
        known = cls.__dataclass_fields__.keys()
        unknown = set(data) - set(known)
        if unknown:
            raise ValueError(f"Unknown strategy fields: {sorted(unknown)}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RetrieverConfig:
    """
    Configuration for HybridRetriever.

    Attributes:
        quality_floor: Results below this normalized score are dropped
        dedup_prefix_length: Characters of text in the dedup key
        context_score: Fixed score of context-expansion neighbours
        neutral_score: Score for raw scores that cannot be interpreted
        exact_match_score: Lexical score when the whole query phrase matches
        weak_match_score: Lexical score when every term (but not the phrase) matches
        allow_lexical_fallback: Replace a failed vector branch with lexical search
        default_limit: Results returned when the caller gives no limit
    """
    quality_floor: float = 0.01
    dedup_prefix_length: int = 100
    context_score: float = 0.25
    neutral_score: float = 0.5
    exact_match_score: float = 0.8
    weak_match_score: float = 0.3
    allow_lexical_fallback: bool = True
    default_limit: int = 10

    def __post_init__(self):
        """Validate configuration values."""
        for name in ("quality_floor", "context_score", "neutral_score", "exact_match_score", "weak_match_score"):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.weak_match_score > self.exact_match_score:
            raise ValueError(
                f"weak_match_score must be <= exact_match_score, got {self.weak_match_score}"
            )
        if self.dedup_prefix_length < 1:
            raise ValueError(f"dedup_prefix_length must be >= 1, got {self.dedup_prefix_length}")
        if self.default_limit < 1:
            raise ValueError(f"default_limit must be >= 1, got {self.default_limit}")
