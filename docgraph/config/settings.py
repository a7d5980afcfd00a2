"""
Settings
========

Dataclass settings with environment-variable defaults.

Every field can be overridden explicitly; when omitted, the value is read
from the environment at construction time.

Environment Variables:
    EMBEDDING_PROVIDER: "sentence-transformers" or "http" (default: sentence-transformers)
    EMBEDDING_MODEL: Model name (default: sentence-transformers/all-mpnet-base-v2)
    EMBEDDING_DIMENSION: Expected vector size (default: 768)
    EMBEDDING_DEVICE: "cpu", "cuda" or empty for auto-detect
    EMBEDDING_BATCH_SIZE: Encoder batch size (default: 32)
    EMBEDDING_BASE_URL: Base URL for the HTTP provider (default: http://localhost:11434)
    EMBEDDING_TIMEOUT: HTTP timeout in seconds (default: 30)
    EMBEDDING_RETRY_ATTEMPTS: Attempts per provider call (default: 3)
    EMBEDDING_RETRY_DELAY: Base retry delay in seconds (default: 1.0)
    EMBEDDING_CACHE_TTL: Cache entry lifetime in seconds (default: 3600)
    BATCH_SIZE: Documents per ingestion batch (default: 100)
    MAX_WORKERS: Documents in flight per batch (default: 4)
    CHUNK_BATCH_SIZE: Chunks per graph write (default: 100)
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def env_str(key: str, default: str) -> str:
    """Read an environment variable as a string."""
    return os.environ.get(key, default)


def env_int(key: str, default: int) -> int:
    """Read an environment variable as an integer."""
    return int(os.environ.get(key, default))


def env_float(key: str, default: float) -> float:
    """Read an environment variable as a float."""
    return float(os.environ.get(key, default))


def env_bool(key: str, default: bool) -> bool:
    """Read an environment variable as a boolean ("true"/"1"/"yes")."""
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class EmbeddingSettings:
    """
    Embedding provider, retry and cache settings.

    Attributes:
        provider: Provider backend ("sentence-transformers" or "http")
        model: Model name passed to the provider
        dimension: Expected embedding size; mismatching vectors are dropped
        device: Torch device for local models (None = auto)
        batch_size: Encoder batch size
        base_url: Endpoint root for the HTTP provider
        timeout: HTTP timeout in seconds
        retry_attempts: Attempts per provider call
        retry_delay: Base delay in seconds (attempt * delay between tries)
        cache_ttl: Seconds a cached vector stays valid
    """
    provider: str = field(default_factory=lambda: env_str("EMBEDDING_PROVIDER", "sentence-transformers"))
    model: str = field(default_factory=lambda: env_str("EMBEDDING_MODEL", "sentence-transformers/all-mpnet-base-v2"))
    dimension: int = field(default_factory=lambda: env_int("EMBEDDING_DIMENSION", 768))
    device: Optional[str] = field(default_factory=lambda: env_str("EMBEDDING_DEVICE", "") or None)
    batch_size: int = field(default_factory=lambda: env_int("EMBEDDING_BATCH_SIZE", 32))
    base_url: str = field(default_factory=lambda: env_str("EMBEDDING_BASE_URL", "http://localhost:11434"))
    timeout: float = field(default_factory=lambda: env_float("EMBEDDING_TIMEOUT", 30.0))
    retry_attempts: int = field(default_factory=lambda: env_int("EMBEDDING_RETRY_ATTEMPTS", 3))
    retry_delay: float = field(default_factory=lambda: env_float("EMBEDDING_RETRY_DELAY", 1.0))
    cache_ttl: float = field(default_factory=lambda: env_float("EMBEDDING_CACHE_TTL", 3600.0))

    def __post_init__(self):
        if self.provider not in ("sentence-transformers", "http"):
            raise ValueError(f"provider must be 'sentence-transformers' or 'http', got {self.provider!r}")
        if self.dimension < 1:
            raise ValueError(f"dimension must be >= 1, got {self.dimension}")
        if self.retry_attempts < 1:
            raise ValueError(f"retry_attempts must be >= 1, got {self.retry_attempts}")
        if self.cache_ttl <= 0:
            raise ValueError(f"cache_ttl must be > 0, got {self.cache_ttl}")


@dataclass
class BatchSettings:
    """
    Ingestion concurrency settings.

    Attributes:
        document_batch_size: Documents scheduled per batch
        max_workers: Documents of one batch in flight at the same time
        chunk_batch_size: Chunks per graph write call
    """
    document_batch_size: int = field(default_factory=lambda: env_int("BATCH_SIZE", 100))
    max_workers: int = field(default_factory=lambda: env_int("MAX_WORKERS", 4))
    chunk_batch_size: int = field(default_factory=lambda: env_int("CHUNK_BATCH_SIZE", 100))

    def __post_init__(self):
        for name in ("document_batch_size", "max_workers", "chunk_batch_size"):
            value = getattr(self, name)
            if value < 1:
                raise ValueError(f"{name} must be >= 1, got {value}")
