"""
Embedding Providers
===================

Backends that turn texts into vectors.

Providers:
- SentenceTransformerProvider: local sentence-transformers model
  (lazy loading, encoding in a thread pool so the event loop is never blocked)
- HTTPEmbeddingProvider: remote endpoint speaking the Ollama ``/api/embed`` API

Both return one vector per input text, in input order. Retry and caching
live in CachedEmbedder, not here.
"""

import asyncio
import logging
from threading import Lock
from typing import List, Optional, Protocol, runtime_checkable

import aiohttp
import numpy as np
from sentence_transformers import SentenceTransformer

from docgraph.config.settings import EmbeddingSettings
from docgraph.core.exceptions import EmbeddingProviderError

logger = logging.getLogger(__name__)


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that embeds a batch of texts."""

    async def embed(self, texts: List[str]) -> List[List[float]]:
        ...


class SentenceTransformerProvider:
    """
    Local sentence-transformers encoder.

    Usage:
        provider = SentenceTransformerProvider(model_name="sentence-transformers/all-mpnet-base-v2")
        vectors = await provider.embed(["first text", "second text"])
    """

    def __init__(
        self,
        model_name: str = "sentence-transformers/all-mpnet-base-v2",
        device: Optional[str] = None,
        batch_size: int = 32,
        normalize_embeddings: bool = True,
    ):
        """
        Args:
            model_name: Sentence-transformers model name
            device: 'cpu', 'cuda', or None to let the library pick
            batch_size: Encoder batch size
            normalize_embeddings: L2-normalize vectors (cosine-ready)
        """
        self.model_name = model_name
        self.device = device
        self.batch_size = batch_size
        self.normalize_embeddings = normalize_embeddings

        self._model: Optional[SentenceTransformer] = None
        self._lock = Lock()

        logger.info(
            f"SentenceTransformerProvider configured: model={model_name}, "
            f"device={device or 'auto'}, batch_size={batch_size}"
        )

    @classmethod
    def from_settings(cls, settings: EmbeddingSettings) -> "SentenceTransformerProvider":
        return cls(
            model_name=settings.model,
            device=settings.device,
            batch_size=settings.batch_size,
        )

    def _load_model(self) -> SentenceTransformer:
        """Load the model on first use."""
        if self._model is None:
            with self._lock:
                if self._model is None:
                    logger.info(f"Loading embedding model: {self.model_name}")
                    try:
                        self._model = SentenceTransformer(self.model_name, device=self.device)
                    except Exception as e:
                        logger.error(f"Failed to load model: {e}", exc_info=True)
                        raise EmbeddingProviderError(f"Failed to load embedding model: {e}") from e
                    logger.info(
                        f"Model loaded. Embedding dimension: "
                        f"{self._model.get_sentence_embedding_dimension()}"
                    )
        return self._model

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def encode(self, texts: List[str]) -> List[List[float]]:
        """Synchronous batch encoding."""
        if not texts:
            return []

        model = self._load_model()
        embeddings = model.encode(
            texts,
            batch_size=self.batch_size,
            normalize_embeddings=self.normalize_embeddings,
            show_progress_bar=False,
            convert_to_numpy=True,
        )
        return np.asarray(embeddings, dtype=np.float32).tolist()

    async def embed(self, texts: List[str]) -> List[List[float]]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.encode, texts)

    def __repr__(self) -> str:
        return (
            f"SentenceTransformerProvider(model={self.model_name}, "
            f"device={self.device}, loaded={self.is_loaded})"
        )


class HTTPEmbeddingProvider:
    """
    Remote embedding endpoint (Ollama-compatible).

    POST {base_url}/api/embed with ``{"model": ..., "input": [...]}`` and
    reads ``{"embeddings": [[...], ...]}`` back.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    @classmethod
    def from_settings(cls, settings: EmbeddingSettings) -> "HTTPEmbeddingProvider":
        return cls(base_url=settings.base_url, model=settings.model, timeout=settings.timeout)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def embed(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []

        session = await self._get_session()
        url = f"{self.base_url}/api/embed"

        try:
            async with session.post(url, json={"model": self.model, "input": texts}) as response:
                if response.status != 200:
                    body = await response.text()
                    raise EmbeddingProviderError(
                        f"Embedding endpoint returned HTTP {response.status}: {body[:200]}"
                    )
                payload = await response.json()
        except aiohttp.ClientError as e:
            raise EmbeddingProviderError(f"Embedding request to {url} failed: {e}") from e

        embeddings = payload.get("embeddings")
        if not isinstance(embeddings, list):
            raise EmbeddingProviderError("Embedding response has no 'embeddings' list")

        return [[float(x) for x in vector] for vector in embeddings]

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None


def create_provider(settings: EmbeddingSettings) -> EmbeddingProvider:
    """Provider selected by ``settings.provider``."""
    if settings.provider == "http":
        return HTTPEmbeddingProvider.from_settings(settings)
    return SentenceTransformerProvider.from_settings(settings)


__all__ = [
    "EmbeddingProvider",
    "SentenceTransformerProvider",
    "HTTPEmbeddingProvider",
    "create_provider",
]
