"""
Cached Embedder
===============

Wraps an EmbeddingProvider with a TTL cache and a retry policy.

- embed_one: cache hit returns immediately, otherwise one retried provider call
- embed_batch: cached texts are served from the cache, the uncached subset is
  sent in ONE retried provider call, results are written back by index

Output order always equals input order.

Usage:
    embedder = CachedEmbedder(provider, EmbeddingCache(ttl=3600), RetryPolicy(max_attempts=3))
    vectors = await embedder.embed_batch(["a", "b", "c"])
"""

from typing import List, Optional

import structlog

from docgraph.config.settings import EmbeddingSettings
from docgraph.core.exceptions import EmbeddingProviderError
from docgraph.core.retry import RetryPolicy
from docgraph.storage.vectors.cache import EmbeddingCache
from docgraph.storage.vectors.embeddings import EmbeddingProvider

log = structlog.get_logger()


class CachedEmbedder:
    """
    Embedding front-end used by ingestion and retrieval.

    Args:
        provider: Backend producing vectors
        cache: TTL cache (a fresh one-hour cache when omitted)
        retry_policy: Policy for provider calls (3 attempts, 1s base delay when omitted)
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        cache: Optional[EmbeddingCache] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.provider = provider
        self.cache = cache if cache is not None else EmbeddingCache()
        self.retry_policy = retry_policy or RetryPolicy()

    @classmethod
    def from_settings(cls, provider: EmbeddingProvider, settings: EmbeddingSettings) -> "CachedEmbedder":
        return cls(
            provider=provider,
            cache=EmbeddingCache(ttl=settings.cache_ttl),
            retry_policy=RetryPolicy(
                max_attempts=settings.retry_attempts,
                base_delay=settings.retry_delay,
            ),
        )

    async def _call_provider(self, texts: List[str]) -> List[List[float]]:
        try:
            vectors = await self.retry_policy.run(self.provider.embed, texts)
        except EmbeddingProviderError:
            raise
        except Exception as e:
            raise EmbeddingProviderError(
                f"Embedding provider failed after {self.retry_policy.max_attempts} attempts: {e}"
            ) from e

        if len(vectors) != len(texts):
            raise EmbeddingProviderError(
                f"Provider returned {len(vectors)} vectors for {len(texts)} texts"
            )
        return vectors

    async def embed_one(self, text: str) -> List[float]:
        """
        Embed a single text.

        Raises:
            EmbeddingProviderError: provider still failing after all attempts
        """
        cached = self.cache.get(text)
        if cached is not None:
            log.debug("Embedding cache hit")
            return cached

        vector = (await self._call_provider([text]))[0]
        self.cache.put(text, vector)
        return vector

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """
        Embed many texts, one provider call for the uncached ones.

        Raises:
            EmbeddingProviderError: provider still failing after all attempts
        """
        if not texts:
            return []

        results: List[Optional[List[float]]] = [None] * len(texts)
        missing: List[int] = []

        for i, text in enumerate(texts):
            cached = self.cache.get(text)
            if cached is not None:
                results[i] = cached
            else:
                missing.append(i)

        if missing:
            log.debug(
                f"Embedding batch: {len(texts) - len(missing)} cached, {len(missing)} to compute"
            )
            vectors = await self._call_provider([texts[i] for i in missing])
            for i, vector in zip(missing, vectors):
                results[i] = vector
                self.cache.put(texts[i], vector)

        return results

    def clear_cache(self) -> None:
        self.cache.clear()
        log.info("Embedding cache cleared")

    def cache_stats(self) -> dict:
        stats = self.cache.stats()
        stats["ttl"] = self.cache.ttl
        return stats

    async def health_check(self) -> bool:
        """True when the provider embeds a sample text (cache bypassed)."""
        try:
            vectors = await self.provider.embed(["health check"])
            return len(vectors) == 1 and len(vectors[0]) > 0
        except Exception as e:
            log.error(f"Embedding health check failed: {e}")
            return False


__all__ = ["CachedEmbedder"]
