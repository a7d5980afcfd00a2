"""
Test CachedEmbedder
===================

Cache + retry wrapper around an embedding provider:
1. Order preservation in batches
2. One provider call for the uncached subset
3. Transient failures retried (fail, fail, succeed)
4. Exhausted retries surface as EmbeddingProviderError
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from docgraph.config.settings import EmbeddingSettings
from docgraph.core.exceptions import EmbeddingProviderError
from docgraph.core.retry import RetryPolicy
from docgraph.storage.vectors.cache import EmbeddingCache
from docgraph.storage.vectors.embedder import CachedEmbedder


@pytest.fixture
def embedder(keyword_provider, fast_retry):
    return CachedEmbedder(keyword_provider, EmbeddingCache(ttl=3600), fast_retry)


# ═══════════════════════════════════════════════════════════════════════════════
# TEST: embed_one
# ═══════════════════════════════════════════════════════════════════════════════

class TestEmbedOne:
    """Single-text embedding."""

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self, embedder, keyword_provider):
        first = await embedder.embed_one("revenue up")
        second = await embedder.embed_one("revenue up")

        assert first == second
        assert len(keyword_provider.calls) == 1

    @pytest.mark.asyncio
    async def test_fail_twice_then_succeed(self, flaky_provider_factory, fast_retry):
        """A provider failing twice returns the same vector as a healthy one, one cache entry."""
        flaky = flaky_provider_factory(failures=2, vector=[0.5, 0.5])
        healthy = flaky_provider_factory(failures=0, vector=[0.5, 0.5])

        flaky_embedder = CachedEmbedder(flaky, EmbeddingCache(), fast_retry)
        healthy_embedder = CachedEmbedder(healthy, EmbeddingCache(), RetryPolicy(max_attempts=3))

        assert await flaky_embedder.embed_one("query") == await healthy_embedder.embed_one("query")
        assert flaky.calls == 3
        assert flaky_embedder.cache_stats()["size"] == 1

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_provider_error(self, flaky_provider_factory, fast_retry, sleep_recorder):
        flaky = flaky_provider_factory(failures=3)
        embedder = CachedEmbedder(flaky, EmbeddingCache(), fast_retry)

        with pytest.raises(EmbeddingProviderError) as exc_info:
            await embedder.embed_one("query")

        assert isinstance(exc_info.value.__cause__, ConnectionError)
        assert flaky.calls == 3
        assert sleep_recorder.delays == [1.0, 2.0]
        assert embedder.cache_stats()["size"] == 0

    @pytest.mark.asyncio
    async def test_wrong_vector_count_is_provider_error(self, fast_retry):
        provider = MagicMock()
        provider.embed = AsyncMock(return_value=[])
        embedder = CachedEmbedder(provider, EmbeddingCache(), fast_retry)

        with pytest.raises(EmbeddingProviderError, match="0 vectors for 1 texts"):
            await embedder.embed_one("query")


# ═══════════════════════════════════════════════════════════════════════════════
# TEST: embed_batch
# ═══════════════════════════════════════════════════════════════════════════════

class TestEmbedBatch:
    """Batch embedding."""

    @pytest.mark.asyncio
    async def test_empty_batch(self, embedder, keyword_provider):
        assert await embedder.embed_batch([]) == []
        assert keyword_provider.calls == []

    @pytest.mark.asyncio
    async def test_output_order_matches_input(self, embedder):
        texts = ["revenue", "hiring hiring", "weather", "revenue revenue revenue"]

        vectors = await embedder.embed_batch(texts)

        assert [v[:3] for v in vectors] == [
            [1.0, 0.0, 0.0],
            [0.0, 2.0, 0.0],
            [0.0, 0.0, 1.0],
            [3.0, 0.0, 0.0],
        ]

    @pytest.mark.asyncio
    async def test_only_uncached_texts_sent_in_one_call(self, embedder, keyword_provider):
        await embedder.embed_one("hiring")
        keyword_provider.calls.clear()

        vectors = await embedder.embed_batch(["revenue", "hiring", "weather"])

        assert keyword_provider.calls == [["revenue", "weather"]]
        assert vectors[1][:3] == [0.0, 1.0, 0.0]
        assert vectors[2][:3] == [0.0, 0.0, 1.0]

    @pytest.mark.asyncio
    async def test_fully_cached_batch_makes_no_call(self, embedder, keyword_provider):
        await embedder.embed_batch(["a revenue", "b hiring"])
        keyword_provider.calls.clear()

        await embedder.embed_batch(["b hiring", "a revenue"])

        assert keyword_provider.calls == []

    @pytest.mark.asyncio
    async def test_batch_failure_raises(self, flaky_provider_factory, fast_retry):
        embedder = CachedEmbedder(flaky_provider_factory(failures=10), EmbeddingCache(), fast_retry)
        with pytest.raises(EmbeddingProviderError):
            await embedder.embed_batch(["a", "b"])


# ═══════════════════════════════════════════════════════════════════════════════
# TEST: maintenance
# ═══════════════════════════════════════════════════════════════════════════════

class TestMaintenance:
    """clear_cache, cache_stats, health_check, from_settings."""

    @pytest.mark.asyncio
    async def test_clear_cache(self, embedder):
        await embedder.embed_one("revenue")
        embedder.clear_cache()
        assert embedder.cache_stats()["size"] == 0

    @pytest.mark.asyncio
    async def test_health_check_ok(self, embedder):
        assert await embedder.health_check() is True

    @pytest.mark.asyncio
    async def test_health_check_failure(self):
        provider = MagicMock()
        provider.embed = AsyncMock(side_effect=ConnectionError("down"))
        assert await CachedEmbedder(provider).health_check() is False

    def test_from_settings(self, keyword_provider):
        settings = EmbeddingSettings(retry_attempts=5, retry_delay=0.25, cache_ttl=120)

        embedder = CachedEmbedder.from_settings(keyword_provider, settings)

        assert embedder.retry_policy.max_attempts == 5
        assert embedder.retry_policy.base_delay == 0.25
        assert embedder.cache_stats()["ttl"] == 120

    @pytest.mark.asyncio
    async def test_injected_empty_cache_is_used(self, keyword_provider, fast_retry):
        now = [0.0]
        cache = EmbeddingCache(ttl=120, clock=lambda: now[0])
        embedder = CachedEmbedder(keyword_provider, cache, fast_retry)

        await embedder.embed_one("revenue")

        assert embedder.cache is cache
        assert len(cache) == 1

        now[0] = 121.0
        await embedder.embed_one("revenue")

        assert len(keyword_provider.calls) == 2
