"""
Unit tests for the decomposition response cache.
"""

import pytest

from service_decomposer.app.adapters.kv_store import RedisKVStore
from service_decomposer.app.caching.response_cache import ResponseCache, normalize
from service_decomposer.app.domain.models import DecomposedTask, DecompositionResult, Step, Style
from shared.metrics import MetricsCollector
from shared.test_helpers import InMemoryRedis


def _result() -> DecompositionResult:
    return DecompositionResult.ok(DecomposedTask.build(
        title="Clean room",
        steps=[Step(action="Pick up clothes", estimated_minutes=3), Step(action="Vacuum")],
        encouragement="Nice!",
    ))


class TestNormalize:
    """Test cases for cache key normalisation."""

    def test_case_and_punctuation_collapse(self):
        assert normalize("Clean My Room!!") == normalize("clean my room")
        assert normalize("clean my room") == "clean my room"

    def test_whitespace_is_collapsed_and_trimmed(self):
        assert normalize("  clean \t my\n\nroom  ") == "clean my room"

    def test_output_is_capped_at_100_chars(self):
        assert len(normalize("word " * 100)) <= 100
        assert len(normalize("x" * 500)) == 100

    def test_non_latin_text_survives(self):
        """Word characters outside ASCII are kept."""
        assert normalize("Убрать комнату!") == "убрать комнату"

    def test_punctuation_only_normalises_to_empty(self):
        assert normalize("?!...") == ""


class TestResponseCache:
    """Test cases for ResponseCache."""

    @pytest.fixture
    def fake_redis(self):
        return InMemoryRedis()

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("decomposer")

    @pytest.fixture
    def response_cache(self, fake_redis, metrics):
        """Create ResponseCache instance."""
        store = RedisKVStore("redis://localhost:6379/0", client=fake_redis)
        return ResponseCache(store, ttl_seconds=86400, metrics=metrics)

    def test_make_key(self, response_cache):
        assert response_cache.make_key("Clean My Room!!", Style.STANDARD) == "decompose:standard:clean my room"
        assert response_cache.make_key("clean my room", "gentle") == "decompose:gentle:clean my room"
        assert response_cache.make_key("!!!", Style.QUICK) is None

    @pytest.mark.asyncio
    async def test_miss_returns_none(self, response_cache, metrics):
        assert await response_cache.get("clean my room", Style.STANDARD) is None
        assert metrics.registry.get_sample_value("cache_misses_total", {"style": "standard"}) == 1

    @pytest.mark.asyncio
    async def test_put_then_get_marks_cached(self, response_cache, fake_redis, metrics):
        """Stored results come back flagged as cached."""
        assert await response_cache.put("Clean My Room!!", Style.STANDARD, _result()) is True

        stored = fake_redis.load("decompose:standard:clean my room")
        assert stored["cached"] is False
        assert fake_redis.set_calls[-1]["ex"] == 86400

        cached = await response_cache.get("clean my room", Style.STANDARD)

        assert cached is not None
        assert cached.cached is True
        assert cached.task.title == "Clean room"
        assert cached.task.total_estimated_minutes == 8
        assert metrics.registry.get_sample_value("cache_hits_total", {"style": "standard"}) == 1

    @pytest.mark.asyncio
    async def test_styles_do_not_share_entries(self, response_cache):
        await response_cache.put("clean my room", Style.STANDARD, _result())

        assert await response_cache.get("clean my room", Style.QUICK) is None

    @pytest.mark.asyncio
    async def test_empty_key_is_never_stored(self, response_cache, fake_redis):
        assert await response_cache.put("???", Style.STANDARD, _result()) is False
        assert fake_redis.data == {}

    @pytest.mark.asyncio
    async def test_store_errors_degrade_to_miss(self, response_cache, fake_redis):
        """Read failures are misses, write failures are reported as not stored."""
        fake_redis.fail = True

        assert await response_cache.get("clean my room", Style.STANDARD) is None
        assert await response_cache.put("clean my room", Style.STANDARD, _result()) is False

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_a_miss(self, response_cache, fake_redis):
        fake_redis.data["decompose:standard:clean my room"] = "{not json"

        assert await response_cache.get("clean my room", Style.STANDARD) is None
