"""
Decomposition response cache for the Decomposer service.

Results are keyed by style and a normalised form of the task text, so that
trivially different phrasings ("Clean My Room!!" / "clean my room") share
one entry. Normalisation is lossy on purpose; distinct tasks that normalise
to the same key are treated as duplicates.
"""

import re
from typing import Optional, TYPE_CHECKING, Union

from shared.logging import get_logger
from ..adapters.kv_store import RedisKVStore
from ..domain.models import DecompositionResult, Style

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


CACHE_PREFIX = "decompose:"
DEFAULT_CACHE_TTL = 86400
MAX_KEY_LENGTH = 100

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize(task: str) -> str:
    """Case-fold, strip punctuation, collapse whitespace and truncate to 100 chars."""
    text = task.casefold().strip()
    text = _NON_WORD.sub("", text)
    text = _WHITESPACE.sub(" ", text)
    return text[:MAX_KEY_LENGTH]


class ResponseCache:
    """Stores successful decompositions in the key-value store."""

    def __init__(
        self,
        store: RedisKVStore,
        ttl_seconds: int = DEFAULT_CACHE_TTL,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics
        self.logger = get_logger("decomposer.response_cache")

    def make_key(self, task: str, style: Union[Style, str]) -> Optional[str]:
        """Cache key for the task, or ``None`` when nothing survives normalisation."""
        fragment = normalize(task)
        if not fragment:
            return None
        return f"{CACHE_PREFIX}{Style(style).value}:{fragment}"

    async def get(self, task: str, style: Union[Style, str]) -> Optional[DecompositionResult]:
        """Return a copy of the cached result marked ``cached=True``, or ``None``."""
        key = self.make_key(task, style)
        if key is None:
            return None

        try:
            data = await self.store.get_json(key)
            cached = DecompositionResult.model_validate(data) if data is not None else None
        except Exception as exc:
            self.logger.error("Cache fetch error", key=key, error=str(exc))
            cached = None

        style_label = Style(style).value
        if cached is None:
            self._record("cache_misses_total", style_label)
            return None

        self._record("cache_hits_total", style_label)
        self.logger.debug("Cache hit", key=key)
        return cached.model_copy(update={"cached": True})

    async def put(self, task: str, style: Union[Style, str], result: DecompositionResult) -> bool:
        """Store a result as produced (``cached=False``) with the configured TTL."""
        key = self.make_key(task, style)
        if key is None:
            return False

        try:
            await self.store.put_json(key, result.to_response(), self.ttl_seconds)
        except Exception as exc:
            self.logger.error("Cache store error", key=key, error=str(exc))
            return False
        return True

    def _record(self, metric_name: str, style: str) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, style=style)
