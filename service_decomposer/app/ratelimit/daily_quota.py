"""
Per-device daily quota for the Decomposer service.

Counters are bucketed by UTC calendar day under ``rate:<deviceId>:<date>``,
so the quota resets at UTC midnight regardless of when a device first called
that day. Entries expire shortly after the day ends; there is no sweep.

Increments are a plain read-then-write. Two concurrent requests from one
device can both read ``count=N`` and both write ``N+1``, losing an increment.
The quota only needs to be approximately enforced, so this is accepted.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Optional

from shared.logging import get_logger
from shared.timeutils import format_iso, utcnow
from ..adapters.kv_store import RedisKVStore
from ..domain.models import QuotaStatus, RateLimitEntry, UNLIMITED, UsageStats


RATE_LIMIT_PREFIX = "rate:"
DEFAULT_DAILY_LIMIT = 3
DEFAULT_ENTRY_TTL_SECONDS = 86400 + 3600  # 25 hours


class DailyQuotaLimiter:
    """Day-bucketed usage counters in the key-value store."""

    def __init__(
        self,
        store: RedisKVStore,
        daily_limit: int = DEFAULT_DAILY_LIMIT,
        entry_ttl_seconds: int = DEFAULT_ENTRY_TTL_SECONDS,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.daily_limit = daily_limit
        self.entry_ttl_seconds = entry_ttl_seconds
        self.clock = clock
        self.logger = get_logger("decomposer.rate_limiter")

    def _today(self) -> date:
        return self.clock().astimezone(timezone.utc).date()

    def _make_key(self, device_id: str, day: date) -> str:
        """Generate rate limit key."""
        return f"{RATE_LIMIT_PREFIX}{device_id}:{day.isoformat()}"

    def _next_reset(self, day: date) -> str:
        """Next UTC midnight after ``day`` as ISO-8601."""
        midnight = datetime.combine(day + timedelta(days=1), time.min, tzinfo=timezone.utc)
        return format_iso(midnight)

    async def _read_count(self, key: str) -> int:
        data = await self.store.get_json(key)
        if data is None:
            return 0
        return RateLimitEntry.model_validate(data).count

    async def check(self, device_id: str, is_premium: bool) -> QuotaStatus:
        """Report whether the device may make another billable call today."""
        if is_premium:
            return QuotaStatus(allowed=True, used=0, limit=UNLIMITED, resets_at="")

        today = self._today()
        resets_at = self._next_reset(today)

        try:
            used = await self._read_count(self._make_key(device_id, today))
        except Exception as e:
            # Fail open on store errors
            self.logger.error("Rate limit check error", device_id=device_id, error=str(e))
            return QuotaStatus(allowed=True, used=0, limit=self.daily_limit, resets_at=resets_at)

        allowed = used < self.daily_limit
        if not allowed:
            self.logger.warning(
                "Daily limit reached",
                device_id=device_id,
                used=used,
                limit=self.daily_limit
            )
        return QuotaStatus(allowed=allowed, used=used, limit=self.daily_limit, resets_at=resets_at)

    async def increment(self, device_id: str) -> Optional[int]:
        """Count one billable call for today; returns the new count."""
        today = self._today()
        key = self._make_key(device_id, today)

        try:
            count = await self._read_count(key) + 1
            entry = RateLimitEntry(count=count, date=today.isoformat())
            await self.store.put_json(key, entry.model_dump(), self.entry_ttl_seconds)
        except Exception as e:
            self.logger.error("Rate limit increment error", device_id=device_id, error=str(e))
            return None

        self.logger.debug("Usage incremented", device_id=device_id, count=count)
        return count

    async def stats(self, device_id: str, is_premium: bool) -> UsageStats:
        """Usage summary for the device."""
        status = await self.check(device_id, is_premium)
        return UsageStats(
            used=status.used,
            limit=status.limit,
            resets_at=status.resets_at,
            is_premium=is_premium,
        )
