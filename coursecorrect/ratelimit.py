import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping


logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60
SWEEP_INTERVAL_SECONDS = 60 * 60


@dataclass
class RateLimitEntry:
    count: int
    window_start: float


@dataclass
class RateLimitDecision:
    allowed: bool
    remaining: int
    reset_at: float


class RateLimiter:
    """Fixed-window counter kept in process memory.

    Each instance has its own map, so replicas and cold starts do not share counts.
    Calls happen on the event loop thread only.
    """

    def __init__(self, window_seconds: int = DAY_SECONDS, clock: Callable[[], float] = time.time):
        self.window_seconds = window_seconds
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def now(self) -> float:
        return self._clock()

    def hit(self, key: str, limit: int) -> RateLimitDecision:
        now = self._clock()
        entry = self._entries.get(key)
        if entry is None or now - entry.window_start >= self.window_seconds:
            entry = RateLimitEntry(count=1, window_start=now)
            self._entries[key] = entry
            return RateLimitDecision(True, max(limit - 1, 0), now + self.window_seconds)

        reset_at = entry.window_start + self.window_seconds
        if entry.count >= limit:
            return RateLimitDecision(False, 0, reset_at)
        entry.count += 1
        return RateLimitDecision(True, limit - entry.count, reset_at)

    def sweep(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now - e.window_start >= self.window_seconds]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def run_sweeper(self, interval: float = SWEEP_INTERVAL_SECONDS) -> None:
        while True:
            await asyncio.sleep(interval)
            removed = self.sweep()
            if removed:
                logger.info("Rate limiter swept %d expired entries", removed)


def client_ip(headers: Mapping[str, str]) -> str:
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = (headers.get("x-real-ip") or "").strip()
    return real_ip or "unknown"
