"""
Token bucket rate limiter for catalog API calls.

Hey future me - the catalog service rate limits us, and a label import fires a LOT of calls
(search pages, one album detail per candidate, artist details, audio features). The bucket
smooths bursts; on a 429 we honour Retry-After, or back off exponentially when it's missing.
The importer's inter-page delay is a separate, coarser knob on top of this.

USAGE:
    limiter = RateLimiter.for_spotify()

    async with limiter:
        response = await client.get(url)

    # on 429:
    await limiter.handle_rate_limit_response(retry_after)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Bucket size, refill rate and backoff bounds."""

    max_tokens: int = 10
    refill_rate: float = 2.0  # tokens per second
    # Spotify can send Retry-After of several minutes; capping lower just earns another 429.
    max_backoff_seconds: float = 600.0
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0


@dataclass
class RateLimiter:
    """Token bucket with adaptive backoff, usable as an async context manager."""

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"

    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default_factory=time.monotonic, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        self._tokens = float(self.config.max_tokens)
        self._current_backoff = self.config.initial_backoff_seconds

    @classmethod
    def for_spotify(cls) -> "RateLimiter":
        """Roughly 180 req/min allowed; we sustain 2 req/s with a burst of 10."""
        return cls(
            config=RateLimiterConfig(
                max_tokens=10,
                refill_rate=2.0,
                max_backoff_seconds=600.0,
                initial_backoff_seconds=1.0,
            ),
            name="spotify",
        )

    def _refill_tokens(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(
            float(self.config.max_tokens),
            self._tokens + elapsed * self.config.refill_rate,
        )
        self._last_refill = now

    async def acquire(self) -> None:
        """Take one token, sleeping until one is available."""
        while True:
            async with self._lock:
                self._refill_tokens()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return
                wait_time = (1.0 - self._tokens) / self.config.refill_rate
            logger.debug(f"RateLimiter[{self.name}]: bucket empty, waiting {wait_time:.2f}s")
            await asyncio.sleep(wait_time)

    async def handle_rate_limit_response(self, retry_after: int | None = None) -> float:
        """Sleep after a 429, honouring Retry-After when given.

        Returns:
            Seconds actually waited
        """
        async with self._lock:
            wait_time = (
                float(retry_after) if retry_after is not None else self._current_backoff
            )
            wait_time = min(wait_time, self.config.max_backoff_seconds)
            self._current_backoff = min(
                self._current_backoff * self.config.backoff_multiplier,
                self.config.max_backoff_seconds,
            )
            self._tokens = 0.0

        logger.warning(
            f"RateLimiter[{self.name}]: 429 rate limited, waiting {wait_time:.1f}s",
            extra={"retry_after": retry_after, "wait_seconds": wait_time},
        )
        await asyncio.sleep(wait_time)
        return wait_time

    def reset_backoff(self) -> None:
        self._current_backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        if exc_type is None:
            self.reset_backoff()

    @property
    def available_tokens(self) -> float:
        self._refill_tokens()
        return self._tokens

    @property
    def current_backoff(self) -> float:
        return self._current_backoff


__all__ = ["RateLimiter", "RateLimiterConfig"]
