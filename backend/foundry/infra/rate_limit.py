"""Fixed-window rate limiting with pluggable counter stores."""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol, Tuple

from foundry.infra.redis import redis_client
from foundry.settings import settings


class CounterStore(Protocol):
	async def incr(self, key: str, ttl_seconds: int) -> int:
		"""Atomically increment `key`, expiring it after `ttl_seconds`, and return the new count."""
		...


class RedisCounterStore:
	"""Counters shared by every API instance pointing at the same Redis."""

	def __init__(self, client=None) -> None:
		self._client = client or redis_client

	async def incr(self, key: str, ttl_seconds: int) -> int:
		async with self._client.pipeline(transaction=True) as pipe:
			pipe.incr(key)
			pipe.expire(key, ttl_seconds)
			count, _ = await pipe.execute()
		return int(count)


class MemoryCounterStore:
	"""Per-process counters for single-instance deployments and tests."""

	def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
		self._lock = asyncio.Lock()
		self._clock = clock
		self._entries: Dict[str, Tuple[int, float]] = {}

	async def incr(self, key: str, ttl_seconds: int) -> int:
		async with self._lock:
			now = self._clock()
			count, expires_at = self._entries.get(key, (0, 0.0))
			if expires_at <= now:
				count = 0
			count += 1
			self._entries[key] = (count, now + ttl_seconds)
			if len(self._entries) > 10_000:
				self._prune(now)
			return count

	def _prune(self, now: float) -> None:
		for key in [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]:
			del self._entries[key]

	def reset(self) -> None:
		self._entries.clear()


@dataclass(slots=True)
class RateDecision:
	allowed: bool
	count: int
	limit: int
	retry_after: int

	@property
	def remaining(self) -> int:
		return max(self.limit - self.count, 0)


class RateLimiter:
	"""Counts calls per (operation, actor) inside fixed windows."""

	def __init__(self, store: CounterStore) -> None:
		self._store = store

	async def hit(
		self,
		operation: str,
		actor_id: str,
		*,
		limit: int,
		window_seconds: int,
		now: Optional[float] = None,
	) -> RateDecision:
		window = max(1, int(window_seconds))
		if limit <= 0:
			return RateDecision(allowed=False, count=0, limit=limit, retry_after=window)
		now = now or time.time()
		slot = int(math.floor(now / window))
		key = f"rl:{operation}:{actor_id}:{slot}:{window}"
		count = await self._store.incr(key, window)
		retry_after = max(1, int(math.ceil((slot + 1) * window - now)))
		return RateDecision(allowed=count <= limit, count=count, limit=limit, retry_after=retry_after)


def build_rate_limiter() -> RateLimiter:
	if settings.rate_limit_backend.lower() == "memory":
		return RateLimiter(MemoryCounterStore())
	return RateLimiter(RedisCounterStore())
