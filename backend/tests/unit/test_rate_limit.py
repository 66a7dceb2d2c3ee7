import asyncio

import pytest

from foundry.infra.rate_limit import MemoryCounterStore, RateLimiter, RedisCounterStore


@pytest.mark.asyncio
async def test_rate_limit_allows_within_budget():
	limiter = RateLimiter(MemoryCounterStore())
	first = await limiter.hit("submit", "p1", limit=2, window_seconds=60)
	second = await limiter.hit("submit", "p1", limit=2, window_seconds=60)
	assert first.allowed and second.allowed
	assert second.remaining == 0


@pytest.mark.asyncio
async def test_rate_limit_blocks_when_budget_exhausted():
	limiter = RateLimiter(MemoryCounterStore())
	await limiter.hit("vote", "p2", limit=1, window_seconds=60, now=1_000.0)
	decision = await limiter.hit("vote", "p2", limit=1, window_seconds=60, now=1_010.0)
	assert not decision.allowed
	# window slot 16 ends at 1020
	assert decision.retry_after == 10


@pytest.mark.asyncio
async def test_rate_limit_is_keyed_per_operation_and_actor():
	limiter = RateLimiter(MemoryCounterStore())
	assert (await limiter.hit("vote", "p3", limit=1, window_seconds=60)).allowed
	assert (await limiter.hit("vote", "p4", limit=1, window_seconds=60)).allowed
	assert (await limiter.hit("vote_batch", "p3", limit=1, window_seconds=60)).allowed


@pytest.mark.asyncio
async def test_next_window_starts_fresh():
	limiter = RateLimiter(MemoryCounterStore())
	await limiter.hit("submit", "p5", limit=1, window_seconds=60, now=59.0)
	decision = await limiter.hit("submit", "p5", limit=1, window_seconds=60, now=61.0)
	assert decision.allowed


@pytest.mark.asyncio
async def test_zero_limit_denies():
	limiter = RateLimiter(MemoryCounterStore())
	decision = await limiter.hit("submit", "p6", limit=0, window_seconds=30)
	assert not decision.allowed
	assert decision.retry_after == 30


@pytest.mark.asyncio
async def test_memory_counter_expires_entries():
	clock = [100.0]
	store = MemoryCounterStore(clock=lambda: clock[0])
	assert await store.incr("k", 10) == 1
	assert await store.incr("k", 10) == 2
	clock[0] = 111.0
	assert await store.incr("k", 10) == 1


@pytest.mark.asyncio
async def test_redis_counter_store_sets_ttl(fake_redis):
	limiter = RateLimiter(RedisCounterStore())
	await limiter.hit("results", "fac:act", limit=5, window_seconds=300, now=600.0)
	keys = await fake_redis.keys("rl:results:*")
	assert keys == ["rl:results:fac:act:2:300"]
	assert await fake_redis.get(keys[0]) == "1"
	assert 0 < await fake_redis.ttl(keys[0]) <= 300


@pytest.mark.asyncio
async def test_concurrent_hits_never_exceed_limit():
	limiter = RateLimiter(MemoryCounterStore())
	decisions = await asyncio.gather(
		*(limiter.hit("submit", "p7", limit=5, window_seconds=60, now=120.0) for _ in range(20))
	)
	assert sum(decision.allowed for decision in decisions) == 5
	assert sorted(decision.count for decision in decisions) == list(range(1, 21))


@pytest.mark.asyncio
async def test_concurrent_hits_share_redis_counter(fake_redis):
	limiter = RateLimiter(RedisCounterStore())
	decisions = await asyncio.gather(
		*(limiter.hit("vote", "p8", limit=3, window_seconds=60, now=120.0) for _ in range(8))
	)
	assert sum(decision.allowed for decision in decisions) == 3
	assert await fake_redis.get("rl:vote:p8:2:60") == "8"
