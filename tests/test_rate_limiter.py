import pytest
import asyncio

from arbscanner.core.exceptions import ProviderUnavailable, Throttled
from arbscanner.core.rate_limiter import RateLimiter, RetryPolicy

from conftest import FakeClock, FakeSleep

def make_limiter(**kwargs):
    clock = FakeClock()
    sleep = FakeSleep(clock)
    limiter = RateLimiter("test", clock=clock, sleep=sleep, **kwargs)
    return limiter, sleep

def test_retry_policy_backoff_is_capped():
    policy = RetryPolicy(base_delay=1.0, max_delay=10.0, max_retries=3)
    assert [policy.delay_for(a) for a in range(5)] == [1.0, 2.0, 4.0, 8.0, 10.0]

@pytest.mark.asyncio
async def test_schedule_returns_result():
    limiter, _ = make_limiter(min_time=0)

    async def double(x):
        return x * 2

    assert await limiter.schedule(double, 21) == 42
    assert limiter.stats["scheduled"] == 1
    assert limiter.stats["completed"] == 1
    assert limiter.reservoir == 59

@pytest.mark.asyncio
async def test_calls_are_spaced_by_min_time():
    limiter, sleep = make_limiter(min_time=1.0)

    async def call():
        return True

    for _ in range(3):
        await limiter.schedule(call)

    assert sleep.delays == [1.0, 1.0]

@pytest.mark.asyncio
async def test_exhausted_reservoir_queues_until_refill():
    limiter, sleep = make_limiter(min_time=0, reservoir=2, refresh_interval=60.0)

    async def call(i):
        return i

    results = [await limiter.schedule(call, i) for i in range(3)]

    assert results == [0, 1, 2]
    assert sleep.delays == [60.0]
    assert limiter.stats["reservoir_waits"] == 1
    # Refilled to capacity, one call drawn since
    assert limiter.reservoir == 1

@pytest.mark.asyncio
async def test_single_call_in_flight():
    limiter, _ = make_limiter(min_time=0, max_concurrent=1)
    in_flight = 0
    peak = 0

    async def call():
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        for _ in range(3):
            await asyncio.sleep(0)
        in_flight -= 1

    await asyncio.gather(*(limiter.schedule(call) for _ in range(4)))

    assert peak == 1
    assert limiter.stats["completed"] == 4

@pytest.mark.asyncio
async def test_throttled_call_retried_with_backoff():
    limiter, sleep = make_limiter(min_time=0)
    attempts = 0

    async def flaky():
        nonlocal attempts
        attempts += 1
        if attempts < 3:
            raise Throttled("429 Too Many Requests")
        return "ok"

    result = await limiter.schedule_with_retry(flaky, policy=RetryPolicy())

    assert result == "ok"
    assert attempts == 3
    assert sleep.delays == [1.0, 2.0]
    assert limiter.stats["throttle_retries"] == 2

@pytest.mark.asyncio
async def test_throttling_propagates_after_max_retries():
    limiter, sleep = make_limiter(min_time=0)
    attempts = 0

    async def always_throttled():
        nonlocal attempts
        attempts += 1
        raise Throttled("429 Too Many Requests")

    with pytest.raises(Throttled):
        await limiter.schedule_with_retry(always_throttled, policy=RetryPolicy(max_retries=3))

    assert attempts == 4
    assert sleep.delays == [1.0, 2.0, 4.0]
    assert limiter.stats["failed"] == 4

@pytest.mark.asyncio
async def test_other_errors_are_not_retried():
    limiter, sleep = make_limiter(min_time=0)
    attempts = 0

    async def broken():
        nonlocal attempts
        attempts += 1
        raise ProviderUnavailable("timeout")

    with pytest.raises(ProviderUnavailable):
        await limiter.schedule_with_retry(broken)

    assert attempts == 1
    assert sleep.delays == []
