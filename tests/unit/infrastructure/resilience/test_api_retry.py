import pytest
from typing import Any, List

from shiptracker.domain.events.api_events import (
    ApiCallFailed, CacheHit, DomainEvent, RetryScheduled,
)
from shiptracker.domain.models.common import CacheKey
from shiptracker.domain.models.errors import (
    GitHubApiError, NotFoundError, QuotaExhaustedError, RateLimitError,
)
from shiptracker.infrastructure.cache.caching_service import InMemoryCacheService
from shiptracker.infrastructure.resilience.api_retry import (
    ApiRetryService, RetryPhase, RetryState,
)


class ScriptedRequest:
    """Async request that replays outcomes; the last one repeats forever."""

    def __init__(self, *outcomes: Any):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

@pytest.fixture
def events() -> List[DomainEvent]:
    return []

@pytest.fixture
def service(cache_service, fake_sleep, events):
    return ApiRetryService(
        cache_service=cache_service,
        max_retries=3,
        initial_backoff_s=1.0,
        backoff_factor=2.0,
        sleep=fake_sleep,
        clock=lambda: 1000.0,
        event_hook=events.append,
    )

@pytest.mark.asyncio
async def test_success_is_cached_under_key(service: ApiRetryService, cache_service: InMemoryCacheService):
    request = ScriptedRequest({"login": "alice"})
    # An empty cache is falsy; it must still be used
    assert not cache_service

    first = await service.execute_with_retry(request, cache_key=CacheKey("profile:alice"))
    second = await service.execute_with_retry(request, cache_key=CacheKey("profile:alice"))

    assert first == second == {"login": "alice"}
    assert request.calls == 1
    assert len(cache_service) == 1

@pytest.mark.asyncio
async def test_cache_hit_dispatches_event(service: ApiRetryService, events):
    request = ScriptedRequest(42)
    await service.execute_with_retry(request, cache_key=CacheKey("k"))
    await service.execute_with_retry(request, cache_key=CacheKey("k"))
    assert any(isinstance(e, CacheHit) and e.cache_key == "k" for e in events)

@pytest.mark.asyncio
async def test_without_key_nothing_is_cached(service: ApiRetryService, cache_service: InMemoryCacheService):
    request = ScriptedRequest(1)
    await service.execute_with_retry(request)
    await service.execute_with_retry(request)
    assert request.calls == 2
    assert len(cache_service) == 0

@pytest.mark.asyncio
async def test_persistent_quota_exhaustion_is_bounded(service: ApiRetryService, sleeps):
    request = ScriptedRequest(QuotaExhaustedError())

    with pytest.raises(RateLimitError) as exc_info:
        await service.execute_with_retry(request)

    assert request.calls == 4
    assert exc_info.value.attempts == 4
    assert str(exc_info.value) == "GitHub API rate limit exceeded after 4 attempts"
    assert isinstance(exc_info.value.last_error, QuotaExhaustedError)
    # No reset header: exponential backoff
    assert sleeps == [1.0, 2.0, 4.0]

@pytest.mark.asyncio
async def test_reset_timestamp_sets_wait(service: ApiRetryService, sleeps, events):
    request = ScriptedRequest(QuotaExhaustedError(reset_at=1010.0), "ok")

    assert await service.execute_with_retry(request) == "ok"

    assert sleeps == [11.0]
    scheduled = [e for e in events if isinstance(e, RetryScheduled)]
    assert len(scheduled) == 1
    assert scheduled[0].reset_at == 1010.0

@pytest.mark.asyncio
async def test_reset_in_the_past_waits_one_second(service: ApiRetryService, sleeps):
    request = ScriptedRequest(QuotaExhaustedError(reset_at=900.0), "ok")
    assert await service.execute_with_retry(request) == "ok"
    assert sleeps == [1.0]

@pytest.mark.asyncio
async def test_recovers_after_transient_exhaustion(service: ApiRetryService, cache_service, sleeps):
    request = ScriptedRequest(QuotaExhaustedError(), QuotaExhaustedError(), {"total_count": 3})

    result = await service.execute_with_retry(request, cache_key=CacheKey("search:x"))

    assert result == {"total_count": 3}
    assert request.calls == 3
    assert sleeps == [1.0, 2.0]
    assert await cache_service.get(CacheKey("search:x")) == {"total_count": 3}

@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    GitHubApiError("GitHub API error 500", status_code=500),
    GitHubApiError("GitHub API error 403: Resource not accessible", status_code=403),
    NotFoundError(),
    ValueError("boom"),
])
async def test_other_errors_fail_fast(service: ApiRetryService, cache_service, sleeps, events, error):
    request = ScriptedRequest(error)

    with pytest.raises(type(error)):
        await service.execute_with_retry(request, cache_key=CacheKey("k"))

    assert request.calls == 1
    assert sleeps == []
    assert len(cache_service) == 0
    assert isinstance(events[-1], ApiCallFailed)

@pytest.mark.asyncio
async def test_per_call_overrides(service: ApiRetryService, sleeps):
    request = ScriptedRequest(QuotaExhaustedError())

    with pytest.raises(RateLimitError) as exc_info:
        await service.execute_with_retry(request, max_retries=1, initial_delay=0.5)

    assert exc_info.value.attempts == 2
    assert sleeps == [0.5]

@pytest.mark.asyncio
async def test_zero_retries_tries_once(service: ApiRetryService, sleeps):
    request = ScriptedRequest(QuotaExhaustedError())
    with pytest.raises(RateLimitError):
        await service.execute_with_retry(request, max_retries=0)
    assert request.calls == 1
    assert sleeps == []

@pytest.mark.asyncio
async def test_works_without_cache(fake_sleep):
    service = ApiRetryService(sleep=fake_sleep)
    request = ScriptedRequest("value")
    assert await service.execute_with_retry(request, cache_key=CacheKey("k")) == "value"
    assert await service.execute_with_retry(request, cache_key=CacheKey("k")) == "value"
    assert request.calls == 2

def test_compute_wait_advances_backoff():
    service = ApiRetryService(backoff_factor=3.0)
    state = RetryState(attempt_count=0, current_delay=2.0)
    assert service.compute_wait(QuotaExhaustedError(), state) == 2.0
    assert service.compute_wait(QuotaExhaustedError(), state) == 6.0
    assert state.current_delay == 18.0

def test_retry_state_transition():
    state = RetryState(attempt_count=0, current_delay=1.0)
    assert state.phase == RetryPhase.IDLE
    state.transition(RetryPhase.REQUESTING)
    assert state.phase == RetryPhase.REQUESTING
