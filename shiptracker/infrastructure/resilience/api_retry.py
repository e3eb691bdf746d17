"""Service for executing GitHub API calls with caching and quota-aware retries.

Each call moves through an explicit state machine:

    IDLE -> REQUESTING -> DONE
                       -> BACKOFF(delay) -> REQUESTING ...
                       -> FAILED

Only quota exhaustion (zero remaining requests) is retried. The wait is taken
from the server's reset timestamp when present (plus a one second buffer),
otherwise it follows exponential backoff. Every other error propagates on the
first attempt and nothing is cached.
"""

import logging
import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from shiptracker.domain.interfaces.cache import CacheService
from shiptracker.domain.models.common import CacheKey
from shiptracker.domain.models.errors import QuotaExhaustedError, RateLimitError
from shiptracker.domain.events.api_events import (
    DomainEvent, ApiCallInitiated, ApiCallSucceeded, ApiCallFailed,
    CacheHit, RetryScheduled,
)

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 5 * 60
DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY_S = 1.0
RESET_BUFFER_S = 1.0

RequestFn = Callable[[], Awaitable[Any]]
SleepFn = Callable[[float], Awaitable[None]]


class RetryPhase(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    BACKOFF = "backoff"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RetryState:
    """Per-call retry bookkeeping; lives only for one execute_with_retry call."""
    attempt_count: int
    current_delay: float
    phase: RetryPhase = RetryPhase.IDLE

    def transition(self, phase: RetryPhase) -> None:
        logger.debug(f"Retry state {self.phase.value} -> {phase.value} (attempt {self.attempt_count})")
        self.phase = phase


class ApiRetryService:
    """Handles API call execution with response caching and quota retries."""

    def __init__(
        self,
        cache_service: Optional[CacheService] = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_backoff_s: float = DEFAULT_INITIAL_DELAY_S,
        backoff_factor: float = 2.0,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        sleep: SleepFn = asyncio.sleep,
        clock: Callable[[], float] = time.time,
        event_hook: Optional[Callable[[DomainEvent], None]] = None,
    ):
        """Initializes the ApiRetryService.

        Args:
            cache_service: Optional response cache consulted before each call.
            max_retries: Maximum number of quota-driven retries per call.
            initial_backoff_s: Initial delay in seconds for the first retry.
            backoff_factor: Multiplier for the backoff delay (e.g., 2 for exponential).
            default_ttl: TTL in seconds for cached results when a call gives none.
            sleep: Awaitable sleep; injected so tests never wait on the wall clock.
            clock: Returns the current Unix time, used against reset timestamps.
            event_hook: Optional callback receiving every dispatched domain event.
        """
        self.cache_service = cache_service
        self.max_retries = max_retries
        self.initial_backoff_s = initial_backoff_s
        self.backoff_factor = backoff_factor
        self.default_ttl = default_ttl
        self._sleep = sleep
        self._clock = clock
        self._event_hook = event_hook

        logger.info(
            f"ApiRetryService initialized: max_retries={max_retries}, "
            f"initial_backoff={initial_backoff_s}s, factor={backoff_factor}, "
            f"cache={'on' if cache_service is not None else 'off'}"
        )

    def dispatch_event(self, event: DomainEvent) -> None:
        logger.debug(f"EVENT: {event}")
        if self._event_hook:
            self._event_hook(event)

    def compute_wait(self, error: QuotaExhaustedError, state: RetryState) -> float:
        """Seconds to wait before the next attempt.

        Prefers the server's reset timestamp; otherwise uses the current
        exponential delay and advances it for the next retry.
        """
        if error.reset_at is not None:
            return max(error.reset_at - self._clock() + RESET_BUFFER_S, RESET_BUFFER_S)
        delay = state.current_delay
        state.current_delay *= self.backoff_factor
        return delay

    async def execute_with_retry(
        self,
        request_fn: RequestFn,
        cache_key: Optional[CacheKey] = None,
        ttl: Optional[float] = None,
        max_retries: Optional[int] = None,
        initial_delay: Optional[float] = None,
        endpoint_name: Optional[str] = None,
    ) -> Any:
        """Executes an async zero-argument request with caching and retries.

        Args:
            request_fn: The async function (API call) to execute.
            cache_key: Optional key; a valid cached value short-circuits the call
                and a successful result is stored under it.
            ttl: Cache TTL in seconds for this call (service default if None).
            max_retries: Overrides the service's retry cap for this call.
            initial_delay: Overrides the initial backoff delay for this call.
            endpoint_name: Name used in logs and events.

        Returns:
            The result of the request, possibly from cache.

        Raises:
            RateLimitError: If quota exhaustion persists past ``max_retries``.
            Exception: Any other error from ``request_fn``, unchanged.
        """
        endpoint = endpoint_name or cache_key or getattr(request_fn, "__name__", "request")
        retries_allowed = self.max_retries if max_retries is None else max_retries
        effective_ttl = self.default_ttl if ttl is None else ttl

        if cache_key and self.cache_service is not None:
            cached = await self.cache_service.get(cache_key)
            if cached is not None:
                self.dispatch_event(CacheHit(cache_key=cache_key))
                return cached

        state = RetryState(
            attempt_count=0,
            current_delay=self.initial_backoff_s if initial_delay is None else initial_delay,
        )

        while True:
            state.transition(RetryPhase.REQUESTING)
            self.dispatch_event(ApiCallInitiated(endpoint=endpoint, attempt_number=state.attempt_count + 1))
            start_time = time.perf_counter()
            try:
                result = await request_fn()
            except QuotaExhaustedError as e:
                if state.attempt_count >= retries_allowed:
                    state.transition(RetryPhase.FAILED)
                    logger.error(f"Rate limit retries ({retries_allowed}) exhausted for {endpoint}")
                    self.dispatch_event(ApiCallFailed(endpoint=endpoint, error_type="RateLimitError", error_message=str(e)))
                    raise RateLimitError(attempts=state.attempt_count + 1, last_error=e) from e

                wait_s = self.compute_wait(e, state)
                state.transition(RetryPhase.BACKOFF)
                logger.warning(
                    f"Quota exhausted calling {endpoint} on attempt "
                    f"{state.attempt_count + 1}/{retries_allowed + 1}. Waiting {wait_s:.2f}s..."
                )
                self.dispatch_event(RetryScheduled(
                    endpoint=endpoint, attempt_number=state.attempt_count + 1,
                    delay_seconds=wait_s, reset_at=e.reset_at,
                ))
                await self._sleep(wait_s)
                state.attempt_count += 1
                continue
            except Exception as e:
                state.transition(RetryPhase.FAILED)
                logger.debug(f"Non-retryable error calling {endpoint}: {type(e).__name__}: {e}")
                self.dispatch_event(ApiCallFailed(endpoint=endpoint, error_type=type(e).__name__, error_message=str(e)))
                raise

            latency_ms = (time.perf_counter() - start_time) * 1000
            state.transition(RetryPhase.DONE)
            self.dispatch_event(ApiCallSucceeded(endpoint=endpoint, latency_ms=latency_ms))
            if cache_key and self.cache_service is not None:
                await self.cache_service.set(cache_key, result, ttl=effective_ttl)
            return result
