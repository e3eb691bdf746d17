"""Runs many independent requests in bounded, paced batches.

Requests inside a batch run concurrently through the ApiRetryService; one
failure never cancels its siblings. Batches run strictly one after another
with a fixed pause in between to smooth the aggregate request rate.
"""

import logging
import asyncio
from typing import Any, List, Optional, Sequence, Union

from shiptracker.domain.events.api_events import BatchCompleted
from shiptracker.domain.models.errors import BatchCancelledError
from shiptracker.infrastructure.resilience.api_retry import ApiRetryService, RequestFn, SleepFn

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_PAUSE_S = 1.0


class BatchExecutor:
    """Settles every request and returns outcomes in input order."""

    def __init__(
        self,
        retry_service: ApiRetryService,
        pause_s: float = DEFAULT_BATCH_PAUSE_S,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.retry_service = retry_service
        self.pause_s = pause_s
        self._sleep = sleep

    async def execute_in_batches(
        self,
        request_fns: Sequence[RequestFn],
        batch_size: int = DEFAULT_BATCH_SIZE,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> List[Union[Any, BaseException]]:
        """Executes requests in consecutive groups of ``batch_size``.

        Args:
            request_fns: Async zero-argument callables.
            batch_size: Maximum number of requests in flight at once.
            cancel_event: Once set, batches that have not started yet are
                skipped and their slots hold a BatchCancelledError. Requests
                already in flight are not interrupted.

        Returns:
            One entry per input, in input order: the value, or the exception
            the request ended with.
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        results: List[Union[Any, BaseException]] = []
        total = len(request_fns)

        for batch_index, start in enumerate(range(0, total, batch_size)):
            batch = request_fns[start:start + batch_size]

            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Batch run cancelled; skipping {total - start} pending request(s).")
                results.extend(BatchCancelledError("Cancelled before the batch started") for _ in range(total - start))
                break

            logger.debug(f"Starting batch {batch_index + 1} ({len(batch)} request(s)).")
            outcomes = await asyncio.gather(
                *(self.retry_service.execute_with_retry(fn) for fn in batch),
                return_exceptions=True,
            )
            failures = sum(1 for o in outcomes if isinstance(o, BaseException))
            self.retry_service.dispatch_event(BatchCompleted(batch_index=batch_index, size=len(batch), failures=failures))
            results.extend(outcomes)

            if start + batch_size < total:
                await self._sleep(self.pause_s)

        return results
