"""Core service that owns the leaderboard and the failed-users list.

Receives usernames from the command handler, skips names that are already
known, runs the StatsService for the rest and files each outcome as either an
accepted UserStatistics or a FetchFailure. One failing username never aborts
the others.
"""

import logging
import asyncio
from typing import Any, List, Optional, Sequence

from shiptracker.core.services.stats_service import StatsService
from shiptracker.domain.models.common import Username
from shiptracker.domain.models.errors import failure_kind_for
from shiptracker.domain.models.stats import (
    AddUsersSummary, FetchFailure, FetchResult, FetchSuccess, SortKey, UserStatistics,
)
from shiptracker.infrastructure.resilience.api_retry import SleepFn
from shiptracker.infrastructure.resilience.batch_executor import BatchExecutor, DEFAULT_BATCH_SIZE

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_DELAY_S = 0.5


class LeaderboardService:
    """Orchestrates adding users and keeps the accepted and failed lists."""

    def __init__(
        self,
        stats_service: StatsService,
        batch_executor: BatchExecutor,
        request_delay_s: float = DEFAULT_REQUEST_DELAY_S,
        sleep: SleepFn = asyncio.sleep,
    ):
        """Initializes the LeaderboardService with its dependencies.

        Args:
            stats_service: Aggregator producing one FetchResult per username.
            batch_executor: Used for bulk (CSV) imports.
            request_delay_s: Pause between users in one-at-a-time mode.
            sleep: Awaitable sleep; injected so tests never wait on the wall clock.
        """
        self.stats_service = stats_service
        self.batch_executor = batch_executor
        self.request_delay_s = request_delay_s
        self._sleep = sleep
        self.accepted: List[UserStatistics] = []
        self.failed: List[FetchFailure] = []

    def _known(self, username: str) -> bool:
        return any(u.username == username for u in self.accepted) or any(
            f.username == username for f in self.failed
        )

    def pending_usernames(self, usernames: Sequence[str]) -> List[str]:
        """Names not yet accepted or failed, duplicates dropped, order kept.

        Matching is exact and case-sensitive on the string as given.
        """
        pending: List[str] = []
        for username in usernames:
            if username in pending or self._known(username):
                continue
            pending.append(username)
        return pending

    async def add_users(
        self,
        usernames: Sequence[str],
        bulk: bool = False,
        batch_size: int = DEFAULT_BATCH_SIZE,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> AddUsersSummary:
        """Fetches statistics for new usernames and files the outcomes.

        Args:
            usernames: Names as entered or imported.
            bulk: Run through the BatchExecutor instead of one at a time.
            batch_size: Concurrency for bulk mode.
            cancel_event: Bulk mode only; stops batches that have not started.

        Returns:
            Success and error tallies; ``nothing_to_do`` when every name was
            already known.
        """
        pending = self.pending_usernames(usernames)
        skipped = len(usernames) - len(pending)
        if skipped:
            logger.info(f"Skipping {skipped} username(s) already on the leaderboard or failed list.")
        if not pending:
            return AddUsersSummary(nothing_to_do=True)

        logger.info(f"Adding {len(pending)} user(s) ({'bulk' if bulk else 'sequential'} mode).")
        if bulk:
            results = await self._fetch_bulk(pending, batch_size, cancel_event)
        else:
            results = await self._fetch_sequential(pending)

        success_count = 0
        error_count = 0
        for result in results:
            if isinstance(result, FetchSuccess):
                self.accepted.append(result.stats)
                success_count += 1
            else:
                self.failed.append(result)
                error_count += 1

        logger.info(f"Added users: {success_count} succeeded, {error_count} failed.")
        return AddUsersSummary(success_count=success_count, error_count=error_count)

    async def _fetch_sequential(self, usernames: Sequence[str]) -> List[FetchResult]:
        results: List[FetchResult] = []
        for index, username in enumerate(usernames):
            if index > 0:
                await self._sleep(self.request_delay_s)
            results.append(await self.stats_service.fetch_user_stats(username))
        return results

    async def _fetch_bulk(
        self, usernames: Sequence[str], batch_size: int, cancel_event: Optional[asyncio.Event]
    ) -> List[FetchResult]:
        outcomes = await self.batch_executor.execute_in_batches(
            [lambda u=username: self.stats_service.fetch_user_stats(u) for username in usernames],
            batch_size=batch_size,
            cancel_event=cancel_event,
        )
        return [self._to_result(username, outcome) for username, outcome in zip(usernames, outcomes)]

    @staticmethod
    def _to_result(username: str, outcome: Any) -> FetchResult:
        if isinstance(outcome, (FetchSuccess, FetchFailure)):
            return outcome
        if isinstance(outcome, BaseException):
            return FetchFailure(Username(username), str(outcome) or type(outcome).__name__, failure_kind_for(outcome))
        return FetchFailure(Username(username), f"Unexpected result type {type(outcome).__name__}")

    async def retry_user(self, username: str) -> AddUsersSummary:
        """Drops any recorded failure for ``username`` and fetches it again."""
        self.dismiss_failure(username)
        return await self.add_users([username])

    def dismiss_failure(self, username: str) -> bool:
        """Removes ``username`` from the failed list; returns whether it was there."""
        before = len(self.failed)
        self.failed = [f for f in self.failed if f.username != username]
        return len(self.failed) != before

    def leaderboard(self, sort_key: SortKey = SortKey.COMMITS_PER_WEEK, descending: bool = True) -> List[UserStatistics]:
        """Accepted users sorted by ``sort_key``."""
        return sorted(self.accepted, key=lambda u: u.sort_value(sort_key), reverse=descending)
