"""Command Handler: Orchestrates CLI command execution.

Receives commands from the main entry point (main.py) or the interactive
session and delegates the work to the LeaderboardService, the CSV importer
and the GitHub client. Turns the results into user notifications.
"""

import csv
import logging
import asyncio
import signal
from pathlib import Path
from typing import Optional, Sequence

from shiptracker.core.services.csv_import_service import load_usernames_csv
from shiptracker.core.services.leaderboard_service import LeaderboardService
from shiptracker.domain.interfaces.cache import CacheService
from shiptracker.domain.interfaces.github_api import GitHubApi
from shiptracker.domain.interfaces.user_interface import UserInterface
from shiptracker.domain.models.errors import ShipTrackerError
from shiptracker.domain.models.stats import AddUsersSummary, SortKey
from shiptracker.infrastructure.resilience.api_retry import ApiRetryService
from shiptracker.infrastructure.resilience.batch_executor import DEFAULT_BATCH_SIZE

logger = logging.getLogger(__name__)

class CommandHandler:
    """Handles incoming commands and delegates to appropriate services."""

    def __init__(
        self,
        leaderboard_service: LeaderboardService,
        github_api: GitHubApi,
        retry_service: ApiRetryService,
        cache_service: CacheService,
        ui: UserInterface,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        """Initializes the CommandHandler with required services."""
        self.leaderboard_service = leaderboard_service
        self.github_api = github_api
        self.retry_service = retry_service
        self.cache_service = cache_service
        self.ui = ui
        self.batch_size = batch_size
        self.sort_key = SortKey.COMMITS_PER_WEEK
        self.descending = True
        self.cancel_event: Optional[asyncio.Event] = None

    def notify_summary(self, summary: AddUsersSummary) -> None:
        """Surfaces an add_users tally as a notification."""
        if summary.nothing_to_do:
            self.ui.display_info("All of these users are already on the leaderboard or the failed list.")
        elif summary.all_failed:
            self.ui.display_error(
                f"Failed to fetch data for all {summary.error_count} user(s). See the failed users list."
            )
        elif summary.error_count:
            self.ui.display_warning(
                f"Added {summary.success_count} user(s); {summary.error_count} could not be fetched."
            )
        else:
            self.ui.display_success(f"Added {summary.success_count} user(s) to the leaderboard.")

    def show_leaderboard(self) -> None:
        self.ui.display_leaderboard(
            self.leaderboard_service.leaderboard(self.sort_key, self.descending),
            self.sort_key,
            self.descending,
        )
        self.ui.display_failures(self.leaderboard_service.failed)

    def set_sort(self, sort_key: SortKey, descending: Optional[bool] = None) -> None:
        """Selects the sort column; picking the active column again flips direction."""
        if descending is not None:
            self.descending = descending
        elif sort_key == self.sort_key:
            self.descending = not self.descending
        else:
            self.descending = True
        self.sort_key = sort_key

    async def handle_add(self, usernames: Sequence[str]) -> AddUsersSummary:
        """Handles adding users one at a time (manual entry)."""
        cleaned = [u.strip() for u in usernames if u and u.strip()]
        logger.info(f"Handling 'add' command for {len(cleaned)} username(s)")
        if not cleaned:
            self.ui.display_warning("No usernames given.")
            return AddUsersSummary(nothing_to_do=True)

        self.ui.display_progress(f"Fetching GitHub data for {len(cleaned)} user(s)...")
        try:
            summary = await self.leaderboard_service.add_users(cleaned)
        finally:
            self.ui.display_progress(None)
        self.notify_summary(summary)
        return summary

    async def handle_import_csv(self, path: Path, batch_size: Optional[int] = None) -> AddUsersSummary:
        """Handles a bulk import from a CSV file.

        Interrupting (Ctrl+C) during the import stops batches that have not
        started yet; requests already in flight finish normally.
        """
        logger.info(f"Handling 'import-csv' command for file: {path}")
        try:
            parsed = load_usernames_csv(path)
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            logger.error(f"Failed to read CSV {path}: {e}", exc_info=True)
            self.ui.display_error(f"Could not read CSV file: {e}")
            return AddUsersSummary()

        if parsed.invalid_rows_message:
            self.ui.display_warning(parsed.invalid_rows_message)
        if not parsed.usernames:
            self.ui.display_warning("No valid usernames found in CSV.")
            return AddUsersSummary(nothing_to_do=True)

        self.cancel_event = asyncio.Event()
        interrupt_installed = self._install_interrupt_handler(self.cancel_event)
        self.ui.display_progress(f"Importing {len(parsed.usernames)} user(s) from {path.name}...")
        try:
            summary = await self.leaderboard_service.add_users(
                parsed.usernames,
                bulk=True,
                batch_size=batch_size or self.batch_size,
                cancel_event=self.cancel_event,
            )
        finally:
            self.ui.display_progress(None)
            if interrupt_installed:
                asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
            self.cancel_event = None
        self.notify_summary(summary)
        return summary

    @staticmethod
    def _install_interrupt_handler(cancel_event: asyncio.Event) -> bool:
        try:
            asyncio.get_running_loop().add_signal_handler(signal.SIGINT, cancel_event.set)
        except (NotImplementedError, RuntimeError, ValueError):
            # Not supported on this platform / not the main thread
            return False
        return True

    def cancel_import(self) -> None:
        """Stops pending batches of the running import, if any."""
        if self.cancel_event is not None:
            self.cancel_event.set()

    async def handle_retry(self, username: str) -> AddUsersSummary:
        logger.info(f"Handling 'retry' command for: {username}")
        summary = await self.leaderboard_service.retry_user(username)
        self.notify_summary(summary)
        return summary

    def handle_dismiss(self, username: str) -> None:
        if self.leaderboard_service.dismiss_failure(username):
            self.ui.display_info(f"Dismissed '{username}'.")
        else:
            self.ui.display_warning(f"'{username}' is not in the failed users list.")

    async def handle_rate_limit(self) -> None:
        """Handles the 'rate-limit' command. Never cached."""
        logger.info("Handling 'rate-limit' command")
        try:
            status = await self.retry_service.execute_with_retry(
                self.github_api.get_rate_limit, max_retries=0, endpoint_name="rate_limit",
            )
        except ShipTrackerError as e:
            logger.error(f"Failed to check rate limit: {e}", exc_info=True)
            self.ui.display_error(f"Failed to check rate limit status: {e}")
            return
        self.ui.display_rate_limit(status)

    async def handle_clear_cache(self) -> None:
        """Handles the 'clear-cache' command."""
        logger.info("Handling 'clear-cache' command")
        await self.cache_service.clear()
        self.ui.display_info("Response cache cleared.")
