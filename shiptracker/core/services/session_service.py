"""Interactive leaderboard session.

Keeps the leaderboard in memory across commands so users can add, import,
retry, dismiss and re-sort without restarting the process.
"""

import logging
import asyncio
import shlex
from pathlib import Path
from typing import List

from shiptracker.core.command_handler import CommandHandler
from shiptracker.domain.interfaces.user_interface import UserInterface
from shiptracker.domain.models.stats import SortKey

logger = logging.getLogger(__name__)

HELP_TEXT = """
Available commands:
- add <user> [<user> ...]   Add one or more GitHub users
- import <file.csv>         Bulk import usernames from a CSV file
- retry <user>              Fetch a failed user again
- dismiss <user>            Remove a user from the failed list
- sort <column>             Sort by column (again to flip direction)
                            columns: day, week, weekly, monthly, total, size
- show                      Show the leaderboard
- failed                    Show failed users
- ratelimit                 Show the remaining GitHub API quota
- clearcache                Drop cached GitHub responses
- help                     Show this help message
- exit or quit              End the session
"""

SORT_ALIASES = {
    "day": SortKey.COMMITS_PER_DAY,
    "week": SortKey.COMMITS_PER_WEEK,
    "weekly": SortKey.WEEKLY_COMMITS,
    "monthly": SortKey.MONTHLY_COMMITS,
    "total": SortKey.TOTAL_COMMITS,
    "size": SortKey.AVERAGE_COMMIT_SIZE,
}


def parse_sort_key(value: str) -> SortKey:
    """Accepts a short alias or a full SortKey value."""
    value = value.strip().lower()
    if value in SORT_ALIASES:
        return SORT_ALIASES[value]
    return SortKey(value)


class SessionService:
    """Runs the read-eval loop on top of a CommandHandler."""

    def __init__(self, handler: CommandHandler, ui: UserInterface):
        self.handler = handler
        self.ui = ui

    async def run(self) -> None:
        """Runs the main asynchronous loop until the user quits."""
        self.ui.display_info("Ship Tracker interactive session. Type 'help' for commands.")
        while True:
            try:
                line = await asyncio.to_thread(self.ui.get_prompt, "shiptracker> ")
            except (EOFError, KeyboardInterrupt):
                logger.info("Session input closed by user.")
                break

            try:
                if not await self.dispatch(line):
                    break
            except KeyboardInterrupt:
                self.ui.display_info("Interrupted.")
            except Exception as e:
                logger.error(f"Unexpected error handling {line!r}: {e}", exc_info=True)
                self.ui.display_error(f"An unexpected error occurred: {e}")

        self.ui.display_info("Ending session.")

    async def dispatch(self, line: str) -> bool:
        """Executes one command line. Returns False when the session should end."""
        try:
            parts: List[str] = shlex.split(line)
        except ValueError as e:
            self.ui.display_error(f"Could not parse command: {e}")
            return True
        if not parts:
            return True

        command, args = parts[0].lower(), parts[1:]
        logger.debug(f"Session command: {command} {args}")

        if command in ("exit", "quit"):
            return False
        if command in ("help", "?"):
            self.ui.display_info(HELP_TEXT)
        elif command == "add":
            await self.handler.handle_add(args)
            self.handler.show_leaderboard()
        elif command == "import":
            if len(args) != 1:
                self.ui.display_error("Usage: import <file.csv>")
                return True
            await self.handler.handle_import_csv(Path(args[0]).expanduser())
            self.handler.show_leaderboard()
        elif command == "retry":
            if not args:
                self.ui.display_error("Usage: retry <user>")
                return True
            for username in args:
                await self.handler.handle_retry(username)
            self.handler.show_leaderboard()
        elif command == "dismiss":
            for username in args:
                self.handler.handle_dismiss(username)
        elif command == "sort":
            if len(args) != 1:
                self.ui.display_error("Usage: sort <day|week|weekly|monthly|total|size>")
                return True
            try:
                self.handler.set_sort(parse_sort_key(args[0]))
            except ValueError:
                self.ui.display_error(f"Unknown sort column: {args[0]}")
                return True
            self.handler.show_leaderboard()
        elif command == "show":
            self.handler.show_leaderboard()
        elif command == "failed":
            failures = self.handler.leaderboard_service.failed
            if failures:
                self.ui.display_failures(failures)
            else:
                self.ui.display_info("No failed users.")
        elif command == "ratelimit":
            await self.handler.handle_rate_limit()
        elif command == "clearcache":
            await self.handler.handle_clear_cache()
        else:
            self.ui.display_error(f"Unknown command: {command}. Type 'help' for commands.")
        return True
