import logging
from datetime import datetime
from typing import Any, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.box import ROUNDED, HEAVY, SIMPLE
from rich.status import Status
from rich.text import Text
from rich.table import Table

from shiptracker.domain.interfaces.user_interface import UserInterface
from shiptracker.domain.models.common import RateLimitStatus
from shiptracker.domain.models.stats import FetchFailure, SortKey, UserStatistics

logger = logging.getLogger(__name__)

# Leaderboard columns in display order
COLUMN_TITLES = {
    SortKey.COMMITS_PER_DAY: "Commits/Day",
    SortKey.COMMITS_PER_WEEK: "Commits/Week",
    SortKey.WEEKLY_COMMITS: "Weekly",
    SortKey.MONTHLY_COMMITS: "Monthly",
    SortKey.TOTAL_COMMITS: "Total",
    SortKey.AVERAGE_COMMIT_SIZE: "Avg. Commit Size",
}

class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        """Initializes the rich Console."""
        self.console = console or Console()
        self._status: Optional[Status] = None

    def _toast(self, message: str, title: str, colour: str, box=SIMPLE) -> None:
        panel = Panel(
            Text(message, style="white"),
            title=f"[bold {colour}]{title}[/bold {colour}]",
            border_style=colour,
            box=box,
            padding=(0, 1)
        )
        self.console.print(panel)

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message in a distinct style.

        Args:
            error_message: The error message to display.
        """
        self._toast(error_message, "Error", "red", box=HEAVY)

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self._toast(info_message, "Info", "blue")

    def display_success(self, success_message: str, **kwargs: Any) -> None:
        self._toast(success_message, "Success", "green")

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message with enhanced styling.

        Args:
            warning_message: The warning message to display.
        """
        logger.debug(f"Display warning: {warning_message}")
        self._toast(warning_message, "Warning", "yellow", box=HEAVY)

    def display_leaderboard(
        self,
        users: Sequence[UserStatistics],
        sort_key: SortKey,
        descending: bool = True,
    ) -> None:
        """Renders the leaderboard as a table, one row per user.

        The active sort column carries an arrow; the contribution graph is
        shown as its image URL since a terminal cannot render it.
        """
        if not users:
            self.display_info("No users added yet. Add GitHub usernames to see the leaderboard.")
            return

        table = Table(show_header=True, box=ROUNDED, border_style="cyan", padding=(0, 1), title="Ship Tracker")
        table.add_column("#", style="cyan", justify="right")
        table.add_column("User", style="bold")
        for key, title in COLUMN_TITLES.items():
            if key == sort_key:
                title = f"{title} {'↓' if descending else '↑'}"
            table.add_column(title, justify="right", style="bold magenta" if key == sort_key else None)
        table.add_column("PRs", justify="right", style="dim")
        table.add_column("Repos", justify="right", style="dim")
        table.add_column("Contribution Graph", style="dim", overflow="fold")

        for rank, user in enumerate(users, 1):
            table.add_row(
                str(rank),
                Text(user.username, style=f"link https://github.com/{user.username}"),
                str(user.commits_per_day),
                str(user.commits_per_week),
                str(user.weekly_commits),
                str(user.monthly_commits),
                str(user.total_commits),
                f"{user.average_commit_size} LOC",
                str(user.pull_request_count),
                str(user.repository_count),
                Text(user.contribution_graph_url),
            )

        self.console.print("")
        self.console.print(table)
        self.console.print("")

    def display_failures(self, failures: Sequence[FetchFailure]) -> None:
        """Lists users whose stats could not be fetched."""
        if not failures:
            return
        table = Table(show_header=True, box=SIMPLE, border_style="red", padding=(0, 1), title="Failed users")
        table.add_column("User", style="bold red")
        table.add_column("Reason", style="white")
        table.add_column("Kind", style="dim")
        for failure in failures:
            # Handles and messages are user input, never markup
            table.add_row(Text(failure.username), Text(failure.error_message), Text(failure.kind.value))
        self.console.print(table)
        self.console.print("[dim]Use 'retry <user>' to try again or 'dismiss <user>' to remove it.[/dim]")

    def display_rate_limit(self, status: RateLimitStatus) -> None:
        reset = datetime.fromtimestamp(status["reset_at"]).strftime("%H:%M:%S")
        colour = "green" if status["remaining"] > 0 else "red"
        self.console.print(
            f"[bold]GitHub API quota:[/bold] [{colour}]{status['remaining']}[/{colour}]"
            f"/{status['limit']} remaining, resets at {reset}"
        )

    def display_progress(self, message: Optional[str] = None) -> None:
        """Starts a spinner, or stops it when called with no message."""
        if self._status is not None:
            self._status.stop()
            self._status = None
        if message:
            self._status = self.console.status(message, spinner="dots")
            self._status.start()

    def get_prompt(self, prompt_message: str = "> ") -> str:
        return self.console.input(f"[bold green]{prompt_message}[/bold green]")
