"""Interface for interacting with the user (input/output).

Defines the contract for displaying notifications, the leaderboard and the
failed-users list, and for getting input from the user, allowing different
UI implementations (e.g., console, web).
"""

import abc
from typing import Any, Optional, Sequence

# Import relevant domain models
from shiptracker.domain.models.common import RateLimitStatus
from shiptracker.domain.models.stats import FetchFailure, SortKey, UserStatistics

class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user.

        Args:
            error_message: The error message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user.

        Args:
            warning_message: The warning message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user.

        Args:
            info_message: The informational message string.
            **kwargs: Additional arguments for formatting.
        """
        pass

    @abc.abstractmethod
    def display_success(self, success_message: str, **kwargs: Any) -> None:
        """Displays a success notification to the user."""
        pass

    @abc.abstractmethod
    def display_leaderboard(
        self,
        users: Sequence[UserStatistics],
        sort_key: SortKey,
        descending: bool = True,
    ) -> None:
        """Renders the (already sorted) leaderboard.

        Args:
            users: Accepted users in display order.
            sort_key: Column the rows are sorted by, highlighted in the header.
            descending: Sort direction, shown as an arrow.
        """
        pass

    @abc.abstractmethod
    def display_failures(self, failures: Sequence[FetchFailure]) -> None:
        """Renders the failed-users list with retry/dismiss hints."""
        pass

    @abc.abstractmethod
    def get_prompt(self, prompt_message: str = "> ") -> str:
        """Gets input from the user synchronously.

        Note: For async contexts, the caller should wrap this in asyncio.to_thread.

        Args:
            prompt_message: The message to display before the input prompt.

        Returns:
            The user's input.
        """
        pass

    def display_rate_limit(self, status: RateLimitStatus) -> None:
        """Displays the current API quota window.

        Args:
            status: Limit, remaining requests and reset timestamp.
        """
        self.display_info(
            f"Rate limit: {status['remaining']}/{status['limit']} remaining"
        )

    def display_progress(self, message: Optional[str] = None) -> None:
        """Displays a 'working' indicator while requests are in flight."""
        pass
