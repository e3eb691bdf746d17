"""Domain models for per-user commit statistics and fetch outcomes."""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from .common import Username


class FailureKind(str, Enum):
    """Why aggregation failed for a username."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    API_ERROR = "api_error"
    NETWORK = "network"


class SortKey(str, Enum):
    """Leaderboard columns that can be sorted on."""
    COMMITS_PER_DAY = "commits_per_day"
    COMMITS_PER_WEEK = "commits_per_week"
    WEEKLY_COMMITS = "weekly_commits"
    MONTHLY_COMMITS = "monthly_commits"
    TOTAL_COMMITS = "total_commits"
    AVERAGE_COMMIT_SIZE = "average_commit_size"


@dataclass(frozen=True)
class UserStatistics:
    """Normalized statistics record for one GitHub user."""
    username: Username
    avatar_url: str
    commit_count: int
    pull_request_count: int
    repository_count: int
    commits_per_day: int
    commits_per_week: int
    weekly_commits: int
    monthly_commits: int
    total_commits: int
    average_commit_size: int
    contribution_graph_url: str

    def sort_value(self, key: SortKey) -> int:
        return getattr(self, key.value)


@dataclass(frozen=True)
class FetchSuccess:
    stats: UserStatistics

    @property
    def username(self) -> Username:
        return self.stats.username


@dataclass(frozen=True)
class FetchFailure:
    """A username whose aggregation failed, with a user-facing message."""
    username: Username
    error_message: str
    kind: FailureKind = FailureKind.API_ERROR


FetchResult = Union[FetchSuccess, FetchFailure]


@dataclass(frozen=True)
class AddUsersSummary:
    """Tally returned to the caller of add_users."""
    success_count: int = 0
    error_count: int = 0
    nothing_to_do: bool = False

    @property
    def all_failed(self) -> bool:
        return self.error_count > 0 and self.success_count == 0
