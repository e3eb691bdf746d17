"""Interface for the source-control hosting API.

Defines the remote calls the stats aggregator needs, so the aggregator can be
exercised against an in-memory fake and the HTTP client swapped out.
"""

import abc
from typing import List, Optional

# Import relevant domain models
from ..models.common import (
    CommitItem, ParticipationStats, RateLimitStatus, Repository,
    SearchQuery, SearchResult, UserProfile,
)


class GitHubApi(abc.ABC):
    """Abstract Base Class for GitHub REST API access.

    Implementations raise the errors from ``domain.models.errors``:
    NotFoundError for 404, QuotaExhaustedError when the remaining quota is
    zero, GitHubApiError for any other failure response and NetworkError for
    transport failures.
    """

    @abc.abstractmethod
    async def get_user(self, username: str) -> UserProfile:
        """Fetches the public profile for a handle."""
        pass

    @abc.abstractmethod
    async def list_repositories(
        self, username: str, per_page: int = 100, sort: str = "pushed"
    ) -> List[Repository]:
        """Lists repositories owned by a user, most recently pushed first."""
        pass

    @abc.abstractmethod
    async def search_commits(self, query: SearchQuery, per_page: int = 1) -> SearchResult:
        """Runs a commit search query."""
        pass

    @abc.abstractmethod
    async def list_commits(
        self,
        owner: str,
        repo: str,
        author: Optional[str] = None,
        per_page: int = 100,
        page: int = 1,
    ) -> List[CommitItem]:
        """Lists one page of a repository's commit history."""
        pass

    @abc.abstractmethod
    async def get_commit(self, owner: str, repo: str, sha: str) -> CommitItem:
        """Fetches a single commit including its line stats."""
        pass

    @abc.abstractmethod
    async def search_issues(self, query: SearchQuery, per_page: int = 1) -> SearchResult:
        """Runs an issue / pull-request search query."""
        pass

    @abc.abstractmethod
    async def get_participation_stats(self, owner: str, repo: str) -> ParticipationStats:
        """Weekly commit counts for the last year (all contributors and owner)."""
        pass

    @abc.abstractmethod
    async def get_rate_limit(self) -> RateLimitStatus:
        """Current core rate limit window."""
        pass
