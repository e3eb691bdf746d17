import pytest
from typer.testing import CliRunner
from typing import Any, Dict, List, Optional, Tuple

from shiptracker.domain.interfaces.github_api import GitHubApi
from shiptracker.domain.models.common import (
    ParticipationStats, RateLimitStatus, SearchResult, UserProfile, Username,
)
from shiptracker.domain.models.errors import NotFoundError
from shiptracker.domain.models.stats import UserStatistics
from shiptracker.infrastructure.cache.caching_service import InMemoryCacheService
from shiptracker.infrastructure.config.settings import clear_test_config
from shiptracker.infrastructure.resilience.api_retry import ApiRetryService


class FakeGitHubApi(GitHubApi):
    """In-memory GitHubApi that records every call.

    Unknown users raise NotFoundError. Errors placed in ``user_errors``,
    ``repos_error``, ``search_error``, ``issues_error`` or
    ``participation_errors`` are raised instead of answering.
    """

    def __init__(self):
        self.users: Dict[str, UserProfile] = {}
        self.user_errors: Dict[str, Exception] = {}
        self.repos: Dict[str, List[Dict[str, Any]]] = {}
        self.repos_error: Optional[Exception] = None
        self.commits: Dict[Tuple[str, str], List[Dict[str, Any]]] = {}
        self.commit_details: Dict[str, Dict[str, Any]] = {}
        self.search_totals: Dict[str, int] = {}
        self.search_error: Optional[Exception] = None
        self.issue_totals: Dict[str, int] = {}
        self.issues_error: Optional[Exception] = None
        self.participation: Dict[Tuple[str, str], ParticipationStats] = {}
        self.participation_errors: Dict[Tuple[str, str], Exception] = {}
        self.rate_limit = RateLimitStatus(limit=5000, remaining=4999, reset_at=1700000000.0)
        self.rate_limit_error: Optional[Exception] = None
        self.calls: List[Tuple[Any, ...]] = []
        self.closed = False

    def add_user(self, username: str, public_repos: int = 0, repos: Optional[List[str]] = None) -> None:
        self.users[username] = UserProfile({
            "login": username,
            "avatar_url": f"https://avatars.example/{username}",
            "public_repos": public_repos,
        })
        self.repos[username] = [{"name": name, "owner": {"login": username}} for name in (repos or [])]

    def calls_to(self, method: str) -> List[Tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == method]

    async def get_user(self, username):
        self.calls.append(("get_user", username))
        if username in self.user_errors:
            raise self.user_errors[username]
        if username not in self.users:
            raise NotFoundError("GitHub API error 404: Not Found")
        return self.users[username]

    async def list_repositories(self, username, per_page=100, sort="pushed"):
        self.calls.append(("list_repositories", username, per_page, sort))
        if self.repos_error is not None:
            raise self.repos_error
        return list(self.repos.get(username, []))

    async def search_commits(self, query, per_page=1):
        self.calls.append(("search_commits", query))
        if self.search_error is not None:
            raise self.search_error
        return SearchResult(total_count=self.search_totals.get(query, 0), items=[])

    async def list_commits(self, owner, repo, author=None, per_page=100, page=1):
        self.calls.append(("list_commits", owner, repo, author, per_page, page))
        items = self.commits.get((owner, repo), [])
        return items[(page - 1) * per_page:page * per_page]

    async def get_commit(self, owner, repo, sha):
        self.calls.append(("get_commit", owner, repo, sha))
        if sha not in self.commit_details:
            raise NotFoundError("GitHub API error 404: No commit found")
        return self.commit_details[sha]

    async def search_issues(self, query, per_page=1):
        self.calls.append(("search_issues", query))
        if self.issues_error is not None:
            raise self.issues_error
        return SearchResult(total_count=self.issue_totals.get(query, 0), items=[])

    async def get_participation_stats(self, owner, repo):
        self.calls.append(("get_participation_stats", owner, repo))
        if (owner, repo) in self.participation_errors:
            raise self.participation_errors[(owner, repo)]
        if (owner, repo) not in self.participation:
            raise NotFoundError("GitHub API error 404: Not Found")
        return self.participation[(owner, repo)]

    async def get_rate_limit(self):
        self.calls.append(("get_rate_limit",))
        if self.rate_limit_error is not None:
            raise self.rate_limit_error
        return self.rate_limit

    async def aclose(self):
        self.closed = True


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()

@pytest.fixture
def fake_github():
    return FakeGitHubApi()

@pytest.fixture
def sleeps():
    """Records every delay requested through the injected sleep."""
    return []

@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)
    return _sleep

@pytest.fixture
def cache_service():
    return InMemoryCacheService()

@pytest.fixture
def retry_service(cache_service, fake_sleep):
    """Retry executor with a real cache and a sleep that never waits."""
    return ApiRetryService(cache_service=cache_service, sleep=fake_sleep, clock=lambda: 1000.0)

@pytest.fixture
def make_stats():
    """Factory for UserStatistics records with overridable fields."""
    def _make(username: str, **overrides: Any) -> UserStatistics:
        values = dict(
            username=Username(username),
            avatar_url="",
            commit_count=0,
            pull_request_count=0,
            repository_count=0,
            commits_per_day=0,
            commits_per_week=0,
            weekly_commits=0,
            monthly_commits=0,
            total_commits=0,
            average_commit_size=0,
            contribution_graph_url=f"https://ghchart.rshah.org/{username}",
        )
        values.update(overrides)
        return UserStatistics(**values)
    return _make

@pytest.fixture(autouse=True)
def reset_test_config():
    """Ensures configuration overrides never leak between tests."""
    yield
    clear_test_config()
