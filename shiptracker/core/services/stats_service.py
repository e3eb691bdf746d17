"""Core service that aggregates GitHub activity into one statistics record.

Combines profile, repository listing, commit history or commit search,
commit detail sampling and pull-request search into a UserStatistics. Every
remote step goes through the ApiRetryService with its own cache key and TTL.

Only handle validation and the profile lookup can fail the aggregation.
Later steps degrade to empty or zero values, so a user with restricted
repositories still gets a best-effort record.

Two strategies are used depending on repository count:

* detailed (<= 5 repositories): page through each repository's commits by
  the user and bucket them by commit date.
* efficient (> 5 repositories): three commit search queries. When search is
  unavailable (e.g. secondary rate limit), participation stats of the 10 most
  recently pushed repositories are summed and scaled by
  ``repository_count / sample_size``. The scaled figure is an estimate.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, List, Optional, Sequence, Tuple

from shiptracker.domain.interfaces.github_api import GitHubApi
from shiptracker.domain.models.common import (
    CacheKey, Repository, SearchQuery, UserProfile, Username, make_cache_key,
)
from shiptracker.domain.models.errors import (
    NotFoundError, RateLimitError, ShipTrackerError, failure_kind_for,
)
from shiptracker.domain.models.stats import (
    FailureKind, FetchFailure, FetchResult, FetchSuccess, UserStatistics,
)
from shiptracker.infrastructure.resilience.api_retry import ApiRetryService
from shiptracker.utils.handles import handle_error

logger = logging.getLogger(__name__)

DEFAULT_GRAPH_BASE_URL = "https://ghchart.rshah.org"

DETAILED_STRATEGY_MAX_REPOS = 5
MAX_COMMIT_PAGES = 5
COMMITS_PER_PAGE = 100
PARTICIPATION_SAMPLE_SIZE = 10
COMMIT_SIZE_SAMPLE_REPOS = 4
COMMIT_SIZE_SAMPLE_COMMITS = 10

# Cache TTLs in seconds
PROFILE_TTL = 10 * 60
REPOS_TTL = 10 * 60
COMMITS_TTL = 5 * 60
SEARCH_TTL = 5 * 60
PULL_REQUESTS_TTL = 5 * 60
COMMIT_DETAIL_TTL = 60 * 60
PARTICIPATION_TTL = 60 * 60


@dataclass
class CommitCounts:
    weekly: int = 0
    monthly: int = 0
    total: int = 0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_average_commit_size(additions: Sequence[int], deletions: Sequence[int]) -> int:
    """Average changed lines per commit, ignoring commits with no reported change."""
    changes = [a + d for a, d in zip(additions, deletions) if a + d > 0]
    if not changes:
        return 0
    return round_half_up(sum(changes) / len(changes))


def _repo_coords(repo: Repository, default_owner: str) -> Tuple[str, str]:
    owner = (repo.get("owner") or {}).get("login") or default_owner
    return owner, repo.get("name", "")


def _commit_date(commit: Any) -> Optional[datetime]:
    raw = ((commit.get("commit") or {}).get("author") or {}).get("date")
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparsable commit date: {raw!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class StatsService:
    """Fetches and normalizes commit statistics for a single username."""

    def __init__(
        self,
        github_api: GitHubApi,
        retry_service: ApiRetryService,
        graph_base_url: str = DEFAULT_GRAPH_BASE_URL,
        sample_commit_size: bool = True,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """Initializes the StatsService with its dependencies.

        Args:
            github_api: Remote API implementation.
            retry_service: Executor wrapping every call with cache and retries.
            graph_base_url: Contribution graph image service root.
            sample_commit_size: Whether to sample commit details for the
                average commit size (costs up to 44 extra calls per user).
            now: Returns the current aware datetime; injectable for tests.
        """
        self.github_api = github_api
        self.retry_service = retry_service
        self.graph_base_url = graph_base_url.rstrip("/")
        self.sample_commit_size = sample_commit_size
        self._now = now

    async def _call(self, request_fn: Callable[[], Awaitable[Any]], cache_key: CacheKey, ttl: float) -> Any:
        return await self.retry_service.execute_with_retry(
            request_fn, cache_key=cache_key, ttl=ttl, endpoint_name=cache_key,
        )

    async def fetch_user_stats(self, username: str) -> FetchResult:
        """Aggregates statistics for ``username``.

        Never raises: every outcome is either a FetchSuccess or a FetchFailure
        whose kind tells validation, not-found, rate-limit, network and
        generic API failures apart.
        """
        reason = handle_error(username)
        if reason:
            logger.info(f"Rejected invalid username {username!r}: {reason}")
            return FetchFailure(Username(username), reason, FailureKind.VALIDATION)

        logger.info(f"Fetching statistics for GitHub user: {username}")
        try:
            stats = await self._aggregate(Username(username))
        except NotFoundError:
            return FetchFailure(Username(username), f"GitHub user '{username}' not found", FailureKind.NOT_FOUND)
        except RateLimitError as e:
            return FetchFailure(
                Username(username),
                f"GitHub API rate limit exceeded while fetching '{username}' ({e.attempts} attempts). Try again later.",
                FailureKind.RATE_LIMITED,
            )
        except ShipTrackerError as e:
            return FetchFailure(Username(username), f"Failed to fetch '{username}': {e}", failure_kind_for(e))
        except Exception as e:
            logger.error(f"Unexpected error aggregating stats for {username}: {e}", exc_info=True)
            return FetchFailure(Username(username), f"Unexpected error fetching '{username}': {e}", FailureKind.API_ERROR)

        logger.info(
            f"Fetched {username}: total={stats.total_commits}, monthly={stats.monthly_commits}, "
            f"weekly={stats.weekly_commits}, repos={stats.repository_count}"
        )
        return FetchSuccess(stats)

    async def _aggregate(self, username: Username) -> UserStatistics:
        # Only this step is allowed to fail the aggregation
        profile: UserProfile = await self._call(
            lambda: self.github_api.get_user(username),
            make_cache_key("profile", username), PROFILE_TTL,
        )

        repos = await self._fetch_repositories(username)
        repository_count = max(len(repos), int(profile.get("public_repos") or 0))

        if repository_count <= DETAILED_STRATEGY_MAX_REPOS:
            logger.debug(f"{username}: {repository_count} repositories, using detailed strategy")
            counts = await self._detailed_counts(username, repos)
        else:
            logger.debug(f"{username}: {repository_count} repositories, using efficient strategy")
            counts = await self._efficient_counts(username, repos, repository_count)

        average_commit_size = 0
        if self.sample_commit_size:
            average_commit_size = await self._average_commit_size(username, repos)

        pull_request_count = await self._pull_request_count(username)

        return UserStatistics(
            username=username,
            avatar_url=str(profile.get("avatar_url") or ""),
            commit_count=counts.total,
            pull_request_count=pull_request_count,
            repository_count=repository_count,
            commits_per_day=round_half_up(counts.weekly / 7),
            commits_per_week=counts.weekly,
            weekly_commits=counts.weekly,
            monthly_commits=counts.monthly,
            total_commits=counts.total,
            average_commit_size=average_commit_size,
            contribution_graph_url=f"{self.graph_base_url}/{username}",
        )

    async def _fetch_repositories(self, username: Username) -> List[Repository]:
        try:
            return await self._call(
                lambda: self.github_api.list_repositories(username, per_page=100, sort="pushed"),
                make_cache_key("repos", username, "pushed", 100), REPOS_TTL,
            )
        except ShipTrackerError as e:
            logger.warning(f"Could not list repositories for {username}, continuing without them: {e}")
            return []

    # --- Detailed strategy ---

    async def _detailed_counts(self, username: Username, repos: Sequence[Repository]) -> CommitCounts:
        counts = CommitCounts()
        now = self._now()
        week_ago = now - timedelta(days=7)
        month_ago = now - timedelta(days=30)

        for repo in repos:
            owner, name = _repo_coords(repo, username)
            try:
                dates = await self._commit_dates(username, owner, name)
            except ShipTrackerError as e:
                logger.debug(f"Skipping {owner}/{name} for {username}: {e}")
                continue
            for date in dates:
                counts.total += 1
                if date >= month_ago:
                    counts.monthly += 1
                if date >= week_ago:
                    counts.weekly += 1
        return counts

    async def _commit_dates(self, username: Username, owner: str, name: str) -> List[datetime]:
        dates: List[datetime] = []
        for page in range(1, MAX_COMMIT_PAGES + 1):
            items = await self._call(
                lambda p=page: self.github_api.list_commits(
                    owner, name, author=username, per_page=COMMITS_PER_PAGE, page=p,
                ),
                make_cache_key("commits", owner, name, username, COMMITS_PER_PAGE, page), COMMITS_TTL,
            )
            dates.extend(d for d in (_commit_date(c) for c in items) if d is not None)
            if len(items) < COMMITS_PER_PAGE:
                break
        return dates

    # --- Efficient strategy ---

    async def _efficient_counts(
        self, username: Username, repos: Sequence[Repository], repository_count: int
    ) -> CommitCounts:
        try:
            return await self._search_counts(username)
        except ShipTrackerError as e:
            logger.info(f"Commit search unavailable for {username} ({e}); sampling participation stats")
        return await self._sampled_counts(username, repos, repository_count)

    async def _search_total(self, query: str) -> int:
        result = await self._call(
            lambda: self.github_api.search_commits(SearchQuery(query), per_page=1),
            make_cache_key("search-commits", query), SEARCH_TTL,
        )
        return int(result.get("total_count", 0))

    async def _search_counts(self, username: Username) -> CommitCounts:
        now = self._now()
        month_start = (now - timedelta(days=30)).date().isoformat()
        week_start = (now - timedelta(days=7)).date().isoformat()
        return CommitCounts(
            total=await self._search_total(f"author:{username}"),
            monthly=await self._search_total(f"author:{username} author-date:>{month_start}"),
            weekly=await self._search_total(f"author:{username} author-date:>{week_start}"),
        )

    async def _sampled_counts(
        self, username: Username, repos: Sequence[Repository], repository_count: int
    ) -> CommitCounts:
        sampled = CommitCounts()
        sample_size = 0
        for repo in repos[:PARTICIPATION_SAMPLE_SIZE]:
            owner, name = _repo_coords(repo, username)
            try:
                stats = await self._call(
                    lambda o=owner, n=name: self.github_api.get_participation_stats(o, n),
                    make_cache_key("participation", owner, name), PARTICIPATION_TTL,
                )
            except ShipTrackerError as e:
                logger.debug(f"No participation stats for {owner}/{name}: {e}")
                continue
            weeks = list(stats.get("owner") or [])
            sample_size += 1
            if weeks:
                sampled.weekly += weeks[-1]
                sampled.monthly += sum(weeks[-4:])
                sampled.total += sum(weeks)

        if sample_size == 0:
            logger.info(f"No repositories could be sampled for {username}; reporting zero commits")
            return CommitCounts()

        scale = repository_count / sample_size
        logger.debug(f"{username}: extrapolating {sample_size} sampled repositories by x{scale:.2f}")
        return CommitCounts(
            weekly=round_half_up(sampled.weekly * scale),
            monthly=round_half_up(sampled.monthly * scale),
            total=round_half_up(sampled.total * scale),
        )

    # --- Optional extras ---

    async def _average_commit_size(self, username: Username, repos: Sequence[Repository]) -> int:
        additions: List[int] = []
        deletions: List[int] = []
        for repo in repos[:COMMIT_SIZE_SAMPLE_REPOS]:
            owner, name = _repo_coords(repo, username)
            try:
                commits = await self._call(
                    lambda o=owner, n=name: self.github_api.list_commits(
                        o, n, author=username, per_page=COMMIT_SIZE_SAMPLE_COMMITS, page=1,
                    ),
                    make_cache_key("commits", owner, name, username, COMMIT_SIZE_SAMPLE_COMMITS, 1), COMMITS_TTL,
                )
            except ShipTrackerError as e:
                logger.debug(f"Could not sample commits in {owner}/{name}: {e}")
                continue

            for commit in commits[:COMMIT_SIZE_SAMPLE_COMMITS]:
                sha = commit.get("sha")
                if not sha:
                    continue
                try:
                    detail = await self._call(
                        lambda o=owner, n=name, s=sha: self.github_api.get_commit(o, n, s),
                        make_cache_key("commit", owner, name, sha), COMMIT_DETAIL_TTL,
                    )
                except ShipTrackerError as e:
                    logger.debug(f"Could not fetch commit {owner}/{name}@{sha}: {e}")
                    continue
                stats = detail.get("stats") or {}
                additions.append(int(stats.get("additions") or 0))
                deletions.append(int(stats.get("deletions") or 0))

        return calculate_average_commit_size(additions, deletions)

    async def _pull_request_count(self, username: Username) -> int:
        query = f"author:{username} type:pr"
        try:
            result = await self._call(
                lambda: self.github_api.search_issues(SearchQuery(query), per_page=1),
                make_cache_key("search-issues", query), PULL_REQUESTS_TTL,
            )
        except ShipTrackerError as e:
            logger.info(f"Could not count pull requests for {username}, defaulting to 0: {e}")
            return 0
        return int(result.get("total_count", 0))
