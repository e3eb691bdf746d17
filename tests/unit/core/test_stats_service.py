import pytest
from datetime import datetime, timezone

from shiptracker.core.services.stats_service import (
    StatsService, calculate_average_commit_size, round_half_up,
)
from shiptracker.domain.models.errors import GitHubApiError, QuotaExhaustedError
from shiptracker.domain.models.stats import FailureKind, FetchFailure, FetchSuccess

NOW = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)
MONTH_QUERY = "author:{u} author-date:>2024-05-31"
WEEK_QUERY = "author:{u} author-date:>2024-06-23"


def commit(date: str, sha: str = "") -> dict:
    return {"sha": sha, "commit": {"author": {"date": date}}}

@pytest.fixture
def stats_service(fake_github, retry_service):
    return StatsService(
        github_api=fake_github,
        retry_service=retry_service,
        sample_commit_size=False,
        now=lambda: NOW,
    )

@pytest.mark.asyncio
@pytest.mark.parametrize("username", ["_", "-alice", "alice-", "a" * 40, "", "bad_name", "alice\n"])
async def test_invalid_username_makes_no_calls(stats_service: StatsService, fake_github, username):
    result = await stats_service.fetch_user_stats(username)

    assert isinstance(result, FetchFailure)
    assert result.kind == FailureKind.VALIDATION
    assert fake_github.calls == []

@pytest.mark.asyncio
async def test_unknown_user_is_not_found(stats_service: StatsService):
    result = await stats_service.fetch_user_stats("ghost")

    assert isinstance(result, FetchFailure)
    assert result.kind == FailureKind.NOT_FOUND
    assert result.error_message == "GitHub user 'ghost' not found"

@pytest.mark.asyncio
async def test_profile_rate_limit_is_reported(stats_service: StatsService, fake_github, sleeps):
    fake_github.user_errors["alice"] = QuotaExhaustedError(reset_at=None)

    result = await stats_service.fetch_user_stats("alice")

    assert isinstance(result, FetchFailure)
    assert result.kind == FailureKind.RATE_LIMITED
    assert len(fake_github.calls_to("get_user")) == 4
    assert len(sleeps) == 3

@pytest.mark.asyncio
async def test_profile_api_error_is_reported(stats_service: StatsService, fake_github):
    fake_github.user_errors["alice"] = GitHubApiError("GitHub API error 500", status_code=500)

    result = await stats_service.fetch_user_stats("alice")

    assert isinstance(result, FetchFailure)
    assert result.kind == FailureKind.API_ERROR
    assert "GitHub API error 500" in result.error_message

@pytest.mark.asyncio
async def test_detailed_strategy_buckets_commit_dates(stats_service: StatsService, fake_github):
    fake_github.add_user("alice", public_repos=2, repos=["r1", "r2"])
    fake_github.commits[("alice", "r1")] = [
        commit("2024-06-29T10:00:00Z"),
        commit("2024-06-10T10:00:00Z"),
        commit("2024-01-01T10:00:00Z"),
    ]
    fake_github.commits[("alice", "r2")] = [commit("2024-06-25T08:30:00Z")]
    fake_github.issue_totals["author:alice type:pr"] = 7

    result = await stats_service.fetch_user_stats("alice")

    assert isinstance(result, FetchSuccess)
    stats = result.stats
    assert stats.username == "alice"
    assert stats.weekly_commits == 2
    assert stats.monthly_commits == 3
    assert stats.total_commits == 4
    assert stats.commit_count == 4
    assert stats.commits_per_day == 0
    assert stats.commits_per_week == 2
    assert stats.pull_request_count == 7
    assert stats.repository_count == 2
    assert stats.avatar_url == "https://avatars.example/alice"
    assert stats.contribution_graph_url == "https://ghchart.rshah.org/alice"
    assert fake_github.calls_to("search_commits") == []

@pytest.mark.asyncio
async def test_detailed_strategy_pages_until_short_page(stats_service: StatsService, fake_github):
    fake_github.add_user("alice", public_repos=1, repos=["big"])
    fake_github.commits[("alice", "big")] = [commit("2024-06-29T10:00:00Z")] * 250

    result = await stats_service.fetch_user_stats("alice")

    assert result.stats.total_commits == 250
    assert [c[5] for c in fake_github.calls_to("list_commits")] == [1, 2, 3]

@pytest.mark.asyncio
async def test_detailed_strategy_caps_pages(stats_service: StatsService, fake_github):
    fake_github.add_user("alice", public_repos=1, repos=["huge"])
    fake_github.commits[("alice", "huge")] = [commit("2023-01-01T10:00:00Z")] * 800

    result = await stats_service.fetch_user_stats("alice")

    assert result.stats.total_commits == 500
    assert result.stats.monthly_commits == 0
    assert len(fake_github.calls_to("list_commits")) == 5

@pytest.mark.asyncio
async def test_efficient_strategy_uses_search(stats_service: StatsService, fake_github):
    fake_github.add_user("bob", public_repos=12, repos=[f"r{i}" for i in range(12)])
    fake_github.search_totals.update({
        "author:bob": 1200,
        MONTH_QUERY.format(u="bob"): 90,
        WEEK_QUERY.format(u="bob"): 20,
    })

    result = await stats_service.fetch_user_stats("bob")

    stats = result.stats
    assert (stats.total_commits, stats.monthly_commits, stats.weekly_commits) == (1200, 90, 20)
    assert stats.commits_per_day == 3
    assert stats.commits_per_week == 20
    assert stats.repository_count == 12
    assert fake_github.calls_to("list_commits") == []
    assert fake_github.calls_to("get_participation_stats") == []

@pytest.mark.asyncio
async def test_efficient_strategy_samples_participation_when_search_fails(stats_service: StatsService, fake_github):
    fake_github.add_user("bob", public_repos=12, repos=[f"r{i}" for i in range(12)])
    fake_github.search_error = GitHubApiError("GitHub API error 403: secondary rate limit", status_code=403)
    fake_github.participation[("bob", "r0")] = {"all": [], "owner": [0] * 48 + [1, 2, 3, 4]}
    fake_github.participation[("bob", "r1")] = {"all": [], "owner": [2] * 52}

    result = await stats_service.fetch_user_stats("bob")

    # Two repositories sampled out of twelve: scaled by 6
    stats = result.stats
    assert stats.weekly_commits == 36
    assert stats.monthly_commits == 108
    assert stats.total_commits == 684
    assert len(fake_github.calls_to("get_participation_stats")) == 10

@pytest.mark.asyncio
async def test_sampling_skips_repositories_still_computing_stats(stats_service: StatsService, fake_github):
    fake_github.add_user("bob", public_repos=12, repos=[f"r{i}" for i in range(12)])
    fake_github.search_error = GitHubApiError("GitHub API error 403: secondary rate limit", status_code=403)
    fake_github.participation_errors[("bob", "r0")] = GitHubApiError(
        "GitHub is still computing participation stats", status_code=202,
    )
    fake_github.participation[("bob", "r1")] = {"all": [], "owner": [1] * 52}

    result = await stats_service.fetch_user_stats("bob")

    # Only r1 counts as a sample: scaled by 12
    stats = result.stats
    assert stats.weekly_commits == 12
    assert stats.monthly_commits == 48
    assert stats.total_commits == 624

@pytest.mark.asyncio
async def test_efficient_strategy_without_samples_reports_zero(stats_service: StatsService, fake_github):
    fake_github.add_user("bob", public_repos=20, repos=[f"r{i}" for i in range(6)])
    fake_github.search_error = GitHubApiError("GitHub API error 422", status_code=422)

    result = await stats_service.fetch_user_stats("bob")

    assert isinstance(result, FetchSuccess)
    assert result.stats.total_commits == 0
    assert result.stats.repository_count == 20

@pytest.mark.asyncio
async def test_repository_listing_failure_still_succeeds(stats_service: StatsService, fake_github):
    fake_github.add_user("alice", public_repos=0)
    fake_github.repos_error = GitHubApiError("GitHub API error 500", status_code=500)
    fake_github.issue_totals["author:alice type:pr"] = 2

    result = await stats_service.fetch_user_stats("alice")

    assert isinstance(result, FetchSuccess)
    assert result.stats.total_commits == 0
    assert result.stats.repository_count == 0
    assert result.stats.pull_request_count == 2
    assert len(fake_github.calls_to("list_repositories")) == 1

@pytest.mark.asyncio
async def test_repository_listing_failure_keeps_profile_count(stats_service: StatsService, fake_github):
    fake_github.add_user("alice", public_repos=3)
    fake_github.repos_error = GitHubApiError("GitHub API error 500", status_code=500)

    result = await stats_service.fetch_user_stats("alice")

    assert isinstance(result, FetchSuccess)
    assert result.stats.repository_count == 3
    assert fake_github.calls_to("list_commits") == []

@pytest.mark.asyncio
async def test_pull_request_failure_defaults_to_zero(stats_service: StatsService, fake_github):
    fake_github.add_user("alice", public_repos=0)
    fake_github.issues_error = GitHubApiError("GitHub API error 503", status_code=503)

    result = await stats_service.fetch_user_stats("alice")

    assert isinstance(result, FetchSuccess)
    assert result.stats.pull_request_count == 0

@pytest.mark.asyncio
async def test_average_commit_size_is_sampled(fake_github, retry_service):
    service = StatsService(fake_github, retry_service, sample_commit_size=True, now=lambda: NOW)
    fake_github.add_user("alice", public_repos=1, repos=["r1"])
    fake_github.commits[("alice", "r1")] = [
        commit("2024-06-29T10:00:00Z", sha="a"),
        commit("2024-06-28T10:00:00Z", sha="b"),
        commit("2024-06-27T10:00:00Z", sha="c"),
        commit("2024-06-26T10:00:00Z", sha="gone"),
    ]
    fake_github.commit_details.update({
        "a": {"stats": {"additions": 10, "deletions": 5}},
        "b": {"stats": {"additions": 0, "deletions": 0}},
        "c": {"stats": {"additions": 3, "deletions": 2}},
    })

    result = await service.fetch_user_stats("alice")

    assert result.stats.average_commit_size == 10
    assert result.stats.total_commits == 4

@pytest.mark.asyncio
async def test_repeat_fetch_is_served_from_cache(stats_service: StatsService, fake_github):
    fake_github.add_user("alice", public_repos=1, repos=["r1"])
    fake_github.commits[("alice", "r1")] = [commit("2024-06-29T10:00:00Z")]

    await stats_service.fetch_user_stats("alice")
    calls_after_first = len(fake_github.calls)
    await stats_service.fetch_user_stats("alice")

    assert len(fake_github.calls) == calls_after_first

def test_calculate_average_commit_size():
    assert calculate_average_commit_size([], []) == 0
    assert calculate_average_commit_size([0, 0], [0, 0]) == 0
    assert calculate_average_commit_size([10, 3], [5, 2]) == 10
    assert calculate_average_commit_size([1, 2], [0, 0]) == 2

def test_round_half_up():
    assert round_half_up(0.5) == 1
    assert round_half_up(2.5) == 3
    assert round_half_up(0.49) == 0
