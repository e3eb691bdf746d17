"""Concrete implementation of the GitHubApi interface over httpx.

Hides the specifics of the REST endpoints and translates failure responses
into the domain error taxonomy:

    404                                   -> NotFoundError
    403/429 with X-RateLimit-Remaining: 0 -> QuotaExhaustedError (reset_at)
    any other status >= 400               -> GitHubApiError
    2xx body that is not JSON             -> GitHubApiError
    transport failure                     -> NetworkError

Retries and caching are not done here; the ApiRetryService wraps each call.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

from shiptracker.domain.interfaces.github_api import GitHubApi
from shiptracker.domain.models.common import (
    CommitItem, ParticipationStats, RateLimitStatus, Repository,
    SearchQuery, SearchResult, UserProfile,
)
from shiptracker.domain.models.errors import (
    GitHubApiError, NetworkError, NotFoundError, QuotaExhaustedError,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.github.com"
DEFAULT_TIMEOUT_S = 30.0
USER_AGENT = "shiptracker"


def _parse_reset(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        logger.debug(f"Ignoring unparsable X-RateLimit-Reset header: {value!r}")
        return None


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("message"):
        return f"GitHub API error {response.status_code}: {body['message']}"
    return f"GitHub API error {response.status_code}"


class GitHubClient(GitHubApi):
    """GitHub REST v3 implementation of the GitHubApi interface."""

    ACCEPT_HEADER = "application/vnd.github+json"
    API_VERSION_HEADER = "2022-11-28"

    def __init__(
        self,
        token: Optional[str] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initializes the GitHub client.

        Args:
            token: Personal access token. Unauthenticated calls are allowed
                at a lower quota.
            base_url: API root, overridable for GitHub Enterprise.
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        headers = {
            "Accept": self.ACCEPT_HEADER,
            "X-GitHub-Api-Version": self.API_VERSION_HEADER,
            "User-Agent": USER_AGENT,
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        else:
            logger.warning("No GitHub token configured; using the unauthenticated rate limit.")

        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            transport=transport,
        )
        self.authenticated = bool(token)

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- Transport ---

    async def _request(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            response = await self._client.get(path, params=params)
        except httpx.TransportError as e:
            logger.warning(f"Network error calling GET {path}: {e}")
            raise NetworkError(f"Network error calling GitHub: {e}") from e

        remaining = response.headers.get("X-RateLimit-Remaining")
        logger.debug(f"GET {path} -> {response.status_code} (remaining={remaining})")

        if response.status_code < 400:
            return response

        message = _error_message(response)
        if response.status_code == 404:
            raise NotFoundError(message)
        if response.status_code in (403, 429) and remaining == "0":
            raise QuotaExhaustedError(
                message,
                status_code=response.status_code,
                reset_at=_parse_reset(response.headers.get("X-RateLimit-Reset")),
            )
        raise GitHubApiError(message, status_code=response.status_code)

    async def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = await self._request(path, params)
        return self._decode(path, response)

    @staticmethod
    def _decode(path: str, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"Undecodable body from GET {path} ({response.status_code})")
            raise GitHubApiError(
                f"Invalid JSON from GitHub for {path}", status_code=response.status_code
            ) from e

    # --- GitHubApi Interface Implementation ---

    async def get_user(self, username: str) -> UserProfile:
        return UserProfile(await self._get_json(f"/users/{username}"))

    async def list_repositories(
        self, username: str, per_page: int = 100, sort: str = "pushed"
    ) -> List[Repository]:
        data = await self._get_json(
            f"/users/{username}/repos",
            params={"per_page": per_page, "sort": sort},
        )
        return [Repository(r) for r in data]

    async def search_commits(self, query: SearchQuery, per_page: int = 1) -> SearchResult:
        data = await self._get_json("/search/commits", params={"q": query, "per_page": per_page})
        return SearchResult(total_count=int(data.get("total_count", 0)), items=data.get("items", []))

    async def list_commits(
        self,
        owner: str,
        repo: str,
        author: Optional[str] = None,
        per_page: int = 100,
        page: int = 1,
    ) -> List[CommitItem]:
        params: Dict[str, Any] = {"per_page": per_page, "page": page}
        if author:
            params["author"] = author
        data = await self._get_json(f"/repos/{owner}/{repo}/commits", params=params)
        return [CommitItem(c) for c in data]

    async def get_commit(self, owner: str, repo: str, sha: str) -> CommitItem:
        return CommitItem(await self._get_json(f"/repos/{owner}/{repo}/commits/{sha}"))

    async def search_issues(self, query: SearchQuery, per_page: int = 1) -> SearchResult:
        data = await self._get_json("/search/issues", params={"q": query, "per_page": per_page})
        return SearchResult(total_count=int(data.get("total_count", 0)), items=data.get("items", []))

    async def get_participation_stats(self, owner: str, repo: str) -> ParticipationStats:
        path = f"/repos/{owner}/{repo}/stats/participation"
        response = await self._request(path)
        # 202: GitHub is still computing the stats, so there is no sample yet
        if response.status_code == 202:
            raise GitHubApiError("GitHub is still computing participation stats", status_code=202)
        # 204: empty repository
        if response.status_code == 204:
            return ParticipationStats(all=[], owner=[])
        data = self._decode(path, response)
        return ParticipationStats(all=list(data.get("all", [])), owner=list(data.get("owner", [])))

    async def get_rate_limit(self) -> RateLimitStatus:
        data = await self._get_json("/rate_limit")
        core = data.get("resources", {}).get("core") or data.get("rate", {})
        return RateLimitStatus(
            limit=int(core.get("limit", 0)),
            remaining=int(core.get("remaining", 0)),
            reset_at=float(core.get("reset", 0)),
        )
