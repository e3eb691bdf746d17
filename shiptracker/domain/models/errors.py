"""Error taxonomy for the GitHub orchestration layer.

ValidationError never reaches the network. NotFoundError, QuotaExhaustedError
and GitHubApiError describe a single remote response. RateLimitError is
raised by the retry executor once quota-driven retries are exhausted.
"""

from typing import Optional

from shiptracker.domain.models.stats import FailureKind


class ShipTrackerError(Exception):
    """Base class for all application errors."""


class ValidationError(ShipTrackerError):
    """Raised for input that is rejected before any network call."""


class GitHubApiError(ShipTrackerError):
    """A non-success response from the GitHub API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class NotFoundError(GitHubApiError):
    """The requested resource (user, repository, commit) does not exist."""

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=404)


class QuotaExhaustedError(GitHubApiError):
    """The API reported zero remaining requests in the current window."""

    def __init__(
        self,
        message: str = "GitHub API rate limit exceeded",
        status_code: int = 403,
        reset_at: Optional[float] = None,
    ):
        self.reset_at = reset_at
        super().__init__(message, status_code=status_code)


class RateLimitError(ShipTrackerError):
    """Exception raised when quota-driven retries are exhausted."""

    def __init__(self, attempts: int, last_error: Optional[Exception] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"GitHub API rate limit exceeded after {attempts} attempts")


class NetworkError(ShipTrackerError):
    """Transport-level failure (DNS, connection reset, timeout)."""


class BatchCancelledError(ShipTrackerError):
    """Placeholder result for a request whose batch never started."""


def failure_kind_for(error: BaseException) -> FailureKind:
    """Classifies an exception into the user-facing failure kind."""
    if isinstance(error, ValidationError):
        return FailureKind.VALIDATION
    if isinstance(error, NotFoundError):
        return FailureKind.NOT_FOUND
    if isinstance(error, (RateLimitError, QuotaExhaustedError)):
        return FailureKind.RATE_LIMITED
    if isinstance(error, NetworkError):
        return FailureKind.NETWORK
    return FailureKind.API_ERROR
