"""Defines common Value Objects used across different domain contexts.

These objects represent simple values or concepts like usernames, cache keys,
API payloads, etc., ensuring consistency and type safety.
"""

from typing import NewType, List, Dict, Any, TypedDict, Optional

# === Core Value Objects ===

# Using NewType for semantic clarity, although they are strings at runtime.
Username = NewType("Username", str)          # GitHub handle as typed by the user
SearchQuery = NewType("SearchQuery", str)    # GitHub search qualifier string

# === Caching Context ===
CacheKey = NewType("CacheKey", str)              # Unique key for a cache entry

# === Remote API Payloads ===
# Raw JSON objects as returned by the GitHub REST API
UserProfile = NewType("UserProfile", Dict[str, Any])
Repository = NewType("Repository", Dict[str, Any])
CommitItem = NewType("CommitItem", Dict[str, Any])

# --- Structured Data ---
class SearchResult(TypedDict):
    """Subset of a GitHub search response we rely on."""
    total_count: int
    items: List[Dict[str, Any]]

class ParticipationStats(TypedDict):
    """Weekly commit counts for the last 52 weeks, oldest first."""
    all: List[int]
    owner: List[int]

class RateLimitStatus(TypedDict):
    """Core rate limit window as reported by /rate_limit."""
    limit: int
    remaining: int
    reset_at: float # Unix timestamp when the window resets

class BackoffPolicy(TypedDict):
    """Value Object representing retry backoff configuration."""
    max_retries: int
    initial_delay: float
    factor: float


def make_cache_key(prefix: str, *parts: Optional[object]) -> CacheKey:
    """Builds a cache key that encodes the call shape (endpoint + parameters)."""
    return CacheKey(":".join([prefix] + ["" if p is None else str(p) for p in parts]))
