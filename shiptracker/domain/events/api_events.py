"""Domain Events related to GitHub API calls and resilience.

Examples include events for when calls are served from cache, retried,
fail, or succeed, and when a batch of requests settles.
"""

from dataclasses import dataclass, field
import time
from typing import Optional

# Base Event Class
@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass

# --- Specific API Events ---

@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when an API call is about to be made."""
    endpoint: str
    attempt_number: int = 1
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when an API call succeeds."""
    endpoint: str
    latency_ms: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when an API call fails definitively."""
    endpoint: str
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class CacheHit(DomainEvent):
    """Event triggered when a call is answered from the response cache."""
    cache_key: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a quota-exhausted call is scheduled for retry."""
    endpoint: str
    attempt_number: int
    delay_seconds: float
    reset_at: Optional[float] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class BatchCompleted(DomainEvent):
    """Event triggered when every request of one batch has settled."""
    batch_index: int
    size: int
    failures: int
    timestamp: float = field(default_factory=time.time)
