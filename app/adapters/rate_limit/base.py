"""Rate limiter interfaces.

The API layer depends on this abstraction (not the concrete implementation)
so guards can be backed by another store later with minimal changes.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True)
class RateLimitPolicy:
    """Immutable configuration for one limiter instance.

    Attributes:
        max_attempts: Attempts allowed inside one window before blocking.
        window_seconds: Length of the tracking window in seconds.
        block_seconds: How long a key stays blocked once over the threshold.
    """

    max_attempts: int
    window_seconds: float
    block_seconds: float

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")
        if self.block_seconds <= 0:
            raise ValueError("block_seconds must be > 0")


@dataclass
class RateLimitEntry:
    """Per-key bookkeeping. Timestamps are UNIX epoch seconds."""

    attempt_count: int
    window_start: float
    last_attempt: float
    blocked_until: float | None = None

    def is_blocked(self, now: float) -> bool:
        return self.blocked_until is not None and now <= self.blocked_until

    def is_stale(self, now: float, window_seconds: float) -> bool:
        """Whether the entry is equivalent to an absent one."""
        if self.blocked_until is not None:
            return now > self.blocked_until
        return now - self.window_start > window_seconds


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a check/consume operation.

    Attributes:
        allowed: Whether the caller may proceed.
        limit: Max attempts per window for the policy.
        remaining: Attempts left in the current window (None when denied).
        blocked_until: UNIX epoch seconds when the block ends (None when allowed).
    """

    allowed: bool
    limit: int
    remaining: int | None = None
    blocked_until: float | None = None

    @property
    def blocked_until_datetime(self) -> datetime | None:
        if self.blocked_until is None:
            return None
        return datetime.fromtimestamp(self.blocked_until, tz=timezone.utc)

    def retry_after_seconds(self, now: float) -> int:
        """Whole seconds until the block ends, 0 when not blocked."""
        if self.blocked_until is None:
            return 0
        return max(0, int(math.ceil(self.blocked_until - now)))


class AbstractRateLimiter(ABC):
    """Interface for keyed attempt limiters."""

    policy: RateLimitPolicy

    @abstractmethod
    def check(self, key: str) -> RateLimitDecision:
        """Decide whether key may proceed.

        May clean up expired state and transition the key into the blocked
        state when its attempt count has reached the threshold.
        """
        raise NotImplementedError

    @abstractmethod
    def record_attempt(self, key: str) -> None:
        """Count one attempt for key. Never blocks by itself."""
        raise NotImplementedError

    @abstractmethod
    def reset(self, key: str) -> None:
        """Forget all state for key."""
        raise NotImplementedError

    @abstractmethod
    def consume(self, key: str) -> RateLimitDecision:
        """Atomically check key and, when allowed, record one attempt."""
        raise NotImplementedError

    @abstractmethod
    def sweep(self) -> int:
        """Drop stale entries and return how many were removed."""
        raise NotImplementedError

    @abstractmethod
    def __len__(self) -> int:
        """Number of keys currently tracked."""
        raise NotImplementedError
