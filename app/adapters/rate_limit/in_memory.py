"""In-memory attempt limiter with escalating blocks.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: state is split into shards, each guarded by its own lock, and
  every operation runs its read-decide-mutate sequence under one shard lock.
"""

from __future__ import annotations

import logging
import math
import threading
import time
import zlib
from collections import OrderedDict
from typing import Callable

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitDecision,
    RateLimitEntry,
    RateLimitPolicy,
)

logger = logging.getLogger(__name__)

# Keys examined per insert when a full shard needs room
_EVICTION_SCAN_LIMIT = 32


class _Shard:
    """A slice of the key space with its own lock."""

    __slots__ = ("lock", "entries")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.entries: OrderedDict[str, RateLimitEntry] = OrderedDict()


class InMemoryAttemptRateLimiter(AbstractRateLimiter):
    """Keyed, time-windowed attempt counter that blocks keys over the limit.

    A key moves between three states: unrestricted (no entry, or a stale
    one), tracking (counting attempts inside the window) and blocked (every
    check denied until ``blocked_until``). Blocking is decided by ``check``
    and ``consume``; ``record_attempt`` only counts.

    Important:
        This limiter is per-process only. If the API runs with multiple
        workers, each worker enforces its own independent limits.
    """

    def __init__(
        self,
        *,
        policy: RateLimitPolicy,
        clock: Callable[[], float] = time.time,
        shards: int = 16,
        max_entries: int | None = None,
    ) -> None:
        """Initialize the limiter.

        Args:
            policy: Attempt threshold, window and block durations.
            clock: Time source function returning UNIX time in seconds.
            shards: Number of independently locked partitions of the key space.
            max_entries: Optional upper bound on stored keys (None for unlimited).

        Raises:
            ValueError: If shards or max_entries are invalid.
        """
        if shards < 1:
            raise ValueError("shards must be >= 1")
        if max_entries is not None and max_entries < 1:
            raise ValueError("max_entries must be >= 1 or None")

        self.policy = policy
        self._clock = clock
        self._shards = tuple(_Shard() for _ in range(shards))
        self._max_per_shard = (
            None if max_entries is None else max(1, math.ceil(max_entries / shards))
        )

    def __len__(self) -> int:
        total = 0
        for shard in self._shards:
            with shard.lock:
                total += len(shard.entries)
        return total

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"InMemoryAttemptRateLimiter(max_attempts={self.policy.max_attempts}, "
            f"window_seconds={self.policy.window_seconds}, "
            f"block_seconds={self.policy.block_seconds}, shards={len(self._shards)})"
        )

    def _shard_for(self, key: str) -> _Shard:
        if not key:
            raise ValueError("key must be a non-empty string")
        return self._shards[zlib.crc32(key.encode()) % len(self._shards)]

    def _allowed(self, remaining: int) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=True,
            limit=self.policy.max_attempts,
            remaining=remaining,
        )

    def _denied(self, blocked_until: float) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=False,
            limit=self.policy.max_attempts,
            blocked_until=blocked_until,
        )

    def _evaluate_locked(self, shard: _Shard, key: str, now: float) -> RateLimitDecision:
        entry = shard.entries.get(key)
        if entry is None:
            return self._allowed(self.policy.max_attempts)

        if entry.is_blocked(now):
            return self._denied(entry.blocked_until)  # type: ignore[arg-type]

        if entry.is_stale(now, self.policy.window_seconds):
            del shard.entries[key]
            return self._allowed(self.policy.max_attempts)

        shard.entries.move_to_end(key)
        if entry.attempt_count >= self.policy.max_attempts:
            entry.blocked_until = now + self.policy.block_seconds
            logger.debug(
                "rate_limit.block_started",
                extra={
                    "attempt_count": entry.attempt_count,
                    "block_s": self.policy.block_seconds,
                },
            )
            return self._denied(entry.blocked_until)

        return self._allowed(self.policy.max_attempts - entry.attempt_count)

    def _record_locked(self, shard: _Shard, key: str, now: float) -> RateLimitEntry:
        entry = shard.entries.get(key)

        if entry is None or entry.is_stale(now, self.policy.window_seconds):
            entry = RateLimitEntry(attempt_count=1, window_start=now, last_attempt=now)
            self._store_locked(shard, key, entry, now)
            return entry

        shard.entries.move_to_end(key)
        if entry.is_blocked(now):
            # An active block is never extended and blocked attempts are not counted.
            return entry

        entry.attempt_count += 1
        entry.last_attempt = now
        return entry

    def _store_locked(self, shard: _Shard, key: str, entry: RateLimitEntry, now: float) -> None:
        shard.entries.pop(key, None)
        if self._max_per_shard is not None:
            self._make_room_locked(shard, now)
        shard.entries[key] = entry

    def _make_room_locked(self, shard: _Shard, now: float) -> None:
        """Evict least recently touched keys until the shard has room.

        Only the oldest few keys are examined. Keys under an active block are
        never evicted: they are rotated behind the tracked keys instead, and
        the shard may go over capacity when nothing else can be dropped.
        """
        scanned = 0
        while len(shard.entries) >= self._max_per_shard and scanned < _EVICTION_SCAN_LIMIT:  # type: ignore[operator]
            scanned += 1
            oldest_key = next(iter(shard.entries))
            if shard.entries[oldest_key].is_blocked(now):
                shard.entries.move_to_end(oldest_key)
                continue
            del shard.entries[oldest_key]
            logger.debug("rate_limit.evicted", extra={"reason": "capacity"})

    def _drop_stale_locked(self, shard: _Shard, now: float) -> int:
        stale_keys = [
            k
            for k, entry in shard.entries.items()
            if entry.is_stale(now, self.policy.window_seconds)
        ]
        for k in stale_keys:
            del shard.entries[k]
        return len(stale_keys)

    def check(self, key: str) -> RateLimitDecision:
        """Decide whether key may proceed without recording an attempt.

        Args:
            key: Rate limit key (e.g., client address).

        Returns:
            RateLimitDecision: allowed with the remaining budget, or denied
            with the time the block ends.

        Raises:
            ValueError: If key is empty.
        """
        shard = self._shard_for(key)
        with shard.lock:
            return self._evaluate_locked(shard, key, self._clock())

    def record_attempt(self, key: str) -> None:
        """Count one attempt for key.

        Args:
            key: Rate limit key.

        Raises:
            ValueError: If key is empty.
        """
        shard = self._shard_for(key)
        with shard.lock:
            self._record_locked(shard, key, self._clock())

    def reset(self, key: str) -> None:
        """Remove any state for key, returning it to the unrestricted state."""
        shard = self._shard_for(key)
        with shard.lock:
            shard.entries.pop(key, None)

    def consume(self, key: str) -> RateLimitDecision:
        """Check key and record one attempt in a single critical section.

        A denied call records nothing. An allowed call reports the budget left
        after the attempt it just recorded.

        Args:
            key: Rate limit key.

        Returns:
            RateLimitDecision describing whether the attempt was allowed.

        Raises:
            ValueError: If key is empty.
        """
        shard = self._shard_for(key)
        with shard.lock:
            now = self._clock()
            decision = self._evaluate_locked(shard, key, now)
            if not decision.allowed:
                return decision

            entry = self._record_locked(shard, key, now)
            return self._allowed(max(0, self.policy.max_attempts - entry.attempt_count))

    def sweep(self) -> int:
        """Remove all stale entries across shards.

        Returns:
            Number of entries removed.
        """
        removed = 0
        for shard in self._shards:
            with shard.lock:
                removed += self._drop_stale_locked(shard, self._clock())
        if removed:
            logger.debug("rate_limit.swept", extra={"removed": removed})
        return removed
