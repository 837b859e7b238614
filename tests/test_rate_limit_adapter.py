"""Unit tests for the in-memory attempt limiter adapter."""

from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from app.adapters.rate_limit.base import RateLimitDecision, RateLimitPolicy
from app.adapters.rate_limit.in_memory import InMemoryAttemptRateLimiter

LOGIN_POLICY = RateLimitPolicy(max_attempts=5, window_seconds=3600, block_seconds=900)
SUBMISSION_POLICY = RateLimitPolicy(max_attempts=5, window_seconds=3600, block_seconds=3600)


def make_limiter(policy: RateLimitPolicy = LOGIN_POLICY, **kwargs) -> tuple[InMemoryAttemptRateLimiter, Mock]:
    clock = Mock(return_value=1000.0)
    return InMemoryAttemptRateLimiter(policy=policy, clock=clock, **kwargs), clock


def test_unknown_key_is_allowed_with_full_budget() -> None:
    limiter, _ = make_limiter()

    result = limiter.check("203.0.113.7")

    assert result.allowed is True
    assert result.remaining == 5
    assert result.blocked_until is None
    assert len(limiter) == 0


def test_login_guard_scenario() -> None:
    limiter, clock = make_limiter()
    key = "203.0.113.7"

    assert limiter.check(key).remaining == 5

    for _ in range(4):
        limiter.record_attempt(key)
    result = limiter.check(key)
    assert result.allowed is True
    assert result.remaining == 1

    limiter.record_attempt(key)
    blocked = limiter.check(key)
    assert blocked.allowed is False
    assert blocked.blocked_until == 1000.0 + 900
    assert blocked.remaining is None

    again = limiter.check(key)
    assert again.allowed is False
    assert again.blocked_until == blocked.blocked_until

    clock.return_value = 1000.0 + 16 * 60
    fresh = limiter.check(key)
    assert fresh.allowed is True
    assert fresh.remaining == 5

    limiter.record_attempt(key)
    limiter.reset(key)
    assert limiter.check(key).remaining == 5


def test_submission_guard_scenario() -> None:
    limiter, clock = make_limiter(SUBMISSION_POLICY)
    key = "198.51.100.20"

    for minute in range(5):
        clock.return_value = 1000.0 + minute * 60
        assert limiter.check(key).allowed is True
        assert limiter.consume(key).allowed is True

    clock.return_value = 1000.0 + 1800
    blocked = limiter.check(key)
    assert blocked.allowed is False
    assert blocked.blocked_until == 1000.0 + 1800 + 3600

    clock.return_value = 1000.0 + 1800 + 3599
    assert limiter.check(key).allowed is False

    clock.return_value = 1000.0 + 1800 + 3601
    assert limiter.check(key).allowed is True


def test_window_expiry_restarts_counting() -> None:
    limiter, clock = make_limiter()

    for _ in range(4):
        limiter.record_attempt("k")

    clock.return_value = 1000.0 + 3601
    limiter.record_attempt("k")

    assert limiter.check("k").remaining == 4


def test_window_boundary_is_inclusive() -> None:
    limiter, clock = make_limiter()

    limiter.record_attempt("k")
    clock.return_value = 1000.0 + 3600
    limiter.record_attempt("k")

    assert limiter.check("k").remaining == 3


def test_stale_window_is_cleared_on_check() -> None:
    limiter, clock = make_limiter()

    for _ in range(5):
        limiter.record_attempt("k")

    clock.return_value = 1000.0 + 3601
    result = limiter.check("k")

    assert result.allowed is True
    assert result.remaining == 5
    assert len(limiter) == 0


def test_record_attempt_does_not_alter_active_block() -> None:
    limiter, clock = make_limiter()

    for _ in range(5):
        limiter.record_attempt("k")
    blocked_until = limiter.check("k").blocked_until

    clock.return_value = 1100.0
    for _ in range(3):
        limiter.record_attempt("k")

    assert limiter.check("k").blocked_until == blocked_until

    clock.return_value = blocked_until + 1
    assert limiter.check("k").remaining == 5


def test_record_after_block_expiry_starts_fresh_window() -> None:
    limiter, clock = make_limiter()

    for _ in range(5):
        limiter.record_attempt("k")
    blocked_until = limiter.check("k").blocked_until

    clock.return_value = blocked_until + 1
    limiter.record_attempt("k")

    assert limiter.check("k").remaining == 4


def test_blocking_is_decided_by_check() -> None:
    limiter, _ = make_limiter()

    for _ in range(8):
        limiter.record_attempt("k")

    result = limiter.check("k")
    assert result.allowed is False
    assert result.blocked_until == 1000.0 + 900


def test_reset_is_idempotent() -> None:
    limiter, _ = make_limiter()

    limiter.reset("never-seen")
    limiter.record_attempt("k")
    limiter.reset("k")
    limiter.reset("k")

    assert limiter.check("k").remaining == 5
    assert len(limiter) == 0


def test_reset_lifts_active_block() -> None:
    limiter, _ = make_limiter()

    for _ in range(5):
        limiter.record_attempt("k")
    assert limiter.check("k").allowed is False

    limiter.reset("k")
    assert limiter.check("k").allowed is True


def test_isolated_by_key() -> None:
    limiter, _ = make_limiter()

    for _ in range(5):
        limiter.record_attempt("a")
    assert limiter.check("a").allowed is False

    assert limiter.check("b").allowed is True
    assert limiter.check("b").remaining == 5


def test_consume_counts_and_blocks() -> None:
    limiter, _ = make_limiter()

    remaining = [limiter.consume("k").remaining for _ in range(5)]
    assert remaining == [4, 3, 2, 1, 0]

    denied = limiter.consume("k")
    assert denied.allowed is False
    assert denied.blocked_until == 1000.0 + 900


def test_denied_consume_is_not_recorded() -> None:
    limiter, clock = make_limiter()

    for _ in range(5):
        limiter.consume("k")
    blocked_until = limiter.consume("k").blocked_until
    for _ in range(10):
        assert limiter.consume("k").allowed is False

    clock.return_value = blocked_until + 1
    assert limiter.consume("k").remaining == 4


def test_concurrent_consume_never_exceeds_limit() -> None:
    limiter, _ = make_limiter(shards=4)

    with ThreadPoolExecutor(max_workers=16) as pool:
        results = list(pool.map(lambda _: limiter.consume("burst"), range(200)))

    assert sum(1 for r in results if r.allowed) == 5
    assert limiter.check("burst").allowed is False


def test_concurrent_keys_are_independent() -> None:
    limiter, _ = make_limiter(shards=8)
    keys = [f"10.0.0.{i}" for i in range(20)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda k: [limiter.record_attempt(k) for _ in range(3)], keys))

    assert all(limiter.check(k).remaining == 2 for k in keys)


def test_sweep_removes_only_stale_entries() -> None:
    limiter, clock = make_limiter()

    limiter.record_attempt("old")

    clock.return_value = 5000.0
    limiter.record_attempt("fresh")
    for _ in range(5):
        limiter.record_attempt("blocked")
    limiter.check("blocked")

    assert limiter.sweep() == 1
    assert len(limiter) == 2

    clock.return_value = 6000.0
    assert limiter.sweep() == 1
    assert len(limiter) == 1
    assert limiter.check("fresh").remaining == 4


def test_capacity_evicts_least_recently_touched() -> None:
    limiter, _ = make_limiter(shards=1, max_entries=2)

    limiter.record_attempt("a")
    limiter.record_attempt("b")
    limiter.check("a")
    limiter.record_attempt("c")

    assert len(limiter) == 2
    assert limiter.check("a").remaining == 4
    assert limiter.check("b").remaining == 5
    assert limiter.check("c").remaining == 4


def test_capacity_prefers_dropping_stale_entries() -> None:
    limiter, clock = make_limiter(shards=1, max_entries=2)

    limiter.record_attempt("stale")
    clock.return_value = 4000.0
    limiter.record_attempt("live")
    clock.return_value = 4700.0
    limiter.record_attempt("new")

    assert len(limiter) == 2
    assert limiter.check("live").remaining == 4


def test_capacity_never_evicts_an_active_block() -> None:
    limiter, clock = make_limiter(shards=1, max_entries=2)

    for _ in range(5):
        limiter.record_attempt("attacker")
    assert limiter.check("attacker").allowed is False

    limiter.record_attempt("other-1")
    limiter.record_attempt("other-2")
    clock.return_value = 1010.0

    blocked = limiter.check("attacker")
    assert blocked.allowed is False
    assert blocked.blocked_until == 1000.0 + 900
    assert len(limiter) == 2


def test_capacity_overflows_when_only_blocked_keys_remain() -> None:
    limiter, _ = make_limiter(shards=1, max_entries=1)

    for _ in range(5):
        limiter.record_attempt("a")
    assert limiter.check("a").allowed is False

    limiter.record_attempt("b")

    assert len(limiter) == 2
    assert limiter.check("a").allowed is False
    assert limiter.check("b").remaining == 4


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_attempts": 0, "window_seconds": 60, "block_seconds": 60},
        {"max_attempts": 1, "window_seconds": 0, "block_seconds": 60},
        {"max_attempts": 1, "window_seconds": 60, "block_seconds": 0},
    ],
)
def test_invalid_policy(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        RateLimitPolicy(**kwargs)


@pytest.mark.parametrize("kwargs", [{"shards": 0}, {"max_entries": 0}])
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        InMemoryAttemptRateLimiter(policy=LOGIN_POLICY, **kwargs)


def test_empty_key_is_rejected() -> None:
    limiter, _ = make_limiter()

    for operation in (limiter.check, limiter.record_attempt, limiter.reset, limiter.consume):
        with pytest.raises(ValueError):
            operation("")


def test_decision_helpers() -> None:
    denied = RateLimitDecision(allowed=False, limit=5, blocked_until=1_700_000_900.0)

    assert denied.retry_after_seconds(1_700_000_000.5) == 900
    assert denied.retry_after_seconds(1_700_001_000.0) == 0
    assert denied.blocked_until_datetime == datetime.fromtimestamp(1_700_000_900, tz=timezone.utc)

    allowed = RateLimitDecision(allowed=True, limit=5, remaining=3)
    assert allowed.retry_after_seconds(0) == 0
    assert allowed.blocked_until_datetime is None
