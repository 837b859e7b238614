"""Login and submission guards for FastAPI routes.

This module wires the rate limiting adapter into the HTTP layer.

Two guards run the same engine under different policies:
- login guard: 5 attempts per hour, 15 minute block, forgiven on success.
- submission guard: 5 submissions per hour, 1 hour block, never forgiven.

Guards live in a RateLimitRegistry owned by the application (``app.state``),
so each app instance, and each test, gets its own independent state.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from fastapi import Request

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitDecision,
    RateLimitPolicy,
)
from app.adapters.rate_limit.in_memory import InMemoryAttemptRateLimiter
from app.core.client_key import hash_client_key
from app.core.config import AppSettings, settings
from app.core.errors import RateLimitExceededAppError

logger = logging.getLogger(__name__)

LOGIN_GUARD = "login"
SUBMISSION_GUARD = "submission"


def login_guard_policy(app_settings: AppSettings | None = None) -> RateLimitPolicy:
    cfg = app_settings or settings.app
    return RateLimitPolicy(
        max_attempts=cfg.login_guard_max_attempts,
        window_seconds=cfg.login_guard_window_seconds,
        block_seconds=cfg.login_guard_block_seconds,
    )


def submission_guard_policy(app_settings: AppSettings | None = None) -> RateLimitPolicy:
    cfg = app_settings or settings.app
    return RateLimitPolicy(
        max_attempts=cfg.submission_guard_max_attempts,
        window_seconds=cfg.submission_guard_window_seconds,
        block_seconds=cfg.submission_guard_block_seconds,
    )


@dataclass
class RateLimitRegistry:
    """The guards of one application instance.

    Attributes:
        login: Limiter for admin login attempts.
        submission: Limiter for public form submissions.
        enabled: When False every guard call is a no-op.
        clock: Time source shared with the limiters (for Retry-After).
    """

    login: AbstractRateLimiter
    submission: AbstractRateLimiter
    enabled: bool = True
    clock: Callable[[], float] = time.time

    @classmethod
    def from_settings(
        cls,
        app_settings: AppSettings | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> "RateLimitRegistry":
        """Build both guards from configuration.

        Args:
            app_settings: Settings to read policies from; defaults to global settings.
            clock: Time source function returning UNIX time in seconds.

        Returns:
            RateLimitRegistry with fresh, empty limiters.
        """

        cfg = app_settings or settings.app

        def build(policy: RateLimitPolicy) -> InMemoryAttemptRateLimiter:
            return InMemoryAttemptRateLimiter(
                policy=policy,
                clock=clock,
                shards=cfg.rate_limit_shards,
                max_entries=cfg.rate_limit_max_entries,
            )

        return cls(
            login=build(login_guard_policy(cfg)),
            submission=build(submission_guard_policy(cfg)),
            enabled=cfg.rate_limit_enabled,
            clock=clock,
        )

    def limiters(self) -> tuple[AbstractRateLimiter, ...]:
        return (self.login, self.submission)

    def stats(self) -> dict[str, int]:
        """Tracked key counts per guard, without exposing keys."""
        return {
            LOGIN_GUARD: len(self.login),
            SUBMISSION_GUARD: len(self.submission),
        }


def get_rate_limiters(request: Request) -> RateLimitRegistry:
    """FastAPI dependency returning the guards of the running app."""
    return request.app.state.rate_limiters


def _format_retry_time(decision: RateLimitDecision) -> str:
    blocked_until = decision.blocked_until_datetime
    if blocked_until is None:
        return ""
    return blocked_until.strftime("%H:%M:%S UTC")


def _deny(
    registry: RateLimitRegistry,
    decision: RateLimitDecision,
    *,
    guard: str,
    client_key: str,
    subject: str,
) -> RateLimitExceededAppError:
    retry_after = decision.retry_after_seconds(registry.clock())
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "guard": guard,
            "key_hash": hash_client_key(client_key),
            "limit": decision.limit,
            "retry_after_s": retry_after,
        },
    )

    blocked_until = decision.blocked_until_datetime
    if blocked_until is not None:
        message = (
            f"Too many {subject}. Please try again after "
            f"{_format_retry_time(decision)}."
        )
    else:
        message = "Rate limit exceeded. Please try again later."

    return RateLimitExceededAppError(
        code="RATE_LIMIT_EXCEEDED",
        message=message,
        details={
            "blocked_until": blocked_until.isoformat() if blocked_until else "",
            "retry_after": retry_after,
            "limit": decision.limit,
        },
        blocked_until=decision.blocked_until,
        retry_after=retry_after,
        limit=decision.limit,
    )


def _log_allowed(decision: RateLimitDecision, *, guard: str, client_key: str) -> None:
    logger.info(
        "rate_limit.allowed",
        extra={
            "guard": guard,
            "key_hash": hash_client_key(client_key),
            "limit": decision.limit,
            "remaining": decision.remaining,
        },
    )


def enforce_login_attempt(registry: RateLimitRegistry, client_key: str) -> RateLimitDecision | None:
    """Reserve one login attempt for client_key.

    The attempt is counted before credentials are verified, in the same
    critical section as the decision, so concurrent guesses cannot slip past
    the threshold. A successful login forgives it via ``forgive_login``.

    Raises:
        RateLimitExceededAppError: When the client is blocked.
    """

    if not registry.enabled:
        return None

    decision = registry.login.consume(client_key)
    if not decision.allowed:
        raise _deny(
            registry,
            decision,
            guard=LOGIN_GUARD,
            client_key=client_key,
            subject="login attempts",
        )

    _log_allowed(decision, guard=LOGIN_GUARD, client_key=client_key)
    return decision


def forgive_login(registry: RateLimitRegistry, client_key: str) -> None:
    """Clear failed login attempts after a successful authentication."""

    if not registry.enabled:
        return

    registry.login.reset(client_key)
    logger.info(
        "rate_limit.reset",
        extra={"guard": LOGIN_GUARD, "key_hash": hash_client_key(client_key)},
    )


def gate_submission(registry: RateLimitRegistry, client_key: str) -> RateLimitDecision | None:
    """Reject blocked clients before any submission work is done.

    Raises:
        RateLimitExceededAppError: When the client is blocked.
    """

    if not registry.enabled:
        return None

    decision = registry.submission.check(client_key)
    if not decision.allowed:
        raise _deny(
            registry,
            decision,
            guard=SUBMISSION_GUARD,
            client_key=client_key,
            subject="form submissions",
        )
    return decision


def record_submission(registry: RateLimitRegistry, client_key: str) -> RateLimitDecision | None:
    """Count an accepted submission, re-checking the budget atomically.

    Raises:
        RateLimitExceededAppError: When a concurrent burst used up the
            budget after ``gate_submission`` let this request through.
    """

    if not registry.enabled:
        return None

    decision = registry.submission.consume(client_key)
    if not decision.allowed:
        raise _deny(
            registry,
            decision,
            guard=SUBMISSION_GUARD,
            client_key=client_key,
            subject="form submissions",
        )

    _log_allowed(decision, guard=SUBMISSION_GUARD, client_key=client_key)
    return decision
