"""Tests for application assembly."""

from unittest.mock import Mock

from app.core.app_factory import create_app
from app.core.rate_limit import RateLimitRegistry
from app.services.submission_store import InMemorySubmissionStore


def test_empty_injected_store_is_used() -> None:
    store = InMemorySubmissionStore()
    assert len(store) == 0

    app = create_app(submission_store=store, configure_logs=False)

    assert app.state.submission_store is store


def test_injected_registry_is_used() -> None:
    registry = RateLimitRegistry.from_settings(clock=Mock(return_value=1_700_000_000.0))

    app = create_app(rate_limiters=registry, configure_logs=False)

    assert app.state.rate_limiters is registry


def test_defaults_are_built_when_nothing_is_injected() -> None:
    app = create_app(configure_logs=False)

    assert isinstance(app.state.submission_store, InMemorySubmissionStore)
    assert isinstance(app.state.rate_limiters, RateLimitRegistry)
