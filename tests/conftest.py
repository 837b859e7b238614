"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets TESTING so no .env file is loaded, and seeds the admin account.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

os.environ.setdefault("APP_ADMIN_EMAIL", "admin@example.org")
os.environ.setdefault("APP_ADMIN_PASSWORD", "correct-horse-battery")
os.environ.setdefault("APP_RATE_LIMIT_SWEEP_INTERVAL_SECONDS", "0")

from unittest.mock import Mock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.app_factory import create_app  # noqa: E402
from app.core.rate_limit import RateLimitRegistry  # noqa: E402
from app.services.submission_store import InMemorySubmissionStore  # noqa: E402


@pytest.fixture
def clock() -> Mock:
    """Controllable time source (UNIX seconds)."""
    return Mock(return_value=1_700_000_000.0)


@pytest.fixture
def registry(clock: Mock) -> RateLimitRegistry:
    return RateLimitRegistry.from_settings(clock=clock)


@pytest.fixture
def submission_store() -> InMemorySubmissionStore:
    return InMemorySubmissionStore()


@pytest.fixture
def client(registry: RateLimitRegistry, submission_store: InMemorySubmissionStore) -> TestClient:
    """Test client over an app with its own guards and store."""
    app = create_app(
        rate_limiters=registry,
        submission_store=submission_store,
        configure_logs=False,
    )
    return TestClient(app)
