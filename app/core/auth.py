"""Admin credential verification.

Session issuance is handled elsewhere; this module only answers "do these
credentials belong to the admin?" so the login route can drive the guard.

Design principles:
- Configuration-driven: the admin account comes from env vars, not code
- Constant-time comparison for both email and password
- Testable: the route depends on the CredentialVerifier protocol
"""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timezone
from typing import Protocol

from app.core.config import AppSettings, settings
from app.core.errors import FieldError, ValidationAppError
from app.schemas.auth import AdminUser
from app.utils.form_validation import is_valid_email

logger = logging.getLogger(__name__)

ADMIN_USER_ID = "admin-1"


class CredentialVerifier(Protocol):
    async def verify(self, email: str, password: str) -> AdminUser | None:
        """Return the admin user for valid credentials, None otherwise."""
        ...


class SettingsCredentialVerifier:
    """Checks credentials against the single admin account in settings."""

    def __init__(self, app_settings: AppSettings | None = None) -> None:
        self._settings = app_settings or settings.app

    async def verify(self, email: str, password: str) -> AdminUser | None:
        configured = self._settings.admin_password
        if configured is None:
            logger.error(
                "auth.admin_password_not_configured",
                extra={"hint": "Set APP_ADMIN_PASSWORD to enable admin login"},
            )
            return None

        email_ok = hmac.compare_digest(
            email.strip().lower().encode(),
            self._settings.admin_email.strip().lower().encode(),
        )
        password_ok = hmac.compare_digest(
            password.encode(),
            configured.get_secret_value().encode(),
        )
        if not (email_ok and password_ok):
            return None

        return AdminUser(
            id=ADMIN_USER_ID,
            email=self._settings.admin_email,
            last_login=datetime.now(timezone.utc),
        )


def parse_login_payload(data: object) -> tuple[str, str]:
    """Extract email and password from a login body.

    Args:
        data: Decoded JSON body.

    Returns:
        Tuple of (email, password).

    Raises:
        ValidationAppError: If a field is missing or the email is malformed.
    """

    body = data if isinstance(data, dict) else {}
    email = body.get("email")
    password = body.get("password")

    if not email or not password or not isinstance(email, str) or not isinstance(password, str):
        raise ValidationAppError(
            code="VALIDATION_ERROR",
            message="Email and password are required",
        )

    if not is_valid_email(email):
        field_error: FieldError = {"field": "email", "message": "Invalid email format"}
        raise ValidationAppError(
            code="VALIDATION_ERROR",
            message="Invalid email format",
            details={"fields": [field_error]},
        )

    return email, password


def get_credential_verifier() -> CredentialVerifier:
    """FastAPI dependency returning the default verifier."""
    return SettingsCredentialVerifier()
