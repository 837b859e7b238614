"""Validation and sanitization for public form input.

Validation runs on the raw JSON body (any shape) and reports every problem
at once, one entry per field, so the client can highlight all of them.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from app.core.errors import FieldError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MAX_NAME_CHARS = 100
MAX_EMAIL_CHARS = 255
MAX_MESSAGE_CHARS = 1000

_HTML_TAG = re.compile(r"<[^>]*>")
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"\s*on\w+\s*=\s*[\"'][^\"']*[\"']", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value))


def _validate_text(
    data: dict[str, Any],
    field: str,
    label: str,
    max_chars: int,
    errors: list[FieldError],
) -> str | None:
    value = data.get(field)
    if not value or not isinstance(value, str):
        errors.append({"field": field, "message": f"{label} is required"})
        return None

    trimmed = value.strip()
    if not trimmed:
        errors.append({"field": field, "message": f"{label} cannot be empty"})
        return None
    if len(trimmed) > max_chars:
        errors.append(
            {"field": field, "message": f"{label} must be less than {max_chars} characters"}
        )
        return None
    return trimmed


def validate_form_submission(data: Any) -> list[FieldError]:
    """Validate a contact-form payload.

    Args:
        data: Decoded JSON body.

    Returns:
        List of field errors; empty when the payload is valid.

    Examples:
        >>> validate_form_submission({"name": "A", "email": "a@b.co", "message": "hi"})
        []
        >>> validate_form_submission(None)
        [{'field': 'general', 'message': 'Invalid form data'}]
    """

    if not isinstance(data, dict):
        return [{"field": "general", "message": "Invalid form data"}]

    errors: list[FieldError] = []
    _validate_text(data, "name", "Name", MAX_NAME_CHARS, errors)

    email = data.get("email")
    if not email or not isinstance(email, str):
        errors.append({"field": "email", "message": "Email is required"})
    elif not email.strip():
        errors.append({"field": "email", "message": "Email cannot be empty"})
    elif not is_valid_email(email.strip()):
        errors.append({"field": "email", "message": "Invalid email format"})
    elif len(email.strip()) > MAX_EMAIL_CHARS:
        errors.append(
            {"field": "email", "message": f"Email must be less than {MAX_EMAIL_CHARS} characters"}
        )

    _validate_text(data, "message", "Message", MAX_MESSAGE_CHARS, errors)

    if errors:
        logger.info(
            "form_validation.failed",
            extra={"fields": sorted({e["field"] for e in errors})},
        )
    return errors


def sanitize_text(value: str) -> str:
    """Strip markup and script vectors from user text.

    Removes HTML tags, ``javascript:`` protocols and inline ``on*=``
    handlers, then collapses whitespace.
    """

    cleaned = _HTML_TAG.sub("", value.strip())
    cleaned = _JS_PROTOCOL.sub("", cleaned)
    cleaned = _EVENT_HANDLER.sub("", cleaned)
    return _WHITESPACE.sub(" ", cleaned).strip()


def sanitize_form_input(data: dict[str, Any]) -> dict[str, str]:
    return {field: sanitize_text(str(data[field])) for field in ("name", "email", "message")}
