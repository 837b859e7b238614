"""Client key extraction for rate limiting.

The key identifies the network origin of a request. Proxy headers are
trusted as-is; deployments must make sure their edge overwrites them.
"""

from __future__ import annotations

import hashlib

from fastapi import Request

DEFAULT_CLIENT_KEY = "127.0.0.1"

# Checked in order; the first non-empty value wins
_FORWARDING_HEADERS = ("x-forwarded-for", "x-real-ip", "cf-connecting-ip")


def get_client_key(request: Request) -> str:
    """Derive the rate limit key for a request.

    Args:
        request: FastAPI request.

    Returns:
        The client address: first hop of X-Forwarded-For, else X-Real-IP,
        else CF-Connecting-IP, else the socket peer, else 127.0.0.1.

    Examples:
        X-Forwarded-For: "203.0.113.7, 10.0.0.1" -> "203.0.113.7"
    """

    for header in _FORWARDING_HEADERS:
        value = request.headers.get(header)
        if not value:
            continue
        candidate = value.split(",")[0].strip()
        if candidate:
            return candidate

    if request.client and request.client.host:
        return request.client.host

    return DEFAULT_CLIENT_KEY


def hash_client_key(key: str) -> str:
    """Hash the client key for logging without exposing addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]
