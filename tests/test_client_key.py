"""Tests for client key extraction."""

import pytest
from starlette.requests import Request

from app.core.client_key import DEFAULT_CLIENT_KEY, get_client_key, hash_client_key


def make_request(headers: dict[str, str] | None = None, client: tuple[str, int] | None = None) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


@pytest.mark.parametrize(
    ("headers", "expected"),
    [
        ({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}, "203.0.113.7"),
        ({"X-Forwarded-For": " 203.0.113.7 "}, "203.0.113.7"),
        ({"X-Real-IP": "198.51.100.2"}, "198.51.100.2"),
        ({"CF-Connecting-IP": "192.0.2.44"}, "192.0.2.44"),
        (
            {"X-Forwarded-For": "203.0.113.7", "X-Real-IP": "198.51.100.2"},
            "203.0.113.7",
        ),
        ({"X-Forwarded-For": "", "X-Real-IP": "198.51.100.2"}, "198.51.100.2"),
    ],
)
def test_headers_take_precedence(headers: dict[str, str], expected: str) -> None:
    request = make_request(headers, client=("10.1.1.1", 5000))
    assert get_client_key(request) == expected


def test_falls_back_to_peer_address() -> None:
    assert get_client_key(make_request(client=("10.1.1.1", 5000))) == "10.1.1.1"


def test_falls_back_to_default() -> None:
    assert get_client_key(make_request()) == DEFAULT_CLIENT_KEY


def test_hash_is_stable_and_opaque() -> None:
    digest = hash_client_key("203.0.113.7")

    assert digest == hash_client_key("203.0.113.7")
    assert len(digest) == 16
    assert digest != hash_client_key("203.0.113.8")
