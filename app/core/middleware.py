"""HTTP middleware for request ID propagation and correlation.

The incoming X-Request-ID is client-controlled and ends up in every log line
of the request, so it is only reused when it is a short token of safe
characters. Anything else is replaced with a fresh UUID.

Usage:
    app.middleware("http")(request_id_middleware)
"""

from __future__ import annotations

import re
import time
import uuid

from fastapi import Request, Response

from app.core.config import settings
from app.core.logging import clear_request_id, set_request_id

MAX_REQUEST_ID_LENGTH = 128
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]+$")


def resolve_request_id(incoming: str | None) -> str:
    """Return the caller's request id if it is safe to log, else a new UUID."""
    if (
        incoming
        and len(incoming) <= MAX_REQUEST_ID_LENGTH
        and _REQUEST_ID_RE.match(incoming)
    ):
        return incoming
    return str(uuid.uuid4())


async def request_id_middleware(request: Request, call_next) -> Response:
    """Bind a request id to the logging context and echo it on the response.

    The guard and route logs emitted while handling the request carry the id
    through the logging contextvar, which is cleared once the response is
    produced. The response also gets an X-Request-Duration-ms header.
    """
    header_name = settings.log.request_id_header
    request_id = resolve_request_id(request.headers.get(header_name))
    set_request_id(request_id)
    started = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    response.headers[header_name] = request_id
    response.headers.setdefault(
        "X-Request-Duration-ms", f"{(time.perf_counter() - started) * 1000:.2f}"
    )
    return response
