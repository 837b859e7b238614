from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request

from app.core.auth import CredentialVerifier, get_credential_verifier, parse_login_payload
from app.core.client_key import get_client_key, hash_client_key
from app.core.errors import AuthenticationAppError
from app.core.rate_limit import (
    RateLimitRegistry,
    enforce_login_attempt,
    forgive_login,
    get_rate_limiters,
)
from app.schemas.auth import LoginResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])


async def read_json_body(request: Request) -> Any:
    """Decode the request body, returning None when it is not valid JSON."""
    try:
        return await request.json()
    except ValueError:
        return None


@router.post("/auth/login", response_model=LoginResponse)
async def login(
    request: Request,
    registry: Annotated[RateLimitRegistry, Depends(get_rate_limiters)],
    verifier: Annotated[CredentialVerifier, Depends(get_credential_verifier)],
) -> LoginResponse:
    """Admin login endpoint.

    Every attempt is counted against the caller's login budget before the
    credentials are looked at; a successful login clears the count.

    Raises:
        RateLimitExceededAppError: 429 when the caller is blocked.
        ValidationAppError: 400 for missing fields or a malformed email.
        AuthenticationAppError: 401 for wrong credentials.
    """
    client_key = get_client_key(request)
    enforce_login_attempt(registry, client_key)

    email, password = parse_login_payload(await read_json_body(request))

    user = await verifier.verify(email, password)
    if user is None:
        logger.warning(
            "auth.login_failed",
            extra={"key_hash": hash_client_key(client_key), "reason": "invalid_credentials"},
        )
        raise AuthenticationAppError(
            code="INVALID_CREDENTIALS",
            message="Invalid email or password",
        )

    forgive_login(registry, client_key)
    logger.info("auth.login_succeeded", extra={"key_hash": hash_client_key(client_key)})
    return LoginResponse(user=user)
