from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from app.core.client_key import get_client_key
from app.core.errors import ValidationAppError
from app.core.rate_limit import (
    RateLimitRegistry,
    gate_submission,
    get_rate_limiters,
    record_submission,
)
from app.schemas.forms import SubmitFormResponse
from app.services.submission_store import InMemorySubmissionStore
from app.utils.form_validation import sanitize_form_input, validate_form_submission

router = APIRouter(tags=["Forms"])


def get_submission_store(request: Request) -> InMemorySubmissionStore:
    return request.app.state.submission_store


@router.post(
    "/forms/submit",
    response_model=SubmitFormResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit_form(
    request: Request,
    registry: Annotated[RateLimitRegistry, Depends(get_rate_limiters)],
    store: Annotated[InMemorySubmissionStore, Depends(get_submission_store)],
) -> SubmitFormResponse:
    """Public contact-form endpoint.

    Blocked callers are turned away before the body is read. Every accepted
    submission counts against the caller's budget; there is no reset.

    Raises:
        RateLimitExceededAppError: 429 when the caller is blocked.
        ValidationAppError: 400 for malformed JSON or invalid fields.
    """
    client_key = get_client_key(request)
    gate_submission(registry, client_key)

    try:
        data = await request.json()
    except ValueError as exc:
        raise ValidationAppError(code="INVALID_JSON", message="Invalid JSON format") from exc

    errors = validate_form_submission(data)
    if errors:
        raise ValidationAppError(
            code="VALIDATION_ERROR",
            message="Validation failed",
            details={"fields": errors},
        )

    fields = sanitize_form_input(data)
    record_submission(registry, client_key)
    store.add(fields)
    return SubmitFormResponse()
