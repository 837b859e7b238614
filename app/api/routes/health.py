from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.rate_limit import RateLimitRegistry, get_rate_limiters

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(
    registry: Annotated[RateLimitRegistry, Depends(get_rate_limiters)],
) -> dict:
    """Health check endpoint.

    Returns:
        dict: ``status`` set to "ok" plus the number of keys each guard tracks.
    """

    return {"status": "ok", "tracked_keys": registry.stats()}
