"""Pydantic schemas for admin login."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class AdminUser(BaseModel):
    """The authenticated admin, as returned to the client."""

    id: str = Field(..., description="Stable admin identifier.")
    email: str = Field(..., description="Admin email address.")
    role: Literal["admin"] = Field("admin", description="Account role.")
    last_login: datetime = Field(..., description="Time of this successful login (UTC).")


class LoginResponse(BaseModel):
    """Successful login payload."""

    success: Literal[True] = True
    user: AdminUser
