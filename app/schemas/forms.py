"""Pydantic schemas for public contact-form submissions."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class FormSubmission(BaseModel):
    """A validated and sanitized contact-form submission."""

    id: str = Field(..., description="Identifier assigned when the submission is accepted.")
    name: str = Field(..., max_length=100)
    email: str = Field(..., max_length=255)
    message: str = Field(..., max_length=1000)
    status: Literal["new", "read", "archived"] = "new"
    submitted_at: datetime


class SubmitFormResponse(BaseModel):
    """Acknowledgement returned for an accepted submission."""

    success: Literal[True] = True
    message: str = Field(
        "Thank you for your submission! We will get back to you soon.",
        description="Human-readable confirmation.",
    )
