"""In-process store for accepted contact-form submissions.

Durable persistence is outside this service; the store keeps the most
recent submissions in memory so they can be handed off or inspected.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import deque
from datetime import datetime, timezone

from app.schemas.forms import FormSubmission

logger = logging.getLogger(__name__)


class InMemorySubmissionStore:
    """Thread-safe, bounded list of submissions (oldest dropped first)."""

    def __init__(self, max_entries: int = 1000) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._items: deque[FormSubmission] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def add(self, fields: dict[str, str]) -> FormSubmission:
        submission = FormSubmission(
            id=str(uuid.uuid4()),
            name=fields["name"],
            email=fields["email"],
            message=fields["message"],
            submitted_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._items.append(submission)
        logger.info(
            "form_submission.created",
            extra={"submission_id": submission.id, "message_chars": len(submission.message)},
        )
        return submission

    def list(self) -> list[FormSubmission]:
        with self._lock:
            return list(self._items)
