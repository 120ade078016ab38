from __future__ import annotations

from datetime import datetime, timedelta
import logging
from typing import Any

from django.conf import settings
from django.utils.dateparse import parse_datetime

logger = logging.getLogger(__name__)

STATUS_IDLE = ""
STATUS_SAVING = "saving"
STATUS_SAVED = "saved"
STATUS_ERROR = "error"


class DraftAutoSaver:
    """Periodic draft saving with revision fencing.

    Every save is tagged with the builder revision it captured. A save that
    finishes after a newer one has already been stored is dropped, so a slow
    request can never overwrite fresher state.
    """

    def __init__(self, interval: int | None = None):
        if interval is None:
            interval = settings.SURVEY_AUTOSAVE_INTERVAL
        self.interval = timedelta(seconds=interval)
        self.last_saved_at: datetime | None = None
        self.saved_revision = -1
        self.pending_revision: int | None = None
        self.status = STATUS_IDLE

    def is_due(self, now: datetime, unsaved_changes: bool, title: str) -> bool:
        if not unsaved_changes or not (title or "").strip():
            return False
        if self.last_saved_at is None:
            return True
        return now - self.last_saved_at >= self.interval

    def begin(self, revision: int) -> None:
        self.pending_revision = revision
        self.status = STATUS_SAVING

    def complete(self, revision: int, now: datetime) -> bool:
        """Record a finished save. Returns False when the save was stale."""
        if revision <= self.saved_revision:
            logger.info(
                f"Discarding stale auto-save of revision {revision} "
                f"(revision {self.saved_revision} already stored)"
            )
            return False
        self.saved_revision = revision
        self.last_saved_at = now
        if self.pending_revision == revision:
            self.pending_revision = None
        self.status = STATUS_SAVED
        return True

    def fail(self, revision: int) -> None:
        logger.warning(f"Auto-save of revision {revision} failed")
        if self.pending_revision == revision:
            self.pending_revision = None
        self.status = STATUS_ERROR

    def to_session(self) -> dict[str, Any]:
        return {
            "lastSavedAt": self.last_saved_at.isoformat() if self.last_saved_at else None,
            "savedRevision": self.saved_revision,
            "status": self.status,
        }

    @classmethod
    def from_session(cls, data: dict[str, Any] | None) -> "DraftAutoSaver":
        saver = cls()
        if data:
            last = data.get("lastSavedAt")
            saver.last_saved_at = parse_datetime(last) if last else None
            saver.saved_revision = data.get("savedRevision", -1)
            saver.status = data.get("status", STATUS_IDLE)
        return saver
