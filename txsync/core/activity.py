"""Capped, newest-first activity log shown to the owner."""

import json
import logging
from datetime import datetime, timezone
from typing import Callable

from .store import KeyValueBackend

logger = logging.getLogger(__name__)

ACTIVITY_LOG_KEY = "activity_log"
MAX_ENTRIES = 100


class ActivityLog:
    """Append-only audit trail stored under its own key.

    Failures are reported to the Python log only; callers never see them.
    """

    def __init__(
        self,
        backend: KeyValueBackend,
        max_entries: int = MAX_ENTRIES,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.backend = backend
        self.max_entries = max_entries
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def entries(self) -> list[str]:
        """All entries, newest first."""
        try:
            raw = self.backend.get(ACTIVITY_LOG_KEY)
            if not raw:
                return []
            data = json.loads(raw)
        except (OSError, ValueError) as e:
            logger.error("Activity log is unreadable: %s", e)
            return []
        if not isinstance(data, list):
            return []
        return [str(entry) for entry in data]

    def append(self, message: str) -> None:
        """Prepend a timestamped entry and evict the oldest beyond the cap."""
        logger.info(message)
        try:
            entries = self.entries()
            entries.insert(0, f"{self._clock().isoformat()}: {message}")
            del entries[self.max_entries:]
            self.backend.set(ACTIVITY_LOG_KEY, json.dumps(entries))
        except Exception:
            logger.exception("Failed to persist activity log entry")

    def clear(self) -> None:
        """Delete the whole log."""
        try:
            self.backend.delete(ACTIVITY_LOG_KEY)
        except Exception:
            logger.exception("Failed to clear activity log")
