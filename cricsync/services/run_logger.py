"""
Run-scoped structured logging.

Every sync job creates one RunLogger per invocation. All events of that
invocation share one run id, land in the sync_logs table and are mirrored
to the standard logging tree under 'cricsync.sync'.
"""

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from cricsync.storage.base import StorageInterface

sync_logger = logging.getLogger("cricsync.sync")

STATUS_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

STATUSES = ("info", "success", "warning", "error")


class RunLogger:
    """Persists and mirrors the events of one job run."""

    def __init__(
        self,
        job_key: str,
        run_id: Optional[str] = None,
        storage: Optional[StorageInterface] = None,
    ) -> None:
        """
        Args:
            job_key: Job discriminator, e.g. 'live-matches'
            run_id: Run id handed over by the dispatcher; a uuid4 is minted if omitted
            storage: Backend for the sync_logs rows (default: get_storage())
        """
        self.job_key = job_key
        self.run_id = run_id or str(uuid.uuid4())
        self._storage = storage
        self._last_created_at: Optional[datetime] = None
        self._lock = threading.Lock()

    @property
    def prefix(self) -> str:
        return f"SYNC-{self.job_key.upper()}: "

    def _next_timestamp(self) -> datetime:
        with self._lock:
            now = datetime.now(timezone.utc)
            if self._last_created_at is not None and now <= self._last_created_at:
                now = self._last_created_at + timedelta(microseconds=1)
            self._last_created_at = now
            return now

    def _resolve_storage(self) -> StorageInterface:
        if self._storage is not None:
            return self._storage
        from cricsync.storage import get_storage
        return get_storage()

    def log(
        self,
        action: str,
        status: Optional[str],
        message: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record one event. Never raises."""
        created_at = self._next_timestamp()

        try:
            self._resolve_storage().append_sync_log(
                run_id=self.run_id,
                job_key=self.job_key,
                action=action,
                status=status,
                message=message,
                context=context or None,
                created_at=created_at,
            )
        except Exception as e:
            sync_logger.debug("Failed to persist %s event for run %s: %s", action, self.run_id, e)

        level = STATUS_LEVELS.get(status or "info", logging.INFO)
        sync_logger.log(
            level,
            f"{self.prefix}{message}",
            extra={"run_id": self.run_id, "job_key": self.job_key, "action": action},
        )
