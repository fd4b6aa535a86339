"""
Admin-editable settings.

Backed by the admin_settings table (key -> JSON value) and read through
the settings cache region so jobs can check their emergency toggle on every
run without hitting storage.
"""

import logging
from functools import lru_cache
from typing import Any, Dict, Optional

from cricsync import config
from cricsync.jobs.registry import JOBS
from cricsync.services.cache import CacheService, get_cache_service
from cricsync.storage.base import StorageInterface

logger = logging.getLogger(__name__)

LOG_RETENTION_KEY = "log_retention_days"
CRON_TOGGLES_KEY = "cron_toggles"
CRICBUZZ_KEY = "cricbuzz"

MIN_RETENTION_DAYS = 5
MAX_RETENTION_DAYS = 365


def clamp_retention_days(days: Any) -> int:
    """Clamp a retention value to 5..365 days; unparseable values use the default."""
    try:
        value = int(days)
    except (TypeError, ValueError):
        value = config.LOG_RETENTION_DAYS
    return max(MIN_RETENTION_DAYS, min(MAX_RETENTION_DAYS, value))


class AdminSettingsService:
    """Typed access to the admin_settings table."""

    CACHE_REGION = "settings"

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        cache: Optional[CacheService] = None,
    ) -> None:
        self._storage = storage
        self._cache = cache or get_cache_service()

    @property
    def storage(self) -> StorageInterface:
        if self._storage is not None:
            return self._storage
        from cricsync.storage import get_storage
        return get_storage()

    # =========================================================================
    # GENERIC ACCESS
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        cached = self._cache.get(key, self.CACHE_REGION)
        if cached is not None:
            return cached

        value = self.storage.get_setting(key)
        if value is None:
            return default

        self._cache.set(key, value, self.CACHE_REGION)
        return value

    def put(self, key: str, value: Any) -> None:
        self.storage.put_setting(key, value)
        self._cache.delete(key, self.CACHE_REGION)

    # =========================================================================
    # LOG RETENTION
    # =========================================================================

    def log_retention_days(self) -> int:
        return clamp_retention_days(self.get(LOG_RETENTION_KEY, config.LOG_RETENTION_DAYS))

    def log_retention_minutes(self) -> int:
        return self.log_retention_days() * 1440

    def update_log_retention_days(self, days: int) -> int:
        """Store a new retention period and return the clamped value."""
        value = clamp_retention_days(days)
        self.put(LOG_RETENTION_KEY, value)
        logger.info("Log retention set to %d days", value)
        return value

    # =========================================================================
    # EMERGENCY TOGGLES
    # =========================================================================

    def _toggles(self) -> Dict[str, bool]:
        stored = self.get(CRON_TOGGLES_KEY, {})
        return stored if isinstance(stored, dict) else {}

    def is_cron_enabled(self, job_key: str) -> bool:
        """Jobs run unless an admin switched them off."""
        return bool(self._toggles().get(job_key, True))

    def set_cron_enabled(self, job_key: str, enabled: bool) -> None:
        toggles = dict(self._toggles())
        toggles[job_key] = bool(enabled)
        self.put(CRON_TOGGLES_KEY, toggles)
        logger.warning("Emergency toggle: %s %s", job_key, "enabled" if enabled else "disabled")

    def cron_toggles(self) -> Dict[str, bool]:
        """Enabled flag for every registered job."""
        toggles = self._toggles()
        return {job_key: bool(toggles.get(job_key, True)) for job_key in JOBS}

    # =========================================================================
    # INTEGRATIONS
    # =========================================================================

    def cricbuzz_settings(self) -> Dict[str, str]:
        stored = self.get(CRICBUZZ_KEY, {})
        if not isinstance(stored, dict):
            stored = {}
        host = str(stored.get("host") or "").strip()
        key = str(stored.get("key") or "").strip()
        return {
            "host": host or config.CRICBUZZ_HOST,
            "key": key or config.CRICBUZZ_KEY,
        }

    def update_cricbuzz_settings(self, host: Optional[str] = None, key: Optional[str] = None) -> Dict[str, str]:
        self.put(CRICBUZZ_KEY, {
            "host": (host or "").strip(),
            "key": (key or "").strip(),
        })
        return self.cricbuzz_settings()


@lru_cache
def get_admin_settings() -> AdminSettingsService:
    """Get the global admin settings service instance."""
    return AdminSettingsService()
