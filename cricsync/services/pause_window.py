"""
Pause window service.

Decides whether background sync work may run right now. Every scheduled
entry and every queued job asks this service before doing anything, so it
must never raise: unreadable configuration falls back to the default
window.
"""

import logging
import math
from datetime import date, datetime, time, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo

from cricsync import config
from cricsync.models.pause_window import (
    MINUTES_PER_DAY,
    PauseWindowSettings,
    PauseWindowUpdate,
    is_valid_timezone,
    time_string_to_minutes,
)
from cricsync.services.cache import CacheService, get_cache_service
from cricsync.storage.base import StorageInterface

logger = logging.getLogger(__name__)

FALLBACK_TIMEZONE = "Asia/Kolkata"


def _default_minutes(value: str, fallback: int) -> int:
    try:
        return time_string_to_minutes(value)
    except ValueError:
        return fallback


def default_settings() -> PauseWindowSettings:
    """The compiled-in window used when stored configuration is unusable."""
    tz_name = FALLBACK_TIMEZONE
    for candidate in (config.PAUSE_WINDOW_TZ, config.APP_TIMEZONE):
        if is_valid_timezone(candidate):
            tz_name = candidate
            break

    start = _default_minutes(config.PAUSE_WINDOW_START, 60)
    end = _default_minutes(config.PAUSE_WINDOW_END, 480)
    if start == end:
        start, end = 60, 480

    return PauseWindowSettings.from_minutes(
        enabled=config.PAUSE_WINDOW_ENABLED,
        starts_at=start,
        ends_at=end,
        timezone=tz_name,
    )


class PauseWindowService:
    """Resolves the pause window and answers admission questions."""

    CACHE_KEY = "pause-window-config"
    CACHE_REGION = "pause_window"

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        cache: Optional[CacheService] = None,
    ) -> None:
        """
        Args:
            storage: Backend holding the pause window row (default: get_storage())
            cache: TTL cache for the resolved settings (default: global cache)
        """
        self._storage = storage
        self._cache = cache or get_cache_service()

    @property
    def storage(self) -> StorageInterface:
        if self._storage is not None:
            return self._storage
        from cricsync.storage import get_storage
        return get_storage()

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def current(self, use_cache: bool = True) -> PauseWindowSettings:
        """Get the active settings, read through the cache."""
        if use_cache:
            cached = self._cache.get(self.CACHE_KEY, self.CACHE_REGION)
            if cached is not None:
                return cached

        settings = self._load()
        self._cache.set(self.CACHE_KEY, settings, self.CACHE_REGION)
        return settings

    def _load(self) -> PauseWindowSettings:
        try:
            row = self.storage.get_pause_window()
        except Exception as e:
            logger.warning("Pause window unavailable, using default: %s", e)
            return default_settings()

        if not row:
            return default_settings()

        try:
            starts_at = int(row["starts_at"])
            ends_at = int(row["ends_at"])
            tz_name = row.get("timezone") or ""
        except (KeyError, TypeError, ValueError):
            logger.warning("Pause window row is malformed, using default")
            return default_settings()

        if not (0 <= starts_at < MINUTES_PER_DAY and 0 <= ends_at < MINUTES_PER_DAY):
            logger.warning("Pause window minutes out of range (%s, %s)", starts_at, ends_at)
            return default_settings()

        if starts_at == ends_at:
            logger.warning("Pause window has zero length, using default")
            return default_settings()

        if not is_valid_timezone(tz_name):
            logger.warning("Pause window timezone '%s' is invalid, using default", tz_name)
            return default_settings()

        return PauseWindowSettings.from_minutes(
            enabled=bool(row.get("enabled", True)),
            starts_at=starts_at,
            ends_at=ends_at,
            timezone=tz_name,
        )

    def refresh_cache(self) -> None:
        """Forget the cached settings; the next current() reads storage."""
        self._cache.delete(self.CACHE_KEY, self.CACHE_REGION)

    def update(self, payload: PauseWindowUpdate) -> PauseWindowSettings:
        """Persist an admin update and return the re-resolved settings."""
        tz_name = payload.timezone or self.current().timezone
        self.storage.save_pause_window(
            starts_at=payload.start_minutes,
            ends_at=payload.end_minutes,
            timezone=tz_name,
            enabled=payload.enabled,
        )
        self.refresh_cache()
        logger.info(
            "Pause window updated: enabled=%s %s-%s %s",
            payload.enabled, payload.start_time, payload.end_time, tz_name,
        )
        return self.current()

    # =========================================================================
    # WINDOW ARITHMETIC
    # =========================================================================
    #
    # Bounds are built from the local calendar date and the configured
    # time-of-day, then compared and subtracted as UTC instants so DST
    # transitions inside a window are counted in elapsed seconds.

    @staticmethod
    def _localize(now: Optional[datetime], tz_name: str) -> datetime:
        """Convert now to the window's zone at whole-second resolution."""
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.replace(microsecond=0).astimezone(ZoneInfo(tz_name))

    @staticmethod
    def _instant(day: date, minutes: int, zone: ZoneInfo) -> datetime:
        """The UTC instant of a local time-of-day on a given date."""
        local = datetime.combine(day, time(minutes // 60, minutes % 60), tzinfo=zone)
        return local.astimezone(timezone.utc)

    def _current_bounds(self, settings: PauseWindowSettings, local_now: datetime) -> Tuple[datetime, datetime]:
        """The window instance that contains now, or today's if none does."""
        zone = local_now.tzinfo
        today = local_now.date()
        now_utc = local_now.astimezone(timezone.utc)

        start = self._instant(today, settings.start_minutes, zone)
        end = self._instant(today, settings.end_minutes, zone)
        if settings.spans_midnight:
            if now_utc < end:
                start = self._instant(today - timedelta(days=1), settings.start_minutes, zone)
            else:
                end = self._instant(today + timedelta(days=1), settings.end_minutes, zone)
        return start, end

    def _upcoming_bounds(self, settings: PauseWindowSettings, local_now: datetime) -> Tuple[datetime, datetime]:
        """The next window instance to open at or after now."""
        zone = local_now.tzinfo
        start_day = local_now.date()
        if local_now.astimezone(timezone.utc) > self._instant(start_day, settings.start_minutes, zone):
            start_day += timedelta(days=1)

        end_day = start_day + timedelta(days=1) if settings.spans_midnight else start_day
        return (
            self._instant(start_day, settings.start_minutes, zone),
            self._instant(end_day, settings.end_minutes, zone),
        )

    @staticmethod
    def _contains(bounds: Tuple[datetime, datetime], local_now: datetime) -> bool:
        start, end = bounds
        return start <= local_now.astimezone(timezone.utc) < end

    # =========================================================================
    # ADMISSION
    # =========================================================================

    def is_paused(self, now: Optional[datetime] = None) -> bool:
        """True when now falls inside [start, end) of the configured window."""
        settings = self.current()
        if not settings.enabled:
            return False

        local_now = self._localize(now, settings.timezone)
        return self._contains(self._current_bounds(settings, local_now), local_now)

    def seconds_until_resume(self, now: Optional[datetime] = None) -> int:
        """Whole seconds until the current window closes; 0 when not paused.

        Sub-second precision in now is dropped, so while paused
        next_resume_at(now) is exactly this many seconds after now
        truncated to the second.
        """
        settings = self.current()
        if not settings.enabled:
            return 0

        local_now = self._localize(now, settings.timezone)
        bounds = self._current_bounds(settings, local_now)
        if not self._contains(bounds, local_now):
            return 0
        elapsed = bounds[1].timestamp() - local_now.timestamp()
        return max(0, math.ceil(elapsed))

    def next_pause_at(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """When the window next opens, or None when disabled."""
        settings = self.current()
        if not settings.enabled:
            return None

        local_now = self._localize(now, settings.timezone)
        start, _ = self._upcoming_bounds(settings, local_now)
        return start.astimezone(local_now.tzinfo)

    def next_resume_at(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """When sync work may next resume, or None when disabled.

        While paused this is the close of the current window; otherwise the
        close of the window returned by next_pause_at().
        """
        settings = self.current()
        if not settings.enabled:
            return None

        local_now = self._localize(now, settings.timezone)
        bounds = self._current_bounds(settings, local_now)
        if self._contains(bounds, local_now):
            return bounds[1].astimezone(local_now.tzinfo)

        _, upcoming_end = self._upcoming_bounds(settings, local_now)
        return upcoming_end.astimezone(local_now.tzinfo)

    def status(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Snapshot for the admin API."""
        now = now or datetime.now(timezone.utc)
        settings = self.current()
        next_pause = self.next_pause_at(now)
        next_resume = self.next_resume_at(now)
        return {
            "settings": settings.to_api(),
            "is_paused": self.is_paused(now),
            "seconds_until_resume": self.seconds_until_resume(now),
            "next_pause_at": next_pause.isoformat() if next_pause else None,
            "next_resume_at": next_resume.isoformat() if next_resume else None,
        }


@lru_cache
def get_pause_window_service() -> PauseWindowService:
    """Get the global pause window service instance."""
    return PauseWindowService()
