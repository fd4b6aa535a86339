"""Pause window data models."""

import re
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from pydantic import BaseModel, Field, field_validator, model_validator

MINUTES_PER_DAY = 1440

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def minutes_to_time_string(minutes: int) -> str:
    """Format minutes since midnight as HH:MM, clamping to 00:00..23:59."""
    minutes = max(0, min(MINUTES_PER_DAY - 1, int(minutes)))
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def time_string_to_minutes(value: str) -> int:
    """Parse an HH:MM string into minutes since midnight.

    Raises:
        ValueError: If the string is not a valid 24-hour time
    """
    match = _TIME_PATTERN.match(value or "")
    if not match:
        raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def is_valid_timezone(name: str) -> bool:
    """Check whether an IANA zone name can be loaded."""
    if not name:
        return False
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


class PauseWindowSettings(BaseModel):
    """Resolved pause window: when background sync is suppressed each day."""

    enabled: bool = True
    start_time: str = Field("01:00", alias="startTime")
    end_time: str = Field("08:00", alias="endTime")
    timezone: str = "Asia/Kolkata"

    class Config:
        """Pydantic configuration."""

        populate_by_name = True
        frozen = True

    @classmethod
    def from_minutes(
        cls, enabled: bool, starts_at: int, ends_at: int, timezone: str
    ) -> "PauseWindowSettings":
        """Build settings from stored minute values."""
        return cls(
            enabled=enabled,
            start_time=minutes_to_time_string(starts_at),
            end_time=minutes_to_time_string(ends_at),
            timezone=timezone,
        )

    @property
    def start_minutes(self) -> int:
        return time_string_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return time_string_to_minutes(self.end_time)

    @property
    def spans_midnight(self) -> bool:
        """True when the window wraps past midnight (start >= end)."""
        return self.start_minutes >= self.end_minutes

    @property
    def duration_minutes(self) -> int:
        if self.spans_midnight:
            return MINUTES_PER_DAY - self.start_minutes + self.end_minutes
        return self.end_minutes - self.start_minutes

    def to_api(self) -> dict:
        """Serialize for the admin API."""
        return {
            "enabled": self.enabled,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "timezone": self.timezone,
            "spans_midnight": self.spans_midnight,
            "duration_minutes": self.duration_minutes,
        }


class PauseWindowUpdate(BaseModel):
    """Admin update payload for the pause window."""

    enabled: bool = True
    start_time: str
    end_time: str
    timezone: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def check_time_format(cls, value: str) -> str:
        time_string_to_minutes(value)
        return value

    @field_validator("timezone")
    @classmethod
    def check_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_valid_timezone(value):
            raise ValueError(f"Unknown timezone '{value}'")
        return value

    @model_validator(mode="after")
    def check_distinct_bounds(self) -> "PauseWindowUpdate":
        """A zero-length window is not allowed."""
        if self.start_time == self.end_time:
            raise ValueError("end_time must differ from start_time")
        return self

    @property
    def start_minutes(self) -> int:
        return time_string_to_minutes(self.start_time)

    @property
    def end_minutes(self) -> int:
        return time_string_to_minutes(self.end_time)
