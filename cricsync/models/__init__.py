"""Data models for cricsync."""

from cricsync.models.admin import DispatchRequest, EmergencyToggle, LogRetentionUpdate
from cricsync.models.match import CommentaryEntry, LiveMatch, MatchInfo
from cricsync.models.pause_window import PauseWindowSettings, PauseWindowUpdate

__all__ = [
    "PauseWindowSettings",
    "PauseWindowUpdate",
    "MatchInfo",
    "LiveMatch",
    "CommentaryEntry",
    "EmergencyToggle",
    "LogRetentionUpdate",
    "DispatchRequest",
]
