"""Services for cricsync."""

from cricsync.services.admin_settings import AdminSettingsService, get_admin_settings
from cricsync.services.cache import CacheService, get_cache_service
from cricsync.services.pause_window import PauseWindowService, get_pause_window_service
from cricsync.services.run_logger import RunLogger
from cricsync.services.staleness import SCORECARD_POLICY, SQUAD_POLICY, StalenessPolicy, should_refresh

__all__ = [
    "AdminSettingsService",
    "get_admin_settings",
    "CacheService",
    "get_cache_service",
    "PauseWindowService",
    "get_pause_window_service",
    "RunLogger",
    "StalenessPolicy",
    "should_refresh",
    "SCORECARD_POLICY",
    "SQUAD_POLICY",
]
