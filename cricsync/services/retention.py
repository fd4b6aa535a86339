"""Log retention pruning."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from cricsync.services.admin_settings import AdminSettingsService
from cricsync.storage.base import StorageInterface

logger = logging.getLogger(__name__)


def retention_cutoff(settings: AdminSettingsService, now: Optional[datetime] = None) -> datetime:
    """Rows created before this instant are past retention."""
    now = now or datetime.now(timezone.utc)
    return now - timedelta(minutes=settings.log_retention_minutes())


def prune_logs(
    storage: StorageInterface,
    settings: AdminSettingsService,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Delete sync logs and API request logs older than the retention window."""
    cutoff = retention_cutoff(settings, now)

    deleted_sync = storage.delete_sync_logs_before(cutoff)
    deleted_api = storage.delete_api_request_logs_before(cutoff)

    logger.info(
        "Pruned %d sync log rows and %d API request rows older than %s",
        deleted_sync, deleted_api, cutoff.isoformat(),
    )
    return {
        "cutoff": cutoff,
        "retention_days": settings.log_retention_days(),
        "sync_logs_deleted": deleted_sync,
        "api_request_logs_deleted": deleted_api,
    }
