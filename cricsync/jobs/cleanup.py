"""Retention cleanup of run logs."""

from cricsync.jobs.base import JobOutcome, SyncJob
from cricsync.services.retention import prune_logs


class CleanSyncLogsJob(SyncJob):
    """Deletes sync logs and API request logs past the retention window."""

    job_key = "logs-cleanup"
    name = "CleanSyncLogs"

    def initialize_clients(self) -> None:
        return None

    def sync(self) -> JobOutcome:
        result = prune_logs(self.storage, self.settings)
        self.log("logs_pruned", "info", "Pruned logs past retention", {
            "cutoff": result["cutoff"].isoformat(),
            "retention_days": result["retention_days"],
        })
        return JobOutcome("success", {
            "retention_days": result["retention_days"],
            "sync_logs_deleted": result["sync_logs_deleted"],
            "api_request_logs_deleted": result["api_request_logs_deleted"],
        })
