"""
Abstract base class defining the storage interface.

All storage backends must inherit from this class and implement every
abstract method so sync jobs, services and the admin API behave the same
regardless of backend.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Dict, Any, Iterable

from ..types import ApiRequestLogDict, RunEventDict


class StorageInterface(ABC):
    """
    Abstract interface for cricsync persistence.

    Covers the pause window row, admin settings, sync run logs, API request
    logs and the mirrored document collections.
    Methods should be thread-safe where applicable.
    """

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    @abstractmethod
    def initialize(self) -> None:
        """
        Initialize the connection and schema.

        Should create tables if they don't exist and seed the default pause
        window row. Must be idempotent.
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Close connections and clean up resources."""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """
        Check if the backend is reachable.

        Returns:
            True if storage is accessible, False otherwise
        """
        pass

    # =========================================================================
    # PAUSE WINDOW
    # =========================================================================

    @abstractmethod
    def get_pause_window(self) -> Optional[Dict[str, Any]]:
        """
        Get the pause window row.

        Returns:
            Dict with 'starts_at', 'ends_at' (minutes since midnight),
            'timezone', 'enabled', 'updated_at'; None if no row exists
        """
        pass

    @abstractmethod
    def save_pause_window(
        self,
        starts_at: int,
        ends_at: int,
        timezone: str,
        enabled: bool
    ) -> None:
        """Create or replace the single pause window row."""
        pass

    # =========================================================================
    # ADMIN SETTINGS
    # =========================================================================

    @abstractmethod
    def get_setting(self, key: str) -> Optional[Any]:
        """
        Get a stored admin setting.

        Returns:
            The decoded JSON value, or None if the key is unknown
        """
        pass

    @abstractmethod
    def put_setting(self, key: str, value: Any) -> None:
        """Insert or update an admin setting (stored as JSON)."""
        pass

    # =========================================================================
    # SYNC LOGS
    # =========================================================================

    @abstractmethod
    def append_sync_log(
        self,
        run_id: str,
        job_key: str,
        action: str,
        status: Optional[str],
        message: str,
        context: Optional[Dict[str, Any]],
        created_at: datetime
    ) -> None:
        """Append one run event."""
        pass

    @abstractmethod
    def get_run_events(self, job_key: str, run_id: str) -> List[RunEventDict]:
        """
        Get all events of one run.

        Returns:
            List of event dicts ordered by created_at ascending
        """
        pass

    @abstractmethod
    def get_events_for_runs(self, job_key: str, run_ids: Iterable[str]) -> Dict[str, List[RunEventDict]]:
        """
        Get events for several runs at once.

        Returns:
            Mapping of run_id to its events ordered by created_at ascending
        """
        pass

    @abstractmethod
    def list_runs(
        self,
        job_key: str,
        search: Optional[str] = None,
        limit: int = 25,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        """
        List runs of a job with aggregate counters, newest first.

        Each row has 'run_id', 'started_at', 'finished_at', 'event_count',
        'error_count', 'warning_count', 'success_count' and 'final_status'
        (status of the latest job_completed event, else of the latest event,
        'info' when that status is empty).
        """
        pass

    @abstractmethod
    def count_runs(self, job_key: str, since: Optional[datetime] = None) -> int:
        """Count distinct runs of a job, optionally only those with events since a cutoff."""
        pass

    @abstractmethod
    def latest_run_ids(self, job_key: str, limit: int = 5) -> List[str]:
        """Run ids ordered by their last event, newest first."""
        pass

    @abstractmethod
    def last_event_at(self, job_key: str) -> Optional[datetime]:
        """Timestamp of the newest event of a job."""
        pass

    @abstractmethod
    def status_breakdown(self, job_key: str, since: datetime) -> Dict[str, int]:
        """Count events per non-null status since a cutoff."""
        pass

    @abstractmethod
    def recent_issues(self, job_key: str, limit: int = 5) -> List[RunEventDict]:
        """Newest error/warning events of a job."""
        pass

    @abstractmethod
    def completion_events(self, job_key: str, since: datetime) -> List[RunEventDict]:
        """job_completed / job_finished events since a cutoff, newest first."""
        pass

    @abstractmethod
    def delete_sync_logs_before(self, cutoff: datetime) -> int:
        """
        Delete sync log rows older than the cutoff.

        Returns:
            Number of rows deleted
        """
        pass

    @abstractmethod
    def truncate_sync_logs(self, job_key: Optional[str] = None) -> int:
        """Delete every sync log row, or only those of one job."""
        pass

    # =========================================================================
    # API REQUEST LOGS
    # =========================================================================

    @abstractmethod
    def append_api_request_log(self, entry: ApiRequestLogDict) -> None:
        """Persist one outbound HTTP call record."""
        pass

    @abstractmethod
    def get_api_request_logs(self, run_id: str) -> List[ApiRequestLogDict]:
        """All API request records of one run, oldest first."""
        pass

    @abstractmethod
    def delete_api_request_logs_before(self, cutoff: datetime) -> int:
        """Delete API request records older than the cutoff."""
        pass

    # =========================================================================
    # DOCUMENTS
    # =========================================================================

    @abstractmethod
    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """
        Get one mirrored document.

        Returns:
            The document data, or None if it doesn't exist
        """
        pass

    @abstractmethod
    def set_document(
        self,
        collection: str,
        doc_id: str,
        data: Dict[str, Any],
        merge: bool = True
    ) -> None:
        """
        Write a document.

        Behavior:
            - merge=True deep-merges nested maps into the stored document
            - merge=False replaces the stored document
        """
        pass

    @abstractmethod
    def find_documents(
        self,
        collection: str,
        field: str,
        values: Optional[Iterable[Any]] = None,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None
    ) -> List[Dict[str, Any]]:
        """
        Find documents by a dotted field path.

        Args:
            collection: Collection name
            field: Dotted path (e.g. 'matchInfo.state_lowercase')
            values: Match documents whose field equals one of these
            min_value: Inclusive numeric lower bound
            max_value: Inclusive numeric upper bound

        Returns:
            List of dicts with 'id' and 'data', ordered by id
        """
        pass

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    @abstractmethod
    def get_stats(self) -> Dict[str, int]:
        """Row counts per table."""
        pass
