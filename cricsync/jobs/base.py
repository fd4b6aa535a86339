"""
Base class for Cricbuzz sync jobs.

Every job follows the same run shape:

    job_started -> (job_disabled) -> initialize_clients -> ... -> job_completed

and records each step on a RunLogger so the admin dashboard can rebuild
the run from the sync_logs table.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from cricsync.clients.cricbuzz import CricbuzzClient
from cricsync.jobs.middleware import RespectPauseWindow
from cricsync.services.admin_settings import AdminSettingsService
from cricsync.services.api_tracker import ApiCallTracker, exception_context
from cricsync.services.run_logger import RunLogger
from cricsync.storage.base import StorageInterface

ClientFactory = Callable[[str, str, ApiCallTracker], CricbuzzClient]

LIVE_STATES = ("live", "inprogress", "in progress")
MATCHES_COLLECTION = "matches"


class JobConfigurationError(RuntimeError):
    """A job cannot start because an integration is not configured."""
    pass


@dataclass
class JobOutcome:
    """What a job reports on its job_completed event."""

    status: str
    context: Dict[str, Any] = field(default_factory=dict)


def now_ms() -> int:
    return int(datetime.now(timezone.utc).timestamp() * 1000)


def server_time() -> str:
    return datetime.now(timezone.utc).isoformat()


class SyncJob:
    """
    Template for one sync job invocation.

    Subclasses set job_key/name and implement sync().
    """

    job_key: str = ""
    name: str = "Sync"

    def __init__(
        self,
        match_ids: Optional[List[Any]] = None,
        run_id: Optional[str] = None,
        storage: Optional[StorageInterface] = None,
        settings: Optional[AdminSettingsService] = None,
        client_factory: Optional[ClientFactory] = None,
    ):
        """
        Args:
            match_ids: Restrict the run to these matches (default: discover)
            run_id: Run id handed over by the dispatcher
            storage: Storage backend (default: get_storage())
            settings: Admin settings (default: global service)
            client_factory: Builds the API client from (host, key, tracker)
        """
        self.match_ids = [str(match_id) for match_id in (match_ids or [])]
        self.run_id = run_id
        self._storage = storage
        self._settings = settings
        self._client_factory = client_factory or (
            lambda host, key, tracker: CricbuzzClient(host, key, tracker=tracker)
        )

        self.logger: Optional[RunLogger] = None
        self.tracker: Optional[ApiCallTracker] = None
        self.client: Optional[CricbuzzClient] = None

    @property
    def storage(self) -> StorageInterface:
        if self._storage is not None:
            return self._storage
        from cricsync.storage import get_storage
        return get_storage()

    @property
    def settings(self) -> AdminSettingsService:
        if self._settings is None:
            from cricsync.services.admin_settings import get_admin_settings
            self._settings = get_admin_settings()
        return self._settings

    def middleware(self) -> list:
        return [RespectPauseWindow()]

    def log(self, action: str, status: Optional[str], message: str, context: Optional[Dict[str, Any]] = None) -> None:
        self.logger.log(action, status, message, context)

    def api_calls(self) -> Dict[str, Any]:
        return self.tracker.breakdown() if self.tracker else {"total": 0, "breakdown": {}}

    # =========================================================================
    # RUN
    # =========================================================================

    def handle(self) -> Dict[str, Any]:
        """Run the job once and return the job_completed context."""
        self.logger = RunLogger(self.job_key, self.run_id, self.storage)
        self.run_id = self.logger.run_id
        self.tracker = ApiCallTracker(self.job_key, self.run_id, self.storage)

        self.log("job_started", "info", f"{self.name} job started", {
            "match_ids": self.match_ids,
        })

        if not self.settings.is_cron_enabled(self.job_key):
            self.log("job_disabled", "warning", f"{self.name} job paused via emergency controls.")
            return {"run_id": self.run_id, "disabled": True}

        try:
            self.client = self.initialize_clients()
            self.log("initialize_clients", "success", "API client initialised")
        except JobConfigurationError as e:
            self.log("initialize_clients", "error", "Failed to initialise API client", exception_context(e))
            raise

        try:
            outcome = self.sync()
        except Exception as e:
            self.log("job_failed", "error", f"{self.name} job failed", {
                **exception_context(e),
                "api_calls": self.api_calls(),
            })
            raise
        finally:
            if self.client is not None:
                self.client.close()

        context = {**outcome.context, "api_calls": self.api_calls()}
        self.log("job_completed", outcome.status, f"{self.name} job finished", context)
        return {"run_id": self.run_id, **context}

    def initialize_clients(self) -> Optional[CricbuzzClient]:
        cricbuzz = self.settings.cricbuzz_settings()
        if not cricbuzz["key"]:
            raise JobConfigurationError("Cricbuzz API key is not configured.")
        return self._client_factory(cricbuzz["host"], cricbuzz["key"], self.tracker)

    def sync(self) -> JobOutcome:
        raise NotImplementedError

    # =========================================================================
    # SHARED HELPERS
    # =========================================================================

    def resolve_live_match_ids(self) -> List[str]:
        """Requested ids, or every stored match in a live state."""
        if self.match_ids:
            return list(dict.fromkeys(self.match_ids))

        self.log("match_ids_discovery", "info", "Discovering live match IDs from storage")
        try:
            documents = self.storage.find_documents(
                MATCHES_COLLECTION, "matchInfo.state_lowercase", values=LIVE_STATES
            )
        except Exception as e:
            self.log("match_id_query_failed", "error", "Failed to query live matches", exception_context(e))
            return []

        return list(dict.fromkeys(document["id"] for document in documents))
