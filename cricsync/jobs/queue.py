"""
In-process job queue.

Jobs are executed on a ThreadPoolExecutor; each one passes through its own
middleware (pause window admission) before handle() runs.
"""

import logging
import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional, Type

from cricsync import config
from cricsync.jobs.base import SyncJob
from cricsync.jobs.cleanup import CleanSyncLogsJob
from cricsync.jobs.commentary import SyncCommentaryJob
from cricsync.jobs.live_matches import SyncLiveMatchesJob
from cricsync.jobs.match_overs import SyncMatchOversJob
from cricsync.jobs.middleware import job_name, run_through
from cricsync.jobs.playing_xi import SyncSquadsPlayingXIJob
from cricsync.jobs.recent_matches import MoveEndedMatchesToRecentJob
from cricsync.jobs.scorecards import SyncScorecardJob
from cricsync.jobs.squads import SyncSquadJob

logger = logging.getLogger(__name__)

JOB_CLASSES: Dict[str, Type[SyncJob]] = {
    SyncLiveMatchesJob.job_key: SyncLiveMatchesJob,
    SyncMatchOversJob.job_key: SyncMatchOversJob,
    SyncScorecardJob.job_key: SyncScorecardJob,
    SyncCommentaryJob.job_key: SyncCommentaryJob,
    SyncSquadJob.job_key: SyncSquadJob,
    SyncSquadsPlayingXIJob.job_key: SyncSquadsPlayingXIJob,
    MoveEndedMatchesToRecentJob.job_key: MoveEndedMatchesToRecentJob,
    CleanSyncLogsJob.job_key: CleanSyncLogsJob,
}


def build_job(job_key: str, **kwargs: Any) -> SyncJob:
    """
    Instantiate a job by its key.

    Raises:
        KeyError: If the job key is unknown
    """
    return JOB_CLASSES[job_key](**kwargs)


class JobQueue:
    """Runs jobs on a worker pool and keeps a short history of failures."""

    def __init__(self, max_workers: int = config.WORKER_THREADS, failure_history: int = 100):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="cricsync-job")
        self._failures: Deque[Dict[str, Any]] = deque(maxlen=failure_history)
        self._lock = threading.Lock()

    def _record_failure(self, job: Any, exc: BaseException) -> None:
        with self._lock:
            self._failures.append({
                "job": job_name(job),
                "run_id": getattr(job, "run_id", None),
                "exception": type(exc).__name__,
                "message": str(exc),
                "failed_at": datetime.now(timezone.utc).isoformat(),
            })

    def run_now(self, job: Any) -> Any:
        """Run a job synchronously through its middleware. Failures are recorded and re-raised."""
        try:
            return run_through(job, job.middleware(), lambda current: current.handle())
        except Exception as e:
            logger.exception("Job %s failed: %s", job_name(job), e)
            self._record_failure(job, e)
            raise

    def _execute(self, job: Any) -> Any:
        try:
            return self.run_now(job)
        except Exception:
            return None

    def dispatch(self, job: Any) -> Future:
        """Queue a job on the worker pool."""
        logger.info("Dispatching %s (run %s)", job_name(job), getattr(job, "run_id", None) or "-")
        return self._executor.submit(self._execute, job)

    def failures(self) -> List[Dict[str, Any]]:
        with self._lock:
            return list(self._failures)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
