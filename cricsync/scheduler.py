"""
Background scheduler for the sync jobs.

Registers every job on a `schedule` scheduler and hands due jobs to the
JobQueue. Entries are skipped outright while the pause window is active;
jobs that were already queued are dropped by their middleware instead.
"""

import logging
import time
from datetime import datetime
from typing import Any, Optional

import schedule

from .jobs.queue import JobQueue, build_job
from .services.pause_window import PauseWindowService, get_pause_window_service

logger = logging.getLogger(__name__)

FREQUENT_JOBS = ("live-matches", "match-overs", "scorecards", "commentary")
FREQUENT_INTERVAL_SECONDS = 30
MINUTELY_JOBS = ("squads-playing-xi", "recent-matches")
CLEANUP_AT = "05:30"


def should_run(pause_window: PauseWindowService) -> bool:
    """Scheduled entries only fire outside the pause window."""
    return not pause_window.is_paused()


def run_guarded(queue: JobQueue, pause_window: PauseWindowService, job_key: str) -> Optional[Any]:
    """Dispatch one job unless the pause window is active."""
    if not should_run(pause_window):
        logger.debug("Pause window active, not dispatching %s", job_key)
        return None
    return queue.dispatch(build_job(job_key))


def build_schedule(
    queue: JobQueue,
    pause_window: Optional[PauseWindowService] = None,
    scheduler: Optional[schedule.Scheduler] = None,
) -> schedule.Scheduler:
    """
    Register every sync job.

    Args:
        queue: Queue the due jobs are dispatched to
        pause_window: Pause window service (default: global service)
        scheduler: Scheduler to register on (default: a new one)

    Returns:
        The scheduler with all entries registered
    """
    pause_window = pause_window or get_pause_window_service()
    scheduler = scheduler or schedule.Scheduler()

    for job_key in FREQUENT_JOBS:
        scheduler.every(FREQUENT_INTERVAL_SECONDS).seconds.do(
            run_guarded, queue, pause_window, job_key
        ).tag(job_key)

    for job_key in MINUTELY_JOBS:
        scheduler.every().minute.do(run_guarded, queue, pause_window, job_key).tag(job_key)

    scheduler.every().hour.do(run_guarded, queue, pause_window, "squads").tag("squads")
    scheduler.every().day.at(CLEANUP_AT).do(
        run_guarded, queue, pause_window, "logs-cleanup"
    ).tag("logs-cleanup")

    return scheduler


def main():
    """Main entry point for scheduler."""
    print("=" * 50)
    print("Cricsync - Background Scheduler")
    print("=" * 50)

    queue = JobQueue()
    scheduler = build_schedule(queue)

    print(f"\n[*] Live jobs every {FREQUENT_INTERVAL_SECONDS} seconds, playing XI and recent matches every minute, squads hourly, cleanup at {CLEANUP_AT}")
    print("[*] Press Ctrl+C to stop\n")

    try:
        while True:
            scheduler.run_pending()
            time.sleep(1)
    except KeyboardInterrupt:
        print(f"\n[{datetime.now()}] Stopping scheduler...")
    finally:
        queue.shutdown(wait=True)


if __name__ == '__main__':
    main()
