"""
Command line entry point.

Usage:
    python -m cricsync.cli sync live-matches
    python -m cricsync.cli sync scorecards --match-id 12345 --match-id 67890
    python -m cricsync.cli scheduler
    python -m cricsync.cli cleanup
"""

import argparse
import logging
import sys
import uuid
from typing import List, Optional

from . import config
from .jobs.queue import JOB_CLASSES, JobQueue, build_job
from .services.admin_settings import get_admin_settings
from .services.retention import prune_logs
from .storage import get_storage


def run_sync(job_key: str, match_ids: Optional[List[str]] = None) -> int:
    """Run one job in the foreground with a freshly minted run id."""
    settings = get_admin_settings()
    if not settings.is_cron_enabled(job_key):
        print(f"[!] {job_key} is disabled via emergency controls")
        return 1

    run_id = str(uuid.uuid4())
    print(f"[*] Running {job_key} (run {run_id})")

    queue = JobQueue(max_workers=1)
    try:
        result = queue.run_now(build_job(job_key, match_ids=match_ids, run_id=run_id))
    except Exception as e:
        print(f"[!] {job_key} failed: {e}")
        return 1
    finally:
        queue.shutdown()

    if result is None:
        print(f"[!] {job_key} skipped: pause window active")
        return 0

    print(f"[+] {job_key} finished (run {run_id})")
    return 0


def run_cleanup() -> int:
    """Prune logs past the retention window."""
    result = prune_logs(get_storage(), get_admin_settings())
    print(f"[+] Deleted {result['sync_logs_deleted']} sync log rows "
          f"and {result['api_request_logs_deleted']} API request rows "
          f"(retention {result['retention_days']} days)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Cricbuzz sync control plane')
    commands = parser.add_subparsers(dest='command', required=True)

    sync = commands.add_parser('sync', help='Run one sync job now')
    sync.add_argument('job', choices=sorted(JOB_CLASSES), help='Job to run')
    sync.add_argument('--match-id', dest='match_ids', action='append', default=None,
                      help='Restrict the run to this match (repeatable)')

    commands.add_parser('scheduler', help='Run the background scheduler')
    commands.add_parser('cleanup', help='Prune logs past the retention window')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    if args.command == 'sync':
        return run_sync(args.job, args.match_ids)
    if args.command == 'cleanup':
        return run_cleanup()

    from .scheduler import main as scheduler_main
    scheduler_main()
    return 0


if __name__ == '__main__':
    sys.exit(main())
