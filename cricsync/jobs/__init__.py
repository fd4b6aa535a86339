"""Sync jobs for cricsync.

Import job classes from their modules (or build them by key through
cricsync.jobs.queue.build_job); this package only exposes the registry.
"""

from cricsync.jobs.registry import JOBS, is_known_job

__all__ = ["JOBS", "is_known_job"]
