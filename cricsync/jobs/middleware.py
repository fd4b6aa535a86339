"""
Job middleware.

A middleware wraps the execution of a queued job: it receives the job and a
callable that runs the rest of the chain, and may decide not to call it.
"""

import logging
from typing import Any, Callable, Optional, Sequence

from cricsync.services.pause_window import PauseWindowService, get_pause_window_service

logger = logging.getLogger(__name__)


def job_name(job: Any) -> str:
    return getattr(job, "job_key", None) or type(job).__name__


class RespectPauseWindow:
    """Drops jobs that reach a worker while the pause window is active.

    Dropped jobs are not retried or delayed; the next scheduled trigger
    simply runs them again.
    """

    def __init__(self, pause_window: Optional[PauseWindowService] = None) -> None:
        self._pause_window = pause_window

    @property
    def pause_window(self) -> PauseWindowService:
        return self._pause_window or get_pause_window_service()

    def handle(self, job: Any, proceed: Callable[[Any], Any]) -> Any:
        service = self.pause_window
        if service.is_paused():
            logger.info(
                "Skipping %s (run %s): pause window active, resumes in %d seconds",
                job_name(job),
                getattr(job, "run_id", None) or "-",
                service.seconds_until_resume(),
            )
            return None

        return proceed(job)


def run_through(job: Any, middleware: Sequence[Any], destination: Callable[[Any], Any]) -> Any:
    """Send a job through its middleware, outermost first, then to destination."""
    def build(index: int) -> Callable[[Any], Any]:
        if index >= len(middleware):
            return destination
        layer = middleware[index]
        following = build(index + 1)
        return lambda current: layer.handle(current, following)

    return build(0)(job)
