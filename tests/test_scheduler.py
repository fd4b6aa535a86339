"""Tests for the background scheduler."""

import schedule
from unittest.mock import Mock

from cricsync.jobs.scorecards import SyncScorecardJob
from cricsync.scheduler import build_schedule, run_guarded, should_run


def pause_window(paused):
    service = Mock()
    service.is_paused.return_value = paused
    return service


class TestBuildSchedule:
    """Tests for schedule registration."""

    def test_registers_every_job(self):
        scheduler = build_schedule(Mock(), pause_window(False), schedule.Scheduler())

        tags = sorted(tag for job in scheduler.get_jobs() for tag in job.tags)
        assert tags == sorted([
            "live-matches", "match-overs", "scorecards", "commentary", "squads", "logs-cleanup",
            "squads-playing-xi", "recent-matches",
        ])

    def test_intervals(self):
        scheduler = build_schedule(Mock(), pause_window(False), schedule.Scheduler())
        jobs = {next(iter(job.tags)): job for job in scheduler.get_jobs()}

        assert jobs["scorecards"].interval == 30
        assert jobs["scorecards"].unit == "seconds"
        assert jobs["squads"].unit == "hours"
        assert jobs["squads-playing-xi"].unit == "minutes"
        assert jobs["recent-matches"].interval == 1
        assert jobs["logs-cleanup"].unit == "days"
        assert str(jobs["logs-cleanup"].at_time) == "05:30:00"


class TestGuard:
    """Scheduled entries are skipped during the pause window."""

    def test_should_run(self):
        assert should_run(pause_window(False)) is True
        assert should_run(pause_window(True)) is False

    def test_paused_entry_does_not_dispatch(self):
        queue = Mock()

        assert run_guarded(queue, pause_window(True), "scorecards") is None
        queue.dispatch.assert_not_called()

    def test_open_entry_dispatches_job(self):
        queue = Mock()

        run_guarded(queue, pause_window(False), "scorecards")

        job = queue.dispatch.call_args[0][0]
        assert isinstance(job, SyncScorecardJob)
        assert job.match_ids == []

    def test_run_all_respects_guard(self):
        queue = Mock()
        scheduler = build_schedule(queue, pause_window(True), schedule.Scheduler())

        scheduler.run_all()

        queue.dispatch.assert_not_called()
