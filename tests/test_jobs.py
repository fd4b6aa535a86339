"""Tests for the sync jobs and the job queue."""

import random

import pytest
from unittest.mock import Mock, patch

from pydantic import ValidationError

from cricsync import config
from cricsync.jobs import JOBS, is_known_job
from cricsync.jobs.base import JobConfigurationError, now_ms
from cricsync.jobs.cleanup import CleanSyncLogsJob
from cricsync.jobs.commentary import SyncCommentaryJob, merge_commentary
from cricsync.jobs.live_matches import SyncLiveMatchesJob, flatten_live_payload, prepare_live_match
from cricsync.jobs.match_overs import SyncMatchOversJob, should_persist_overs
from cricsync.jobs.middleware import RespectPauseWindow
from cricsync.jobs.playing_xi import SyncSquadsPlayingXIJob, playing_xi_is_empty
from cricsync.jobs.queue import JOB_CLASSES, JobQueue, build_job
from cricsync.jobs.recent_matches import MoveEndedMatchesToRecentJob
from cricsync.jobs.scorecards import SyncScorecardJob
from cricsync.jobs.squads import SyncSquadJob
from cricsync.services.admin_settings import AdminSettingsService
from cricsync.services.cache import CacheService
from cricsync.services.run_logger import RunLogger


LIVE_PAYLOAD = {
    "typeMatches": [
        {
            "matchType": "International",
            "seriesMatches": [
                {
                    "seriesAdWrapper": {
                        "seriesId": 9,
                        "matches": [
                            {
                                "matchInfo": {
                                    "matchId": 101,
                                    "seriesId": 9,
                                    "state": "In Progress",
                                    "startDate": "1760000000000",
                                    "team1": {"teamName": "India"},
                                },
                                "matchScore": {"team1Score": {"inngs1": {"runs": 120}}},
                            }
                        ],
                    }
                },
                {"adDetail": {"name": "ad"}},
            ],
        }
    ],
    "matchDetails": [
        {
            "matchDetailsMap": {
                "key": "Today",
                "match": [
                    {"matchInfo": {"matchId": "102", "state": "Live"}},
                    {"matchInfo": {"matchId": 101, "state": "Toss"}},
                ],
            }
        }
    ],
}


def actions(storage, job_key, run_id):
    return [event["action"] for event in storage.get_run_events(job_key, run_id)]


def store_live_match(storage, match_id, state="live"):
    storage.set_document("matches", match_id, {"matchInfo": {"matchid": int(match_id), "state_lowercase": state}})


class TestRegistry:
    """Tests for job metadata."""

    def test_every_job_has_a_class(self):
        assert set(JOBS) == set(JOB_CLASSES)

    def test_is_known_job(self):
        assert is_known_job("squads") is True
        assert is_known_job("news") is False

    def test_build_job(self):
        job = build_job("scorecards", match_ids=[1, 2], run_id="r1")

        assert isinstance(job, SyncScorecardJob)
        assert job.match_ids == ["1", "2"]
        assert job.run_id == "r1"

    def test_build_unknown_job(self):
        with pytest.raises(KeyError):
            build_job("news")


class TestJobTemplate:
    """Tests for the shared run shape."""

    def test_disabled_job_stops_after_start(self, storage_fixture, admin_settings, fake_client_factory):
        admin_settings.set_cron_enabled("live-matches", False)
        factory = fake_client_factory({})
        job = SyncLiveMatchesJob(run_id="r1", storage=storage_fixture, settings=admin_settings,
                                 client_factory=factory)

        result = job.handle()

        assert result == {"run_id": "r1", "disabled": True}
        assert factory.clients == []
        assert actions(storage_fixture, "live-matches", "r1") == ["job_started", "job_disabled"]

    def test_missing_api_key_raises(self, storage_fixture, cache, fake_client_factory):
        settings = AdminSettingsService(storage=storage_fixture, cache=cache)
        job = SyncLiveMatchesJob(run_id="r2", storage=storage_fixture, settings=settings,
                                 client_factory=fake_client_factory({}))

        with patch.object(config, 'CRICBUZZ_KEY', ''):
            with pytest.raises(JobConfigurationError):
                job.handle()

        events = storage_fixture.get_run_events("live-matches", "r2")
        assert events[-1]["action"] == "initialize_clients"
        assert events[-1]["status"] == "error"

    def test_sync_failure_is_logged_and_raised(self, storage_fixture, admin_settings, fake_client_factory):
        factory = fake_client_factory({})
        job = SyncScorecardJob(run_id="r3", storage=storage_fixture, settings=admin_settings,
                               client_factory=factory)

        with patch.object(SyncScorecardJob, 'sync', side_effect=RuntimeError("boom")):
            with pytest.raises(RuntimeError):
                job.handle()

        events = storage_fixture.get_run_events("scorecards", "r3")
        assert events[-1]["action"] == "job_failed"
        assert events[-1]["context"]["message"] == "boom"
        assert factory.clients[0].closed is True

    def test_run_id_is_minted_when_missing(self, storage_fixture, admin_settings, fake_client_factory):
        job = SyncScorecardJob(storage=storage_fixture, settings=admin_settings,
                               client_factory=fake_client_factory({}))

        result = job.handle()

        assert result["run_id"] == job.run_id
        assert actions(storage_fixture, "scorecards", job.run_id)[0] == "job_started"


class TestLiveMatches:
    """Tests for the live matches job."""

    def test_flatten_deduplicates(self):
        matches = flatten_live_payload(LIVE_PAYLOAD)

        ids = sorted(str(match["matchInfo"]["matchId"]) for match in matches)
        assert ids == ["101", "102"]
        match_101 = [m for m in matches if str(m["matchInfo"]["matchId"]) == "101"][0]
        assert match_101["matchInfo"]["state"] == "In Progress"

    def test_flatten_empty(self):
        assert flatten_live_payload({}) == []

    def test_prepare_live_match(self):
        match_id, document = prepare_live_match({
            "matchInfo": {"matchId": "7", "seriesId": "3", "state": "Complete",
                          "startDate": "1000", "seriesStartDt": 5},
            "matchScore": {"team1Score": {}},
        }, updated_at=42)

        assert match_id == "7"
        assert document["matchId"] == 7
        assert document["seriesId"] == 3
        assert document["updatedAt"] == 42
        assert document["matchInfo"]["startdate"] == 1000
        assert document["matchInfo"]["seriesstartdt"] == "5"
        assert document["matchInfo"]["state_lowercase"] == "complete"

    def test_prepare_live_match_rejects_bad_entries(self):
        with pytest.raises(ValidationError):
            prepare_live_match({"matchInfo": {"matchId": "abc"}})
        with pytest.raises(ValidationError):
            prepare_live_match({"matchInfo": {"matchId": 7}, "matchScore": ["not", "a", "block"]})

    def test_invalid_entry_is_a_failure(self, storage_fixture, admin_settings, fake_client_factory):
        payload = {"matchDetails": [{"matchDetailsMap": {"match": [
            {"matchInfo": {"matchId": 5, "state": "Live"}},
            {"matchInfo": {"matchId": 6, "state": "Live"}, "matchScore": "n/a"},
        ]}}]}
        job = SyncLiveMatchesJob(run_id="r4", storage=storage_fixture, settings=admin_settings,
                                 client_factory=fake_client_factory({"matches/v1/live": payload}))

        result = job.handle()

        assert result["synced"] == 1
        assert result["failures"] == ["6"]
        assert storage_fixture.get_document("matches", "6") is None
        assert storage_fixture.get_run_events("live-matches", "r4")[-1]["status"] == "warning"

    def test_sync_stores_matches(self, storage_fixture, admin_settings, fake_client_factory):
        factory = fake_client_factory({"matches/v1/live": LIVE_PAYLOAD})
        job = SyncLiveMatchesJob(run_id="r1", storage=storage_fixture, settings=admin_settings,
                                 client_factory=factory)

        result = job.handle()

        assert result["synced"] == 2
        assert result["api_calls"]["total"] == 1
        document = storage_fixture.get_document("matches", "101")
        assert document["matchId"] == 101
        assert document["seriesId"] == 9
        assert document["matchInfo"]["state_lowercase"] == "in progress"
        assert document["matchInfo"]["startdate"] == 1760000000000
        assert document["matchInfo"]["team1"] == {"teamname": "India"}
        assert document["matchScore"]["team1Score"]["inngs1"]["runs"] == 120
        assert actions(storage_fixture, "live-matches", "r1")[-1] == "job_completed"
        assert len(storage_fixture.get_api_request_logs("r1")) == 1

    def test_match_filter(self, storage_fixture, admin_settings, fake_client_factory):
        job = SyncLiveMatchesJob(match_ids=["101", "999"], run_id="r2", storage=storage_fixture,
                                 settings=admin_settings,
                                 client_factory=fake_client_factory({"matches/v1/live": LIVE_PAYLOAD}))

        result = job.handle()

        assert result["synced"] == 1
        assert storage_fixture.get_document("matches", "102") is None
        events = storage_fixture.get_run_events("live-matches", "r2")
        missing = [event for event in events if event["action"] == "match_filter_missing"][0]
        assert missing["context"]["missing_match_ids"] == ["999"]

    def test_api_error(self, storage_fixture, admin_settings, fake_client_factory):
        job = SyncLiveMatchesJob(run_id="r3", storage=storage_fixture, settings=admin_settings,
                                 client_factory=fake_client_factory({"matches/v1/live": (503, "unavailable")}))

        result = job.handle()

        assert result["synced"] == 0
        assert "api_response_error" in actions(storage_fixture, "live-matches", "r3")
        completed = storage_fixture.get_run_events("live-matches", "r3")[-1]
        assert completed["status"] == "warning"


class TestScorecards:
    """Tests for the scorecard job."""

    def test_fetches_live_matches_and_skips_fresh(self, storage_fixture, admin_settings, fake_client_factory):
        store_live_match(storage_fixture, "1")
        store_live_match(storage_fixture, "2", state="complete")
        store_live_match(storage_fixture, "3", state="in progress")
        storage_fixture.set_document("scorecards", "3", {"lastFetched": now_ms()})
        factory = fake_client_factory({"mcenter/v1/1/scard": {"scoreCard": [{"inningsId": 1}]}})

        result = SyncScorecardJob(run_id="r1", storage=storage_fixture, settings=admin_settings,
                                  client_factory=factory).handle()

        assert result["synced"] == 1
        assert result["skipped"] == 1
        assert factory.clients[0].requested == ["mcenter/v1/1/scard"]
        stored = storage_fixture.get_document("scorecards", "1")
        assert stored["scoreCard"] == [{"inningsId": 1}]
        assert stored["lastFetched"] > 0

    def test_error_response_is_a_failure(self, storage_fixture, admin_settings, fake_client_factory):
        factory = fake_client_factory({"mcenter/v1/5/scard": (500, {"message": "oops"})})

        result = SyncScorecardJob(match_ids=["5"], run_id="r2", storage=storage_fixture,
                                  settings=admin_settings, client_factory=factory).handle()

        assert result["failures"] == ["5"]
        assert storage_fixture.get_run_events("scorecards", "r2")[-1]["status"] == "warning"

    def test_no_live_matches(self, storage_fixture, admin_settings, fake_client_factory):
        result = SyncScorecardJob(run_id="r3", storage=storage_fixture, settings=admin_settings,
                                  client_factory=fake_client_factory({})).handle()

        assert result["synced"] == 0
        assert "no_matches" in actions(storage_fixture, "scorecards", "r3")


class TestSquads:
    """Tests for the squads job."""

    SQUADS = {"squads": {"team1": {"players": [{"id": 1}]}, "team2": {"players": [{"id": 2}]}}}

    def test_resolve_upcoming_matches(self, storage_fixture, admin_settings):
        now = 1_760_000_000_000
        for match_id, offset, state in [
            ("1", 3_600_000, "preview"),
            ("2", 7_200_000, "upcoming"),
            ("3", 3_600_000, "complete"),
            ("4", 2 * 86_400_000, "preview"),
        ]:
            storage_fixture.set_document("matches", match_id, {
                "matchInfo": {"startdate": now + offset, "state_lowercase": state},
            })
        job = SyncSquadJob(storage=storage_fixture, settings=admin_settings)
        job.logger = RunLogger("squads", "r0", storage_fixture)

        assert job.resolve_match_ids(now=now) == ["1", "2"]

    def test_requested_ids_win(self, storage_fixture, admin_settings):
        job = SyncSquadJob(match_ids=["9", "9", "8"], storage=storage_fixture, settings=admin_settings)

        assert job.resolve_match_ids() == ["9", "8"]

    def test_stores_squads(self, storage_fixture, admin_settings, fake_client_factory):
        factory = fake_client_factory({"mcenter/v1/11/teams": self.SQUADS})

        result = SyncSquadJob(match_ids=["11"], run_id="r1", storage=storage_fixture,
                              settings=admin_settings, client_factory=factory).handle()

        assert result["synced"] == 1
        stored = storage_fixture.get_document("squads", "11")
        player = stored["squads"]["team2"]["players"][0]
        assert player["id"] == 2
        assert 6.0 <= player["credits"] <= 10.0
        assert player["points"] == 0.0
        assert "serverTime" in stored

    def test_fresh_complete_squads_are_skipped(self, storage_fixture, admin_settings, fake_client_factory):
        storage_fixture.set_document("squads", "11", {**self.SQUADS, "lastFetched": now_ms()})
        factory = fake_client_factory({"mcenter/v1/11/teams": self.SQUADS})

        result = SyncSquadJob(match_ids=["11"], run_id="r2", storage=storage_fixture,
                              settings=admin_settings, client_factory=factory).handle()

        assert result["skipped"] == 1
        assert factory.clients[0].requested == []

    def test_incomplete_squads_are_refetched(self, storage_fixture, admin_settings, fake_client_factory):
        storage_fixture.set_document("squads", "11", {
            "squads": {"team1": {"players": []}, "team2": {"players": []}},
            "lastFetched": now_ms(),
        })
        factory = fake_client_factory({"mcenter/v1/11/teams": self.SQUADS})

        result = SyncSquadJob(match_ids=["11"], run_id="r3", storage=storage_fixture,
                              settings=admin_settings, client_factory=factory).handle()

        assert result["synced"] == 1
        assert factory.clients[0].requested == ["mcenter/v1/11/teams"]

    def test_failed_fetch_is_counted(self, storage_fixture, admin_settings, fake_client_factory):
        factory = fake_client_factory({"mcenter/v1/11/teams": ConnectionError("reset")})

        result = SyncSquadJob(match_ids=["11"], run_id="r4", storage=storage_fixture,
                              settings=admin_settings, client_factory=factory).handle()

        assert result["failed"] == 1
        assert "squads_sync_failed" in actions(storage_fixture, "squads", "r4")


    def test_players_get_series_points(self, storage_fixture, admin_settings, fake_client_factory):
        payload = {
            "squads": {
                "team1": {"players": [{"id": 1, "role": "Batsman", "teamName": "India"}]},
                "team2": {"players": [{"id": 2, "role": "Bowler"}]},
            },
            "seriesPoints": [{"playerId": 1, "points": 42.5}],
        }
        factory = fake_client_factory({"mcenter/v1/11/teams": payload})

        SyncSquadJob(match_ids=["11"], run_id="r5", storage=storage_fixture, settings=admin_settings,
                     client_factory=factory, rng=random.Random(3)).handle()

        stored = storage_fixture.get_document("squads", "11")
        assert stored["squads"]["team1"]["players"][0]["points"] == 42.5
        assert stored["squads"]["team2"]["players"][0]["points"] == 0.0


class TestSquadsPlayingXI:
    """Tests for the toss-phase squads job."""

    XI_SQUADS = {
        "squads": {
            "team1": {"players": {"playing XI": [{"id": 1}], "bench": [{"id": 3}]}},
            "team2": {"players": {"playing XI": [{"id": 2}], "bench": []}},
        },
    }

    def store_toss_match(self, storage, match_id, start, state="toss"):
        storage.set_document("matches", match_id, {
            "matchInfo": {"startdate": start, "state_lowercase": state},
        })

    def test_playing_xi_is_empty(self):
        assert playing_xi_is_empty(self.XI_SQUADS, "team1") is False
        assert playing_xi_is_empty({"squads": {"team1": {"players": {"playing_xi": []}}}}, "team1") is True
        assert playing_xi_is_empty({"squads": {"team1": {"players": [{"id": 1}]}}}, "team1") is True
        assert playing_xi_is_empty(None, "team1") is True

    def test_requested_ids_are_filtered(self, storage_fixture, admin_settings):
        now = 1_760_000_000_000
        self.store_toss_match(storage_fixture, "1", now + 1_800_000)
        self.store_toss_match(storage_fixture, "2", now + 1_800_000, state="preview")
        self.store_toss_match(storage_fixture, "3", now + 7_200_000, state="toss delay")
        job = SyncSquadsPlayingXIJob(match_ids=["1", "2", "3", "4"], storage=storage_fixture,
                                     settings=admin_settings)
        job.logger = RunLogger("squads-playing-xi", "r0", storage_fixture)

        assert job.resolve_match_ids(now=now) == ["1"]
        logged = actions(storage_fixture, "squads-playing-xi", "r0")
        assert "match_skipped_state" in logged
        assert "match_skipped_window" in logged
        assert "match_missing" in logged

    def test_discovers_toss_matches_within_the_hour(self, storage_fixture, admin_settings):
        now = 1_760_000_000_000
        self.store_toss_match(storage_fixture, "1", now + 600_000, state="toss delay")
        self.store_toss_match(storage_fixture, "2", now + 600_000, state="live")
        self.store_toss_match(storage_fixture, "3", now + 7_200_000)
        job = SyncSquadsPlayingXIJob(storage=storage_fixture, settings=admin_settings)
        job.logger = RunLogger("squads-playing-xi", "r0", storage_fixture)

        assert job.resolve_match_ids(now=now) == ["1"]

    def test_populated_playing_xi_is_skipped(self, storage_fixture, admin_settings, fake_client_factory):
        self.store_toss_match(storage_fixture, "5", now_ms() + 600_000)
        storage_fixture.set_document("squads", "5", self.XI_SQUADS)
        factory = fake_client_factory({"mcenter/v1/5/teams": self.XI_SQUADS})

        result = SyncSquadsPlayingXIJob(match_ids=["5"], run_id="r1", storage=storage_fixture,
                                        settings=admin_settings, client_factory=factory).handle()

        assert result["skipped"] == 1
        assert factory.clients[0].requested == []
        assert "squads_playing_xi_cached" in actions(storage_fixture, "squads-playing-xi", "r1")

    def test_missing_playing_xi_is_fetched(self, storage_fixture, admin_settings, fake_client_factory):
        self.store_toss_match(storage_fixture, "5", now_ms() + 600_000)
        storage_fixture.set_document("squads", "5", {
            "squads": {"team1": {"players": {"playing XI": [{"id": 1}]}}, "team2": {"players": {}}},
        })
        factory = fake_client_factory({"mcenter/v1/5/teams": self.XI_SQUADS})

        result = SyncSquadsPlayingXIJob(match_ids=["5"], run_id="r2", storage=storage_fixture,
                                        settings=admin_settings, client_factory=factory).handle()

        assert result["synced"] == 1
        stored = storage_fixture.get_document("squads", "5")
        assert stored["squads"]["team2"]["players"]["playing XI"] == [{"id": 2}]
        assert "credits" not in stored["squads"]["team2"]["players"]["playing XI"][0]


class TestRecentMatches:
    """Tests for the ended-match job."""

    def test_marks_ended_matches_complete(self, storage_fixture, admin_settings, fake_client_factory):
        now = now_ms()
        for match_id, enddate, state in [
            ("1", now - 3_600_000, "in progress"),
            ("2", now + 300_000, "live"),
            ("3", now + 3_600_000, "live"),
            ("4", now - 3_600_000, "complete"),
        ]:
            storage_fixture.set_document("matches", match_id, {
                "matchInfo": {"enddate": enddate, "state_lowercase": state, "status": "Day 5", "team1": {"id": 1}},
            })
        factory = fake_client_factory({})

        result = MoveEndedMatchesToRecentJob(run_id="r1", storage=storage_fixture, settings=admin_settings,
                                             client_factory=factory).handle()

        assert result["updated"] == 2
        assert result["skipped"] == 0
        assert factory.clients == []
        moved = storage_fixture.get_document("matches", "1")["matchInfo"]
        assert moved["state"] == "Complete"
        assert moved["state_lowercase"] == "complete"
        assert moved["status"] is None
        assert moved["team1"] == {"id": 1}
        assert storage_fixture.get_document("matches", "2")["matchInfo"]["state_lowercase"] == "complete"
        assert storage_fixture.get_document("matches", "3")["matchInfo"]["state_lowercase"] == "live"
        assert actions(storage_fixture, "recent-matches", "r1").count("match_updated") == 2

    def test_nothing_to_move(self, storage_fixture, admin_settings, fake_client_factory):
        result = MoveEndedMatchesToRecentJob(run_id="r2", storage=storage_fixture, settings=admin_settings,
                                             client_factory=fake_client_factory({})).handle()

        assert result["updated"] == 0
        events = storage_fixture.get_run_events("recent-matches", "r2")
        assert "no_matches" in [event["action"] for event in events]
        assert events[-1]["status"] == "info"

    def test_failed_update_is_skipped(self, storage_fixture, admin_settings, fake_client_factory):
        storage_fixture.set_document("matches", "1", {"matchInfo": {"enddate": 1, "state_lowercase": "live"}})
        job = MoveEndedMatchesToRecentJob(run_id="r3", storage=storage_fixture, settings=admin_settings,
                                          client_factory=fake_client_factory({}))

        with patch.object(storage_fixture, 'set_document', side_effect=RuntimeError("locked")):
            result = job.handle()

        assert result["skipped"] == 1
        assert "match_update_failed" in actions(storage_fixture, "recent-matches", "r3")



class TestCommentary:
    """Tests for commentary merging and the commentary job."""

    def test_merge_prefers_fresh_and_sorts_newest_first(self):
        stored = [{"timestamp": 1, "commText": "old"}, {"timestamp": 2, "commText": "two"}]
        fresh = [{"timestamp": 3, "commText": "three"}, {"timestamp": 1, "commText": "updated"}]

        merged = merge_commentary(stored, fresh)

        assert [entry["timestamp"] for entry in merged] == [3, 2, 1]
        assert merged[2]["commText"] == "updated"

    def test_merge_without_timestamps_uses_text(self):
        merged = merge_commentary(
            [{"overNumber": 1.1, "commText": "four"}],
            [{"overNumber": 1.1, "commText": "four"}, {"overNumber": 1.2, "commText": "dot"}],
        )

        assert len(merged) == 2

    def test_merge_handles_missing_lists(self):
        assert merge_commentary(None, None) == []
        assert merge_commentary(None, [{"timestamp": 5}]) == [{"timestamp": 5}]

    def test_job_merges_into_stored_feed(self, storage_fixture, admin_settings, fake_client_factory):
        store_live_match(storage_fixture, "7")
        storage_fixture.set_document("commentary", "7", {"commentaryList": [{"timestamp": 1, "commText": "a"}]})
        factory = fake_client_factory({
            "mcenter/v1/7/comm": {"commentaryList": [{"timestamp": 2, "commText": "b"}], "matchHeader": {"id": 7}},
        })

        result = SyncCommentaryJob(run_id="r1", storage=storage_fixture, settings=admin_settings,
                                   client_factory=factory).handle()

        assert result["synced"] == 1
        stored = storage_fixture.get_document("commentary", "7")
        assert [entry["commText"] for entry in stored["commentaryList"]] == ["b", "a"]
        assert stored["matchHeader"] == {"id": 7}
        assert stored["updatedAt"] > 0

    def test_empty_payload_is_skipped(self, storage_fixture, admin_settings, fake_client_factory):
        factory = fake_client_factory({"mcenter/v1/7/comm": {}})

        result = SyncCommentaryJob(match_ids=["7"], run_id="r2", storage=storage_fixture,
                                   settings=admin_settings, client_factory=factory).handle()

        assert result["skipped"] == 1
        assert storage_fixture.get_document("commentary", "7") is None


class TestMatchOvers:
    """Tests for the overs job."""

    def test_should_persist_overs(self):
        assert should_persist_overs({"miniscore": {}}) is True
        assert should_persist_overs({"comwrapper": []}) is True
        assert should_persist_overs({"matchHeader": {}}) is False

    def test_stores_only_useful_payloads(self, storage_fixture, admin_settings, fake_client_factory):
        factory = fake_client_factory({
            "mcenter/v1/1/overs": {"miniscore": {"overs": 12.3}},
            "mcenter/v1/2/overs": {"matchHeader": {}},
            "mcenter/v1/3/overs": (500, "error"),
        })

        result = SyncMatchOversJob(match_ids=["1", "2", "3"], run_id="r1", storage=storage_fixture,
                                   settings=admin_settings, client_factory=factory).handle()

        assert result["synced"] == 1
        assert result["failures"] == ["3"]
        assert storage_fixture.get_document("matchOvers", "1")["oversData"] == {"miniscore": {"overs": 12.3}}
        assert storage_fixture.get_document("matchOvers", "2") is None


class TestCleanup:
    """Tests for the retention job."""

    def test_cleanup_prunes_without_client(self, storage_fixture, admin_settings, fake_client_factory):
        factory = fake_client_factory({})

        result = CleanSyncLogsJob(run_id="r1", storage=storage_fixture, settings=admin_settings,
                                  client_factory=factory).handle()

        assert result["retention_days"] == admin_settings.log_retention_days()
        assert factory.clients == []
        assert "logs_pruned" in actions(storage_fixture, "logs-cleanup", "r1")


class TestJobQueue:
    """Tests for the in-process queue."""

    def setup_method(self):
        self.queue = JobQueue(max_workers=2)

    def teardown_method(self):
        self.queue.shutdown()

    @staticmethod
    def _pause_window(paused):
        service = Mock()
        service.is_paused.return_value = paused
        service.seconds_until_resume.return_value = 60 if paused else 0
        return service

    def test_run_now_passes_middleware(self, storage_fixture, admin_settings, fake_client_factory):
        job = SyncScorecardJob(run_id="r1", storage=storage_fixture, settings=admin_settings,
                               client_factory=fake_client_factory({}))

        with patch.object(job, 'middleware', return_value=[RespectPauseWindow(self._pause_window(False))]):
            result = self.queue.run_now(job)

        assert result["run_id"] == "r1"

    def test_paused_job_is_dropped(self, storage_fixture, admin_settings, fake_client_factory):
        job = SyncScorecardJob(run_id="r2", storage=storage_fixture, settings=admin_settings,
                               client_factory=fake_client_factory({}))

        with patch.object(job, 'middleware', return_value=[RespectPauseWindow(self._pause_window(True))]):
            result = self.queue.run_now(job)

        assert result is None
        assert storage_fixture.get_run_events("scorecards", "r2") == []

    def test_failures_are_recorded(self, storage_fixture, admin_settings, fake_client_factory):
        job = SyncScorecardJob(run_id="r3", storage=storage_fixture, settings=admin_settings,
                               client_factory=fake_client_factory({}))

        with patch.object(job, 'middleware', return_value=[]):
            with patch.object(SyncScorecardJob, 'sync', side_effect=RuntimeError("boom")):
                with pytest.raises(RuntimeError):
                    self.queue.run_now(job)

        failures = self.queue.failures()
        assert failures[0]["job"] == "scorecards"
        assert failures[0]["run_id"] == "r3"
        assert failures[0]["message"] == "boom"

    def test_dispatch_runs_on_pool(self, storage_fixture, admin_settings, fake_client_factory):
        job = SyncScorecardJob(run_id="r4", storage=storage_fixture, settings=admin_settings,
                               client_factory=fake_client_factory({}))

        with patch.object(job, 'middleware', return_value=[]):
            result = self.queue.dispatch(job).result(timeout=10)

        assert result["run_id"] == "r4"

    def test_dispatch_swallows_failures(self):
        job = Mock()
        job.job_key = "squads"
        job.run_id = "r5"
        job.middleware.return_value = []
        job.handle.side_effect = RuntimeError("boom")

        assert self.queue.dispatch(job).result(timeout=10) is None
        assert len(self.queue.failures()) == 1
