"""Full scorecards for live matches."""

from typing import List

from cricsync.jobs.base import JobOutcome, SyncJob, now_ms
from cricsync.services.api_tracker import response_context
from cricsync.services.staleness import SCORECARD_POLICY

SCORECARDS_COLLECTION = "scorecards"


class SyncScorecardJob(SyncJob):
    """Fetches mcenter/v1/{id}/scard unless the stored scorecard is fresh."""

    job_key = "scorecards"
    name = "SyncScorecards"

    def sync(self) -> JobOutcome:
        target_ids = self.resolve_live_match_ids()

        if not target_ids:
            self.log("no_matches", "warning", "No live matches found for scorecard sync", {
                "requested_ids": self.match_ids,
            })
            return JobOutcome("warning", {"synced": 0, "skipped": 0, "failures": []})

        self.log("matches_resolved", "info", "Resolved match IDs for scorecard sync", {
            "match_count": len(target_ids),
            "match_ids": target_ids,
        })

        synced = 0
        skipped = 0
        failures: List[str] = []

        for match_id in target_ids:
            try:
                existing = self.storage.get_document(SCORECARDS_COLLECTION, match_id)
            except Exception as e:
                existing = None
                self.log("scorecard_snapshot_failed", "warning", "Failed to read stored scorecard", {
                    "match_id": match_id,
                    "exception": str(e),
                })

            if not SCORECARD_POLICY.should_refresh(existing):
                skipped += 1
                self.log("scorecard_cached", "info", "Scorecard considered fresh; skipping fetch", {
                    "match_id": match_id,
                })
                continue

            response = self.client.get(f"mcenter/v1/{match_id}/scard", tag="scorecard")
            if not response.ok or not isinstance(response.payload, dict):
                failures.append(match_id)
                self.log("scorecard_fetch_error", "error", "Scorecard API returned an error response", {
                    **response_context(response.status_code, response.payload),
                    "match_id": match_id,
                })
                continue

            payload = dict(response.payload)
            payload["lastFetched"] = now_ms()

            try:
                self.storage.set_document(SCORECARDS_COLLECTION, match_id, payload, merge=True)
            except Exception as e:
                failures.append(match_id)
                self.log("scorecard_persist_failed", "error", "Failed to persist scorecard", {
                    "match_id": match_id,
                    "exception": str(e),
                })
                continue

            synced += 1
            self.log("scorecard_synced", "success", "Stored scorecard", {"match_id": match_id})

        return JobOutcome("warning" if failures else "success", {
            "synced": synced,
            "skipped": skipped,
            "failures": failures,
            "requested_ids": self.match_ids,
        })
