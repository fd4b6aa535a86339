"""Over-by-over summaries for live matches."""

from datetime import datetime, timezone
from typing import Any, Dict, List

from cricsync.jobs.base import JobOutcome, SyncJob
from cricsync.services.api_tracker import response_context

OVERS_COLLECTION = "matchOvers"

# At least one of these must be present for the payload to be worth storing
EXPECTED_KEYS = ("miniscore", "comms", "commsBkp", "comwrapper")


def should_persist_overs(overs_data: Dict[str, Any]) -> bool:
    return any(key in overs_data for key in EXPECTED_KEYS)


class SyncMatchOversJob(SyncJob):
    """Fetches mcenter/v1/{id}/overs for every live match."""

    job_key = "match-overs"
    name = "SyncMatchOvers"

    def sync(self) -> JobOutcome:
        target_ids = self.resolve_live_match_ids()

        if not target_ids:
            self.log("no_matches", "warning", "No live matches found for overs sync", {
                "requested_ids": self.match_ids,
            })
            return JobOutcome("warning", {"matches_considered": 0, "synced": 0, "failures": []})

        self.log("matches_resolved", "info", "Resolved match IDs for overs sync", {
            "match_count": len(target_ids),
            "match_ids": target_ids,
        })

        synced = 0
        failures: List[str] = []

        paths = [f"mcenter/v1/{match_id}/overs" for match_id in target_ids]
        responses = self.client.get_many(paths, tag="match_overs")

        for match_id, response in zip(target_ids, responses):
            if not response.ok:
                failures.append(match_id)
                self.log("overs_fetch_error", "error", "Cricbuzz API returned error while fetching overs", {
                    **response_context(response.status_code, response.payload),
                    "match_id": match_id,
                })
                continue

            overs_data = response.payload
            if not isinstance(overs_data, dict):
                failures.append(match_id)
                self.log("overs_fetch_invalid", "error", "Match overs API returned invalid payload", {
                    "match_id": match_id,
                })
                continue

            if not should_persist_overs(overs_data):
                self.log("overs_skipped", "info", "Overs payload did not contain expected keys", {
                    "match_id": match_id,
                    "keys": sorted(overs_data.keys()),
                })
                continue

            try:
                self.storage.set_document(OVERS_COLLECTION, match_id, {
                    "oversData": overs_data,
                    "lastFetched": int(datetime.now(timezone.utc).timestamp()),
                }, merge=True)
            except Exception as e:
                failures.append(match_id)
                self.log("overs_persist_failed", "error", "Failed to persist overs", {
                    "match_id": match_id,
                    "exception": str(e),
                })
                continue

            synced += 1
            self.log("overs_synced", "success", "Stored overs", {"match_id": match_id})

        return JobOutcome("warning" if failures else "success", {
            "matches_considered": len(target_ids),
            "synced": synced,
            "failures": list(dict.fromkeys(failures)),
        })
