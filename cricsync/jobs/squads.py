"""Team rosters for matches about to start."""

import random
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from cricsync.jobs.base import MATCHES_COLLECTION, JobOutcome, SyncJob, now_ms, server_time
from cricsync.services.api_tracker import exception_context, response_context
from cricsync.services.fantasy import append_fantasy_stats, extract_series_points
from cricsync.services.staleness import SQUAD_POLICY
from cricsync.utils.documents import data_get

SQUADS_COLLECTION = "squads"


class SyncSquadJob(SyncJob):
    """Fetches mcenter/v1/{id}/teams for upcoming matches."""

    job_key = "squads"
    name = "SyncSquads"

    ALLOWED_STATES: Tuple[str, ...] = ("preview", "upcoming")
    DISCOVERY_WINDOW_MS = int(timedelta(days=1).total_seconds() * 1000)
    NO_MATCHES_MESSAGE = "No upcoming matches found for squad sync"

    def __init__(self, *args: Any, rng: Optional[random.Random] = None, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.rng = rng or random.Random()

    def discovery_window(self, now: Optional[int] = None) -> Tuple[int, int]:
        window_start = now if now is not None else now_ms()
        return window_start, window_start + self.DISCOVERY_WINDOW_MS

    def resolve_match_ids(self, now: Optional[int] = None) -> List[str]:
        if self.match_ids:
            return list(dict.fromkeys(self.match_ids))

        window_start, window_end = self.discovery_window(now)
        self.log("match_ids_discovery", "info", "Discovering upcoming match IDs", {
            "window_start": window_start,
            "window_end": window_end,
        })

        try:
            documents = self.storage.find_documents(
                MATCHES_COLLECTION, "matchInfo.startdate",
                min_value=window_start, max_value=window_end,
            )
        except Exception as e:
            self.log("match_id_query_failed", "error", "Failed to query upcoming matches", exception_context(e))
            return []

        ids = []
        for document in documents:
            state = str(data_get(document["data"], "matchInfo.state_lowercase", "")).lower()
            if state not in self.ALLOWED_STATES:
                self.log("match_skipped_state", "info", "Skipping match for squad sync due to state filter", {
                    "match_id": document["id"],
                    "state": state,
                })
                continue
            ids.append(document["id"])
        return ids

    def sync(self) -> JobOutcome:
        target_ids = self.resolve_match_ids()

        if not target_ids:
            self.log("no_matches", "warning", self.NO_MATCHES_MESSAGE, {
                "requested_ids": self.match_ids,
            })
            return JobOutcome("warning", {"synced": 0, "skipped": 0, "failed": 0})

        self.log("matches_resolved", "info", "Resolved match IDs for squad sync", {
            "match_count": len(target_ids),
            "match_ids": target_ids,
        })

        synced = 0
        skipped = 0
        failed = 0

        for match_id in target_ids:
            try:
                if self.sync_squads(match_id):
                    synced += 1
                else:
                    skipped += 1
            except Exception as e:
                failed += 1
                self.log("squads_sync_failed", "error", "Failed to sync squads", {
                    **exception_context(e),
                    "match_id": match_id,
                })

        return JobOutcome("warning" if failed else "success", {
            "synced": synced,
            "skipped": skipped,
            "failed": failed,
            "requested_ids": self.match_ids,
        })

    # =========================================================================
    # PER MATCH
    # =========================================================================

    def skip_reason(self, existing: Optional[Dict[str, Any]]) -> Optional[Tuple[str, str]]:
        """(action, message) when the stored squads need no fetch."""
        if not SQUAD_POLICY.should_refresh(existing):
            return "squads_cached", "Squads considered fresh; skipping fetch"
        return None

    def enrich(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Add fantasy credits and series points to every squad player."""
        return append_fantasy_stats(payload, extract_series_points(payload), self.rng)

    def sync_squads(self, match_id: str) -> bool:
        """Refresh one match's squads. Returns False when nothing was stored."""
        try:
            existing = self.storage.get_document(SQUADS_COLLECTION, match_id)
        except Exception as e:
            existing = None
            self.log("squads_snapshot_failed", "warning", "Failed to read existing squad snapshot", {
                **exception_context(e),
                "match_id": match_id,
            })

        reason = self.skip_reason(existing)
        if reason is not None:
            action, message = reason
            self.log(action, "info", message, {"match_id": match_id})
            return False

        response = self.client.get(f"mcenter/v1/{match_id}/teams", tag="squads")
        if response.error is not None:
            raise RuntimeError(f"Squads request failed: {response.error}")

        if not response.ok:
            self.log("squads_fetch_error", "error", "Squads API returned an error response", {
                **response_context(response.status_code, response.payload),
                "match_id": match_id,
            })
            raise RuntimeError(f"Squads API returned error code {response.status_code}")

        payload = response.payload
        if not isinstance(payload, dict) or not payload:
            self.log("squads_fetch_invalid", "warning", "Squads API returned empty payload", {
                "match_id": match_id,
            })
            return False

        document = {**self.enrich(payload), "lastFetched": now_ms(), "serverTime": server_time()}
        self.storage.set_document(SQUADS_COLLECTION, match_id, document, merge=True)

        self.log("squads_synced", "success", "Stored squads", {"match_id": match_id})
        return True
