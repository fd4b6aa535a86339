"""Squads refresh for matches at the toss, until both playing XIs are in."""

from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from cricsync.jobs.base import MATCHES_COLLECTION
from cricsync.jobs.squads import SyncSquadJob
from cricsync.services.api_tracker import exception_context
from cricsync.utils.documents import data_get

PLAYING_XI_KEYS = ("playingXI", "playing XI", "playing_xi", "playing xi")


def playing_xi_is_empty(document: Optional[Dict[str, Any]], team_key: str) -> bool:
    """True unless the team's players block carries a non-empty playing XI."""
    players = data_get(document or {}, f"squads.{team_key}.players")
    if not isinstance(players, dict):
        return True

    key = next((candidate for candidate in PLAYING_XI_KEYS if candidate in players), None)
    if key is None:
        return True

    playing_xi = players[key]
    if isinstance(playing_xi, list):
        return not any(playing_xi)
    return not playing_xi


class SyncSquadsPlayingXIJob(SyncSquadJob):
    """Re-fetches squads for toss-phase matches starting within the hour."""

    job_key = "squads-playing-xi"
    name = "SyncSquadsPlayingXI"

    ALLOWED_STATES = ("toss", "toss delay")
    DISCOVERY_WINDOW_MS = int(timedelta(hours=1).total_seconds() * 1000)
    NO_MATCHES_MESSAGE = "No toss-phase matches starting within the next hour found for squad sync"

    def resolve_match_ids(self, now: Optional[int] = None) -> List[str]:
        if not self.match_ids:
            return super().resolve_match_ids(now)

        window_start, window_end = self.discovery_window(now)
        allowed = []
        for match_id in dict.fromkeys(self.match_ids):
            try:
                document = self.storage.get_document(MATCHES_COLLECTION, match_id)
            except Exception as e:
                self.log("match_state_lookup_failed", "warning",
                         "Failed to fetch match document while filtering by state", {
                             **exception_context(e),
                             "match_id": match_id,
                         })
                continue

            if document is None:
                self.log("match_missing", "warning", "Match document not found while filtering by state", {
                    "match_id": match_id,
                })
                continue

            state = str(data_get(document, "matchInfo.state_lowercase", "")).lower()
            if state not in self.ALLOWED_STATES:
                self.log("match_skipped_state", "info", "Skipping match for squad sync due to state filter", {
                    "match_id": match_id,
                    "state": state,
                })
                continue

            start = data_get(document, "matchInfo.startdate")
            if not isinstance(start, (int, float)) or not window_start <= start <= window_end:
                self.log("match_skipped_window", "info", "Skipping match for squad sync due to start window filter", {
                    "match_id": match_id,
                    "start": start,
                    "window_start": window_start,
                    "window_end": window_end,
                })
                continue

            allowed.append(match_id)
        return allowed

    def skip_reason(self, existing: Optional[Dict[str, Any]]) -> Optional[Tuple[str, str]]:
        if existing and not playing_xi_is_empty(existing, "team1") and not playing_xi_is_empty(existing, "team2"):
            return "squads_playing_xi_cached", "Skipping squads fetch; playing XI already populated"
        return None

    def enrich(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return payload
