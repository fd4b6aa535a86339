"""Mirror the live matches feed into the matches collection."""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from cricsync.jobs.base import MATCHES_COLLECTION, JobOutcome, SyncJob, now_ms
from cricsync.models.match import LiveMatch
from cricsync.services.api_tracker import exception_context, response_context
from cricsync.utils.documents import lower_keys

LIVE_ENDPOINT = "matches/v1/live"


def flatten_live_payload(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Collect every match of a live feed, deduplicated by matchId.

    The feed nests matches either under matchDetails[].matchDetailsMap.match[]
    or under typeMatches[].seriesMatches[](.seriesAdWrapper).matches[].
    """
    matches: Dict[str, Dict[str, Any]] = {}
    anonymous: List[Dict[str, Any]] = []

    def store(match: Any) -> None:
        if not isinstance(match, dict):
            return
        info = match.get("matchInfo")
        match_id = str(info.get("matchId") or "") if isinstance(info, dict) else ""
        if match_id:
            matches[match_id] = match
        else:
            anonymous.append(match)

    for detail in payload.get("matchDetails") or []:
        if not isinstance(detail, dict):
            continue
        entries = (detail.get("matchDetailsMap") or {}).get("match")
        if isinstance(entries, list):
            for match in entries:
                store(match)

    for type_block in payload.get("typeMatches") or []:
        if not isinstance(type_block, dict):
            continue
        for series_match in type_block.get("seriesMatches") or []:
            if not isinstance(series_match, dict):
                continue
            container = series_match.get("seriesAdWrapper")
            if not isinstance(container, dict):
                container = series_match
            for match in container.get("matches") or []:
                store(match)

    return list(matches.values()) + anonymous


def prepare_match_document(match: Dict[str, Any], prepared_info: Dict[str, Any], updated_at: Optional[int] = None) -> Dict[str, Any]:
    document = dict(match)
    document["matchInfo"] = lower_keys(prepared_info)
    document["updatedAt"] = updated_at if updated_at is not None else now_ms()
    document["matchId"] = int(prepared_info["matchId"])
    if prepared_info.get("seriesId") is not None:
        document["seriesId"] = int(prepared_info["seriesId"])
    return document


def prepare_live_match(match: Dict[str, Any], updated_at: Optional[int] = None) -> Tuple[str, Dict[str, Any]]:
    """Validate one feed entry and build its stored document.

    Raises:
        ValidationError: If matchInfo is missing required fields or has bad types
    """
    entry = LiveMatch.model_validate(match)
    prepared = entry.match_info.to_document()
    return str(entry.match_id), prepare_match_document(match, prepared, updated_at)


class SyncLiveMatchesJob(SyncJob):
    """Fetches matches/v1/live and upserts each match."""

    job_key = "live-matches"
    name = "SyncLiveMatches"

    def fetch_live_matches(self) -> List[Dict[str, Any]]:
        response = self.client.get(LIVE_ENDPOINT, tag="live_matches")

        if response.error is not None:
            self.log("api_request_failed", "error", "Live matches request failed", {
                **exception_context(response.error),
                "endpoint": response.url,
            })
            return []

        if not response.ok:
            self.log("api_response_error", "error", "API returned error while fetching live matches", {
                **response_context(response.status_code, response.payload),
                "endpoint": response.url,
            })
            return []

        if not isinstance(response.payload, dict):
            self.log("api_response_invalid", "error", "Live matches API returned invalid payload", {
                **response_context(response.status_code, response.payload),
                "endpoint": response.url,
            })
            return []

        return flatten_live_payload(response.payload)

    def sync(self) -> JobOutcome:
        matches = self.fetch_live_matches()

        if not matches:
            self.log("live_matches_empty", "warning", "No live matches returned by API", {
                "requested_ids": self.match_ids,
            })
            return JobOutcome("warning", {
                "synced": 0,
                "skipped": 0,
                "failures": [],
                "requested_ids": self.match_ids,
            })

        self.log("live_matches_fetched", "info", "Fetched live matches from API", {
            "match_count": len(matches),
            "match_ids": [(match.get("matchInfo") or {}).get("matchId") for match in matches],
        })

        match_filter = {match_id: False for match_id in self.match_ids} if self.match_ids else None
        synced = 0
        skipped = 0
        failures: List[str] = []

        for match in matches:
            match_info = match.get("matchInfo")
            if not isinstance(match_info, dict):
                skipped += 1
                self.log("match_skipped", "warning", "Match payload missing matchInfo block", {
                    "payload_keys": sorted(match.keys()),
                })
                continue

            match_id = str(match_info.get("matchId") or "")
            if not match_id:
                skipped += 1
                self.log("match_skipped", "warning", "Match info missing matchId", {
                    "matchInfo_keys": sorted(match_info.keys()),
                })
                continue

            if match_filter is not None:
                if match_id not in match_filter:
                    self.log("match_skipped", "info", "Match did not match provided filter", {
                        "match_id": match_id,
                    })
                    continue
                match_filter[match_id] = True

            try:
                match_id, document = prepare_live_match(match)
                self.storage.set_document(MATCHES_COLLECTION, match_id, document, merge=True)
            except (ValidationError, ValueError, TypeError) as e:
                failures.append(match_id)
                self.log("match_persist_failed", "error", "Failed to prepare live match", {
                    **exception_context(e),
                    "match_id": match_id,
                })
                continue
            except Exception as e:
                failures.append(match_id)
                self.log("match_persist_failed", "error", "Failed to persist live match", {
                    **exception_context(e),
                    "match_id": match_id,
                })
                continue

            synced += 1
            self.log("match_synced", "success", "Synced live match", {"match_id": match_id})

        if match_filter is not None:
            missing = [match_id for match_id, hit in match_filter.items() if not hit]
            if missing:
                self.log("match_filter_missing", "warning", "Provided match IDs not present in live feed", {
                    "missing_match_ids": missing,
                    "requested_ids": self.match_ids,
                })

        return JobOutcome("warning" if failures else "success", {
            "synced": synced,
            "skipped": skipped,
            "failures": list(dict.fromkeys(failures)),
            "requested_ids": self.match_ids,
        })
