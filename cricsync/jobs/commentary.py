"""Ball-by-ball commentary for live matches."""

from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from cricsync.jobs.base import JobOutcome, SyncJob, now_ms, server_time
from cricsync.models.match import CommentaryEntry
from cricsync.services.api_tracker import exception_context, response_context

COMMENTARY_COLLECTION = "commentary"


def _entry_key(entry: Dict[str, Any]) -> str:
    try:
        return CommentaryEntry.model_validate(entry).merge_key
    except ValidationError:
        return f"raw:{sorted(entry.items())!r}"


def merge_commentary(stored: Optional[List[Any]], fresh: Optional[List[Any]]) -> List[Dict[str, Any]]:
    """Merge two commentary lists, fresh entries winning, newest first.

    Entries are matched by timestamp (or by over and text when the feed
    omits timestamps).
    """
    merged: Dict[str, Dict[str, Any]] = {}
    for entry in (stored or []) + (fresh or []):
        if isinstance(entry, dict):
            merged[_entry_key(entry)] = entry

    def sort_key(entry: Dict[str, Any]) -> int:
        try:
            return int(entry.get("timestamp") or 0)
        except (TypeError, ValueError):
            return 0

    return sorted(merged.values(), key=sort_key, reverse=True)


class SyncCommentaryJob(SyncJob):
    """Fetches mcenter/v1/{id}/comm for every live match."""

    job_key = "commentary"
    name = "SyncCommentary"

    def sync(self) -> JobOutcome:
        target_ids = self.resolve_live_match_ids()

        if not target_ids:
            self.log("no_matches", "warning", "No live matches found for commentary sync", {
                "requested_ids": self.match_ids,
            })
            return JobOutcome("warning", {
                "matches_considered": 0,
                "synced": 0,
                "skipped": 0,
                "failures": [],
            })

        self.log("matches_resolved", "info", "Resolved match IDs for commentary sync", {
            "match_count": len(target_ids),
            "match_ids": target_ids,
        })

        synced = 0
        skipped = 0
        failures: List[str] = []

        paths = [f"mcenter/v1/{match_id}/comm" for match_id in target_ids]
        responses = self.client.get_many(paths, tag="commentary")

        for match_id, response in zip(target_ids, responses):
            if not response.ok:
                failures.append(match_id)
                self.log("commentary_fetch_error", "error", "Cricbuzz API returned error while fetching commentary", {
                    **response_context(response.status_code, response.payload),
                    "match_id": match_id,
                })
                continue

            payload = response.payload
            if not isinstance(payload, dict) or not payload:
                skipped += 1
                self.log("commentary_fetch_empty", "warning", "Commentary API returned empty payload", {
                    "match_id": match_id,
                })
                continue

            try:
                self.persist_commentary(match_id, payload)
            except Exception as e:
                failures.append(match_id)
                self.log("commentary_persist_failed", "error", "Failed to persist commentary", {
                    **exception_context(e),
                    "match_id": match_id,
                })
                continue

            synced += 1
            self.log("commentary_synced", "success", "Stored commentary", {"match_id": match_id})

        return JobOutcome("warning" if failures else "success", {
            "matches_considered": len(target_ids),
            "synced": synced,
            "skipped": skipped,
            "failures": list(dict.fromkeys(failures)),
            "requested_ids": self.match_ids,
        })

    def persist_commentary(self, match_id: str, payload: Dict[str, Any]) -> None:
        document = dict(payload)
        if "commentaryList" in payload:
            existing = self.storage.get_document(COMMENTARY_COLLECTION, match_id) or {}
            document["commentaryList"] = merge_commentary(
                existing.get("commentaryList"), payload.get("commentaryList")
            )

        document["updatedAt"] = now_ms()
        document["serverTime"] = server_time()
        self.storage.set_document(COMMENTARY_COLLECTION, match_id, document, merge=True)
