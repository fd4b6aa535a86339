"""Marks matches whose end date has passed as complete."""

from datetime import timedelta
from typing import Optional

from cricsync.jobs.base import MATCHES_COLLECTION, JobOutcome, SyncJob, now_ms
from cricsync.services.api_tracker import exception_context
from cricsync.utils.documents import data_get

END_GRACE_MS = int(timedelta(minutes=10).total_seconds() * 1000)
CANDIDATE_LIMIT = 200


class MoveEndedMatchesToRecentJob(SyncJob):
    """Flips ended matches to the Complete state so they leave the live feeds."""

    job_key = "recent-matches"
    name = "MoveEndedMatchesToRecent"

    def initialize_clients(self) -> None:
        return None

    def sync(self, now: Optional[int] = None) -> JobOutcome:
        now = now if now is not None else now_ms()

        try:
            documents = self.storage.find_documents(
                MATCHES_COLLECTION, "matchInfo.enddate", max_value=now + END_GRACE_MS
            )
        except Exception as e:
            self.log("match_candidates_query_failed", "error", "Failed to query ended matches", exception_context(e))
            raise

        candidates = [
            document for document in documents
            if str(data_get(document["data"], "matchInfo.state_lowercase", "")).lower() != "complete"
        ][:CANDIDATE_LIMIT]

        self.log("match_candidates_resolved", "info", "Resolved ended match candidates", {
            "match_count": len(candidates),
        })

        if not candidates:
            self.log("no_matches", "info", "No ended matches to move")
            return JobOutcome("info", {"updated": 0, "skipped": 0})

        updated = 0
        skipped = 0

        for document in candidates:
            match_id = document["id"]
            try:
                self.storage.set_document(MATCHES_COLLECTION, match_id, {
                    "updatedAt": now,
                    "matchInfo": {
                        "state": "Complete",
                        "state_lowercase": "complete",
                        "status": None,
                    },
                }, merge=True)
            except Exception as e:
                skipped += 1
                self.log("match_update_failed", "error", "Failed to mark match complete", {
                    **exception_context(e),
                    "match_id": match_id,
                })
                continue

            updated += 1
            self.log("match_updated", "success", "Marked match complete", {
                "match_id": match_id,
                "enddate": data_get(document["data"], "matchInfo.enddate"),
            })

        return JobOutcome("success" if updated else "info", {
            "updated": updated,
            "skipped": skipped,
        })
