"""Refresh decisions for cached documents."""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from cricsync.utils.documents import data_get


def current_time_ms() -> int:
    """Current epoch time in milliseconds."""
    return int(time.time() * 1000)


def should_refresh(
    last_fetched_ms: Optional[int],
    ttl_ms: int,
    is_complete: bool,
    now_ms: Optional[int] = None,
) -> bool:
    """Decide whether an entity must be fetched again.

    Refresh when it was never fetched, when it is incomplete, or when it is
    at least ttl_ms old. Completeness always wins over age.
    """
    if not last_fetched_ms:
        return True
    if not is_complete:
        return True
    current = current_time_ms() if now_ms is None else now_ms
    return current - int(last_fetched_ms) >= ttl_ms


@dataclass(frozen=True)
class StalenessPolicy:
    """TTL and completeness rule for one document type."""

    name: str
    ttl_ms: int
    is_complete: Callable[[Dict[str, Any]], bool] = lambda document: True
    timestamp_field: str = "lastFetched"

    def should_refresh(self, document: Optional[Dict[str, Any]], now_ms: Optional[int] = None) -> bool:
        if not document:
            return True
        last_fetched = document.get(self.timestamp_field)
        try:
            last_fetched = int(last_fetched) if last_fetched is not None else None
        except (TypeError, ValueError):
            last_fetched = None
        return should_refresh(last_fetched, self.ttl_ms, self.is_complete(document), now_ms)


def squad_is_complete(document: Dict[str, Any]) -> bool:
    """Both team rosters must be populated."""
    return bool(data_get(document, "squads.team1.players")) and bool(
        data_get(document, "squads.team2.players")
    )


SCORECARD_POLICY = StalenessPolicy(name="scorecards", ttl_ms=60_000)
SQUAD_POLICY = StalenessPolicy(name="squads", ttl_ms=600_000, is_complete=squad_is_complete)
