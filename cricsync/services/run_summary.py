"""
Run summaries for the admin dashboard.

Turns raw sync_logs rows into per-run and per-job summaries: durations,
status counts, final status and the API usage recorded on completion.
"""

import numbers
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from cricsync.jobs.registry import JOBS
from cricsync.storage.base import StorageInterface
from cricsync.types import ApiBreakdownEntryDict, ApiCallSummaryDict, RunEventDict, RunSummaryDict

COMPLETION_ACTIONS = ("job_completed", "job_finished")


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, numbers.Number):
        return True
    if isinstance(value, str):
        try:
            float(value)
            return True
        except ValueError:
            return False
    return False


def clamp_days(days: Any, minimum: int = 1, maximum: int = 30) -> int:
    try:
        value = int(days)
    except (TypeError, ValueError):
        value = minimum
    return max(minimum, min(maximum, value))


def format_duration(seconds: Optional[int]) -> Optional[str]:
    """Human duration: '45s', '2m 5s', '2m', '1h 2m 3s'."""
    if seconds is None:
        return None
    seconds = int(seconds)

    if seconds < 60:
        return f"{seconds}s"

    if seconds < 3600:
        minutes, remain = divmod(seconds, 60)
        return f"{minutes}m" + (f" {remain}s" if remain else "")

    hours, remain = divmod(seconds, 3600)
    minutes, seconds = divmod(remain, 60)
    return f"{hours}h {minutes}m {seconds}s"


def normalise_api_breakdown(breakdown: Any) -> List[ApiBreakdownEntryDict]:
    """Turn any stored breakdown shape into a list sorted by count (desc)."""
    if isinstance(breakdown, list):
        items = list(enumerate(breakdown))
    elif isinstance(breakdown, dict):
        items = list(breakdown.items())
    else:
        return []

    normalised: List[ApiBreakdownEntryDict] = []

    for key, entry in items:
        label = key if isinstance(key, str) else None
        method = host = path = None

        if isinstance(entry, dict):
            count = entry.get("count", entry.get("total"))
            method = entry.get("method") or entry.get("http_method")
            host = entry.get("host")
            path = entry.get("path") or entry.get("endpoint")
            label = entry.get("label") or label
        elif _is_numeric(entry):
            count = entry
        else:
            continue

        count = int(float(count)) if _is_numeric(count) else 0

        if label is None:
            if method and path:
                label = f"{method} {path}".strip()
            elif method and host:
                label = f"{method} {host}".strip()
            elif path:
                label = str(path)
            elif host:
                label = str(host)
            else:
                label = f"entry_{len(normalised)}"

        normalised.append({
            "label": label,
            "count": count,
            "method": method,
            "host": host,
            "path": path,
        })

    normalised.sort(key=lambda item: item["count"], reverse=True)
    return normalised


def extract_api_call_summary(context: Optional[Dict[str, Any]]) -> ApiCallSummaryDict:
    """Read API usage from a completion event context.

    Accepts {'api_calls': {'total'|'count', 'breakdown'}}, a bare numeric
    'api_calls', and the older 'apiCalls' / 'apiCallBreakdown' keys.
    """
    if not isinstance(context, dict):
        return {"total": None, "breakdown": []}

    total = None
    breakdown_input = None

    if "api_calls" in context:
        payload = context["api_calls"]
        if isinstance(payload, dict):
            total = payload.get("total", payload.get("count"))
            breakdown_input = payload.get("breakdown")
        elif _is_numeric(payload):
            total = payload

    if total is None and _is_numeric(context.get("apiCalls")):
        total = context["apiCalls"]

    if breakdown_input is None and "apiCallBreakdown" in context:
        breakdown_input = context["apiCallBreakdown"]

    return {
        "total": int(float(total)) if total is not None and _is_numeric(total) else None,
        "breakdown": normalise_api_breakdown(breakdown_input),
    }


def aggregate_api_summary(completion_events: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Sum API usage over several completion events."""
    if not completion_events:
        return {"total": None, "breakdown": [], "runs": 0}

    total = 0
    has_data = False
    breakdown: Dict[str, Dict[str, Any]] = {}

    for event in completion_events:
        summary = extract_api_call_summary(event.get("context") or {})

        if summary["total"] is not None:
            total += summary["total"]
            has_data = True

        for entry in summary["breakdown"]:
            label = entry.get("label")
            if label is None:
                continue
            has_data = True

            bucket = breakdown.setdefault(label, {
                "label": label,
                "count": 0,
                "method": entry.get("method"),
                "host": entry.get("host"),
                "path": entry.get("path"),
            })
            bucket["count"] += max(0, int(entry.get("count") or 0))
            for field in ("method", "host", "path"):
                if not bucket[field] and entry.get(field):
                    bucket[field] = entry[field]

    if not has_data:
        return {"total": None, "breakdown": [], "runs": len(completion_events)}

    entries = sorted(breakdown.values(), key=lambda item: item["count"], reverse=True)
    return {"total": total, "breakdown": entries, "runs": len(completion_events)}


def map_run(events: List[RunEventDict], job_key: str) -> RunSummaryDict:
    """Summarize one run from its events."""
    ordered = sorted(events, key=lambda event: (event["created_at"], event.get("id") or 0))
    first = ordered[0] if ordered else None
    last = ordered[-1] if ordered else None

    completion = next(
        (event for event in reversed(ordered) if event["action"] in COMPLETION_ACTIONS),
        last,
    )

    finished_at = completion["created_at"] if completion else None
    duration = None
    if first and finished_at:
        duration = max(0, int((finished_at - first["created_at"]).total_seconds()))

    final_status = (completion or {}).get("status") or (last or {}).get("status") or "info"

    api_summary = extract_api_call_summary((completion or {}).get("context") or {})

    def count(status: str) -> int:
        return sum(1 for event in ordered if event.get("status") == status)

    return {
        "job_key": job_key,
        "run_id": first["run_id"] if first else None,
        "started_at": first["created_at"] if first else None,
        "finished_at": finished_at,
        "duration_seconds": duration,
        "duration_human": format_duration(duration),
        "error_count": count("error"),
        "warning_count": count("warning"),
        "success_count": count("success"),
        "info_count": count("info"),
        "total_events": len(ordered),
        "final_status": final_status,
        "summary_message": (completion or {}).get("message") or (last or {}).get("message"),
        "api_calls": api_summary,
    }


def build_summary(
    storage: StorageInterface,
    job_key: str,
    days: int,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Dashboard card for one job over the last `days` days."""
    now = now or datetime.now(timezone.utc)
    window_from = now - timedelta(days=days)

    latest_ids = storage.latest_run_ids(job_key, limit=5)
    grouped = storage.get_events_for_runs(job_key, latest_ids)
    recent_runs = [map_run(grouped[run_id], job_key) for run_id in latest_ids if grouped.get(run_id)]

    return {
        **JOBS.get(job_key, {}),
        "key": job_key,
        "total_runs": storage.count_runs(job_key),
        "runs_last_window": storage.count_runs(job_key, since=window_from),
        "last_run_at": storage.last_event_at(job_key),
        "status_breakdown": storage.status_breakdown(job_key, window_from),
        "recent_runs": recent_runs,
        "recent_issues": storage.recent_issues(job_key, limit=5),
        "window_days": days,
        "api_window_summary": aggregate_api_summary(storage.completion_events(job_key, window_from)),
    }


def list_job_runs(
    storage: StorageInterface,
    job_key: str,
    search: Optional[str] = None,
    limit: int = 25,
    offset: int = 0,
) -> List[Dict[str, Any]]:
    """Run table for a job page, with API totals from each run's completion event."""
    runs = storage.list_runs(job_key, search=search, limit=limit, offset=offset)
    grouped = storage.get_events_for_runs(job_key, [run["run_id"] for run in runs])

    result = []
    for run in runs:
        started, finished = run["started_at"], run["finished_at"]
        duration = max(0, int((finished - started).total_seconds())) if started and finished else None

        events = grouped.get(run["run_id"]) or []
        api_calls = map_run(events, job_key)["api_calls"] if events else {"total": None, "breakdown": []}

        result.append({
            **run,
            "duration_seconds": duration,
            "duration_human": format_duration(duration),
            "api_calls": api_calls,
        })
    return result
