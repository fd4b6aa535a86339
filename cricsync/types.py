"""
Type definitions for cricsync.

Provides TypedDict classes for the dict shapes passed between storage,
services and the admin API.
"""

from datetime import datetime
from typing import TypedDict, Optional, List, Dict, Any


class RunEventDict(TypedDict):
    """One persisted sync log row."""
    id: int
    run_id: str
    job_key: str
    action: str
    status: Optional[str]  # info, success, warning, error
    message: str
    context: Optional[Dict[str, Any]]
    created_at: datetime


class ApiBreakdownEntryDict(TypedDict):
    """Call counts for one endpoint label."""
    label: str
    count: int
    method: Optional[str]
    host: Optional[str]
    path: Optional[str]


class ApiCallSummaryDict(TypedDict):
    """API usage of one run."""
    total: Optional[int]
    breakdown: List[ApiBreakdownEntryDict]


class RunSummaryDict(TypedDict):
    """One run as shown on the admin dashboard."""
    job_key: str
    run_id: Optional[str]
    started_at: Optional[datetime]
    finished_at: Optional[datetime]
    duration_seconds: Optional[int]
    duration_human: Optional[str]
    error_count: int
    warning_count: int
    success_count: int
    info_count: int
    total_events: int
    final_status: str
    summary_message: Optional[str]
    api_calls: ApiCallSummaryDict


class ApiRequestLogDict(TypedDict, total=False):
    """One outbound HTTP call made during a run."""
    id: int
    job_key: str
    run_id: str
    tag: Optional[str]
    method: str
    host: Optional[str]
    path: Optional[str]
    url: str
    status_code: Optional[int]
    is_error: bool
    duration_ms: int
    response_bytes: Optional[int]
    exception_class: Optional[str]
    exception_message: Optional[str]
    requested_at: datetime
