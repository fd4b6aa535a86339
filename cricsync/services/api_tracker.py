"""Per-run accounting of outbound API calls."""

import logging
import threading
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from cricsync.storage.base import StorageInterface

logger = logging.getLogger(__name__)


class ApiCallTracker:
    """Counts calls per endpoint label and writes one api_request_logs row per call.

    Usage:
        call_id = tracker.record(url, "GET", tag="live-matches")
        response = session.get(url)
        tracker.finalize(call_id, response.status_code, len(response.content))
    """

    def __init__(self, job_key: str, run_id: str, storage: Optional[StorageInterface] = None) -> None:
        self.job_key = job_key
        self.run_id = run_id
        self._storage = storage
        self._counts: Dict[str, Dict[str, Any]] = {}
        self._pending: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def record(self, url: str, method: str = "GET", tag: Optional[str] = None) -> str:
        """Count a call about to be made and return its call id."""
        method = method.upper()
        parsed = urlparse(url)
        host = parsed.netloc or None
        path = parsed.path or None
        label = tag or f"{method} {(host or '')}{path or ''}".strip()

        call_id = str(uuid.uuid4())
        with self._lock:
            entry = self._counts.setdefault(
                label, {"count": 0, "method": method, "host": host, "path": path}
            )
            entry["count"] += 1
            self._pending[call_id] = {
                "tag": tag,
                "method": method,
                "host": host,
                "path": path,
                "url": url,
                "started": time.monotonic(),
                "requested_at": datetime.now(timezone.utc),
            }
        return call_id

    def finalize(
        self,
        call_id: str,
        status_code: Optional[int] = None,
        response_bytes: Optional[int] = None,
        exception: Optional[BaseException] = None,
    ) -> None:
        """Persist the outcome of a recorded call. Storage failures are logged."""
        with self._lock:
            pending = self._pending.pop(call_id, None)
        if pending is None:
            return

        duration_ms = int((time.monotonic() - pending.pop("started")) * 1000)
        entry = {
            **pending,
            "job_key": self.job_key,
            "run_id": self.run_id,
            "status_code": status_code,
            "is_error": exception is not None or (status_code is not None and status_code >= 400),
            "duration_ms": duration_ms,
            "response_bytes": response_bytes,
            "exception_class": type(exception).__name__ if exception else None,
            "exception_message": str(exception) if exception else None,
        }

        if self._storage is None:
            return
        try:
            self._storage.append_api_request_log(entry)
        except Exception as e:
            logger.warning("Failed to store API request log for %s: %s", pending["url"], e)

    def breakdown(self) -> Dict[str, Any]:
        """Totals for the job_completed event context."""
        with self._lock:
            breakdown = {label: dict(info) for label, info in self._counts.items()}
        return {
            "total": sum(info["count"] for info in breakdown.values()),
            "breakdown": breakdown,
        }

    @property
    def total(self) -> int:
        with self._lock:
            return sum(info["count"] for info in self._counts.values())


def response_context(status_code: Optional[int], payload: Any = None) -> Dict[str, Any]:
    """Compact description of an HTTP response for event contexts."""
    context: Dict[str, Any] = {"status": status_code}
    if isinstance(payload, dict):
        context["keys"] = sorted(payload.keys())[:10]
    elif payload is not None:
        context["body"] = str(payload)[:500]
    return context


def exception_context(exc: BaseException) -> Dict[str, Any]:
    """Compact description of an exception for event contexts."""
    return {
        "exception": type(exc).__name__,
        "message": str(exc)[:500],
    }
