"""
Cricbuzz API client (RapidAPI).

Thin wrapper over requests.Session that adds the RapidAPI headers, retries
transient failures with exponential backoff and fetches batches of
endpoints a few at a time.

API Base: https://cricbuzz-cricket2.p.rapidapi.com
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Sequence

import requests

from cricsync import config
from cricsync.services.api_tracker import ApiCallTracker

logger = logging.getLogger(__name__)


@dataclass
class ApiResponse:
    """Outcome of one endpoint fetch."""

    path: str
    url: str
    status_code: Optional[int] = None
    payload: Any = None
    body_bytes: int = 0
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.status_code is not None and 200 <= self.status_code < 300


class CricbuzzClient:
    """
    Client for the Cricbuzz cricket API.

    Every request is counted on the attached ApiCallTracker so the job's
    completion event can report its API usage.
    """

    # Retry configuration
    MAX_RETRIES = 3
    BASE_BACKOFF_SECONDS = 2  # Exponential: 1, 2 seconds

    def __init__(
        self,
        host: str,
        key: str,
        tracker: Optional[ApiCallTracker] = None,
        scheme: str = config.CRICBUZZ_SCHEME,
        timeout: float = config.HTTP_TIMEOUT_SECONDS,
        batch_size: int = config.HTTP_BATCH_SIZE,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the Cricbuzz client.

        Args:
            host: RapidAPI host, e.g. cricbuzz-cricket2.p.rapidapi.com
            key: RapidAPI key
            tracker: Optional per-run API call tracker
            scheme: URL scheme
            timeout: Per-request timeout in seconds
            batch_size: Concurrent requests per get_many() window
            session: Pre-built session (tests)
            sleep: Backoff sleep function (tests)
        """
        self.host = host
        self.base_url = f"{scheme}://{host}"
        self.tracker = tracker
        self.timeout = timeout
        self.batch_size = max(1, batch_size)
        self._sleep = sleep

        self.session = session or requests.Session()
        self.session.headers.update({
            "Accept": "application/json",
            "User-Agent": "cricsync/1.0",
            "x-rapidapi-host": host,
            "x-rapidapi-key": key,
        })

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _send(self, url: str, tag: Optional[str]) -> requests.Response:
        call_id = self.tracker.record(url, "GET", tag) if self.tracker else None
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            if call_id:
                self.tracker.finalize(call_id, exception=e)
            raise
        if call_id:
            self.tracker.finalize(call_id, response.status_code, len(response.content or b""))
        return response

    def get(self, path: str, tag: Optional[str] = None) -> ApiResponse:
        """
        Fetch one endpoint with retry logic.

        Connection errors and 5xx responses are retried with exponential
        backoff. 4xx responses are returned as-is. Never raises; failures
        are reported on the returned ApiResponse.
        """
        url = self.url(path)
        result = ApiResponse(path=path, url=url)

        for attempt in range(self.MAX_RETRIES):
            try:
                response = self._send(url, tag)
            except requests.RequestException as e:
                result.error = e
                result.status_code = None
            else:
                result.error = None
                result.status_code = response.status_code
                result.body_bytes = len(response.content or b"")
                try:
                    result.payload = response.json()
                except ValueError:
                    result.payload = response.text

                if response.status_code < 500:
                    return result

            if attempt < self.MAX_RETRIES - 1:
                wait_time = self.BASE_BACKOFF_SECONDS ** attempt
                logger.warning(
                    "Cricbuzz request failed for %s, retry %d/%d in %ss (%s)",
                    path, attempt + 1, self.MAX_RETRIES, wait_time,
                    result.error or result.status_code,
                )
                self._sleep(wait_time)

        logger.error(
            "Cricbuzz request failed for %s after %d retries (%s)",
            path, self.MAX_RETRIES, result.error or result.status_code,
        )
        return result

    def get_many(self, paths: Sequence[str], tag: Optional[str] = None) -> List[ApiResponse]:
        """
        Fetch several endpoints, batch_size at a time.

        Returns:
            Responses in the same order as paths
        """
        results: List[ApiResponse] = []
        if not paths:
            return results

        with ThreadPoolExecutor(max_workers=self.batch_size) as executor:
            for offset in range(0, len(paths), self.batch_size):
                window = paths[offset:offset + self.batch_size]
                results.extend(executor.map(lambda path: self.get(path, tag), window))

        return results

    def close(self) -> None:
        self.session.close()
