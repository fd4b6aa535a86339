"""
Shared test fixtures and configuration.

Provides reusable fixtures for all test files including storage instances,
a controllable clock, pause window services and a stub Cricbuzz client.
"""

import pytest
import os
import shutil
import tempfile
from typing import Any, Dict, List, Optional, Sequence
from unittest.mock import patch

from cricsync.clients.cricbuzz import ApiResponse
from cricsync.models.pause_window import time_string_to_minutes
from cricsync.services.admin_settings import AdminSettingsService
from cricsync.services.cache import CacheService, get_cache_service
from cricsync.services.pause_window import PauseWindowService
from cricsync.storage import get_storage, reset_storage


# =============================================================================
# STORAGE FIXTURES
# =============================================================================

@pytest.fixture
def test_data_dir():
    """Provide a temporary directory for test data."""
    temp_dir = tempfile.mkdtemp(prefix="cricsync_test_")
    yield temp_dir

    # Cleanup
    if os.path.exists(temp_dir):
        try:
            shutil.rmtree(temp_dir)
        except PermissionError:
            pass  # Windows file locking, ignore


@pytest.fixture
def storage_fixture(test_data_dir):
    """Provide a clean test storage instance."""
    with patch.dict(os.environ, {'DB_TYPE': 'sqlite', 'DATA_DIR': test_data_dir}, clear=False):
        reset_storage()
        get_cache_service().clear()
        storage = get_storage()
        yield storage
        get_cache_service().clear()
        reset_storage()  # Close connection before cleanup


# =============================================================================
# CLOCK AND CACHE FIXTURES
# =============================================================================

class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    """Provide a controllable clock for TTL caches."""
    return FakeClock()


@pytest.fixture
def cache(fake_clock):
    """Provide a private cache driven by the fake clock."""
    return CacheService(timer=fake_clock)


# =============================================================================
# SERVICE FIXTURES
# =============================================================================

@pytest.fixture
def admin_settings(storage_fixture, cache):
    """Admin settings with a Cricbuzz key configured."""
    settings = AdminSettingsService(storage=storage_fixture, cache=cache)
    settings.update_cricbuzz_settings(host="cricbuzz.test", key="test-key")
    return settings


@pytest.fixture
def pause_window_factory(storage_fixture, cache):
    """Build a pause window service over a stored window."""
    def build(start: str = "01:00", end: str = "08:00", timezone: str = "UTC", enabled: bool = True):
        storage_fixture.save_pause_window(
            starts_at=time_string_to_minutes(start),
            ends_at=time_string_to_minutes(end),
            timezone=timezone,
            enabled=enabled,
        )
        cache.clear()
        return PauseWindowService(storage=storage_fixture, cache=cache)

    return build


# =============================================================================
# STUB CRICBUZZ CLIENT
# =============================================================================

class FakeCricbuzzClient:
    """Serves canned responses by path and counts calls on the tracker."""

    def __init__(self, responses: Dict[str, Any], tracker=None, host: str = "cricbuzz.test"):
        self.responses = responses
        self.tracker = tracker
        self.host = host
        self.requested: List[str] = []
        self.closed = False

    def _response(self, path: str) -> ApiResponse:
        url = f"https://{self.host}/{path}"
        canned = self.responses.get(path)
        if isinstance(canned, Exception):
            result = ApiResponse(path=path, url=url, error=canned)
            status_code = None
        elif isinstance(canned, tuple):
            status_code, payload = canned
            result = ApiResponse(path=path, url=url, status_code=status_code, payload=payload)
        elif canned is None:
            status_code = 404
            result = ApiResponse(path=path, url=url, status_code=404, payload={"message": "not found"})
        else:
            status_code = 200
            result = ApiResponse(path=path, url=url, status_code=200, payload=canned)

        if self.tracker is not None:
            call_id = self.tracker.record(url, "GET")
            self.tracker.finalize(call_id, status_code, 0, result.error)
        return result

    def get(self, path: str, tag: Optional[str] = None) -> ApiResponse:
        self.requested.append(path)
        return self._response(path)

    def get_many(self, paths: Sequence[str], tag: Optional[str] = None) -> List[ApiResponse]:
        return [self.get(path, tag) for path in paths]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client_factory():
    """Return a factory whose built clients serve the given responses.

    Usage:
        factory = fake_client_factory({"matches/v1/live": payload})
        job = SyncLiveMatchesJob(client_factory=factory, ...)
        factory.clients[0].requested
    """
    def make(responses: Dict[str, Any]):
        def factory(host, key, tracker):
            client = FakeCricbuzzClient(responses, tracker=tracker, host=host)
            factory.clients.append(client)
            return client

        factory.clients = []
        return factory

    return make
