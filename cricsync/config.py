"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

import os


def _get_int(key: str, default: int) -> int:
    """Get integer from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(key: str, default: float) -> float:
    """Get float from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_bool(key: str, default: bool) -> bool:
    """Get boolean from environment variable."""
    value = os.environ.get(key)
    if value is None:
        return default
    return value.lower() in ('true', '1', 'yes')


def _get_str(key: str, default: str) -> str:
    """Get string from environment variable."""
    return os.environ.get(key, default)


# =============================================================================
# SERVER SETTINGS
# =============================================================================
PORT = _get_int('PORT', 8000)
HOST = _get_str('HOST', '0.0.0.0')

# =============================================================================
# STORAGE SETTINGS
# =============================================================================
DB_TYPE = _get_str('DB_TYPE', 'sqlite')

# Data directory path
# Priority: DATA_DIR > /app/data (container) > data (local)
DATA_DIR = (
    os.environ.get('DATA_DIR') or
    ('/app/data' if os.path.exists('/app') else 'data')
)

# =============================================================================
# TIME SETTINGS
# =============================================================================
APP_TIMEZONE = _get_str('APP_TIMEZONE', 'Asia/Kolkata')

# =============================================================================
# PAUSE WINDOW
# =============================================================================
# Used when no pause window row exists or the stored row is unreadable
PAUSE_WINDOW_ENABLED = _get_bool('PAUSE_WINDOW_ENABLED', True)
PAUSE_WINDOW_START = _get_str('PAUSE_WINDOW_START', '01:00')
PAUSE_WINDOW_END = _get_str('PAUSE_WINDOW_END', '08:00')
PAUSE_WINDOW_TZ = _get_str('PAUSE_WINDOW_TZ', APP_TIMEZONE)

# How long resolved pause window settings stay cached (in seconds)
PAUSE_WINDOW_CACHE_TTL = _get_int('PAUSE_WINDOW_CACHE_TTL', 60)

# =============================================================================
# CRICBUZZ API
# =============================================================================
CRICBUZZ_HOST = _get_str('CRICBUZZ_HOST', 'cricbuzz-cricket2.p.rapidapi.com')
CRICBUZZ_KEY = _get_str('CRICBUZZ_KEY', '')
CRICBUZZ_SCHEME = _get_str('CRICBUZZ_SCHEME', 'https')

HTTP_TIMEOUT_SECONDS = _get_float('HTTP_TIMEOUT_SECONDS', 30.0)

# Number of concurrent requests per batch window
HTTP_BATCH_SIZE = _get_int('HTTP_BATCH_SIZE', 5)

# =============================================================================
# WORKER SETTINGS
# =============================================================================
WORKER_THREADS = _get_int('WORKER_THREADS', 4)

# =============================================================================
# MAINTENANCE
# =============================================================================
# Sync logs older than this are pruned by the cleanup job (clamped to 5..365)
LOG_RETENTION_DAYS = _get_int('LOG_RETENTION_DAYS', 5)

# =============================================================================
# LOGGING
# =============================================================================
LOG_LEVEL = _get_str('LOG_LEVEL', 'INFO')
