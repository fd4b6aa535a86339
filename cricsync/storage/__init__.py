"""
Storage module for cricsync.

Persists the pause window, admin settings, run logs, API call records
and the mirrored cricket documents behind one interface.

Usage:
    from cricsync.storage import get_storage

    storage = get_storage()  # Uses DB_TYPE env var
    window = storage.get_pause_window()
"""

from .base import StorageInterface
from .factory import get_storage, reset_storage
from .exceptions import (
    DatabaseError,
    StorageConnectionError,
    ConfigurationError,
    SchemaError,
    QueryError
)

__all__ = [
    'StorageInterface',
    'get_storage',
    'reset_storage',
    'DatabaseError',
    'StorageConnectionError',
    'ConfigurationError',
    'SchemaError',
    'QueryError'
]
