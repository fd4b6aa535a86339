"""
Factory function to create the storage implementation.

Reads configuration from environment variables to determine which
storage backend to use.
"""

import os
from typing import Optional

from .base import StorageInterface
from .exceptions import ConfigurationError
from .. import config


# Singleton instance
_storage_instance: Optional[StorageInterface] = None


def get_storage() -> StorageInterface:
    """
    Get or create the storage instance.

    Uses the DB_TYPE environment variable to determine which implementation:
    - "sqlite" (default): Local SQLite database under DATA_DIR

    Returns:
        StorageInterface implementation

    Raises:
        ConfigurationError: If DB_TYPE names an unknown backend
    """
    global _storage_instance

    if _storage_instance is not None:
        return _storage_instance

    db_type = os.environ.get('DB_TYPE', config.DB_TYPE).lower()
    print(f"[*] Storage type: {db_type}")

    if db_type == 'sqlite':
        from .sqlite_db import SQLiteStorage

        data_dir = os.environ.get('DATA_DIR') or config.DATA_DIR
        db_path = os.path.join(data_dir, 'cricsync.db')

        _storage_instance = SQLiteStorage(db_path=db_path)

    else:
        raise ConfigurationError(
            f"Unknown DB_TYPE: {db_type}. "
            f"Valid options: sqlite"
        )

    _storage_instance.initialize()

    return _storage_instance


def reset_storage() -> None:
    """
    Reset the storage singleton.

    Used for testing or when switching configurations.
    """
    global _storage_instance
    if _storage_instance is not None:
        _storage_instance.close()
        _storage_instance = None
