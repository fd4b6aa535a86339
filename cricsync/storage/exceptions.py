"""
Exceptions raised by the storage layer.

- DatabaseError: base class, catch this to handle any storage failure
- StorageConnectionError: the backend could not be opened
- ConfigurationError: DB_TYPE or backend settings are invalid
- SchemaError: tables could not be created or migrated
- QueryError: a read or write statement failed
"""


class DatabaseError(Exception):
    """Base exception for all storage errors."""
    pass


class StorageConnectionError(DatabaseError):
    """Failed to connect to the backend."""
    pass


class ConfigurationError(DatabaseError):
    """Missing or invalid storage configuration."""
    pass


class SchemaError(DatabaseError):
    """Error creating or migrating the schema."""
    pass


class QueryError(DatabaseError):
    """Error executing a statement."""
    pass
