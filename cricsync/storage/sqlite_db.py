"""
SQLite storage for cricsync.

Provides storage for the sync control plane and the mirrored documents with:
- Indexed queries on run logs for the admin dashboard
- Atomic transactions for data safety
- JSON columns for event context and document bodies
- Concurrent read access via WAL mode

This is the SQLite implementation of the StorageInterface.
"""

import sqlite3
import json
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Iterator, List, Dict, Any, Iterable
import threading

from .base import StorageInterface
from .exceptions import SchemaError, QueryError, StorageConnectionError
from ..utils.documents import deep_merge
from ..types import ApiRequestLogDict, RunEventDict
from .. import config


UTC = timezone.utc
COMPLETION_ACTIONS = ('job_completed', 'job_finished')


def to_db_timestamp(value: datetime) -> str:
    """Format a datetime as a fixed-width UTC string (sorts chronologically)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime('%Y-%m-%dT%H:%M:%S.%f+00:00')


def from_db_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp back into an aware UTC datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _parse_hhmm(value: str, fallback: int) -> int:
    try:
        hours, minutes = value.split(':', 1)
        return int(hours) * 60 + int(minutes)
    except (ValueError, AttributeError):
        return fallback


class SQLiteStorage(StorageInterface):
    """
    SQLite storage backend.
    Thread-safe with connection per thread.

    Implements the StorageInterface abstract base class.
    """

    SCHEMA_VERSION = 1

    def __init__(self, db_path: str = "data/cricsync.db"):
        """
        Create SQLite storage instance.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._initialized = False

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def initialize(self) -> None:
        """Initialize the database connection and schema."""
        if self._initialized:
            return

        # Ensure parent directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._init_schema()
        self._initialized = True

    def close(self) -> None:
        """Close database connections and clean up resources."""
        if hasattr(self._local, 'conn') and self._local.conn is not None:
            self._local.conn.close()
            self._local.conn = None

    def health_check(self) -> bool:
        """Check if the database connection is healthy."""
        try:
            conn = self._get_connection()
            conn.execute("SELECT 1")
            return True
        except (sqlite3.Error, StorageConnectionError):
            return False

    # =========================================================================
    # CONNECTION MANAGEMENT
    # =========================================================================

    def _get_connection(self) -> sqlite3.Connection:
        """Get thread-local database connection."""
        if not hasattr(self._local, 'conn') or self._local.conn is None:
            try:
                conn = sqlite3.connect(
                    str(self.db_path),
                    check_same_thread=False,
                    timeout=30.0
                )
                conn.row_factory = sqlite3.Row
                # Enable WAL mode for better concurrent access
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("PRAGMA synchronous=NORMAL")
            except sqlite3.OperationalError as e:
                raise StorageConnectionError(f"Cannot open database {self.db_path}: {e}") from e
            self._local.conn = conn
        return self._local.conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise QueryError(str(e)) from e
        except Exception:
            conn.rollback()
            raise

    def _query(self, sql: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        try:
            return self._get_connection().execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as e:
            raise QueryError(str(e)) from e

    def _init_schema(self) -> None:
        """Initialize database schema."""
        try:
            with self.transaction() as conn:
                conn.executescript('''
                    -- Metadata table
                    CREATE TABLE IF NOT EXISTS metadata (
                        key TEXT PRIMARY KEY,
                        value TEXT,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    );

                    -- Single-row pause window
                    CREATE TABLE IF NOT EXISTS pause_windows (
                        id INTEGER PRIMARY KEY CHECK (id = 1),
                        starts_at INTEGER NOT NULL,
                        ends_at INTEGER NOT NULL,
                        timezone TEXT NOT NULL,
                        enabled INTEGER NOT NULL DEFAULT 1,
                        updated_at TEXT
                    );

                    -- Admin settings (JSON values)
                    CREATE TABLE IF NOT EXISTS admin_settings (
                        key TEXT PRIMARY KEY,
                        value JSON,
                        updated_at TEXT
                    );

                    -- Run-scoped sync events
                    CREATE TABLE IF NOT EXISTS sync_logs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        run_id TEXT NOT NULL,
                        job_key TEXT NOT NULL,
                        action TEXT NOT NULL,
                        status TEXT,
                        message TEXT NOT NULL,
                        context JSON,
                        created_at TEXT NOT NULL
                    );

                    -- Outbound HTTP calls made during runs
                    CREATE TABLE IF NOT EXISTS api_request_logs (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        job_key TEXT,
                        run_id TEXT,
                        tag TEXT,
                        method TEXT,
                        host TEXT,
                        path TEXT,
                        url TEXT,
                        status_code INTEGER,
                        is_error INTEGER NOT NULL DEFAULT 0,
                        duration_ms INTEGER,
                        response_bytes INTEGER,
                        exception_class TEXT,
                        exception_message TEXT,
                        requested_at TEXT NOT NULL
                    );

                    -- Mirrored documents
                    CREATE TABLE IF NOT EXISTS documents (
                        collection TEXT NOT NULL,
                        id TEXT NOT NULL,
                        data JSON NOT NULL,
                        updated_at TEXT,
                        PRIMARY KEY (collection, id)
                    );

                    CREATE INDEX IF NOT EXISTS idx_sync_logs_job_run ON sync_logs(job_key, run_id);
                    CREATE INDEX IF NOT EXISTS idx_sync_logs_created ON sync_logs(created_at);
                    CREATE INDEX IF NOT EXISTS idx_api_logs_run ON api_request_logs(run_id);
                    CREATE INDEX IF NOT EXISTS idx_api_logs_requested ON api_request_logs(requested_at);
                ''')

                conn.execute(
                    "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                    ('schema_version', str(self.SCHEMA_VERSION))
                )

                conn.execute('''
                    INSERT OR IGNORE INTO pause_windows (id, starts_at, ends_at, timezone, enabled, updated_at)
                    VALUES (1, ?, ?, ?, ?, ?)
                ''', (
                    _parse_hhmm(config.PAUSE_WINDOW_START, 60),
                    _parse_hhmm(config.PAUSE_WINDOW_END, 480),
                    config.PAUSE_WINDOW_TZ,
                    1 if config.PAUSE_WINDOW_ENABLED else 0,
                    to_db_timestamp(datetime.now(UTC))
                ))
        except QueryError as e:
            raise SchemaError(f"Failed to initialize schema: {e}") from e

    # =========================================================================
    # PAUSE WINDOW
    # =========================================================================

    def get_pause_window(self) -> Optional[Dict[str, Any]]:
        rows = self._query("SELECT * FROM pause_windows WHERE id = 1")
        if not rows:
            return None
        row = rows[0]
        return {
            'starts_at': row['starts_at'],
            'ends_at': row['ends_at'],
            'timezone': row['timezone'],
            'enabled': bool(row['enabled']),
            'updated_at': from_db_timestamp(row['updated_at'])
        }

    def save_pause_window(self, starts_at: int, ends_at: int, timezone: str, enabled: bool) -> None:
        with self.transaction() as conn:
            conn.execute('''
                INSERT OR REPLACE INTO pause_windows (id, starts_at, ends_at, timezone, enabled, updated_at)
                VALUES (1, ?, ?, ?, ?, ?)
            ''', (
                starts_at,
                ends_at,
                timezone,
                1 if enabled else 0,
                to_db_timestamp(datetime.now(UTC))
            ))

    # =========================================================================
    # ADMIN SETTINGS
    # =========================================================================

    def get_setting(self, key: str) -> Optional[Any]:
        rows = self._query("SELECT value FROM admin_settings WHERE key = ?", (key,))
        if not rows or rows[0]['value'] is None:
            return None
        return json.loads(rows[0]['value'])

    def put_setting(self, key: str, value: Any) -> None:
        with self.transaction() as conn:
            conn.execute('''
                INSERT OR REPLACE INTO admin_settings (key, value, updated_at)
                VALUES (?, ?, ?)
            ''', (key, json.dumps(value, ensure_ascii=False), to_db_timestamp(datetime.now(UTC))))

    # =========================================================================
    # SYNC LOGS
    # =========================================================================

    def append_sync_log(
        self,
        run_id: str,
        job_key: str,
        action: str,
        status: Optional[str],
        message: str,
        context: Optional[Dict[str, Any]],
        created_at: datetime
    ) -> None:
        with self.transaction() as conn:
            conn.execute('''
                INSERT INTO sync_logs (run_id, job_key, action, status, message, context, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            ''', (
                run_id,
                job_key,
                action,
                status,
                message,
                json.dumps(context, ensure_ascii=False, default=str) if context else None,
                to_db_timestamp(created_at)
            ))

    @staticmethod
    def _event_from_row(row: sqlite3.Row) -> RunEventDict:
        return {
            'id': row['id'],
            'run_id': row['run_id'],
            'job_key': row['job_key'],
            'action': row['action'],
            'status': row['status'],
            'message': row['message'],
            'context': json.loads(row['context']) if row['context'] else None,
            'created_at': from_db_timestamp(row['created_at'])
        }

    def get_run_events(self, job_key: str, run_id: str) -> List[RunEventDict]:
        rows = self._query('''
            SELECT * FROM sync_logs
            WHERE job_key = ? AND run_id = ?
            ORDER BY created_at ASC, id ASC
        ''', (job_key, run_id))
        return [self._event_from_row(row) for row in rows]

    def get_events_for_runs(self, job_key: str, run_ids: Iterable[str]) -> Dict[str, List[RunEventDict]]:
        ids = list(run_ids)
        result: Dict[str, List[RunEventDict]] = {run_id: [] for run_id in ids}
        if not ids:
            return result

        placeholders = ','.join('?' for _ in ids)
        rows = self._query(f'''
            SELECT * FROM sync_logs
            WHERE job_key = ? AND run_id IN ({placeholders})
            ORDER BY created_at ASC, id ASC
        ''', [job_key, *ids])

        for row in rows:
            result[row['run_id']].append(self._event_from_row(row))
        return result

    def list_runs(
        self,
        job_key: str,
        search: Optional[str] = None,
        limit: int = 25,
        offset: int = 0
    ) -> List[Dict[str, Any]]:
        params: List[Any] = [job_key]
        where = "WHERE job_key = ?"
        if search:
            where += " AND (run_id LIKE ? OR message LIKE ?)"
            params.extend([f"%{search}%", f"%{search}%"])
        params.extend([limit, offset])

        rows = self._query(f'''
            SELECT
                run_id,
                MIN(created_at) AS started_at,
                MAX(created_at) AS finished_at,
                COUNT(*) AS event_count,
                SUM(CASE WHEN status = 'error' THEN 1 ELSE 0 END) AS error_count,
                SUM(CASE WHEN status = 'warning' THEN 1 ELSE 0 END) AS warning_count,
                SUM(CASE WHEN status = 'success' THEN 1 ELSE 0 END) AS success_count,
                COALESCE(
                    (SELECT c.status FROM sync_logs AS c
                     WHERE c.job_key = s.job_key AND c.run_id = s.run_id
                       AND c.action IN ('job_completed', 'job_finished')
                     ORDER BY c.created_at DESC, c.id DESC LIMIT 1),
                    (SELECT c.status FROM sync_logs AS c
                     WHERE c.job_key = s.job_key AND c.run_id = s.run_id
                     ORDER BY c.created_at DESC, c.id DESC LIMIT 1)
                ) AS final_status
            FROM sync_logs AS s
            {where}
            GROUP BY run_id
            ORDER BY finished_at DESC
            LIMIT ? OFFSET ?
        ''', params)

        return [
            {
                'run_id': row['run_id'],
                'started_at': from_db_timestamp(row['started_at']),
                'finished_at': from_db_timestamp(row['finished_at']),
                'event_count': row['event_count'],
                'error_count': row['error_count'] or 0,
                'warning_count': row['warning_count'] or 0,
                'success_count': row['success_count'] or 0,
                'final_status': row['final_status'] or 'info'
            }
            for row in rows
        ]

    def count_runs(self, job_key: str, since: Optional[datetime] = None) -> int:
        if since is None:
            rows = self._query(
                "SELECT COUNT(DISTINCT run_id) AS total FROM sync_logs WHERE job_key = ?",
                (job_key,)
            )
        else:
            rows = self._query(
                "SELECT COUNT(DISTINCT run_id) AS total FROM sync_logs WHERE job_key = ? AND created_at >= ?",
                (job_key, to_db_timestamp(since))
            )
        return rows[0]['total'] if rows else 0

    def latest_run_ids(self, job_key: str, limit: int = 5) -> List[str]:
        rows = self._query('''
            SELECT run_id, MAX(created_at) AS last_at
            FROM sync_logs
            WHERE job_key = ?
            GROUP BY run_id
            ORDER BY last_at DESC
            LIMIT ?
        ''', (job_key, limit))
        return [row['run_id'] for row in rows]

    def last_event_at(self, job_key: str) -> Optional[datetime]:
        rows = self._query(
            "SELECT MAX(created_at) AS last_at FROM sync_logs WHERE job_key = ?",
            (job_key,)
        )
        return from_db_timestamp(rows[0]['last_at']) if rows else None

    def status_breakdown(self, job_key: str, since: datetime) -> Dict[str, int]:
        rows = self._query('''
            SELECT status, COUNT(*) AS total
            FROM sync_logs
            WHERE job_key = ? AND created_at >= ? AND status IS NOT NULL
            GROUP BY status
        ''', (job_key, to_db_timestamp(since)))
        return {row['status']: row['total'] for row in rows}

    def recent_issues(self, job_key: str, limit: int = 5) -> List[RunEventDict]:
        rows = self._query('''
            SELECT * FROM sync_logs
            WHERE job_key = ? AND status IN ('error', 'warning')
            ORDER BY created_at DESC, id DESC
            LIMIT ?
        ''', (job_key, limit))
        return [self._event_from_row(row) for row in rows]

    def completion_events(self, job_key: str, since: datetime) -> List[RunEventDict]:
        rows = self._query('''
            SELECT * FROM sync_logs
            WHERE job_key = ? AND action IN (?, ?) AND created_at >= ?
            ORDER BY created_at DESC, id DESC
        ''', (job_key, *COMPLETION_ACTIONS, to_db_timestamp(since)))
        return [self._event_from_row(row) for row in rows]

    def delete_sync_logs_before(self, cutoff: datetime) -> int:
        with self.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM sync_logs WHERE created_at < ?",
                (to_db_timestamp(cutoff),)
            )
            return cursor.rowcount

    def truncate_sync_logs(self, job_key: Optional[str] = None) -> int:
        with self.transaction() as conn:
            if job_key is None:
                cursor = conn.execute("DELETE FROM sync_logs")
            else:
                cursor = conn.execute("DELETE FROM sync_logs WHERE job_key = ?", (job_key,))
            return cursor.rowcount

    # =========================================================================
    # API REQUEST LOGS
    # =========================================================================

    _API_LOG_COLUMNS = (
        'job_key', 'run_id', 'tag', 'method', 'host', 'path', 'url', 'status_code',
        'is_error', 'duration_ms', 'response_bytes', 'exception_class',
        'exception_message', 'requested_at'
    )

    def append_api_request_log(self, entry: ApiRequestLogDict) -> None:
        values = []
        for column in self._API_LOG_COLUMNS:
            value = entry.get(column)
            if column == 'is_error':
                value = 1 if value else 0
            elif column == 'requested_at':
                value = to_db_timestamp(value or datetime.now(UTC))
            values.append(value)

        columns = ', '.join(self._API_LOG_COLUMNS)
        placeholders = ', '.join('?' for _ in self._API_LOG_COLUMNS)
        with self.transaction() as conn:
            conn.execute(
                f"INSERT INTO api_request_logs ({columns}) VALUES ({placeholders})",
                values
            )

    def get_api_request_logs(self, run_id: str) -> List[ApiRequestLogDict]:
        rows = self._query('''
            SELECT * FROM api_request_logs
            WHERE run_id = ?
            ORDER BY requested_at ASC, id ASC
        ''', (run_id,))

        logs: List[ApiRequestLogDict] = []
        for row in rows:
            item = dict(row)
            item['is_error'] = bool(item['is_error'])
            item['requested_at'] = from_db_timestamp(item['requested_at'])
            logs.append(item)
        return logs

    def delete_api_request_logs_before(self, cutoff: datetime) -> int:
        with self.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM api_request_logs WHERE requested_at < ?",
                (to_db_timestamp(cutoff),)
            )
            return cursor.rowcount

    # =========================================================================
    # DOCUMENTS
    # =========================================================================

    def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        rows = self._query(
            "SELECT data FROM documents WHERE collection = ? AND id = ?",
            (collection, str(doc_id))
        )
        if not rows:
            return None
        return json.loads(rows[0]['data'])

    def set_document(
        self,
        collection: str,
        doc_id: str,
        data: Dict[str, Any],
        merge: bool = True
    ) -> None:
        with self.transaction() as conn:
            body = data
            if merge:
                row = conn.execute(
                    "SELECT data FROM documents WHERE collection = ? AND id = ?",
                    (collection, str(doc_id))
                ).fetchone()
                if row is not None:
                    body = deep_merge(json.loads(row['data']), data)

            conn.execute('''
                INSERT OR REPLACE INTO documents (collection, id, data, updated_at)
                VALUES (?, ?, ?, ?)
            ''', (
                collection,
                str(doc_id),
                json.dumps(body, ensure_ascii=False, default=str),
                to_db_timestamp(datetime.now(UTC))
            ))

    def find_documents(
        self,
        collection: str,
        field: str,
        values: Optional[Iterable[Any]] = None,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None
    ) -> List[Dict[str, Any]]:
        path = f"$.{field}"
        conditions = ["collection = ?"]
        params: List[Any] = [collection]

        if values is not None:
            value_list = list(values)
            if not value_list:
                return []
            placeholders = ','.join('?' for _ in value_list)
            conditions.append(f"json_extract(data, ?) IN ({placeholders})")
            params.append(path)
            params.extend(value_list)

        if min_value is not None:
            conditions.append("json_extract(data, ?) >= ?")
            params.extend([path, min_value])

        if max_value is not None:
            conditions.append("json_extract(data, ?) <= ?")
            params.extend([path, max_value])

        rows = self._query(f'''
            SELECT id, data FROM documents
            WHERE {' AND '.join(conditions)}
            ORDER BY id
        ''', params)

        return [{'id': row['id'], 'data': json.loads(row['data'])} for row in rows]

    # =========================================================================
    # MAINTENANCE
    # =========================================================================

    def get_stats(self) -> Dict[str, int]:
        stats = {}
        for table in ('sync_logs', 'api_request_logs', 'documents', 'admin_settings'):
            rows = self._query(f"SELECT COUNT(*) AS total FROM {table}")
            stats[table] = rows[0]['total'] if rows else 0
        return stats