"""
SQLite-backed key-value store for caching.

Each table maps key -> BLOB with a last-access timestamp, which drives both
TTL expiry and least-recently-used eviction.
"""

import sqlite3
import threading
import time
from pathlib import Path
from typing import Optional, Sequence


class KVStore:
    """
    File-backed SQLite key-value store for caching.

    Thread-safe with WAL mode and a process-local write lock.
    """

    def __init__(self, db_path: Path, tables: Sequence[str] = ("embeddings",)):
        """
        Initialize KV store at given path.

        Args:
            db_path: Path to SQLite database file
            tables: Table names to create
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.tables = tuple(tables)

        self._lock = threading.Lock()
        self._conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,
            timeout=10.0,
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")

        self._init_tables()

    def _init_tables(self) -> None:
        """Create cache tables if they don't exist."""
        for table in self.tables:
            self._conn.execute(f"""
                CREATE TABLE IF NOT EXISTS {table} (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL,
                    ts REAL NOT NULL
                )
            """)
            # Index on timestamp for TTL and LRU queries
            self._conn.execute(f"CREATE INDEX IF NOT EXISTS idx_{table}_ts ON {table}(ts)")
        self._conn.commit()

    def _check(self, table: str) -> None:
        if table not in self.tables:
            raise KeyError(f"Unknown table: {table}")

    def set(self, table: str, key: str, value: bytes) -> None:
        """Set a key-value pair in the specified table."""
        self._check(table)
        with self._lock:
            self._conn.execute(
                f"INSERT OR REPLACE INTO {table} (key, value, ts) VALUES (?, ?, ?)",
                (key, value, time.time()),
            )
            self._conn.commit()

    def get(self, table: str, key: str, max_age: Optional[float] = None) -> Optional[bytes]:
        """
        Get value for a key, refreshing its access time.

        Args:
            table: Table name
            key: String key
            max_age: Treat entries last touched more than this many seconds
                ago as missing

        Returns:
            Binary value if found and fresh, None otherwise
        """
        self._check(table)
        now = time.time()
        with self._lock:
            row = self._conn.execute(
                f"SELECT value, ts FROM {table} WHERE key = ?", (key,)
            ).fetchone()
            if row is None:
                return None
            if max_age is not None and now - row[1] > max_age:
                return None
            self._conn.execute(f"UPDATE {table} SET ts = ? WHERE key = ?", (now, key))
            self._conn.commit()
        return row[0]

    def delete(self, table: str, key: str) -> None:
        """Delete a key from the specified table."""
        self._check(table)
        with self._lock:
            self._conn.execute(f"DELETE FROM {table} WHERE key = ?", (key,))
            self._conn.commit()

    def purge_older_than(self, table: str, max_age: float) -> int:
        """
        Delete entries not accessed within `max_age` seconds.

        Returns:
            Number of rows deleted
        """
        self._check(table)
        cutoff = time.time() - max_age
        with self._lock:
            cursor = self._conn.execute(f"DELETE FROM {table} WHERE ts < ?", (cutoff,))
            self._conn.commit()
        return cursor.rowcount

    def evict_lru(self, table: str, max_entries: int) -> int:
        """
        Trim a table to `max_entries`, dropping least recently used rows first.

        Returns:
            Number of rows deleted
        """
        self._check(table)
        with self._lock:
            cursor = self._conn.execute(
                f"""
                DELETE FROM {table} WHERE key IN (
                    SELECT key FROM {table} ORDER BY ts DESC LIMIT -1 OFFSET ?
                )
                """,
                (max_entries,),
            )
            self._conn.commit()
        return cursor.rowcount

    def count(self, table: str) -> int:
        self._check(table)
        with self._lock:
            return self._conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    def stats(self, table: str) -> dict:
        """
        Get statistics for a table.

        Returns:
            Dict with count, total_bytes, oldest_ts, newest_ts
        """
        self._check(table)
        with self._lock:
            row = self._conn.execute(f"""
                SELECT COUNT(*), SUM(LENGTH(value)), MIN(ts), MAX(ts)
                FROM {table}
            """).fetchone()

        return {
            "count": row[0] or 0,
            "total_bytes": row[1] or 0,
            "oldest_ts": row[2] or 0,
            "newest_ts": row[3] or 0,
        }

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
