"""
Memory persistence layer using SQLite.

Stores Memory records per owner with `(owner, content)` as the dedup key.
"""

import json
import logging
import sqlite3
import threading
import time
import uuid
from pathlib import Path
from typing import Iterable, List, Optional

import numpy as np

from .schemas import KindStats, Memory, MemorySource, MemoryStats, RawFact

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, owner, content, kind, tags, embedding, salience, "
    "decay_at, created_at, updated_at, source"
)


class MemoryStore:
    """
    Persistent storage for user memories.

    Features:
    - Atomic upsert keyed on (owner, content)
    - Active-only reads that exclude expired memories
    - Atomic salience increments clamped to [0.0, 1.0]
    - Bulk delete per owner and a cleanup pass for expired rows

    A single connection is shared across threads; writes are serialised by a
    lock so concurrent upserts of the same key resolve last-writer-wins.
    """

    def __init__(self, db_path: Optional[Path] = None, default_salience: float = 0.7):
        """
        Initialize memory store.

        Args:
            db_path: Path to SQLite database (default: data/memory/memories.db)
            default_salience: Salience given to new memories that carry none
        """
        if db_path is None:
            db_path = Path("data/memory/memories.db")

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.default_salience = default_salience

        self._lock = threading.RLock()
        self._conn = sqlite3.connect(
            str(self.db_path),
            check_same_thread=False,  # Engine calls us from worker threads
            timeout=10.0,
        )
        self._conn.row_factory = sqlite3.Row

        # Enable WAL mode for better concurrency
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")

        self._init_tables()

    def _init_tables(self) -> None:
        """Create the memories table and indexes if they don't exist."""
        with self._lock:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS memories (
                    id TEXT PRIMARY KEY,
                    owner TEXT NOT NULL,
                    content TEXT NOT NULL,
                    kind TEXT NOT NULL DEFAULT 'fact',
                    tags TEXT NOT NULL DEFAULT '[]',
                    embedding BLOB,
                    salience REAL NOT NULL,
                    decay_at REAL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    source TEXT NOT NULL DEFAULT '{}',
                    UNIQUE (owner, content)
                )
            """)
            self._conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_memories_owner_salience ON memories(owner, salience DESC)"
            )
            self._conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_memories_owner_kind ON memories(owner, kind)"
            )
            self._conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_memories_decay_at ON memories(decay_at)"
            )
            self._conn.commit()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_active(self, owner: str, now: Optional[float] = None) -> List[Memory]:
        """
        Return the owner's memories whose `decay_at` is absent or in the future.

        Args:
            owner: Owner identifier
            now: Reference timestamp (default: current time)

        Returns:
            List of Memory objects, most salient first
        """
        ts = time.time() if now is None else now
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM memories "
                "WHERE owner = ? AND (decay_at IS NULL OR decay_at > ?) "
                "ORDER BY salience DESC, updated_at DESC",
                (owner, ts),
            ).fetchall()
        return self._rows_to_memories(rows)

    def list_for(self, owner: str, include_expired: bool = False) -> List[Memory]:
        """List the owner's memories, optionally including expired ones."""
        if not include_expired:
            return self.find_active(owner)
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM memories WHERE owner = ? "
                "ORDER BY salience DESC, updated_at DESC",
                (owner,),
            ).fetchall()
        return self._rows_to_memories(rows)

    def get(self, memory_id: str) -> Optional[Memory]:
        """Retrieve a memory by id, or None if it doesn't exist."""
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM memories WHERE id = ?",
                (memory_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_memory(row)

    def count(self, owner: Optional[str] = None) -> int:
        """Count memories, for one owner or overall."""
        with self._lock:
            if owner is None:
                row = self._conn.execute("SELECT COUNT(*) FROM memories").fetchone()
            else:
                row = self._conn.execute(
                    "SELECT COUNT(*) FROM memories WHERE owner = ?", (owner,)
                ).fetchone()
        return row[0]

    def stats(self, owner: str) -> MemoryStats:
        """Total count and per-kind count/average salience for an owner."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT kind, COUNT(*), AVG(salience) FROM memories "
                "WHERE owner = ? GROUP BY kind",
                (owner,),
            ).fetchall()

        by_kind = {
            kind: KindStats(count=count, avg_salience=round(avg or 0.0, 4))
            for kind, count, avg in rows
        }
        return MemoryStats(total=sum(s.count for s in by_kind.values()), by_kind=by_kind)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(
        self,
        owner: str,
        fact: RawFact,
        embedding: Optional[Iterable[float]] = None,
        decay_at: Optional[float] = None,
    ) -> Memory:
        """
        Insert a memory or refresh the existing one with the same content.

        On conflict the embedding, tags, source, kind and `updated_at` are
        replaced; salience and `created_at` keep their stored values.

        Args:
            owner: Owner identifier
            fact: Candidate fact (content, kind, tags, salience, source)
            embedding: Vector for the fact content
            decay_at: Optional expiry timestamp for a newly inserted memory

        Returns:
            The stored Memory
        """
        if not fact.content:
            raise ValueError("Cannot store a memory with empty content")

        now = time.time()
        salience = fact.salience if fact.salience is not None else self.default_salience
        salience = min(1.0, max(0.0, salience))
        source = fact.source or MemorySource()

        with self._lock:
            self._conn.execute(
                """
                INSERT INTO memories
                    (id, owner, content, kind, tags, embedding, salience,
                     decay_at, created_at, updated_at, source)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (owner, content) DO UPDATE SET
                    embedding = excluded.embedding,
                    tags = excluded.tags,
                    source = excluded.source,
                    kind = excluded.kind,
                    updated_at = excluded.updated_at
                """,
                (
                    f"mem_{uuid.uuid4().hex[:12]}",
                    owner,
                    fact.content,
                    fact.kind,
                    json.dumps(fact.tags),
                    _encode_embedding(embedding),
                    salience,
                    decay_at,
                    now,
                    now,
                    source.model_dump_json(),
                ),
            )
            self._conn.commit()
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM memories WHERE owner = ? AND content = ?",
                (owner, fact.content),
            ).fetchone()

        return self._row_to_memory(row)

    def bump_salience(self, memory_ids: List[str], delta: float) -> int:
        """
        Atomically add `delta` to each memory's salience, clamped to [0, 1].

        Args:
            memory_ids: Memories to update
            delta: Increment (may be negative)

        Returns:
            Number of records updated
        """
        if not memory_ids:
            return 0

        placeholders = ",".join("?" * len(memory_ids))
        with self._lock:
            cursor = self._conn.execute(
                f"""
                UPDATE memories
                SET salience = MIN(1.0, MAX(0.0, salience + ?)), updated_at = ?
                WHERE id IN ({placeholders})
                """,
                (delta, time.time(), *memory_ids),
            )
            self._conn.commit()
        return cursor.rowcount

    def set_decay(self, memory_id: str, decay_at: Optional[float]) -> bool:
        """Set or clear a memory's expiry timestamp. Returns False if not found."""
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE memories SET decay_at = ?, updated_at = ? WHERE id = ?",
                (decay_at, time.time(), memory_id),
            )
            self._conn.commit()
        return cursor.rowcount > 0

    def delete_all_for(self, owner: str) -> int:
        """
        Delete every memory owned by `owner`.

        Returns:
            Number of memories deleted
        """
        with self._lock:
            cursor = self._conn.execute("DELETE FROM memories WHERE owner = ?", (owner,))
            self._conn.commit()
        logger.info("Deleted %d memories for owner %s", cursor.rowcount, owner)
        return cursor.rowcount

    def purge_expired(self, now: Optional[float] = None) -> int:
        """
        Physically remove memories whose `decay_at` has passed.

        Retrieval already ignores these rows; this is the separate cleanup pass.

        Returns:
            Number of rows removed
        """
        ts = time.time() if now is None else now
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM memories WHERE decay_at IS NOT NULL AND decay_at <= ?",
                (ts,),
            )
            self._conn.commit()
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close database connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ------------------------------------------------------------------
    # Row mapping
    # ------------------------------------------------------------------

    def _rows_to_memories(self, rows: List[sqlite3.Row]) -> List[Memory]:
        memories = []
        for row in rows:
            try:
                memories.append(self._row_to_memory(row))
            except (json.JSONDecodeError, ValueError) as e:
                logger.warning("Skipping unreadable memory row %s: %s", row["id"], e)
        return memories

    @staticmethod
    def _row_to_memory(row: sqlite3.Row) -> Memory:
        return Memory(
            id=row["id"],
            owner=row["owner"],
            content=row["content"],
            kind=row["kind"],
            tags=json.loads(row["tags"] or "[]"),
            embedding=_decode_embedding(row["embedding"]),
            salience=row["salience"],
            decay_at=row["decay_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            source=MemorySource.model_validate_json(row["source"] or "{}"),
        )


def _encode_embedding(embedding: Optional[Iterable[float]]) -> Optional[bytes]:
    if embedding is None:
        return None
    return np.asarray(list(embedding), dtype=np.float32).tobytes()


def _decode_embedding(blob: Optional[bytes]) -> Optional[List[float]]:
    if not blob:
        return None
    return np.frombuffer(blob, dtype=np.float32).astype(float).tolist()
