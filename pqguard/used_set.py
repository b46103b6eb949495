"""
pqguard Used Sets

A used set is the monotonically growing set of consumed message digests
(or one-time leaf identifiers). Membership is checked before every accept
and entries are never removed.

Implementations must be:
- Consistent (atomic check-and-insert, no double-use)
- Monotonic (no delete operation exists)
"""

import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import List, Set, Union

from .util import now_epoch


class UsedSet(ABC):
    """Abstract interface for tracking consumed keys."""

    @abstractmethod
    def mark_used(self, key: bytes) -> bool:
        """
        Atomically insert a key.

        Returns:
            True if the key was newly inserted (first use)
            False if the key was already present
        """
        pass

    @abstractmethod
    def is_used(self, key: bytes) -> bool:
        """Check if a key has been consumed."""
        pass

    @abstractmethod
    def keys(self) -> List[bytes]:
        """All consumed keys, in insertion order where the backend preserves it."""
        pass

    def __contains__(self, key: bytes) -> bool:
        return self.is_used(key)

    def __len__(self) -> int:
        return len(self.keys())


class InMemoryUsedSet(UsedSet):
    """
    In-memory used set.

    Not persistent across restarts; use SqliteUsedSet where consumed keys
    must survive the process.
    """

    def __init__(self):
        self._used: Set[bytes] = set()
        self._order: List[bytes] = []
        self._lock = threading.Lock()

    def mark_used(self, key: bytes) -> bool:
        with self._lock:
            if key in self._used:
                return False
            self._used.add(key)
            self._order.append(key)
            return True

    def is_used(self, key: bytes) -> bool:
        with self._lock:
            return key in self._used

    def keys(self) -> List[bytes]:
        with self._lock:
            return self._order[:]


class SqliteUsedSet(UsedSet):
    """
    SQLite-backed used set.

    Several used sets may share one database file; each is isolated by its
    ``namespace``. Schema:

        CREATE TABLE used_keys (
            namespace TEXT NOT NULL,
            key_hex TEXT NOT NULL,
            used_at INTEGER NOT NULL,
            PRIMARY KEY (namespace, key_hex)
        );
    """

    def __init__(self, db_path: Union[str, Path], namespace: str = "default"):
        self._db_path = Path(db_path)
        self._namespace = namespace
        self._lock = threading.Lock()
        if str(db_path) != ":memory:":
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._init_schema()

    @contextmanager
    def _transaction(self):
        """Commits on success, rolls back on failure."""
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _init_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute("""
            CREATE TABLE IF NOT EXISTS used_keys (
                namespace TEXT NOT NULL,
                key_hex TEXT NOT NULL,
                used_at INTEGER NOT NULL,
                seq INTEGER NOT NULL,
                PRIMARY KEY (namespace, key_hex)
            );""")
            conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_used_keys_seq
            ON used_keys(namespace, seq);""")

    def mark_used(self, key: bytes) -> bool:
        with self._transaction() as conn:
            cur = conn.execute(
                "INSERT OR IGNORE INTO used_keys(namespace, key_hex, used_at, seq) "
                "VALUES(?, ?, ?, (SELECT COALESCE(MAX(seq), 0) + 1 FROM used_keys WHERE namespace=?))",
                (self._namespace, key.hex(), now_epoch(), self._namespace)
            )
            return cur.rowcount == 1

    def is_used(self, key: bytes) -> bool:
        with self._lock:
            cur = self._conn.execute(
                "SELECT 1 FROM used_keys WHERE namespace=? AND key_hex=?",
                (self._namespace, key.hex())
            )
            return cur.fetchone() is not None

    def keys(self) -> List[bytes]:
        with self._lock:
            cur = self._conn.execute(
                "SELECT key_hex FROM used_keys WHERE namespace=? ORDER BY seq ASC",
                (self._namespace,)
            )
            return [bytes.fromhex(row[0]) for row in cur.fetchall()]

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def create_used_set(backend: str = "memory", db_path: str = None, namespace: str = "default") -> UsedSet:
    """Factory for the configured used-set backend."""
    if backend == "sqlite":
        if not db_path:
            raise ValueError("db_path required for sqlite used set")
        return SqliteUsedSet(db_path, namespace=namespace)
    if backend != "memory":
        raise ValueError(f"Unknown used set backend: {backend}")
    return InMemoryUsedSet()
