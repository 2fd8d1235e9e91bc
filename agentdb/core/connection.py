"""
Connection Manager - Engine Lifecycle and Transactions

Default engine: SQLite (embedded, zero external services).

Every store goes through a ConnectionManager:
- connection(): scoped handle, released on every exit path
- transaction(): BEGIN IMMEDIATE ... COMMIT, ROLLBACK and re-raise on failure
- query(): generic parameterized passthrough for ad hoc collaborators

Engine specifics (driver, placeholder style, error classes) live behind the
Engine interface so the stores stay engine-agnostic.
"""

import logging
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Sequence

from ..errors import ConstraintViolation, EngineFailure, StoreError

logger = logging.getLogger(__name__)

_READ_VERBS = {"SELECT", "WITH", "PRAGMA", "EXPLAIN", "VALUES"}


def _casefold(value):
    return value.casefold() if isinstance(value, str) else value


class Engine(ABC):
    """Abstract base for embedded engines."""

    name: str = "engine"

    @abstractmethod
    def connect(self) -> Any:
        """Open a new DB-API connection in autocommit mode."""
        pass

    @property
    @abstractmethod
    def is_memory(self) -> bool:
        """True when the database lives only as long as its connections."""
        pass

    @abstractmethod
    def placeholders(self, count: int) -> str:
        """Comma-separated bind markers for an IN (...) list."""
        pass

    @abstractmethod
    def translate_error(self, error: Exception) -> Optional[StoreError]:
        """Map a driver error to the store taxonomy (None if not a driver error)."""
        pass


class SQLiteEngine(Engine):
    """
    SQLite engine.

    File databases run in WAL mode so readers on other threads are not
    blocked by the single writer. In-memory databases use a named
    shared-cache URI so every connection sees the same data.
    """

    name = "sqlite"

    def __init__(self, db_path: str = ":memory:", busy_timeout: float = 5.0):
        self.busy_timeout = busy_timeout
        if db_path in ("", ":memory:"):
            self._memory = True
            self.db_path = None
            self._target = f"file:agentdb-{uuid.uuid4().hex}?mode=memory&cache=shared"
        else:
            self._memory = False
            self.db_path = Path(db_path).expanduser()
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._target = str(self.db_path)

    @property
    def is_memory(self) -> bool:
        return self._memory

    def connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._target,
            uri=self._memory,
            timeout=self.busy_timeout,
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        # Unicode-aware; the builtin lower() only folds ASCII
        conn.create_function("casefold", 1, _casefold, deterministic=True)
        conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout * 1000)}")
        if not self._memory:
            conn.execute("PRAGMA journal_mode = WAL")
        return conn

    def placeholders(self, count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def translate_error(self, error: Exception) -> Optional[StoreError]:
        if isinstance(error, sqlite3.IntegrityError):
            return ConstraintViolation(str(error))
        if isinstance(error, sqlite3.Error):
            return EngineFailure(f"{type(error).__name__}: {error}")
        return None

    def __repr__(self) -> str:
        return f"SQLiteEngine({self.db_path or ':memory:'})"


def create_engine(url: str = ":memory:", busy_timeout: float = 5.0) -> Engine:
    """
    Factory function to create an engine.

    Args:
        url: "sqlite" (default file), "sqlite://<path>", ":memory:" or a path
        busy_timeout: Seconds to wait on a locked database

    Returns:
        Engine instance
    """
    if url in ("", ":memory:", "sqlite://:memory:"):
        return SQLiteEngine(":memory:", busy_timeout=busy_timeout)

    if url == "sqlite":
        return SQLiteEngine("~/.agentdb/agent.db", busy_timeout=busy_timeout)

    if url.startswith("sqlite://"):
        return SQLiteEngine(url[len("sqlite://"):], busy_timeout=busy_timeout)

    if "://" in url:
        raise ValueError(f"Unknown engine: {url}")

    return SQLiteEngine(url, busy_timeout=busy_timeout)


class ConnectionManager:
    """
    Owns the engine handles for one database.

    File engines get one connection per thread (reads run concurrently);
    in-memory engines share one connection and serialize on the write lock.
    Write transactions are always serialized, which closes the window
    between a read-then-write check and its write.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._local = threading.local()
        self._write_lock = threading.RLock()
        self._registry_lock = threading.Lock()
        self._connections: List[Any] = []
        self._shared: Optional[Any] = None
        self._initialized = False
        self._closed = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def init(self) -> None:
        """Open the engine and run the schema gate (once per manager)."""
        from .schema import ensure_schema

        with self._write_lock:
            if self._initialized:
                return
            if self._closed:
                raise EngineFailure("ConnectionManager is closed")
            conn = self._handle()
            try:
                ensure_schema(conn)
            except Exception as e:
                self._raise_translated(e)
                raise
            self._initialized = True

        logger.info(f"ConnectionManager initialized: {self.engine!r}")

    def close(self) -> None:
        """Close every handle. Safe after a partial init, and idempotent."""
        with self._registry_lock:
            connections, self._connections = self._connections, []
            self._shared = None
            self._closed = True
            self._initialized = False

        for conn in connections:
            try:
                conn.close()
            except Exception as e:
                logger.warning(f"Error closing connection: {e}")

        self._local = threading.local()
        logger.info(f"ConnectionManager closed: {self.engine!r}")

    def _open(self) -> Any:
        if self._closed:
            raise EngineFailure("ConnectionManager is closed")
        try:
            conn = self.engine.connect()
        except Exception as e:
            translated = self.engine.translate_error(e)
            if translated is not None:
                raise translated from e
            raise
        with self._registry_lock:
            self._connections.append(conn)
        return conn

    def _handle(self) -> Any:
        if self.engine.is_memory:
            if self._shared is None:
                self._shared = self._open()
            return self._shared
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = self._open()
            self._local.conn = conn
        return conn

    def _ensure_ready(self) -> None:
        # Lazy schema gate for callers that skipped init()
        if not self._initialized:
            self.init()

    def _raise_translated(self, error: Exception) -> None:
        translated = self.engine.translate_error(error)
        if translated is not None:
            logger.error(f"Engine error: {translated}")
            raise translated from error

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """Scoped acquisition of this thread's handle."""
        self._ensure_ready()
        if self.engine.is_memory:
            with self._write_lock:
                conn = self._handle()
                try:
                    yield conn
                except Exception as e:
                    self._raise_translated(e)
                    raise
            return

        conn = self._handle()
        try:
            yield conn
        except Exception as e:
            self._raise_translated(e)
            raise

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        """
        Run the body in one write transaction.

        Commits when the body completes, rolls back and re-raises otherwise.
        A nested call on the same thread joins the outer transaction.
        """
        depth = getattr(self._local, "depth", 0)
        if depth:
            self._local.depth = depth + 1
            try:
                yield self._handle()
            finally:
                self._local.depth -= 1
            return

        self._ensure_ready()
        with self._write_lock:
            conn = self._handle()
            try:
                conn.execute("BEGIN IMMEDIATE")
            except Exception as e:
                self._raise_translated(e)
                raise

            self._local.depth = 1
            try:
                yield conn
            except BaseException as e:
                try:
                    conn.execute("ROLLBACK")
                except Exception as rollback_error:
                    logger.error(f"Rollback failed: {rollback_error}")
                if isinstance(e, Exception):
                    self._raise_translated(e)
                raise
            else:
                try:
                    conn.execute("COMMIT")
                except Exception as e:
                    try:
                        conn.execute("ROLLBACK")
                    except Exception as rollback_error:
                        logger.error(f"Rollback after failed commit failed: {rollback_error}")
                    self._raise_translated(e)
                    raise
            finally:
                self._local.depth = 0

    def query(self, text: str, values: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        """
        Run one parameterized statement and return its rows as dicts.

        Statements that are not reads run in their own transaction.
        """
        verb = text.lstrip().split(None, 1)[0].upper() if text.strip() else ""
        if verb in _READ_VERBS:
            with self.connection() as conn:
                rows = conn.execute(text, tuple(values)).fetchall()
        else:
            with self.transaction() as conn:
                rows = conn.execute(text, tuple(values)).fetchall()
        return [dict(row) for row in rows]

    def placeholders(self, count: int) -> str:
        return self.engine.placeholders(count)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards; pair with ESCAPE '\\' in the statement."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
