"""SQLite connection for the arena message store: pragmas, schema and file permissions."""

import os
import sqlite3
from pathlib import Path

import structlog

logger = structlog.get_logger()

_DB_FILE_PERMISSIONS = 0o600

_SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS games (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now')),
    ended_at TEXT,
    winner TEXT
);

CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    game_id INTEGER NOT NULL REFERENCES games (id),
    content TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))
);

CREATE INDEX IF NOT EXISTS idx_messages_game_id
    ON messages (game_id, id);
"""

_PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA foreign_keys=ON",
    "PRAGMA busy_timeout=5000",
)

# The main file plus the WAL sidecars sqlite creates next to it.
_DB_FILE_SUFFIXES = ("", "-wal", "-shm")


class Database:
    """Owns the single sqlite3 connection behind the message log.

    Usable as a context manager that connects on entry and closes on exit.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None

    def __enter__(self) -> "Database":
        self.connect()
        return self

    def __exit__(self, *_exc: object) -> None:
        self.close()

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Database is not connected")
        return self._conn

    @property
    def is_in_memory(self) -> bool:
        return self._path == ":memory:"

    def connect(self) -> None:
        if not self.is_in_memory:
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(self._path, check_same_thread=False)
        for pragma in _PRAGMAS:
            conn.execute(pragma)
        conn.executescript(_SCHEMA_SQL)
        self._conn = conn
        self._restrict_to_owner()
        logger.info("database ready", path=self._path)

    def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            conn.close()

    def _restrict_to_owner(self) -> None:
        if os.name != "posix" or self.is_in_memory:  # pragma: no cover
            return
        existing = (Path(self._path + suffix) for suffix in _DB_FILE_SUFFIXES)
        for path in (p for p in existing if p.exists()):
            try:
                path.chmod(_DB_FILE_PERMISSIONS)
            except OSError:
                logger.warning("could not restrict database file", path=str(path))
