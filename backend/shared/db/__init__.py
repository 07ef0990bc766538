"""SQLite storage: connection management and the message log implementation."""

from shared.db.connection import Database
from shared.db.message_log import SqliteMessageLog

__all__ = [
    "Database",
    "SqliteMessageLog",
]
