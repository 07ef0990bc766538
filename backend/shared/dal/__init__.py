"""Data access layer: the message log interface shared by all storage backends."""

from shared.dal.message_log import MessageLog, PersistenceError

__all__ = [
    "MessageLog",
    "PersistenceError",
]
