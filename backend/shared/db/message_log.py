"""SQLite-backed message log."""

from __future__ import annotations

import asyncio
import sqlite3
from typing import TYPE_CHECKING

import structlog

from shared.dal.message_log import MessageLog, PersistenceError

if TYPE_CHECKING:
    from shared.db.connection import Database

logger = structlog.get_logger()


class SqliteMessageLog(MessageLog):
    """SQLite implementation of MessageLog.

    Game ids are the integer primary keys of the games table, exposed as
    strings. Writes are serialized by an asyncio lock; every sqlite3 error
    surfaces as PersistenceError.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def create_game(self) -> str:
        async with self._lock:
            try:
                cursor = self._db.connection.execute("INSERT INTO games DEFAULT VALUES")
                self._db.connection.commit()
            except (sqlite3.Error, RuntimeError) as e:
                raise PersistenceError(f"could not allocate game: {e}") from e
        return str(cursor.lastrowid)

    async def append(self, game_id: str, text: str) -> None:
        async with self._lock:
            try:
                self._db.connection.execute(
                    "INSERT INTO messages (game_id, content) VALUES (?, ?)",
                    (_parse_game_id(game_id), text),
                )
                self._db.connection.commit()
            except (sqlite3.Error, RuntimeError) as e:
                raise PersistenceError(f"could not append message to game {game_id}: {e}") from e

    async def read_all(self, game_id: str) -> list[str]:
        try:
            rows = self._db.connection.execute(
                "SELECT content FROM messages WHERE game_id = ? ORDER BY id ASC",
                (_parse_game_id(game_id),),
            ).fetchall()
        except (sqlite3.Error, RuntimeError) as e:
            raise PersistenceError(f"could not read messages for game {game_id}: {e}") from e
        return [row[0] for row in rows]

    async def finish_game(self, game_id: str, winner: str) -> None:
        async with self._lock:
            try:
                cursor = self._db.connection.execute(
                    "UPDATE games SET ended_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now'), winner = ? "
                    "WHERE id = ? AND ended_at IS NULL",
                    (winner, _parse_game_id(game_id)),
                )
                self._db.connection.commit()
            except (sqlite3.Error, RuntimeError) as e:
                raise PersistenceError(f"could not finish game {game_id}: {e}") from e
        if cursor.rowcount == 0:
            logger.warning("finish_game had no effect (not found or already ended)", game_id=game_id)


def _parse_game_id(game_id: str) -> int:
    try:
        return int(game_id)
    except ValueError:
        raise PersistenceError(f"invalid game id: {game_id!r}") from None
