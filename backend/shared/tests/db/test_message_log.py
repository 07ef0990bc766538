"""Tests for the SQLite message log."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from shared.dal.message_log import PersistenceError
from shared.db.connection import Database
from shared.db.message_log import SqliteMessageLog

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def db() -> Iterator[Database]:
    database = Database(":memory:")
    database.connect()
    yield database
    database.close()


@pytest.fixture
def message_log(db: Database) -> SqliteMessageLog:
    return SqliteMessageLog(db)


class TestCreateGame:
    async def test_returns_distinct_string_ids(self, message_log: SqliteMessageLog) -> None:
        first = await message_log.create_game()
        second = await message_log.create_game()

        assert isinstance(first, str)
        assert first != second

    async def test_raises_persistence_error_when_disconnected(self, db: Database) -> None:
        log = SqliteMessageLog(db)
        db.close()

        with pytest.raises(PersistenceError, match="could not allocate game"):
            await log.create_game()


class TestAppendAndRead:
    async def test_reads_back_in_append_order(self, message_log: SqliteMessageLog) -> None:
        game_id = await message_log.create_game()
        await message_log.append(game_id, "Alice: hello")
        await message_log.append(game_id, "Bob: hi there")
        await message_log.append(game_id, "Moderator: Bob has been eliminated.")

        assert await message_log.read_all(game_id) == [
            "Alice: hello",
            "Bob: hi there",
            "Moderator: Bob has been eliminated.",
        ]

    async def test_games_are_isolated(self, message_log: SqliteMessageLog) -> None:
        game_a = await message_log.create_game()
        game_b = await message_log.create_game()
        await message_log.append(game_a, "Alice: in a")
        await message_log.append(game_b, "Bob: in b")

        assert await message_log.read_all(game_a) == ["Alice: in a"]
        assert await message_log.read_all(game_b) == ["Bob: in b"]

    async def test_read_unknown_game_is_empty(self, message_log: SqliteMessageLog) -> None:
        assert await message_log.read_all("9999") == []

    async def test_append_to_unknown_game_raises(self, message_log: SqliteMessageLog) -> None:
        with pytest.raises(PersistenceError):
            await message_log.append("9999", "Ghost: boo")

    async def test_non_numeric_game_id_raises(self, message_log: SqliteMessageLog) -> None:
        with pytest.raises(PersistenceError, match="invalid game id"):
            await message_log.read_all("not-a-number")


class TestFinishGame:
    async def test_records_winner(self, message_log: SqliteMessageLog, db: Database) -> None:
        game_id = await message_log.create_game()
        await message_log.finish_game(game_id, "human_win")

        row = db.connection.execute(
            "SELECT winner, ended_at FROM games WHERE id = ?",
            (int(game_id),),
        ).fetchone()
        assert row[0] == "human_win"
        assert row[1] is not None

    async def test_second_finish_does_not_overwrite(self, message_log: SqliteMessageLog, db: Database) -> None:
        game_id = await message_log.create_game()
        await message_log.finish_game(game_id, "ai_win")
        await message_log.finish_game(game_id, "human_win")

        winner = db.connection.execute("SELECT winner FROM games WHERE id = ?", (int(game_id),)).fetchone()[0]
        assert winner == "ai_win"
