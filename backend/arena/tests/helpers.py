"""Polling and setup helpers shared by arena tests."""

import asyncio
import time
from collections.abc import Callable

from arena.logic.settings import GameSettings
from arena.logic.types import Player
from arena.messaging.encoder import decode, encode
from arena.session.game import GameSession
from arena.tests.mocks import MockConnection

DEFAULT_TIMEOUT = 2.0


async def wait_until(predicate: Callable[[], bool], timeout: float = DEFAULT_TIMEOUT, interval: float = 0.005) -> None:
    """Poll predicate until it is true; fail the test after timeout seconds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError(f"condition not met within {timeout}s")
        await asyncio.sleep(interval)


async def settle(rounds: int = 5) -> None:
    """Let pending callbacks and tasks run without advancing wall-clock timers."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_players(human: str = "Alice", ais: tuple[str, ...] = ("Byte", "Nova", "Echo")) -> list[Player]:
    """Roster in the given order: human first with id 1, then AIs with ids 2.."""
    players = [Player(player_id=1, name=human, is_human=True)]
    players.extend(
        Player(player_id=i, name=name, is_human=False, persona="You like testing.")
        for i, name in enumerate(ais, start=2)
    )
    return players


async def force_voting(session: GameSession) -> None:
    """Jump straight to the voting phase, as if the chat clock ran out."""
    async with session._lock:
        await session._enter_voting()


async def force_chat(session: GameSession) -> None:
    async with session._lock:
        await session._enter_chat()


def human_connection(session: GameSession) -> MockConnection:
    connection = session._connections[session.human.player_id]
    assert isinstance(connection, MockConnection)
    return connection


TEST_NAMES = ["Byte", "Nova", "Echo", "Pixel", "Atlas", "Orion", "Juniper"]
TEST_IDENTITIES = [
    "like puzzles.",
    "hate mornings.",
    "collect stamps.",
    "speak softly.",
    "grew up by a lake.",
]


def fast_settings(**overrides: object) -> GameSettings:
    """Settings with near-zero delays; the chat clock only expires when a test asks for it."""
    values: dict[str, object] = {
        "num_ai_players": 3,
        "chat_phase_seconds": 5,
        "tick_seconds": 60.0,
        "mention_fallback_seconds": 0.02,
        "ai_turn_pause_seconds": 0.01,
        "vote_pause_seconds": 0.0,
        "ai_failure_retry_seconds": 0.01,
        "next_round_delay_seconds": 0.01,
    }
    values.update(overrides)
    return GameSettings(**values)


def send_ws(ws, data: dict) -> None:
    """Send a MessagePack-encoded message over a test WebSocket."""
    ws.send_bytes(encode(data))


def recv_ws(ws) -> dict:
    """Receive and decode a MessagePack message from a test WebSocket."""
    return decode(ws.receive_bytes())


def recv_until(ws, message_type: str, limit: int = 50) -> dict:
    """Skip messages until one of message_type arrives."""
    for _ in range(limit):
        message = recv_ws(ws)
        if message["type"] == message_type:
            return message
    raise AssertionError(f"no {message_type} message within {limit} messages")


def quiet_settings(**overrides: object) -> GameSettings:
    """AI chat is retried only after a minute, so a socket carries just what the test causes."""
    values: dict[str, object] = {
        "mention_fallback_seconds": 60.0,
        "ai_failure_retry_seconds": 60.0,
    }
    values.update(overrides)
    return fast_settings(**values)
