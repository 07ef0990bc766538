import random
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence

import pytest

from arena.logic.ai_delegate import AIDelegate
from arena.logic.roster import RosterFactory
from arena.logic.settings import GameSettings
from arena.logic.tabulator import VoteTabulator
from arena.logic.types import Player
from arena.session.game import GameSession
from arena.session.registry import SessionRegistry
from arena.tests.helpers import TEST_IDENTITIES, TEST_NAMES, fast_settings, make_players
from arena.tests.mocks import InMemoryMessageLog, MockConnection, ScriptedTextGenerator

SessionFactory = Callable[..., Awaitable[GameSession]]


@pytest.fixture
def settings() -> GameSettings:
    return fast_settings()


@pytest.fixture
def message_log() -> InMemoryMessageLog:
    return InMemoryMessageLog()


@pytest.fixture
def generator() -> ScriptedTextGenerator:
    """Generator that holds every request until released, so AI players stay quiet by default."""
    return ScriptedTextGenerator(hold=True)


@pytest.fixture
def delegate(generator: ScriptedTextGenerator) -> AIDelegate:
    return AIDelegate(generator)


@pytest.fixture
def tabulator(delegate: AIDelegate) -> VoteTabulator:
    return VoteTabulator(delegate)


@pytest.fixture
def roster_factory() -> RosterFactory:
    return RosterFactory(TEST_NAMES, TEST_IDENTITIES)


@pytest.fixture
async def make_session(
    settings: GameSettings,
    message_log: InMemoryMessageLog,
    delegate: AIDelegate,
    tabulator: VoteTabulator,
) -> AsyncIterator[SessionFactory]:
    """Build, connect and start sessions; every session is shut down after the test."""
    sessions: list[GameSession] = []

    async def factory(
        players: Sequence[Player] | None = None,
        *,
        game_settings: GameSettings | None = None,
        seed: int = 7,
        connect: bool = True,
        start: bool = True,
    ) -> GameSession:
        game_id = await message_log.create_game()
        session = GameSession(
            game_id,
            players if players is not None else make_players(),
            settings=game_settings or settings,
            message_log=message_log,
            delegate=delegate,
            tabulator=tabulator,
            rng=random.Random(seed),
        )
        sessions.append(session)
        if connect:
            await session.join(MockConnection(), session.human.name)
        if start:
            await session.start()
        return session

    yield factory

    for session in sessions:
        await session.shutdown()


@pytest.fixture
async def registry(
    settings: GameSettings,
    message_log: InMemoryMessageLog,
    delegate: AIDelegate,
    tabulator: VoteTabulator,
    roster_factory: RosterFactory,
) -> AsyncIterator[SessionRegistry]:
    reg = SessionRegistry(
        message_log=message_log,
        delegate=delegate,
        tabulator=tabulator,
        roster_factory=roster_factory,
        settings=settings,
        max_sessions=3,
        seed=42,
    )
    yield reg
    await reg.shutdown()
