from collections.abc import Callable, Iterator

import pytest
from starlette.testclient import TestClient

from arena.logic.ai_delegate import AIDelegate
from arena.logic.roster import RosterFactory
from arena.logic.settings import GameSettings
from arena.logic.tabulator import VoteTabulator
from arena.server.app import create_app
from arena.server.settings import ArenaServerSettings
from arena.session.registry import SessionRegistry
from arena.tests.helpers import TEST_IDENTITIES, TEST_NAMES, quiet_settings
from arena.tests.mocks import CHAT, InMemoryMessageLog, ScriptedTextGenerator

ClientFactory = Callable[..., TestClient]


@pytest.fixture
def make_client() -> Iterator[ClientFactory]:
    clients: list[TestClient] = []

    def factory(game_settings: GameSettings | None = None, max_sessions: int = 2) -> TestClient:
        generator = ScriptedTextGenerator(fail=[CHAT])
        delegate = AIDelegate(generator)
        registry = SessionRegistry(
            message_log=InMemoryMessageLog(),
            delegate=delegate,
            tabulator=VoteTabulator(delegate),
            roster_factory=RosterFactory(TEST_NAMES, TEST_IDENTITIES),
            settings=game_settings or quiet_settings(),
            max_sessions=max_sessions,
            seed=1,
        )
        settings = ArenaServerSettings(max_capacity=max_sessions, openai_api_key="test", log_dir=None)
        client = TestClient(create_app(settings=settings, registry=registry))
        client.__enter__()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client: ClientFactory) -> TestClient:
    return make_client()
