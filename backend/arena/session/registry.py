"""Session registry: owns every live GameSession and routes client events to them."""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING

import structlog

from arena.logic.exceptions import (
    InvalidActionError,
    NotFoundError,
    PlayerNotFoundError,
    SessionCreationError,
    SessionNotFoundError,
    TabulationFailureError,
)
from arena.logic.settings import GameSettings
from arena.logic.tabulator import tally_exact
from arena.messaging.types import (
    ErrorMessage,
    JoinGameMessage,
    SendMessageMessage,
    SessionErrorCode,
    SubmitVoteMessage,
    TypingStartedMessage,
)
from arena.session.game import GameSession
from shared.dal.message_log import PersistenceError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from arena.logic.ai_delegate import AIDelegate
    from arena.logic.roster import RosterFactory
    from arena.logic.tabulator import VoteTabulator
    from arena.logic.types import Player
    from arena.messaging.protocol import ConnectionProtocol
    from arena.messaging.types import ClientMessage
    from shared.dal.message_log import MessageLog

logger = structlog.get_logger()


class SessionRegistry:
    """Map game id to GameSession.

    Sessions never share state; the registry lock only guards the mapping
    itself. Ended sessions are kept until their last connection goes away so
    players can still see the final state.
    """

    def __init__(
        self,
        *,
        message_log: MessageLog,
        delegate: AIDelegate,
        tabulator: VoteTabulator,
        roster_factory: RosterFactory,
        settings: GameSettings | None = None,
        max_sessions: int | None = None,
        seed: int | None = None,
    ) -> None:
        self._message_log = message_log
        self._delegate = delegate
        self._tabulator = tabulator
        self._roster_factory = roster_factory
        self._settings = settings or GameSettings()
        self._max_sessions = max_sessions
        self._rng = random.Random(seed)  # noqa: S311
        self._sessions: dict[str, GameSession] = {}
        self._lock = asyncio.Lock()

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    @property
    def max_sessions(self) -> int | None:
        return self._max_sessions

    @property
    def settings(self) -> GameSettings:
        return self._settings

    def get_session(self, game_id: str) -> GameSession:
        session = self._sessions.get(game_id)
        if session is None:
            raise SessionNotFoundError(game_id)
        return session

    def has_session(self, game_id: str) -> bool:
        return game_id in self._sessions

    # ------------------------------------------------------------------
    # Creation and teardown
    # ------------------------------------------------------------------

    async def create_session(self, human_name: str) -> GameSession:
        """Allocate a game id, build the roster and start the first chat phase.

        Raises SessionCreationError when the server is full or the message
        log cannot allocate a game. Raises ValueError for an unusable name.
        """
        await self._reap_ended()
        if self._max_sessions is not None and self.session_count >= self._max_sessions:
            raise SessionCreationError("server is at capacity")

        # per-session RNG so one game's draws never depend on another's
        rng = random.Random(self._rng.getrandbits(64))  # noqa: S311
        players = self._roster_factory.build(human_name, self._settings.num_ai_players, rng)

        try:
            game_id = await self._message_log.create_game()
        except PersistenceError as e:
            logger.exception("could not allocate game")
            raise SessionCreationError("could not allocate game") from e

        session = GameSession(
            game_id,
            players,
            settings=self._settings,
            message_log=self._message_log,
            delegate=self._delegate,
            tabulator=self._tabulator,
            rng=rng,
        )
        async with self._lock:
            self._sessions[game_id] = session
        await session.start()
        return session

    async def remove_session(self, game_id: str) -> None:
        async with self._lock:
            session = self._sessions.pop(game_id, None)
        if session is not None:
            await session.shutdown()
            logger.info("session removed", game_id=game_id)

    async def shutdown(self) -> None:
        """Stop every session's timers and background tasks."""
        async with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            await session.shutdown()

    async def _reap_ended(self) -> None:
        async with self._lock:
            ended = [gid for gid, s in self._sessions.items() if s.is_ended and not s.has_connections]
            removed = [self._sessions.pop(gid) for gid in ended]
        for session in removed:
            await session.shutdown()

    # ------------------------------------------------------------------
    # Event routing
    # ------------------------------------------------------------------

    async def route_event(self, connection: ConnectionProtocol, message: ClientMessage) -> None:
        """Forward a client message to its session.

        Unknown sessions or players and rejected actions are reported to the
        sending connection only; no session state changes.
        """
        structlog.contextvars.bind_contextvars(game_id=message.game_id)
        try:
            session = self.get_session(message.game_id)
            if isinstance(message, JoinGameMessage):
                await session.join(connection, message.player_name)
            elif isinstance(message, SendMessageMessage):
                player = self._sender(session, connection)
                await session.handle_message(player.player_id, message.message)
            elif isinstance(message, TypingStartedMessage):
                player = self._sender(session, connection)
                if player.player_id != message.player_id:
                    raise InvalidActionError(
                        action=message.type,
                        player_id=message.player_id,
                        reason="player id does not match connection",
                    )
                await session.handle_typing_started(player.player_id)
            elif isinstance(message, SubmitVoteMessage):
                player = self._sender(session, connection)
                await session.handle_vote(player.player_id, message.vote)
        except InvalidActionError as e:
            logger.warning("action rejected", action=e.action, player_id=e.player_id, reason=e.reason)
            await _send_error(connection, SessionErrorCode.INVALID_ACTION, str(e))
        except SessionNotFoundError as e:
            logger.warning("event for unknown session", connection_id=connection.connection_id)
            await _send_error(connection, SessionErrorCode.SESSION_NOT_FOUND, str(e))
        except NotFoundError as e:
            logger.warning("event from unknown player", connection_id=connection.connection_id)
            await _send_error(connection, SessionErrorCode.PLAYER_NOT_FOUND, str(e))

    @staticmethod
    def _sender(session: GameSession, connection: ConnectionProtocol) -> Player:
        player = session.player_for_connection(connection)
        if player is None:
            raise PlayerNotFoundError(session.game_id, f"connection {connection.connection_id}")
        return player

    async def on_disconnect(self, connection: ConnectionProtocol) -> None:
        """Unbind the connection from whichever session holds it. The game keeps running."""
        for game_id, session in list(self._sessions.items()):
            player = await session.disconnect(connection)
            if player is None:
                continue
            if session.is_ended and not session.has_connections:
                await self.remove_session(game_id)
            return

    # ------------------------------------------------------------------
    # Read-side helpers for the HTTP API
    # ------------------------------------------------------------------

    async def read_messages(self, game_id: str) -> list[str]:
        return await self._message_log.read_all(game_id)

    async def calculate_votes(self, ballots: Sequence[str], candidates: Sequence[str] = ()) -> dict[str, int]:
        try:
            return await self._tabulator.tabulate(ballots, candidates)
        except TabulationFailureError as e:
            logger.warning("vote tabulation failed, using exact tally", error=str(e))
            return tally_exact(ballots)


async def _send_error(connection: ConnectionProtocol, code: SessionErrorCode, message: str) -> None:
    await connection.send_message(ErrorMessage(code=code, message=message).model_dump(mode="json"))
