"""
Game session: the per-game state machine.

States and transitions::

    chat --(clock reaches zero)--> voting
    voting --(every active player voted)--> elimination
    elimination --(more than two active, human alive)--> chat (round + 1)
    elimination --(human eliminated)--> ended (ai_win)
    elimination --(two or fewer active, human alive)--> ended (human_win)

Every entry point and every timer callback runs under the session lock.
AI generation and vote tabulation run in background tasks outside the lock;
their results are applied under the lock only if the session is still in the
phase, turn and round they were started for. Stale results are dropped.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import structlog

from arena.logic.enums import GamePhase, InboundAction, Winner
from arena.logic.events import (
    ChatDisabledEvent,
    ChatEnabledEvent,
    GameEndedEvent,
    GameStateEvent,
    MessageSentEvent,
    PlayerDisconnectedEvent,
    PlayerEliminatedEvent,
    PlayerJoinedEvent,
    PublicPlayer,
    TimeUpdateEvent,
    TurnAdvancedEvent,
    VoterAdvancedEvent,
    VoteSubmittedEvent,
    VotingPhaseEndedEvent,
    VotingPhaseStartedEvent,
)
from arena.logic.exceptions import (
    GenerationFailureError,
    InvalidActionError,
    PlayerNotFoundError,
    TabulationFailureError,
)
from arena.logic.tabulator import plurality_winner, tally_exact
from arena.logic.turn_selector import TurnSelector
from arena.logic.types import MODERATOR_ID, MODERATOR_NAME, active_players
from arena.messaging.types import ErrorMessage, SessionErrorCode
from arena.session.broadcast import broadcast_to_connections
from arena.session.timer_manager import TimerManager, TimerSlot
from shared.dal.message_log import PersistenceError

if TYPE_CHECKING:
    import random
    from collections.abc import Coroutine, Sequence

    from arena.logic.ai_delegate import AIDelegate
    from arena.logic.events import GameEvent
    from arena.logic.settings import GameSettings
    from arena.logic.tabulator import VoteTabulator
    from arena.logic.types import Player
    from arena.messaging.protocol import ConnectionProtocol
    from shared.dal.message_log import MessageLog

logger = structlog.get_logger()

ELIMINATION_NOTICE = "{name} has been eliminated. Continue to search for the human."


def _public(player: Player) -> PublicPlayer:
    return PublicPlayer(
        id=player.player_id,
        name=player.name,
        is_human=player.is_human,
        is_eliminated=player.is_eliminated,
    )


class GameSession:
    def __init__(
        self,
        game_id: str,
        players: Sequence[Player],
        *,
        settings: GameSettings,
        message_log: MessageLog,
        delegate: AIDelegate,
        tabulator: VoteTabulator,
        rng: random.Random,
    ) -> None:
        humans = [p for p in players if p.is_human]
        if len(humans) != 1:
            raise ValueError(f"a session needs exactly one human player, got {len(humans)}")

        self.game_id = game_id
        self.players: list[Player] = list(players)
        self.settings = settings
        self.phase = GamePhase.CHAT
        self.winner: Winner | None = None
        self.round_number = 1
        self.current_turn: int | None = None
        self.current_voter: int | None = None
        self.ballots: list[str] = []
        self.last_message: str | None = None
        self.speaking_history: dict[int, int] = {}
        self.time_left = settings.chat_phase_seconds
        self.human_is_typing = False
        self.transcript: list[str] = []

        self._human = humans[0]
        self._message_log = message_log
        self._delegate = delegate
        self._tabulator = tabulator
        self._selector = TurnSelector(settings.fallback_policy, rng)
        self._connections: dict[int, ConnectionProtocol] = {}
        self._lock = asyncio.Lock()
        self._timers = TimerManager()
        self._tasks: set[asyncio.Task[None]] = set()
        # bumped whenever the active speaker or voter changes
        self._turn_token = 0

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def human(self) -> Player:
        return self._human

    @property
    def is_ended(self) -> bool:
        return self.phase == GamePhase.ENDED

    @property
    def timers(self) -> TimerManager:
        return self._timers

    @property
    def has_connections(self) -> bool:
        return bool(self._connections)

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    def active_players(self) -> list[Player]:
        return active_players(self.players)

    def get_player(self, player_id: int) -> Player | None:
        return next((p for p in self.players if p.player_id == player_id), None)

    def find_player_by_name(self, name: str) -> Player | None:
        return next((p for p in self.players if p.has_name(name)), None)

    def player_for_connection(self, connection: ConnectionProtocol) -> Player | None:
        for player_id, bound in self._connections.items():
            if bound.connection_id == connection.connection_id:
                return self.get_player(player_id)
        return None

    def snapshot(self) -> GameStateEvent:
        """Public view of the session, safe to send to any observer."""
        return GameStateEvent(
            id=self.game_id,
            players=[_public(p) for p in self.players],
            current_turn=self.current_turn if self.phase == GamePhase.CHAT else None,
            is_voting_phase=self.phase == GamePhase.VOTING,
            current_voter=self.current_voter if self.phase == GamePhase.VOTING else None,
            game_phase=self.phase,
            time_left=self.time_left,
            round_number=self.round_number,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Enter the first chat phase."""
        self._bind_log_context()
        async with self._lock:
            logger.info("game session started", players=[p.name for p in self.players])
            await self._enter_chat()

    async def shutdown(self) -> None:
        """Cancel every timer and background task. No events are sent."""
        self._timers.cancel_all()
        tasks = [t for t in self._tasks if t is not asyncio.current_task()]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    async def join(self, connection: ConnectionProtocol, player_name: str) -> Player:
        """Bind a connection to the human player and send it the current state."""
        self._bind_log_context()
        async with self._lock:
            player = self.find_player_by_name(player_name)
            if player is None:
                raise PlayerNotFoundError(self.game_id, player_name)
            if not player.is_human:
                raise InvalidActionError(
                    action=InboundAction.JOIN,
                    player_id=player.player_id,
                    reason="AI players cannot be controlled by a client",
                )
            previous = self._connections.get(player.player_id)
            self._connections[player.player_id] = connection
            logger.info("player joined", player_id=player.player_id, connection_id=connection.connection_id)

            await self._send_to(connection, self.snapshot())
            others = [
                c
                for c in self._connections.values()
                if c.connection_id not in (connection.connection_id, previous.connection_id if previous else None)
            ]
            await broadcast_to_connections(others, _dump(PlayerJoinedEvent(player_name=player.name)))
            return player

    async def disconnect(self, connection: ConnectionProtocol) -> Player | None:
        """Unbind a connection. Returns the player it belonged to, if any."""
        self._bind_log_context()
        async with self._lock:
            player = self.player_for_connection(connection)
            if player is None:
                return None
            del self._connections[player.player_id]
            logger.info("player disconnected", player_id=player.player_id)
            await self._broadcast(PlayerDisconnectedEvent(player_name=player.name))
            return player

    # ------------------------------------------------------------------
    # Inbound actions
    # ------------------------------------------------------------------

    async def handle_message(self, player_id: int, text: str) -> None:
        """Accept a chat line.

        The human may speak at any time during chat and seizes the turn by
        doing so. An AI may only speak while it holds the turn.
        """
        self._bind_log_context()
        async with self._lock:
            player = self._require_player(player_id)
            self._check_can_act(player, InboundAction.SEND_MESSAGE, GamePhase.CHAT)
            if not player.is_human and player.player_id != self.current_turn:
                raise InvalidActionError(
                    action=InboundAction.SEND_MESSAGE,
                    player_id=player_id,
                    reason="not this player's turn",
                )
            await self._accept_chat(player, text)

    async def handle_typing_started(self, player_id: int) -> None:
        """Give the human the turn and suppress automatic turn assignment.

        Outside the chat phase this is a silent no-op: keystrokes racing a
        phase change are expected.
        """
        self._bind_log_context()
        async with self._lock:
            player = self._require_player(player_id)
            if not player.is_human:
                raise InvalidActionError(
                    action=InboundAction.TYPING_STARTED,
                    player_id=player_id,
                    reason="only the human player can type",
                )
            if self.phase != GamePhase.CHAT or player.is_eliminated:
                return
            self._timers.cancel(TimerSlot.MENTION_FALLBACK)
            self.human_is_typing = True
            if self.current_turn != player.player_id:
                await self._give_turn(player)

    async def handle_vote(self, player_id: int, text: str) -> None:
        self._bind_log_context()
        async with self._lock:
            player = self._require_player(player_id)
            self._check_can_act(player, InboundAction.SUBMIT_VOTE, GamePhase.VOTING)
            if player.player_id != self.current_voter:
                raise InvalidActionError(
                    action=InboundAction.SUBMIT_VOTE,
                    player_id=player_id,
                    reason="not this player's turn to vote",
                )
            await self._accept_vote(player, text)

    def _require_player(self, player_id: int) -> Player:
        player = self.get_player(player_id)
        if player is None:
            raise PlayerNotFoundError(self.game_id, str(player_id))
        return player

    def _check_can_act(self, player: Player, action: InboundAction, phase: GamePhase) -> None:
        if self.phase != phase:
            raise InvalidActionError(
                action=action,
                player_id=player.player_id,
                reason=f"not allowed during {self.phase} phase",
            )
        if player.is_eliminated:
            raise InvalidActionError(action=action, player_id=player.player_id, reason="player is eliminated")

    # ------------------------------------------------------------------
    # Chat phase
    # ------------------------------------------------------------------

    async def _enter_chat(self) -> None:
        self._timers.cancel_all()
        self.phase = GamePhase.CHAT
        self.current_turn = None
        self.current_voter = None
        self.ballots.clear()
        self.last_message = None
        self.human_is_typing = False
        self.time_left = self.settings.chat_phase_seconds
        self._turn_token += 1
        logger.info("chat phase started", round_number=self.round_number)

        await self._broadcast(VotingPhaseEndedEvent())
        await self._broadcast(ChatEnabledEvent())
        await self._broadcast(self.snapshot())
        self._timers.start_repeating(TimerSlot.CLOCK, self.settings.tick_seconds, self._on_tick)

        opener = self._selector.fallback_speaker(self.players, self.speaking_history, self.round_number)
        if opener is not None:
            await self._give_turn(opener)

    async def _on_tick(self) -> None:
        async with self._lock:
            if self.phase != GamePhase.CHAT:
                self._timers.cancel(TimerSlot.CLOCK)
                return
            self.time_left = max(0, self.time_left - 1)
            await self._broadcast(TimeUpdateEvent(time_left=self.time_left))
            if self.time_left == 0:
                await self._enter_voting()

    async def _give_turn(self, player: Player) -> None:
        """Make player the active speaker; an AI speaker starts generating at once."""
        self.current_turn = player.player_id
        self.speaking_history[player.player_id] = self.round_number
        self._turn_token += 1
        self._timers.cancel(TimerSlot.MENTION_FALLBACK, TimerSlot.ADVANCE)
        logger.info("turn advanced", speaker_id=player.player_id, is_human=player.is_human)
        await self._broadcast(TurnAdvancedEvent(speaker_id=player.player_id))
        if not player.is_human:
            self._spawn(self._run_ai_chat(player.player_id, self._turn_token))

    async def _accept_chat(self, player: Player, text: str) -> None:
        if player.is_human:
            self._timers.cancel(TimerSlot.MENTION_FALLBACK, TimerSlot.ADVANCE)
            self.human_is_typing = False
            if self.current_turn != player.player_id:
                await self._give_turn(player)

        await self._record(f"{player.name}: {text}")
        self.last_message = text
        await self._broadcast(
            MessageSentEvent(
                player_id=player.player_id,
                player_name=player.name,
                message=text,
                is_human=player.is_human,
            ),
        )

        if player.is_human:
            await self._advance_turn()
        else:
            self._timers.start_once(TimerSlot.ADVANCE, self.settings.ai_turn_pause_seconds, self._on_advance_turn)

    async def _advance_turn(self) -> None:
        """Pick the next speaker from the last message, or arm the mention fallback."""
        if self.phase != GamePhase.CHAT:
            return
        if self.human_is_typing:
            logger.debug("human is typing, turn advancement suppressed")
            return
        mentioned = self._selector.next_speaker(self.last_message, self.players)
        if mentioned is not None:
            await self._give_turn(mentioned)
            return
        self._timers.start_once(
            TimerSlot.MENTION_FALLBACK,
            self.settings.mention_fallback_seconds,
            self._on_mention_fallback,
        )

    async def _on_advance_turn(self) -> None:
        async with self._lock:
            await self._advance_turn()

    async def _on_mention_fallback(self) -> None:
        async with self._lock:
            if self.phase != GamePhase.CHAT or self.human_is_typing:
                return
            speaker = self._selector.fallback_speaker(self.players, self.speaking_history, self.round_number)
            if speaker is not None:
                logger.info("nobody mentioned, assigning fallback speaker", policy=self._selector.policy)
                await self._give_turn(speaker)

    async def _run_ai_chat(self, player_id: int, token: int) -> None:
        player = self._require_player(player_id)
        try:
            text: str | None = await self._delegate.chat_line(player, self.players, list(self.transcript))
        except GenerationFailureError as e:
            logger.warning("AI chat generation failed, skipping turn", player_id=player_id, error=str(e))
            text = None

        async with self._lock:
            if not self._still_current(GamePhase.CHAT, token, player_id):
                logger.debug("discarding stale AI chat response", player_id=player_id)
                return
            if text is None:
                # a mention of the failed AI must not hand it the turn again
                self.last_message = None
                self._timers.start_once(
                    TimerSlot.ADVANCE,
                    self.settings.ai_failure_retry_seconds,
                    self._on_advance_turn,
                )
                return
            await self._accept_chat(player, text)

    # ------------------------------------------------------------------
    # Voting phase
    # ------------------------------------------------------------------

    async def _enter_voting(self) -> None:
        self._timers.cancel_all()
        self.phase = GamePhase.VOTING
        self.current_turn = None
        self.human_is_typing = False
        self.ballots.clear()
        self._turn_token += 1

        first = self.active_players()[0]
        self.current_voter = first.player_id
        logger.info("voting phase started", round_number=self.round_number, first_voter=first.player_id)
        await self._broadcast(VotingPhaseStartedEvent(voter_id=first.player_id))
        await self._broadcast(self.snapshot())
        if not first.is_human:
            self._spawn(self._run_ai_vote(first.player_id, self._turn_token))

    async def _accept_vote(self, player: Player, text: str) -> None:
        self.ballots.append(text)
        line = f"{player.name}: {text}"
        await self._record(line)
        await self._broadcast(
            VoteSubmittedEvent(
                player_id=player.player_id,
                player_name=player.name,
                vote=line,
                is_human=player.is_human,
            ),
        )
        await self._broadcast(ChatDisabledEvent())

        # nobody may vote during the pause before the next voter
        self.current_voter = None
        self._turn_token += 1
        voter_id = player.player_id
        self._timers.start_once(
            TimerSlot.ADVANCE,
            self.settings.vote_pause_seconds,
            lambda: self._on_advance_voter(voter_id),
        )

    async def _on_advance_voter(self, after_id: int) -> None:
        async with self._lock:
            if self.phase != GamePhase.VOTING:
                return
            await self._advance_voter(after_id)

    async def _advance_voter(self, after_id: int) -> None:
        """Move to the next active player after after_id in roster order, or to elimination."""
        ids = [p.player_id for p in self.players]
        position = ids.index(after_id)
        nxt = next((p for p in self.players[position + 1 :] if not p.is_eliminated), None)
        if nxt is None:
            await self._enter_elimination()
            return

        self.current_voter = nxt.player_id
        self._turn_token += 1
        logger.info("voter advanced", voter_id=nxt.player_id)
        await self._broadcast(VoterAdvancedEvent(voter_id=nxt.player_id))
        if not nxt.is_human:
            self._spawn(self._run_ai_vote(nxt.player_id, self._turn_token))

    async def _run_ai_vote(self, player_id: int, token: int) -> None:
        player = self._require_player(player_id)
        try:
            text: str | None = await self._delegate.vote_line(player, self.players, list(self.transcript))
        except GenerationFailureError as e:
            logger.warning("AI vote generation failed, skipping vote", player_id=player_id, error=str(e))
            text = None

        async with self._lock:
            if not self._still_current(GamePhase.VOTING, token, player_id):
                logger.debug("discarding stale AI vote", player_id=player_id)
                return
            if text is None:
                self._timers.start_once(
                    TimerSlot.ADVANCE,
                    self.settings.ai_failure_retry_seconds,
                    lambda: self._on_advance_voter(player_id),
                )
                return
            await self._accept_vote(player, text)

    # ------------------------------------------------------------------
    # Elimination and ending
    # ------------------------------------------------------------------

    async def _enter_elimination(self) -> None:
        self._timers.cancel_all()
        self.phase = GamePhase.ELIMINATION
        self.current_turn = None
        self.current_voter = None
        self._turn_token += 1
        logger.info("elimination started", round_number=self.round_number, ballots=len(self.ballots))
        await self._broadcast(self.snapshot())
        self._spawn(self._run_tabulation(self.round_number, list(self.ballots)))

    async def _run_tabulation(self, round_number: int, ballots: list[str]) -> None:
        candidates = [p.name for p in self.active_players()]
        try:
            counts = await self._tabulator.tabulate(ballots, candidates)
        except TabulationFailureError as e:
            logger.warning("vote tabulation failed, using exact tally", error=str(e))
            counts = tally_exact(ballots)

        async with self._lock:
            if self.phase != GamePhase.ELIMINATION or self.round_number != round_number:
                return
            winner = plurality_winner(counts, candidates)
            if winner is None:
                counts = tally_exact(ballots)
                winner = plurality_winner(counts, candidates)
            if winner is None:
                await self._void_round(counts)
                return
            await self._eliminate(winner, counts)

    async def _void_round(self, counts: dict[str, int]) -> None:
        logger.error("no candidate could be identified from the ballots, voiding round", vote_counts=counts)
        await self._broadcast(
            ErrorMessage(
                code=SessionErrorCode.TABULATION_FAILED,
                message="Votes could not be counted. No one is eliminated this round.",
            ),
        )
        self._start_next_round()

    async def _eliminate(self, name: str, counts: dict[str, int]) -> None:
        target = next(p for p in self.active_players() if p.name == name)
        target.eliminate()
        logger.info("player eliminated", player_id=target.player_id, is_human=target.is_human, vote_counts=counts)

        notice = ELIMINATION_NOTICE.format(name=target.name)
        await self._record(f"{MODERATOR_NAME}: {notice}")
        await self._broadcast(
            MessageSentEvent(player_id=MODERATOR_ID, player_name=MODERATOR_NAME, message=notice, is_human=False),
        )
        await self._broadcast(
            PlayerEliminatedEvent(
                player_id=target.player_id,
                player_name=target.name,
                is_human=target.is_human,
                vote_counts=counts,
            ),
        )

        if self._human.is_eliminated:
            await self._end(Winner.AI_WIN)
        elif len(self.active_players()) <= self.settings.human_win_threshold:
            await self._end(Winner.HUMAN_WIN)
        else:
            self._start_next_round()

    def _start_next_round(self) -> None:
        self.round_number += 1
        self._timers.start_once(TimerSlot.ADVANCE, self.settings.next_round_delay_seconds, self._on_next_round)

    async def _on_next_round(self) -> None:
        async with self._lock:
            if self.phase == GamePhase.ELIMINATION:
                await self._enter_chat()

    async def _end(self, winner: Winner) -> None:
        self.phase = GamePhase.ENDED
        self.winner = winner
        self.current_turn = None
        self.current_voter = None
        self._timers.cancel_all()
        current = asyncio.current_task()
        for task in list(self._tasks):
            if task is not current:
                task.cancel()
        logger.info("game ended", winner=winner, round_number=self.round_number)

        await self._broadcast(GameEndedEvent(winner=winner, survivors=[_public(p) for p in self.active_players()]))
        await self._broadcast(self.snapshot())
        try:
            await self._message_log.finish_game(self.game_id, winner.value)
        except PersistenceError:
            logger.exception("failed to persist game end")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _still_current(self, phase: GamePhase, token: int, player_id: int) -> bool:
        active = self.current_turn if phase == GamePhase.CHAT else self.current_voter
        return self.phase == phase and self._turn_token == token and active == player_id

    async def _record(self, line: str) -> None:
        self.transcript.append(line)
        try:
            await self._message_log.append(self.game_id, line)
        except PersistenceError:
            logger.exception("failed to persist message")

    async def _broadcast(self, event: GameEvent | ErrorMessage) -> None:
        await broadcast_to_connections(self._connections.values(), _dump(event))

    @staticmethod
    async def _send_to(connection: ConnectionProtocol, event: GameEvent) -> None:
        await broadcast_to_connections([connection], _dump(event))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("background task failed", exc_info=exc)

    def _bind_log_context(self) -> None:
        structlog.contextvars.bind_contextvars(game_id=self.game_id)


def _dump(event: GameEvent | ErrorMessage) -> dict[str, Any]:
    return event.model_dump(mode="json")
