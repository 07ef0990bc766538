"""Outbound event models.

Every state change of a session is described by one of these models and
broadcast to the session's connected players. Error events go to the acting
connection only and live in arena.messaging.types.
"""

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict

from arena.logic.enums import GamePhase, Winner


class EventType(StrEnum):
    """Types of outbound game events."""

    GAME_STATE = "game_state"
    PLAYER_JOINED = "player_joined"
    PLAYER_DISCONNECTED = "player_disconnected"
    TURN_ADVANCED = "turn_advanced"
    VOTER_ADVANCED = "voter_advanced"
    MESSAGE_SENT = "message_sent"
    VOTE_SUBMITTED = "vote_submitted"
    CHAT_DISABLED = "chat_disabled"
    CHAT_ENABLED = "chat_enabled"
    TIME_UPDATE = "time_update"
    VOTING_PHASE_STARTED = "voting_phase_started"
    VOTING_PHASE_ENDED = "voting_phase_ended"
    PLAYER_ELIMINATED = "player_eliminated"
    GAME_ENDED = "game_ended"


class GameEvent(BaseModel):
    """Base class for all outbound game events."""

    model_config = ConfigDict(frozen=True)

    type: EventType


class PublicPlayer(BaseModel):
    """Player as seen by every observer. Personas are never exposed."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    is_human: bool
    is_eliminated: bool


class GameStateEvent(GameEvent):
    """Full public snapshot, sent on join and on every phase change."""

    type: Literal[EventType.GAME_STATE] = EventType.GAME_STATE
    id: str
    players: list[PublicPlayer]
    current_turn: int | None
    is_voting_phase: bool
    current_voter: int | None
    game_phase: GamePhase
    time_left: int
    round_number: int


class PlayerJoinedEvent(GameEvent):
    type: Literal[EventType.PLAYER_JOINED] = EventType.PLAYER_JOINED
    player_name: str


class PlayerDisconnectedEvent(GameEvent):
    type: Literal[EventType.PLAYER_DISCONNECTED] = EventType.PLAYER_DISCONNECTED
    player_name: str


class TurnAdvancedEvent(GameEvent):
    type: Literal[EventType.TURN_ADVANCED] = EventType.TURN_ADVANCED
    speaker_id: int


class VoterAdvancedEvent(GameEvent):
    type: Literal[EventType.VOTER_ADVANCED] = EventType.VOTER_ADVANCED
    voter_id: int


class MessageSentEvent(GameEvent):
    """A chat line. Moderator announcements use player_id 0."""

    type: Literal[EventType.MESSAGE_SENT] = EventType.MESSAGE_SENT
    player_id: int
    player_name: str
    message: str
    is_human: bool


class VoteSubmittedEvent(GameEvent):
    type: Literal[EventType.VOTE_SUBMITTED] = EventType.VOTE_SUBMITTED
    player_id: int
    player_name: str
    vote: str
    is_human: bool


class ChatDisabledEvent(GameEvent):
    type: Literal[EventType.CHAT_DISABLED] = EventType.CHAT_DISABLED


class ChatEnabledEvent(GameEvent):
    type: Literal[EventType.CHAT_ENABLED] = EventType.CHAT_ENABLED


class TimeUpdateEvent(GameEvent):
    type: Literal[EventType.TIME_UPDATE] = EventType.TIME_UPDATE
    time_left: int


class VotingPhaseStartedEvent(GameEvent):
    type: Literal[EventType.VOTING_PHASE_STARTED] = EventType.VOTING_PHASE_STARTED
    voter_id: int


class VotingPhaseEndedEvent(GameEvent):
    type: Literal[EventType.VOTING_PHASE_ENDED] = EventType.VOTING_PHASE_ENDED


class PlayerEliminatedEvent(GameEvent):
    type: Literal[EventType.PLAYER_ELIMINATED] = EventType.PLAYER_ELIMINATED
    player_id: int
    player_name: str
    is_human: bool
    vote_counts: dict[str, int]


class GameEndedEvent(GameEvent):
    type: Literal[EventType.GAME_ENDED] = EventType.GAME_ENDED
    winner: Winner
    survivors: list[PublicPlayer]
