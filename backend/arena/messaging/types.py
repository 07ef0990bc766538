"""Inbound client messages and the error message sent back to clients."""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, field_validator

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F

MAX_CHAT_LENGTH = 500
MAX_NAME_LENGTH = 50


class ClientMessageType(StrEnum):
    JOIN_GAME = "join_game"
    SEND_MESSAGE = "send_message"
    TYPING_STARTED = "typing_started"
    SUBMIT_VOTE = "submit_vote"


class SessionErrorCode(StrEnum):
    INVALID_MESSAGE = "invalid_message"
    INVALID_ACTION = "invalid_action"
    SESSION_NOT_FOUND = "session_not_found"
    PLAYER_NOT_FOUND = "player_not_found"
    TABULATION_FAILED = "tabulation_failed"
    RATE_LIMITED = "rate_limited"


def _reject_control_chars(value: str) -> str:
    if any(ord(ch) < _SPACE_ORD and ch not in "\n\t" or ord(ch) == _DEL_ORD for ch in value):
        raise ValueError("text must not contain control characters")
    return value


def _strip_non_empty(value: str) -> str:
    value = _reject_control_chars(value).strip()
    if not value:
        raise ValueError("text must not be blank")
    return value


_GAME_ID_FIELD = Field(min_length=1, max_length=64)


class JoinGameMessage(BaseModel):
    type: Literal[ClientMessageType.JOIN_GAME] = ClientMessageType.JOIN_GAME
    game_id: str = _GAME_ID_FIELD
    player_name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)

    @field_validator("player_name")
    @classmethod
    def _clean_name(cls, value: str) -> str:
        return _strip_non_empty(value)


class SendMessageMessage(BaseModel):
    type: Literal[ClientMessageType.SEND_MESSAGE] = ClientMessageType.SEND_MESSAGE
    game_id: str = _GAME_ID_FIELD
    message: str = Field(min_length=1, max_length=MAX_CHAT_LENGTH)

    @field_validator("message")
    @classmethod
    def _clean_message(cls, value: str) -> str:
        return _strip_non_empty(value)


class TypingStartedMessage(BaseModel):
    type: Literal[ClientMessageType.TYPING_STARTED] = ClientMessageType.TYPING_STARTED
    game_id: str = _GAME_ID_FIELD
    player_id: int = Field(ge=1)


class SubmitVoteMessage(BaseModel):
    type: Literal[ClientMessageType.SUBMIT_VOTE] = ClientMessageType.SUBMIT_VOTE
    game_id: str = _GAME_ID_FIELD
    vote: str = Field(min_length=1, max_length=MAX_CHAT_LENGTH)

    @field_validator("vote")
    @classmethod
    def _clean_vote(cls, value: str) -> str:
        return _strip_non_empty(value)


ClientMessage = Annotated[
    JoinGameMessage | SendMessageMessage | TypingStartedMessage | SubmitVoteMessage,
    Field(discriminator="type"),
]

_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Validate a decoded frame against the closed set of client messages."""
    return _client_message_adapter.validate_python(data)


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    code: SessionErrorCode
    message: str
