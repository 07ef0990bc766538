"""
String enum definitions for game phases and outcomes.
"""

from enum import StrEnum


class GamePhase(StrEnum):
    """Phases of the session state machine."""

    CHAT = "chat"
    VOTING = "voting"
    ELIMINATION = "elimination"
    ENDED = "ended"


class Winner(StrEnum):
    """Final outcome of a session."""

    HUMAN_WIN = "human_win"
    AI_WIN = "ai_win"


class FallbackPolicy(StrEnum):
    """How a speaker is chosen when no player was mentioned."""

    RANDOM = "random"
    LONGEST_SILENT = "longest_silent"


class InboundAction(StrEnum):
    """Actions a player can perform against a session."""

    JOIN = "join"
    SEND_MESSAGE = "send_message"
    TYPING_STARTED = "typing_started"
    SUBMIT_VOTE = "submit_vote"
