"""Typed domain exceptions for the arena game.

Handlers raise these instead of raw ValueError so the message router can
catch and convert them to error messages for the acting connection only.
"""


class ArenaError(Exception):
    """Base exception for arena domain errors."""


class InvalidActionError(ArenaError):
    """Action rejected due to wrong phase, wrong actor or turn ownership mismatch.

    Attributes:
        action: The action that was attempted (e.g. "send_message", "submit_vote").
        player_id: Id of the acting player, or None when the actor is unknown.
        reason: Human-readable explanation of why the action is invalid.

    """

    def __init__(self, *, action: str, player_id: int | None, reason: str) -> None:
        self.action = action
        self.player_id = player_id
        self.reason = reason
        super().__init__(f"invalid {action} from player {player_id}: {reason}")


class NotFoundError(ArenaError):
    """A session or player reference does not resolve."""


class SessionNotFoundError(NotFoundError):
    def __init__(self, game_id: str) -> None:
        self.game_id = game_id
        super().__init__(f"game {game_id} not found")


class PlayerNotFoundError(NotFoundError):
    def __init__(self, game_id: str, reference: str) -> None:
        self.game_id = game_id
        self.reference = reference
        super().__init__(f"player {reference} not found in game {game_id}")


class GenerationFailureError(ArenaError):
    """Text generation errored, timed out or returned empty content."""


class TabulationFailureError(ArenaError):
    """Ballots could not be resolved to any candidate."""


class SessionCreationError(ArenaError):
    """The persistence layer could not allocate a new session."""
