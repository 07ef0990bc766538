"""Core data types shared by the game logic modules."""

from collections.abc import Sequence
from dataclasses import dataclass

MODERATOR_ID = 0
MODERATOR_NAME = "Moderator"


@dataclass
class Player:
    """One participant of a session.

    Only ``is_eliminated`` changes after creation, and only from False to True.
    """

    player_id: int
    name: str
    is_human: bool = False
    persona: str | None = None
    is_eliminated: bool = False

    def eliminate(self) -> None:
        self.is_eliminated = True

    def has_name(self, name: str) -> bool:
        return self.name.casefold() == name.strip().casefold()


def active_players(players: Sequence[Player]) -> list[Player]:
    """Return non-eliminated players in roster order."""
    return [p for p in players if not p.is_eliminated]


def active_ai_players(players: Sequence[Player]) -> list[Player]:
    return [p for p in players if not p.is_eliminated and not p.is_human]
