"""
Roster generation for new sessions.

AI display names and persona fragments come from plain word-list files, one
entry per line. The bundled lists live in ``arena/logic/data``.
"""

from __future__ import annotations

import random
from pathlib import Path
from typing import TYPE_CHECKING

from arena.logic.prompts import HUMAN_IDENTITY
from arena.logic.types import Player

if TYPE_CHECKING:
    from collections.abc import Sequence

PERSONA_FRAGMENTS = 3

_DATA_DIR = Path(__file__).resolve().parent / "data"
_BUNDLED_NAMES = _DATA_DIR / "names.txt"
_BUNDLED_IDENTITIES = _DATA_DIR / "identities.txt"


def _read_word_list(path: Path) -> list[str]:
    text = path.read_text(encoding="utf-8")
    return [line.strip() for line in text.splitlines() if line.strip() and not line.lstrip().startswith("#")]


def _dedupe_casefold(items: Sequence[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        key = item.casefold()
        if key not in seen:
            seen.add(key)
            result.append(item)
    return result


class RosterFactory:
    """Build a session roster of one human and N AI players."""

    def __init__(self, names: Sequence[str], identities: Sequence[str]) -> None:
        self._names = _dedupe_casefold(names)
        self._identities = _dedupe_casefold(identities)
        if len(self._identities) < PERSONA_FRAGMENTS:
            raise ValueError(f"need at least {PERSONA_FRAGMENTS} identity fragments, got {len(self._identities)}")

    @classmethod
    def from_files(cls, names_file: Path | None = None, identities_file: Path | None = None) -> RosterFactory:
        """Load word lists from the given files, or the bundled ones when omitted."""
        return cls(
            names=_read_word_list(names_file or _BUNDLED_NAMES),
            identities=_read_word_list(identities_file or _BUNDLED_IDENTITIES),
        )

    def build(self, human_name: str, num_ai_players: int, rng: random.Random) -> list[Player]:
        """Return a shuffled roster.

        Ids are assigned 1..N in creation order (AIs first, then the human)
        before the single shuffle. AI names never collide with each other or
        with the human's name, ignoring case.
        """
        human_name = human_name.strip()
        if not human_name:
            raise ValueError("human player name must not be empty")

        pool = [n for n in self._names if n.casefold() != human_name.casefold()]
        if len(pool) < num_ai_players:
            raise ValueError(f"not enough distinct AI names: need {num_ai_players}, have {len(pool)}")

        players = [
            Player(player_id=i, name=name, is_human=False, persona=self._persona(rng))
            for i, name in enumerate(rng.sample(pool, num_ai_players), start=1)
        ]
        players.append(
            Player(player_id=num_ai_players + 1, name=human_name, is_human=True, persona=HUMAN_IDENTITY),
        )
        rng.shuffle(players)
        return players

    def _persona(self, rng: random.Random) -> str:
        fragments = rng.sample(self._identities, PERSONA_FRAGMENTS)
        return " ".join(f"You {fragment}" for fragment in fragments)
