"""
Speaker selection for the chat phase.

The primary rule is a name mention in the last chat message. When nobody is
mentioned the session waits briefly and then asks for a fallback speaker,
chosen by the configured FallbackPolicy among the remaining AI players.
"""

import random
from collections.abc import Mapping, Sequence

from arena.logic.enums import FallbackPolicy
from arena.logic.types import Player, active_ai_players, active_players


def find_mentioned_player(message: str, players: Sequence[Player]) -> Player | None:
    """Return the first active player, in roster order, named in the message.

    A player is mentioned when the lowercased message contains their full
    display name or any whitespace-delimited token of it. This is plain
    substring matching.
    """
    text = message.casefold()
    for player in active_players(players):
        name = player.name.casefold()
        if name in text:
            return player
        if any(token in text for token in name.split()):
            return player
    return None


def pick_random_ai(players: Sequence[Player], rng: random.Random) -> Player | None:
    candidates = active_ai_players(players)
    if not candidates:
        return None
    return rng.choice(candidates)


def pick_longest_silent_ai(
    players: Sequence[Player],
    speaking_history: Mapping[int, int],
    round_number: int,
) -> Player | None:
    """Return the active AI with the largest ``round - last_spoke_round``.

    Players that never spoke count as last speaking in round 0. Ties go to
    the earliest player in roster order.
    """
    best: Player | None = None
    best_silence = -1
    for player in active_ai_players(players):
        silence = round_number - speaking_history.get(player.player_id, 0)
        if silence > best_silence:
            best = player
            best_silence = silence
    return best


class TurnSelector:
    """Choose the next chat speaker.

    Deterministic for a given RNG seed, so sessions built with a seeded
    ``random.Random`` replay identically.
    """

    def __init__(self, policy: FallbackPolicy = FallbackPolicy.RANDOM, rng: random.Random | None = None) -> None:
        self._policy = policy
        self._rng = rng or random.Random()  # noqa: S311

    @property
    def policy(self) -> FallbackPolicy:
        return self._policy

    def next_speaker(self, last_message: str | None, players: Sequence[Player]) -> Player | None:
        """Return the mentioned player, or None when the caller should arm the fallback."""
        if not last_message:
            return None
        return find_mentioned_player(last_message, players)

    def fallback_speaker(
        self,
        players: Sequence[Player],
        speaking_history: Mapping[int, int],
        round_number: int,
    ) -> Player | None:
        if self._policy == FallbackPolicy.LONGEST_SILENT:
            return pick_longest_silent_ai(players, speaking_history, round_number)
        return pick_random_ai(players, self._rng)
