"""
Vote tabulation.

Ballots are raw vote texts. The exact tally counts identical (trimmed) texts.
VoteTabulator first asks the AI delegate to extract a target name from each
ballot, concurrently and independently; a ballot whose extraction fails is
resolved locally instead. Winner selection is first-seen max: among tied
candidates, the one whose count appeared first in the tally wins.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING

import structlog

from arena.logic.exceptions import GenerationFailureError, TabulationFailureError
from arena.logic.turn_selector import find_mentioned_player
from arena.logic.types import Player

if TYPE_CHECKING:
    from arena.logic.ai_delegate import AIDelegate

logger = structlog.get_logger()


def tally_exact(ballots: Sequence[str]) -> dict[str, int]:
    """Count identical ballot texts, keyed in first-seen order."""
    counts: dict[str, int] = {}
    for ballot in ballots:
        key = ballot.strip()
        if key:
            counts[key] = counts.get(key, 0) + 1
    return counts


def resolve_candidate(text: str, candidates: Sequence[str]) -> str | None:
    """Map free text to a canonical candidate name.

    An exact case-insensitive match wins; otherwise the first candidate
    mentioned in the text, using the same matching as speaker selection.
    """
    stripped = text.strip().casefold()
    for name in candidates:
        if name.casefold() == stripped:
            return name
    named = [Player(player_id=i, name=name) for i, name in enumerate(candidates)]
    mentioned = find_mentioned_player(text, named)
    return mentioned.name if mentioned else None


def plurality_winner(counts: Mapping[str, int], candidates: Sequence[str]) -> str | None:
    """Return the candidate with the most votes, or None when no key names a candidate.

    Keys are matched to candidates case-insensitively and merged. Ties go to
    the candidate whose key came first in ``counts``.
    """
    merged: dict[str, int] = {}
    for key, count in counts.items():
        name = next((c for c in candidates if c.casefold() == key.strip().casefold()), None)
        if name is not None:
            merged[name] = merged.get(name, 0) + count

    winner: str | None = None
    best = 0
    for name, count in merged.items():
        if count > best:
            winner = name
            best = count
    return winner


class VoteTabulator:
    """Count ballots with per-ballot AI extraction of the target name."""

    def __init__(self, delegate: AIDelegate | None = None) -> None:
        self._delegate = delegate

    async def tabulate(self, ballots: Sequence[str], candidates: Sequence[str] = ()) -> dict[str, int]:
        """Return candidate -> vote count.

        Raises TabulationFailureError when there is no delegate, or when every
        extraction failed, so the caller can fall back to ``tally_exact``.
        """
        if self._delegate is None:
            raise TabulationFailureError("no vote extraction service configured")
        if not ballots:
            return {}

        extracted = await asyncio.gather(*(self._extract(ballot, candidates) for ballot in ballots))
        if all(name is None for name in extracted):
            raise TabulationFailureError("vote extraction failed for every ballot")

        counts: dict[str, int] = {}
        for ballot, name in zip(ballots, extracted, strict=True):
            target = self._target(ballot, name, candidates)
            if target is None:
                logger.info("ballot names no candidate", ballot=ballot)
                continue
            counts[target] = counts.get(target, 0) + 1
        return counts

    async def _extract(self, ballot: str, candidates: Sequence[str]) -> str | None:
        try:
            return await self._delegate.extract_vote_target(ballot, candidates)
        except GenerationFailureError as e:
            logger.warning("vote extraction failed, resolving locally", ballot=ballot, error=str(e))
            return None

    @staticmethod
    def _target(ballot: str, extracted: str | None, candidates: Sequence[str]) -> str | None:
        if not candidates:
            return (extracted or ballot).strip() or None
        if extracted is not None:
            name = resolve_candidate(extracted, candidates)
            if name is not None:
                return name
        return resolve_candidate(ballot, candidates)
