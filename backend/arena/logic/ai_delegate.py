"""
AI delegate: obtain chat lines, votes and vote targets for AI players.

The delegate builds prompts and normalizes model output. It does not check
phase or turn ownership (the session does that before calling) and never
retries. Any error from the generator reaches the caller as
GenerationFailureError, so a bad provider response only costs the AI its turn.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import TYPE_CHECKING

import structlog

from arena.logic.exceptions import GenerationFailureError
from arena.logic.prompts import chat_prompt, vote_extraction_prompt, voting_prompt
from arena.logic.types import Player, active_players

if TYPE_CHECKING:
    from arena.logic.generator import TextGenerator

logger = structlog.get_logger()

# A one-word "Name:" self-attribution at the start of a reply, e.g. "Byte: " or "O'Neil: ".
_SPEAKER_PREFIX_RE = re.compile(r"^\s*\w+(?:['-]\w+)?:\s+")


def strip_speaker_prefix(text: str) -> str:
    """Drop a leading ``Name: `` attribution and surrounding whitespace."""
    return _SPEAKER_PREFIX_RE.sub("", text, count=1).strip()


def _other_names(player: Player, players: Sequence[Player]) -> list[str]:
    return [p.name for p in active_players(players) if p.player_id != player.player_id]


class AIDelegate:
    def __init__(self, generator: TextGenerator) -> None:
        self._generator = generator

    async def chat_line(self, player: Player, players: Sequence[Player], transcript: Sequence[str]) -> str:
        prompt = chat_prompt(player.name, player.persona, _other_names(player, players))
        return await self._complete(prompt, transcript, purpose="chat", player_id=player.player_id)

    async def vote_line(self, player: Player, players: Sequence[Player], transcript: Sequence[str]) -> str:
        prompt = voting_prompt(player.name, player.persona, _other_names(player, players))
        return await self._complete(prompt, transcript, purpose="vote", player_id=player.player_id)

    async def extract_vote_target(self, ballot: str, candidates: Sequence[str]) -> str:
        """Ask the model which candidate a free-text ballot names."""
        return await self._complete(vote_extraction_prompt(candidates), [ballot], purpose="extract")

    async def _complete(
        self,
        system_prompt: str,
        transcript: Sequence[str],
        *,
        purpose: str,
        player_id: int | None = None,
    ) -> str:
        try:
            raw = await self._generator.generate(system_prompt, transcript)
        except GenerationFailureError:
            raise
        except Exception as e:
            logger.warning("generator raised", purpose=purpose, player_id=player_id, error=repr(e))
            raise GenerationFailureError(f"{purpose} generation failed: {e}") from e
        if not isinstance(raw, str):
            raise GenerationFailureError(f"{purpose} response is not text")
        text = strip_speaker_prefix(raw)
        if not text:
            logger.warning("generated text empty after normalization", purpose=purpose, player_id=player_id)
            raise GenerationFailureError(f"empty {purpose} response")
        return text
