"""
Text-generation capability used by the AI delegate.

The session only depends on the TextGenerator protocol. OpenAITextGenerator is
the production implementation; tests substitute a scripted generator.
"""

from collections.abc import Sequence
from typing import Protocol

import openai
import structlog
from openai import AsyncOpenAI

from arena.logic.exceptions import GenerationFailureError

logger = structlog.get_logger()

EMPTY_TRANSCRIPT = "The conversation has not started yet."


class TextGenerator(Protocol):
    async def generate(self, system_prompt: str, transcript: Sequence[str]) -> str:
        """Return generated text, or raise GenerationFailureError."""
        ...


class OpenAITextGenerator:
    """Chat-completion backed generator.

    One request per call with no retries; every provider error, timeout or
    empty completion surfaces as GenerationFailureError.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        model: str,
        timeout_seconds: float,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._model = model
        self._client = client or AsyncOpenAI(api_key=api_key, timeout=timeout_seconds, max_retries=0)

    async def generate(self, system_prompt: str, transcript: Sequence[str]) -> str:
        user_content = "\n".join(transcript) if transcript else EMPTY_TRANSCRIPT
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
            )
        except openai.OpenAIError as e:
            logger.warning("text generation request failed", model=self._model, error=str(e))
            raise GenerationFailureError(str(e)) from e

        if not response.choices:
            raise GenerationFailureError("completion returned no choices")
        content = response.choices[0].message.content
        if not content or not content.strip():
            raise GenerationFailureError("completion returned empty content")
        return content.strip()

    async def close(self) -> None:
        await self._client.close()
