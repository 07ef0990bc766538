from types import SimpleNamespace
from unittest.mock import AsyncMock

import openai
import pytest

from arena.logic.exceptions import GenerationFailureError
from arena.logic.generator import EMPTY_TRANSCRIPT, OpenAITextGenerator


def _completion(*contents: str | None) -> SimpleNamespace:
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=c)) for c in contents])


def _generator(create: AsyncMock) -> OpenAITextGenerator:
    client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)), close=AsyncMock())
    return OpenAITextGenerator(api_key=None, model="test-model", timeout_seconds=1.0, client=client)


class TestOpenAITextGenerator:
    async def test_sends_system_prompt_and_joined_transcript(self):
        create = AsyncMock(return_value=_completion("  hi there  "))
        generator = _generator(create)

        result = await generator.generate("be nice", ["Alice: hello", "Byte: hey"])

        assert result == "hi there"
        kwargs = create.await_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["messages"] == [
            {"role": "system", "content": "be nice"},
            {"role": "user", "content": "Alice: hello\nByte: hey"},
        ]

    async def test_empty_transcript_uses_placeholder(self):
        create = AsyncMock(return_value=_completion("hi"))
        generator = _generator(create)

        await generator.generate("be nice", [])

        assert create.await_args.kwargs["messages"][1]["content"] == EMPTY_TRANSCRIPT

    async def test_provider_error_becomes_generation_failure(self):
        generator = _generator(AsyncMock(side_effect=openai.OpenAIError("quota exceeded")))

        with pytest.raises(GenerationFailureError, match="quota exceeded"):
            await generator.generate("be nice", ["x"])

    @pytest.mark.parametrize("completion", [_completion(), _completion(None), _completion("   ")])
    async def test_missing_content_is_a_failure(self, completion):
        generator = _generator(AsyncMock(return_value=completion))

        with pytest.raises(GenerationFailureError):
            await generator.generate("be nice", ["x"])

    async def test_close_closes_client(self):
        create = AsyncMock()
        generator = _generator(create)

        await generator.close()

        generator._client.close.assert_awaited_once()
