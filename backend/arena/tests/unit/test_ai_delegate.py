from unittest.mock import AsyncMock

import pytest

from arena.logic.ai_delegate import AIDelegate, strip_speaker_prefix
from arena.logic.exceptions import GenerationFailureError
from arena.tests.helpers import make_players
from arena.tests.mocks import CHAT, EXTRACT, VOTE, ScriptedTextGenerator


class TestStripSpeakerPrefix:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Byte: hello there", "hello there"),
            ("  O'Neil: who typed that?", "who typed that?"),
            ("no prefix here", "no prefix here"),
            ("  padded  ", "padded"),
            ("Note: this is a sentence: with colons", "this is a sentence: with colons"),
        ],
    )
    def test_strips_leading_attribution(self, raw, expected):
        assert strip_speaker_prefix(raw) == expected

    def test_only_first_prefix_is_removed(self):
        assert strip_speaker_prefix("Byte: Nova: hi") == "Nova: hi"

    @pytest.mark.parametrize(
        "text",
        ["I really do not trust this one: Nova", "Wait a sec: who said that?", "Ada Lovelace: hi"],
    )
    def test_phrase_before_colon_is_kept(self, text):
        assert strip_speaker_prefix(text) == text


class TestAIDelegate:
    async def test_chat_line_prompt_names_other_active_players(self):
        players = make_players()
        players[2].eliminate()
        generator = ScriptedTextGenerator(chat=["Byte: hi all"])
        delegate = AIDelegate(generator)

        text = await delegate.chat_line(players[1], players, ["Alice: hello"])

        assert text == "hi all"
        kind, prompt, transcript = generator.calls[0]
        assert kind == CHAT
        assert prompt.startswith("You are Byte the AI.")
        assert "The other players in the game are: Alice, Echo." in prompt
        assert transcript == ["Alice: hello"]

    async def test_vote_line_uses_voting_prompt(self):
        players = make_players()
        generator = ScriptedTextGenerator(vote=["Nova"])
        delegate = AIDelegate(generator)

        assert await delegate.vote_line(players[1], players, []) == "Nova"
        assert generator.calls[0][0] == VOTE

    async def test_extract_sends_ballot_as_transcript(self):
        generator = ScriptedTextGenerator()
        delegate = AIDelegate(generator)

        assert await delegate.extract_vote_target("Echo", ["Alice", "Echo"]) == "Echo"
        kind, prompt, transcript = generator.calls[0]
        assert kind == EXTRACT
        assert "Alice" in prompt
        assert transcript == ["Echo"]

    async def test_response_empty_after_stripping_is_a_failure(self):
        generator = ScriptedTextGenerator(chat=["Byte:   "])
        delegate = AIDelegate(generator)
        players = make_players()

        with pytest.raises(GenerationFailureError):
            await delegate.chat_line(players[1], players, [])

    async def test_generator_failure_propagates(self):
        generator = ScriptedTextGenerator()
        generator.fail(CHAT)
        delegate = AIDelegate(generator)
        players = make_players()

        with pytest.raises(GenerationFailureError):
            await delegate.chat_line(players[1], players, [])

    @pytest.mark.parametrize("error", [ValueError("malformed provider response"), KeyError("choices")])
    async def test_unexpected_generator_error_becomes_generation_failure(self, error):
        generator = AsyncMock()
        generator.generate.side_effect = error
        delegate = AIDelegate(generator)
        players = make_players()

        with pytest.raises(GenerationFailureError, match="vote generation failed") as exc_info:
            await delegate.vote_line(players[1], players, [])
        assert exc_info.value.__cause__ is error

    async def test_non_text_response_is_a_failure(self):
        generator = AsyncMock()
        generator.generate.return_value = {"content": "Nova"}
        delegate = AIDelegate(generator)

        with pytest.raises(GenerationFailureError, match="not text"):
            await delegate.extract_vote_target("Nova", ["Nova"])
