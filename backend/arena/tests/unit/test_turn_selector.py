import random

import pytest

from arena.logic.enums import FallbackPolicy
from arena.logic.turn_selector import (
    TurnSelector,
    find_mentioned_player,
    pick_longest_silent_ai,
    pick_random_ai,
)
from arena.logic.types import Player
from arena.tests.helpers import make_players


class TestFindMentionedPlayer:
    def test_exact_name_selects_player(self):
        players = make_players()
        assert find_mentioned_player("What do you think, Byte?", players).name == "Byte"

    def test_match_is_case_insensitive(self):
        players = make_players()
        assert find_mentioned_player("nova seems suspicious", players).name == "Nova"

    def test_single_mention_wins_regardless_of_roster_position(self):
        for ais in (("Byte", "Nova", "Echo"), ("Echo", "Nova", "Byte"), ("Nova", "Byte", "Echo")):
            players = make_players(ais=ais)
            assert find_mentioned_player("I trust Echo the most", players).name == "Echo"

    def test_no_mention_returns_none(self):
        assert find_mentioned_player("Who is the human here?", make_players()) is None

    def test_token_of_multi_word_name_matches(self):
        players = [Player(1, "Alice", is_human=True), Player(2, "Ada Lovelace")]
        assert find_mentioned_player("lovelace is quiet", players).name == "Ada Lovelace"

    def test_multiple_mentions_resolved_by_roster_order(self):
        players = make_players(ais=("Byte", "Nova", "Echo"))
        assert find_mentioned_player("Echo and Byte should answer", players).name == "Byte"

    def test_eliminated_players_are_never_selected(self):
        players = make_players()
        players[1].eliminate()
        assert find_mentioned_player("Byte?", players) is None

    def test_human_can_be_mentioned(self):
        assert find_mentioned_player("alice, are you human?", make_players()).is_human


class TestFallbackPolicies:
    def test_random_pick_only_returns_active_ai(self):
        players = make_players()
        players[2].eliminate()
        rng = random.Random(1)
        picks = {pick_random_ai(players, rng).name for _ in range(50)}
        assert picks <= {"Byte", "Echo"}
        assert picks == {"Byte", "Echo"}

    def test_random_pick_is_deterministic_for_seed(self):
        players = make_players()
        first = [pick_random_ai(players, random.Random(3)).player_id for _ in range(5)]
        second = [pick_random_ai(players, random.Random(3)).player_id for _ in range(5)]
        assert first == second

    def test_random_pick_without_ai_returns_none(self):
        players = make_players()
        for p in players[1:]:
            p.eliminate()
        assert pick_random_ai(players, random.Random(0)) is None

    def test_longest_silent_prefers_never_spoken(self):
        players = make_players()
        history = {2: 3, 4: 2}
        assert pick_longest_silent_ai(players, history, round_number=3).name == "Nova"

    def test_longest_silent_ties_go_to_roster_order(self):
        players = make_players()
        history = {2: 1, 3: 1, 4: 1}
        assert pick_longest_silent_ai(players, history, round_number=2).name == "Byte"

    def test_longest_silent_ignores_human(self):
        players = make_players()
        history = {2: 2, 3: 2, 4: 2}
        assert not pick_longest_silent_ai(players, history, round_number=2).is_human


class TestTurnSelector:
    def test_next_speaker_without_message_is_none(self):
        selector = TurnSelector()
        assert selector.next_speaker(None, make_players()) is None
        assert selector.next_speaker("", make_players()) is None

    def test_next_speaker_uses_mentions(self):
        selector = TurnSelector()
        assert selector.next_speaker("Byte, your turn", make_players()).name == "Byte"

    @pytest.mark.parametrize("policy", list(FallbackPolicy))
    def test_fallback_speaker_is_an_active_ai(self, policy):
        players = make_players()
        selector = TurnSelector(policy, random.Random(5))
        speaker = selector.fallback_speaker(players, {}, 1)
        assert speaker is not None
        assert not speaker.is_human
        assert not speaker.is_eliminated

    def test_longest_silent_policy_is_used(self):
        players = make_players()
        selector = TurnSelector(FallbackPolicy.LONGEST_SILENT, random.Random(5))
        assert selector.fallback_speaker(players, {2: 1, 3: 1}, 1).name == "Echo"
