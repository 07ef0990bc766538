import asyncio

from arena.logic.enums import GamePhase, Winner
from arena.session.timer_manager import TimerSlot
from arena.tests.helpers import fast_settings, force_voting, make_players
from arena.tests.mocks import VOTE

HUMAN_ID = 1

# Byte, Nova, Echo, Pixel vote in roster order each round.
AI_BALLOTS = [
    "Pixel", "Pixel", "Alice", "Alice",  # round 1: Pixel out
    "Echo", "Echo", "Alice",  # round 2: Echo out
    "Nova", "Alice",  # round 3: Nova out
]  # fmt: skip
HUMAN_BALLOTS = {1: "Pixel", 2: "Echo", 3: "Nova"}


class TestSessionInvariants:
    async def test_full_game_keeps_invariants(self, make_session, generator):
        session = await make_session(
            make_players(ais=("Byte", "Nova", "Echo", "Pixel")),
            game_settings=fast_settings(num_ai_players=4, tick_seconds=0.005, chat_phase_seconds=4),
        )
        generator._queues[VOTE].extend(AI_BALLOTS)
        generator.release()

        eliminated: set[int] = set()
        rounds_seen: list[int] = []

        async with asyncio.timeout(10):
            while not session.is_ended:
                # never a speaker and a voter at the same time
                assert session.current_turn is None or session.current_voter is None
                if session.phase != GamePhase.CHAT:
                    assert session.current_turn is None
                if session.phase != GamePhase.VOTING:
                    assert session.current_voter is None

                # eliminations are permanent
                now = {p.player_id for p in session.players if p.is_eliminated}
                assert eliminated <= now
                eliminated = now

                if not rounds_seen or rounds_seen[-1] != session.round_number:
                    rounds_seen.append(session.round_number)

                if session.phase == GamePhase.VOTING and session.current_voter == HUMAN_ID:
                    await session.handle_vote(HUMAN_ID, HUMAN_BALLOTS[session.round_number])
                await asyncio.sleep(0.001)

        assert session.winner == Winner.HUMAN_WIN
        assert rounds_seen == [1, 2, 3]
        assert [p.name for p in session.active_players()] == ["Alice", "Byte"]
        assert session.current_turn is None
        assert session.current_voter is None
        assert not any(session.timers.is_active(slot) for slot in TimerSlot)

    async def test_typing_after_game_end_is_ignored(self, make_session, generator):
        session = await make_session(make_players(ais=("Byte", "Nova")))
        generator._queues[VOTE].extend(["Nova", "Byte"])
        generator.release()
        await force_voting(session)
        await session.handle_vote(HUMAN_ID, "Byte")

        async with asyncio.timeout(5):
            while not session.is_ended:
                await asyncio.sleep(0.001)

        await session.handle_typing_started(HUMAN_ID)
        assert session.human_is_typing is False
        assert session.phase == GamePhase.ENDED
