"""
Game settings: the timing constants and policies of the session state machine.
"""

from pydantic import BaseModel, ConfigDict, Field

from arena.logic.enums import FallbackPolicy


class GameSettings(BaseModel):
    """Immutable per-session configuration.

    Durations are in seconds. Tests shrink them to near zero.
    """

    model_config = ConfigDict(frozen=True)

    num_ai_players: int = Field(default=5, ge=1, le=8)
    chat_phase_seconds: int = Field(default=20, ge=1)
    tick_seconds: float = Field(default=1.0, gt=0)
    mention_fallback_seconds: float = Field(default=3.0, ge=0)
    ai_turn_pause_seconds: float = Field(default=3.5, ge=0)
    vote_pause_seconds: float = Field(default=1.0, ge=0)
    ai_failure_retry_seconds: float = Field(default=2.0, ge=0)
    next_round_delay_seconds: float = Field(default=3.0, ge=0)
    human_win_threshold: int = Field(default=2, ge=1)
    fallback_policy: FallbackPolicy = FallbackPolicy.RANDOM
