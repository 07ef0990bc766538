from pydantic import BaseModel, ConfigDict, Field, field_validator

from arena.messaging.types import MAX_CHAT_LENGTH, MAX_NAME_LENGTH


class CreateGameRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    player_name: str = Field(min_length=1, max_length=MAX_NAME_LENGTH)

    @field_validator("player_name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("player_name must not be blank")
        return v


class CalculateVotesRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    votes: list[str] = Field(max_length=16)
    candidates: list[str] = Field(default_factory=list, max_length=16)

    @field_validator("votes", "candidates")
    @classmethod
    def _check_lengths(cls, v: list[str]) -> list[str]:
        if any(len(item) > MAX_CHAT_LENGTH for item in v):
            raise ValueError(f"entries must be at most {MAX_CHAT_LENGTH} characters")
        return v
