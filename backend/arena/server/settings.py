"""Arena server configuration via environment variables."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from arena.logic.enums import FallbackPolicy
from arena.logic.settings import GameSettings
from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class ArenaServerSettings(BaseSettings):
    model_config = {"env_prefix": "ARENA_", "populate_by_name": True}

    max_capacity: int = Field(default=100, ge=1)
    log_dir: str | None = Field(default="backend/logs/arena", min_length=1)
    cors_origins: list[str] = ["http://localhost:8080"]
    database_path: str = Field(default="backend/data/arena.db", min_length=1)

    openai_model: str = Field(default="gpt-4o-mini", min_length=1)
    generation_timeout_seconds: float = Field(default=20.0, gt=0)
    # Read from OPENAI_API_KEY (not ARENA_OPENAI_API_KEY), the name the
    # OpenAI SDK and tooling use.
    openai_api_key: str | None = Field(default=None, validation_alias="OPENAI_API_KEY")

    names_file: Path | None = None
    identities_file: Path | None = None

    num_ai_players: int = Field(default=5, ge=1, le=8)
    chat_phase_seconds: int = Field(default=20, ge=1)
    fallback_policy: FallbackPolicy = FallbackPolicy.RANDOM

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

    @field_validator("names_file", "identities_file")
    @classmethod
    def validate_word_list(cls, v: Path | None) -> Path | None:
        if v is not None and not v.is_file():
            raise ValueError(f"word list file not found: {v}")
        return v

    def game_settings(self) -> GameSettings:
        return GameSettings(
            num_ai_players=self.num_ai_players,
            chat_phase_seconds=self.chat_phase_seconds,
            fallback_policy=self.fallback_policy,
        )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
