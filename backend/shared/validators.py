"""List-valued settings such as CORS origins, read from the environment."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic_settings import BaseSettings
    from pydantic.fields import FieldInfo

_EMPTY = "String list value must not be empty"


def _from_json(text: str) -> list[str]:
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON array: {e}") from e
    if isinstance(parsed, list) and parsed and all(isinstance(item, str) for item in parsed):
        return parsed
    raise ValueError("JSON value must be a non-empty array of strings")


def parse_string_list(value: str | list[str]) -> list[str]:
    """Turn ``'a,b'``, ``'["a","b"]'`` or a ready list into a non-empty list of strings."""
    if isinstance(value, list):
        items = value
    else:
        text = value.strip()
        if text.startswith("["):
            return _from_json(text)
        items = [part.strip() for part in text.split(",")]
        items = [part for part in items if part]
    if not items:
        raise ValueError(_EMPTY)
    return items


class StringListEnvSettingsSource(EnvSettingsSource):
    """Leave raw env strings for list fields so a field validator can parse them.

    The stock source JSON-decodes complex fields up front, which rejects
    the comma-separated form.
    """

    def __init__(
        self,
        settings_cls: type[BaseSettings],
        string_list_fields: frozenset[str] = frozenset({"cors_origins"}),
    ) -> None:
        super().__init__(settings_cls)
        self._string_list_fields = string_list_fields

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if isinstance(value, str) and field_name in self._string_list_fields:
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
