"""Structured logging for the arena server.

Output goes to stdout, and optionally to a timestamped file per server run.
Two environment variables tune it:

- LOG_FORMAT: ``json`` or ``console`` (the default when unset).
- LOG_LEVEL: a standard level name, INFO when unset.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from typing import Any

LOG_FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"

_LOG_FORMATS = ("json", "console")
_LOG_LEVELS = ("CRITICAL", "DEBUG", "ERROR", "INFO", "WARNING")

# The OpenAI client and its transport log every request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "openai")


def _plain(value: object) -> object:
    return value.value if isinstance(value, Enum) else value


def _serialize_enums(
    _logger: object,
    _method_name: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Log enums by value, including inside dicts and lists passed as fields."""
    for key, value in event_dict.items():
        if isinstance(value, dict):
            event_dict[key] = {k: _plain(v) for k, v in value.items()}
        elif isinstance(value, list | tuple):
            event_dict[key] = [_plain(v) for v in value]
        else:
            event_dict[key] = _plain(value)
    return event_dict


def _is_test() -> bool:
    return "pytest" in sys.modules


def _json_output() -> bool:
    log_format = os.environ.get("LOG_FORMAT", "").strip().lower()
    if log_format and log_format not in _LOG_FORMATS:
        msg = f"Invalid LOG_FORMAT={log_format!r}. Use 'json', 'console', or leave it unset."
        raise ValueError(msg)
    return log_format == "json"


def _env_level() -> int:
    name = os.environ.get("LOG_LEVEL", "INFO").strip().upper()
    if name not in _LOG_LEVELS:
        msg = f"Invalid LOG_LEVEL={name!r}. Use one of {', '.join(_LOG_LEVELS)}."
        raise ValueError(msg)
    return logging.getLevelName(name)


def _handler(handler: logging.Handler, *, json_output: bool, colors: bool = False) -> logging.Handler:
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=colors)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                renderer,
            ],
        ),
    )
    return handler


def _open_log_file(log_dir: Path | str) -> Path:
    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    return directory / f"{datetime.now(tz=UTC).strftime(LOG_FILE_TIMESTAMP_FORMAT)}.log"


def setup_logging(
    log_dir: Path | str | None = None,
    level: int | None = None,
) -> Path | None:
    """Route structlog through the stdlib root logger.

    Returns the log file path when ``log_dir`` is given. No file is written
    while pytest is loaded.
    """
    json_output = _json_output()
    level = _env_level() if level is None else level

    # Tracebacks are formatted by each handler's ProcessorFormatter.
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            _serialize_enums,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(_handler(logging.StreamHandler(sys.stdout), json_output=json_output, colors=sys.stdout.isatty()))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if log_dir is None or _is_test():
        return None

    log_path = _open_log_file(log_dir)
    root.addHandler(_handler(logging.FileHandler(log_path), json_output=json_output))
    return log_path
