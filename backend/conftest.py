"""Shared test setup: test environment first, then the server's own logging config."""

from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv

from shared.logging import setup_logging

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

# stdout only; pytest captures it per test.
setup_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Keep a game_id bound in one test out of the next."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()
