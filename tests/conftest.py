"""
Shared fixtures for the test suite.

Centralizes reusable test infrastructure so individual test files
don't need to repeat store / session / provider boilerplate.
"""

import logging
from collections.abc import Callable, Iterator
from itertools import count

import pytest
from sqlalchemy.orm import Session, sessionmaker

from core.generation.base import GenerationRequest, GenerationResponse
from db.init_db import init_db
from db.session import create_engine_for, make_session_factory

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

FIXED_NOW = "2025-03-01T09:00:00.000Z"
"""Clock value used by stores built with ``fixed_clock``."""


# ---------------------------------------------------------------------------
# Fake generation provider
# ---------------------------------------------------------------------------


class FakeGenerationProvider:
    """Deterministic generation provider — no OpenAI / Anthropic calls.

    Records every request; raises ``error`` instead of answering when set.
    """

    def __init__(self, reply: str = "Processed.", error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.requests: list[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return GenerationResponse(
            content=self.reply, model="fake-model", usage_input_tokens=10, usage_output_tokens=5
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def restore_root_logging() -> Iterator[None]:
    """Undo configure_logging() calls made by the code under test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def sequential_ids() -> Callable[[], str]:
    """Id factory yielding ``id-1``, ``id-2``, ..."""
    counter = count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def fixed_clock() -> Callable[[], str]:
    return lambda: FIXED_NOW


@pytest.fixture
def fake_provider() -> FakeGenerationProvider:
    return FakeGenerationProvider()


@pytest.fixture
def sqlite_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'life.db'}"


@pytest.fixture
def session_factory(sqlite_url: str) -> Iterator[sessionmaker[Session]]:
    """Session factory over a fresh on-disk SQLite database with all tables."""
    engine = create_engine_for(sqlite_url)
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()
