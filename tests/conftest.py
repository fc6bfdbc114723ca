"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration, and shared
fixtures. Test doubles live in tests/helpers.py. Environment fixtures are
autouse.
"""

from __future__ import annotations

from contextlib import suppress
import logging
import os

import pytest

from parley.config import Config
from parley.retry import RetryPolicy
from parley.tools import ToolBuilder
from tests.helpers import OPENAI_MODEL, StubTransport

# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests."""
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_provider_env(request, monkeypatch):
    """Ensure a clean provider environment for each test.

    Clears GEMINI_* and OPENAI_* env vars to prevent test pollution.
    Opt-out: @pytest.mark.api
    """
    if "api" in request.node.keywords:
        return
    for key in list(os.environ.keys()):
        if key.startswith(("GEMINI_", "OPENAI_")):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# Shared Fixtures
# =============================================================================


@pytest.fixture
def config() -> Config:
    """Config with both credentials and a fast, deterministic retry policy."""
    return Config(
        model=OPENAI_MODEL,
        openai_api_key="test-openai-key",
        gemini_api_key="test-gemini-key",
        retry=RetryPolicy(max_attempts=5, initial_delay_s=1.0, max_delay_s=60.0),
    )


@pytest.fixture
def stub_transport() -> StubTransport:
    return StubTransport()


@pytest.fixture
def weather_builder() -> ToolBuilder:
    return (
        ToolBuilder("getWeather")
        .set_description("Current weather for a city.")
        .add_parameter("cityName", "string", "The city to look up.")
    )
