"""Pytest configuration and fixtures.

Provides environment isolation, logging configuration, and the fake agent
server. All fixtures here are autouse unless noted.
"""

from __future__ import annotations

from contextlib import suppress
import logging
import os

import pytest

from opencode_lm.chat_model import OpenCodeChatModel
from tests.helpers import FakeOpenCodeServer

PROVIDER_ID = "anthropic"
MODEL_ID = "claude-3-5-sonnet-20241022"
BASE_URL = "http://x:4096"

# =============================================================================
# Environment Isolation (Autouse)
# =============================================================================


@pytest.fixture(autouse=True)
def block_dotenv(request, monkeypatch):
    """Prevent python-dotenv from loading project .env files during tests.

    Opt-out: @pytest.mark.allow_dotenv
    """
    if request.node.get_closest_marker("allow_dotenv"):
        return
    with suppress(Exception):
        monkeypatch.setattr(
            "dotenv.load_dotenv", lambda *_args, **_kwargs: False, raising=False
        )


@pytest.fixture(autouse=True)
def isolate_opencode_env(request, monkeypatch):
    """Clear OPENCODE_* env vars to prevent test pollution.

    Opt-out: @pytest.mark.allow_env_pollution
    """
    if request.node.get_closest_marker("allow_env_pollution"):
        return
    for key in list(os.environ.keys()):
        if key.startswith("OPENCODE_"):
            monkeypatch.delenv(key, raising=False)


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_noisy_libraries():
    """Suppress noisy third-party loggers."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# =============================================================================
# Fake Server (opt-in)
# =============================================================================


@pytest.fixture
def server() -> FakeOpenCodeServer:
    """A fresh fake agent server; state never leaks between tests."""
    return FakeOpenCodeServer()


@pytest.fixture
def model(server: FakeOpenCodeServer) -> OpenCodeChatModel:
    """Chat model wired to the fake server."""
    return OpenCodeChatModel(
        base_url=BASE_URL,
        provider_id=PROVIDER_ID,
        model_id=MODEL_ID,
        http_transport=server.transport(),
    )
