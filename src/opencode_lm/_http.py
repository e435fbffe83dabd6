"""Wire-level constants shared across opencode-lm.

This module is intentionally tiny to avoid circular imports and drift.
"""

from __future__ import annotations

DEFAULT_BASE_URL = "http://127.0.0.1:4096"
DEFAULT_AGENT = "build"
DEFAULT_REQUEST_TIMEOUT_S = 30.0

SESSION_PATH = "/session"
EVENT_PATH = "/event"
AGENT_PATH = "/agent"
PROVIDERS_PATH = "/config/providers"
CHAT_COMPLETIONS_PATH = "/chat/completions"

SSE_DATA_PREFIX = "data:"
SSE_DONE_SENTINEL = "[DONE]"

# Event types the decoder acts on; everything else is ignored.
PART_UPDATED_EVENT = "message.part.updated"
SESSION_UPDATED_EVENT = "session.updated"
SESSION_COMPLETED_STATUS = "completed"


def session_url(session_id: str) -> str:
    """Return the path of one session resource."""
    return f"{SESSION_PATH}/{session_id}"


def prompt_url(session_id: str) -> str:
    """Return the prompt-submission path of one session."""
    return f"{SESSION_PATH}/{session_id}/prompt"


def auth_headers(api_key: str | None) -> dict[str, str]:
    """Bearer header when an API key is configured, otherwise nothing."""
    if api_key:
        return {"Authorization": f"Bearer {api_key}"}
    return {}
