"""Configuration: frozen ModelConfig with fail-fast validation."""

from __future__ import annotations

from dataclasses import dataclass
import math
import os

from dotenv import load_dotenv
import httpx

from opencode_lm._http import DEFAULT_AGENT, DEFAULT_BASE_URL, DEFAULT_REQUEST_TIMEOUT_S
from opencode_lm.errors import ConfigurationError

load_dotenv()

BASE_URL_ENV_VAR = "OPENCODE_BASE_URL"
API_KEY_ENV_VAR = "OPENCODE_API_KEY"

#: ``max_tokens`` value hosts use to mean "no limit"; normalized to ``None``.
UNLIMITED_TOKENS = -1

_MAX_TEMPERATURE = 2.0


@dataclass(frozen=True)
class ModelConfig:
    """Immutable configuration for one OpenCode chat model instance.

    Provider and model are required: the agent server routes the prompt to
    exactly the upstream model named here. The base URL and API key are
    resolved from ``OPENCODE_BASE_URL`` / ``OPENCODE_API_KEY`` when omitted.

    Example:
        config = ModelConfig(provider_id="anthropic", model_id="claude-3-5-sonnet-20241022")
    """

    provider_id: str
    model_id: str
    #: Falls back to ``OPENCODE_BASE_URL``, then ``http://127.0.0.1:4096``.
    base_url: str | None = None
    #: Falls back to ``OPENCODE_API_KEY``; no auth header is sent when unset.
    api_key: str | None = None
    agent: str = DEFAULT_AGENT
    temperature: float | None = None
    #: Positive integer, or ``UNLIMITED_TOKENS`` / ``None`` for no limit.
    max_tokens: int | None = None
    #: Deadline in seconds for session create/delete and prompt submission.
    request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S

    def __post_init__(self) -> None:
        """Resolve environment defaults and validate every field."""
        base_url, api_key = resolve_connection(self.base_url, self.api_key)
        object.__setattr__(self, "base_url", base_url)
        object.__setattr__(self, "api_key", api_key)

        for name in ("provider_id", "model_id", "agent"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(
                    f"{name} is required and cannot be empty",
                    hint=_FIELD_HINTS[name],
                )
            object.__setattr__(self, name, value.strip())

        if self.temperature is not None:
            if isinstance(self.temperature, bool) or not isinstance(
                self.temperature, int | float
            ):
                raise ConfigurationError(
                    f"temperature must be a number, got {type(self.temperature).__name__}"
                )
            if not 0 <= self.temperature <= _MAX_TEMPERATURE:
                raise ConfigurationError(
                    f"temperature must be between 0 and 2, got {self.temperature}",
                    hint="Lower values make output more focused and deterministic.",
                )

        if self.max_tokens is not None:
            if isinstance(self.max_tokens, bool) or not isinstance(self.max_tokens, int):
                raise ConfigurationError("max_tokens must be an integer")
            if self.max_tokens == UNLIMITED_TOKENS:
                object.__setattr__(self, "max_tokens", None)
            elif self.max_tokens <= 0:
                raise ConfigurationError(
                    f"max_tokens must be a positive integer, got {self.max_tokens}",
                    hint="Pass max_tokens=-1 (or omit it) for no limit.",
                )

        timeout = self.request_timeout_s
        if (
            isinstance(timeout, bool)
            or not isinstance(timeout, int | float)
            or not math.isfinite(timeout)
            or timeout <= 0
        ):
            raise ConfigurationError(
                f"request_timeout_s must be a positive number, got {timeout!r}",
                hint="This bounds session create/delete and prompt submission.",
            )

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"ModelConfig(base_url={self.base_url!r}, agent={self.agent!r}, "
            f"provider_id={self.provider_id!r}, model_id={self.model_id!r}, "
            f"api_key={'[REDACTED]' if self.api_key else None})"
        )

    __repr__ = __str__


_FIELD_HINTS: dict[str, str] = {
    "provider_id": "Pass the upstream vendor, e.g. provider_id='anthropic'.",
    "model_id": "Pass the model variant, e.g. model_id='claude-3-5-sonnet-20241022'.",
    "agent": "Use an agent defined on the server, e.g. 'build'.",
}


def resolve_connection(
    base_url: str | None, api_key: str | None
) -> tuple[str, str | None]:
    """Apply environment fallbacks to the server URL and key, then validate.

    Raises:
        ConfigurationError: If the URL is not an absolute http(s) URL.
    """
    if base_url is None:
        base_url = os.environ.get(BASE_URL_ENV_VAR) or DEFAULT_BASE_URL
    if api_key is None:
        api_key = os.environ.get(API_KEY_ENV_VAR) or None
    elif not isinstance(api_key, str):
        raise ConfigurationError("api_key must be a string")
    return _validate_base_url(base_url), api_key


def _validate_base_url(value: object) -> str:
    if not isinstance(value, str):
        raise ConfigurationError(f"Invalid base_url: {value!r}. Must be a valid URL.")
    try:
        url = httpx.URL(value.strip())
        valid = url.scheme in ("http", "https") and bool(url.host)
    except httpx.InvalidURL:
        valid = False
    if not valid:
        raise ConfigurationError(
            f"Invalid base_url: {value}. Must be a valid URL.",
            hint="Use an absolute URL such as http://127.0.0.1:4096",
        )
    return value.strip().rstrip("/")
