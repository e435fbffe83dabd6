"""Stateless chat completions through the server's OpenAI-style endpoint.

Unlike ``OpenCodeChatModel`` this creates no session: one
``POST /chat/completions`` carries the whole conversation and the server
answers with a completion object, returned to the caller as decoded JSON.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
import logging
from typing import TYPE_CHECKING, Any

import httpx

from opencode_lm._http import CHAT_COMPLETIONS_PATH, DEFAULT_REQUEST_TIMEOUT_S, auth_headers
from opencode_lm.config import UNLIMITED_TOKENS, resolve_connection
from opencode_lm.errors import ConfigurationError, ProtocolError
from opencode_lm.messages import normalize_messages, to_prompt_parts
from opencode_lm.telemetry import TelemetryContext
from opencode_lm.transport import json_body, send_bounded

if TYPE_CHECKING:
    from opencode_lm.messages import MessagesInput
    from opencode_lm.telemetry import TelemetryContextProtocol

logger = logging.getLogger(__name__)

# name -> inclusive (low, high)
_SAMPLING_RANGES: dict[str, tuple[float, float]] = {
    "temperature": (0.0, 2.0),
    "top_p": (0.0, 1.0),
    "frequency_penalty": (-2.0, 2.0),
    "presence_penalty": (-2.0, 2.0),
}


@dataclass(frozen=True)
class CompletionOptions:
    """Optional sampling controls; unset fields are left to the server."""

    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    frequency_penalty: float | None = None
    presence_penalty: float | None = None

    def __post_init__(self) -> None:
        for name, (low, high) in _SAMPLING_RANGES.items():
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int | float):
                raise ConfigurationError(
                    f"{name} must be a number, got {type(value).__name__}"
                )
            if not low <= value <= high:
                raise ConfigurationError(
                    f"{name} must be between {low:g} and {high:g}, got {value}"
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

    def to_wire(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


def _wire_messages(messages: MessagesInput) -> list[dict[str, str]]:
    """One ``{role, content}`` entry per message, list content flattened to text."""
    wire = []
    for msg in normalize_messages(messages):
        text = "".join(part.text for part in to_prompt_parts([msg]))
        wire.append({"role": msg.role, "content": text})
    return wire


async def complete(
    messages: MessagesInput,
    *,
    model: str,
    base_url: str | None = None,
    api_key: str | None = None,
    options: CompletionOptions | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
    timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S,
    telemetry: TelemetryContextProtocol | None = None,
) -> dict[str, Any]:
    """Request one chat completion and return the server's JSON reply.

    Example:
        reply = await complete("Say hello", model="gpt-4")
        print(reply["choices"][0]["message"]["content"])

    Raises:
        ConfigurationError: If the model, URL, options, or messages are invalid.
        TransportError: If the request fails or the server answers non-2xx.
        RequestTimeoutError: If no reply arrives within ``timeout_s``.
        ProtocolError: If the reply is not a JSON object.
    """
    if not isinstance(model, str) or not model.strip():
        raise ConfigurationError(
            "model is required and cannot be empty",
            hint="Pass the model name, e.g. model='gpt-4'.",
        )
    url, key = resolve_connection(base_url, api_key)
    body: dict[str, Any] = {
        "model": model.strip(),
        "messages": _wire_messages(messages),
        **(options or CompletionOptions()).to_wire(),
    }
    tele = telemetry if telemetry is not None else TelemetryContext()

    async with httpx.AsyncClient(
        base_url=url,
        headers=auth_headers(key),
        timeout=timeout_s,
        transport=http_transport,
    ) as client:
        with tele("opencode.chat.complete", messages=len(body["messages"])):
            response = await send_bounded(
                client,
                "POST",
                CHAT_COMPLETIONS_PATH,
                phase="chat_completion",
                timeout_s=timeout_s,
                json=body,
            )

    data = json_body(response, phase="chat_completion")
    if not isinstance(data, dict):
        raise ProtocolError(
            f"Chat completion reply is not a JSON object: {type(data).__name__}"
        )
    logger.debug("Chat completion for model %s returned %s", body["model"], data.get("id"))
    return data
