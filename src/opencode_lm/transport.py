"""Session transport: the bounded REST calls of one orchestration call.

Each call of the chat model owns one ``httpx.AsyncClient`` and wraps it in a
``SessionTransport``. Create and submit are on the primary path and raise;
delete is cleanup and never raises.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, NoReturn

import httpx

from opencode_lm._http import SESSION_PATH, prompt_url, session_url
from opencode_lm.errors import ProtocolError, RequestTimeoutError, TransportError
from opencode_lm.models import PromptReply, Session, part_from_dict
from opencode_lm.telemetry import TelemetryContext

if TYPE_CHECKING:
    from collections.abc import Sequence

    from opencode_lm.config import ModelConfig
    from opencode_lm.models import TextPart
    from opencode_lm.telemetry import TelemetryContextProtocol

logger = logging.getLogger(__name__)

# phase -> human label used in error messages
_PHASE_LABELS = {
    "create_session": "create session",
    "submit_prompt": "send prompt",
    "delete_session": "delete session",
    "chat_completion": "complete chat",
}


class SessionTransport:
    """Create, prompt, and delete OpenCode sessions over one HTTP client."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: ModelConfig,
        *,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._tele = telemetry if telemetry is not None else TelemetryContext()

    @property
    def timeout_s(self) -> float:
        return self._config.request_timeout_s

    def _model_ref(self) -> dict[str, str]:
        return {
            "providerID": self._config.provider_id,
            "modelID": self._config.model_id,
        }

    async def create_session(self) -> Session:
        """Create a fresh session for the configured agent and model."""
        body = {"agent": self._config.agent, "model": self._model_ref()}
        with self._tele("opencode.session.create"):
            response = await self._request(
                "POST", SESSION_PATH, phase="create_session", json=body
            )

        data = json_body(response, phase="create_session")
        session_id = data.get("id") if isinstance(data, dict) else None
        if not isinstance(session_id, str):
            raise ProtocolError(
                'Failed to create session: API response is missing or has an invalid "id" field'
            )
        created_at = data.get("createdAt")
        return Session(
            id=session_id,
            created_at=created_at if isinstance(created_at, str) else "",
        )

    async def submit_prompt(
        self, session_id: str, parts: Sequence[TextPart]
    ) -> PromptReply:
        """Submit prompt parts to a session.

        Returns the parsed reply; ``reply.parts`` is populated only when the
        server answered the prompt synchronously.
        """
        body: dict[str, Any] = {
            "parts": [p.to_wire() for p in parts],
            "agent": self._config.agent,
            "model": self._model_ref(),
        }
        if self._config.temperature is not None:
            body["temperature"] = self._config.temperature
        if self._config.max_tokens is not None:
            body["max_tokens"] = self._config.max_tokens

        with self._tele("opencode.prompt.submit", parts=len(body["parts"])):
            response = await self._request(
                "POST", prompt_url(session_id), phase="submit_prompt", json=body
            )
        return _parse_prompt_reply(response)

    async def delete_session(self, session_id: str) -> None:
        """Delete a session, best effort.

        Failures are logged and counted but never raised so cleanup cannot
        replace the outcome of the primary call. Cancellation still propagates.
        """
        try:
            with self._tele("opencode.session.delete"):
                response = await self._request(
                    "DELETE", session_url(session_id), phase="delete_session"
                )
        except asyncio.CancelledError:
            raise
        except RequestTimeoutError:
            self._tele.count("opencode.session.delete_failed", reason="timeout")
            logger.warning(
                "Session deletion timed out after %s seconds for session %s",
                _fmt_seconds(self.timeout_s),
                session_id,
            )
        except TransportError as exc:
            self._tele.count("opencode.session.delete_failed", reason="transport")
            logger.warning("Failed to clean up session %s: %s", session_id, exc)
        except Exception as exc:
            self._tele.count("opencode.session.delete_failed", reason="error")
            logger.warning(
                "Error during session cleanup for %s: %s", session_id, exc, exc_info=True
            )
        else:
            logger.debug(
                "Deleted session %s (status=%s)", session_id, response.status_code
            )

    async def _request(
        self, method: str, url: str, *, phase: str, **kwargs: Any
    ) -> httpx.Response:
        return await send_bounded(
            self._client, method, url, phase=phase, timeout_s=self.timeout_s, **kwargs
        )


async def send_bounded(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    phase: str,
    timeout_s: float,
    **kwargs: Any,
) -> httpx.Response:
    """Send one request under a deadline and classify its failure modes.

    Raises:
        RequestTimeoutError: If the deadline passed before the body was read.
        TransportError: If the request failed or the status was not 2xx.
    """
    label = _PHASE_LABELS.get(phase, phase)
    try:
        async with asyncio.timeout(timeout_s):
            response = await client.request(method, url, **kwargs)
            await response.aread()
    except asyncio.CancelledError:
        raise
    except (TimeoutError, httpx.TimeoutException) as exc:
        raise RequestTimeoutError(
            f"Request to {label} timed out after {_fmt_seconds(timeout_s)} seconds",
            timeout_s=timeout_s,
            phase=phase,
            hint="Raise request_timeout_s if the server is slow to respond.",
        ) from exc
    except httpx.RequestError as exc:
        raise TransportError(
            f"Failed to {label}: {exc}",
            phase=phase,
            hint=f"Check that the OpenCode server is reachable at {client.base_url}.",
        ) from exc

    if not response.is_success:
        _raise_status_error(response, phase=phase)
    return response


def _raise_status_error(response: httpx.Response, *, phase: str) -> NoReturn:
    body = response.text
    hint = None
    if response.status_code in (401, 403):
        hint = "Check credentials (set OPENCODE_API_KEY or pass api_key=...)."
    raise TransportError(
        f"Failed to {_PHASE_LABELS.get(phase, phase)} ({response.status_code}): {body}",
        hint=hint,
        status_code=response.status_code,
        body=body,
        phase=phase,
    )


def json_body(response: httpx.Response, *, phase: str) -> Any:
    """Decode a success body, treating non-JSON as a protocol violation."""
    try:
        return response.json()
    except ValueError as exc:
        raise ProtocolError(
            f"Failed to {_PHASE_LABELS.get(phase, phase)}: response body is not valid JSON"
        ) from exc


def _parse_prompt_reply(response: httpx.Response) -> PromptReply:
    """Detect the synchronous protocol variant from the prompt response."""
    if not response.content.strip():
        return PromptReply()
    try:
        data = response.json()
    except ValueError:
        # Acknowledgement bodies are not required to be JSON.
        return PromptReply()

    raw_parts = data.get("parts") if isinstance(data, dict) else None
    if not isinstance(raw_parts, list):
        return PromptReply()
    return PromptReply(
        parts=tuple(part_from_dict(p) for p in raw_parts if isinstance(p, dict))
    )


def _fmt_seconds(value: float) -> str:
    return f"{value:g}"
