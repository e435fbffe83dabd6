"""OpenCode chat model: one ephemeral agent session per call.

Every call runs the same sequence::

    translate messages -> create session -> open event stream
        -> submit prompt -> collect/stream text -> delete session

Session deletion sits in a ``finally`` block, so it runs once per call on
success, on any error, on cancellation, and when a streaming consumer stops
early.
"""

from __future__ import annotations

from contextlib import aclosing
from enum import StrEnum
import logging
from typing import TYPE_CHECKING, Any

import httpx

from opencode_lm._http import DEFAULT_AGENT, DEFAULT_REQUEST_TIMEOUT_S, auth_headers
from opencode_lm.config import ModelConfig
from opencode_lm.errors import ProtocolError
from opencode_lm.messages import to_prompt_parts
from opencode_lm.models import CompletionResult, Message
from opencode_lm.streaming import EventStream
from opencode_lm.telemetry import TelemetryContext
from opencode_lm.transport import SessionTransport

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Sequence

    from opencode_lm.messages import MessagesInput
    from opencode_lm.models import TextPart
    from opencode_lm.telemetry import TelemetryContextProtocol

logger = logging.getLogger(__name__)


class CallState(StrEnum):
    """Lifecycle states of one orchestration call."""

    IDLE = "IDLE"
    SESSION_CREATING = "SESSION_CREATING"
    SESSION_ACTIVE = "SESSION_ACTIVE"
    PROMPT_SUBMITTING = "PROMPT_SUBMITTING"
    STREAMING = "STREAMING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SESSION_DELETING = "SESSION_DELETING"
    DONE = "DONE"


class CallLifecycle:
    """Activation record of one call: its state trail and session id."""

    def __init__(self) -> None:
        self.state = CallState.IDLE
        self.history: list[CallState] = [CallState.IDLE]
        self.session_id: str | None = None

    def advance(self, state: CallState) -> None:
        logger.debug(
            "session %s: %s -> %s", self.session_id or "-", self.state, state
        )
        self.state = state
        self.history.append(state)


class OpenCodeChatModel:
    """Chat model backed by an OpenCode agent server.

    Example:
        model = OpenCodeChatModel(provider_id="anthropic", model_id="claude-3-5-sonnet-20241022")
        reply = await model.invoke([{"role": "user", "content": "Say hello"}])
        async with aclosing(model.stream("Write a haiku")) as chunks:
            async for text in chunks:
                print(text, end="")

    ``http_transport`` replaces the network layer of the per-call HTTP client
    (e.g. ``httpx.MockTransport``); it is closed along with that client.
    """

    def __init__(
        self,
        *,
        provider_id: str,
        model_id: str,
        base_url: str | None = None,
        api_key: str | None = None,
        agent: str = DEFAULT_AGENT,
        temperature: float | None = None,
        max_tokens: int | None = None,
        request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S,
        http_transport: httpx.AsyncBaseTransport | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self._config = ModelConfig(
            provider_id=provider_id,
            model_id=model_id,
            base_url=base_url,
            api_key=api_key,
            agent=agent,
            temperature=temperature,
            max_tokens=max_tokens,
            request_timeout_s=request_timeout_s,
        )
        self._http_transport = http_transport
        self._tele = telemetry if telemetry is not None else TelemetryContext()

    @classmethod
    def from_config(
        cls,
        config: ModelConfig,
        *,
        http_transport: httpx.AsyncBaseTransport | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> OpenCodeChatModel:
        """Build a model from an already validated configuration."""
        return cls(
            provider_id=config.provider_id,
            model_id=config.model_id,
            base_url=config.base_url,
            api_key=config.api_key,
            agent=config.agent,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            request_timeout_s=config.request_timeout_s,
            http_transport=http_transport,
            telemetry=telemetry,
        )

    @property
    def config(self) -> ModelConfig:
        return self._config

    @property
    def llm_type(self) -> str:
        return "opencode"

    @property
    def supports_tool_calling(self) -> bool:
        """Hosts check this before wiring tools into an agent."""
        return True

    def bind_tools(self, tools: list[Any]) -> OpenCodeChatModel:
        """Accept tool bindings; the agent server runs its own tools."""
        del tools
        return self

    def __repr__(self) -> str:
        return f"OpenCodeChatModel({self._config})"

    async def invoke(
        self,
        messages: MessagesInput,
        *,
        on_token: Callable[[str], None] | None = None,
    ) -> Message:
        """Run one prompt to completion and return the assistant message."""
        result = await self.generate(messages, on_token=on_token)
        return result.message

    async def generate(
        self,
        messages: MessagesInput,
        *,
        on_token: Callable[[str], None] | None = None,
    ) -> CompletionResult:
        """Run one prompt to completion.

        Raises:
            ProtocolError: If the reply carried no text at all.
        """
        parts = to_prompt_parts(messages)
        call = CallLifecycle()
        chunks: list[str] = []
        async with aclosing(self._run(parts, on_token, call)) as texts:
            async for text in texts:
                chunks.append(text)

        if not chunks:
            raise ProtocolError(
                "OpenCode API returned a response with no text content",
                hint="The agent finished without producing text; check the server logs.",
            )
        text = "".join(chunks)
        return CompletionResult(
            text=text,
            message=Message(role="assistant", content=text),
            session_id=call.session_id or "",
            chunks=len(chunks),
        )

    def stream(
        self,
        messages: MessagesInput,
        *,
        on_token: Callable[[str], None] | None = None,
    ) -> AsyncIterator[str]:
        """Yield reply text increments as the agent produces them.

        Iteration is pull-based and single-use. Wrap the iterator in
        ``contextlib.aclosing`` when breaking out early so the session is
        deleted promptly rather than at garbage collection.
        """
        parts = to_prompt_parts(messages)
        return self._run(parts, on_token, CallLifecycle())

    def _open_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._config.base_url or "",
            headers=auth_headers(self._config.api_key),
            timeout=self._config.request_timeout_s,
            transport=self._http_transport,
        )

    async def _run(
        self,
        parts: Sequence[TextPart],
        on_token: Callable[[str], None] | None,
        call: CallLifecycle,
    ) -> AsyncIterator[str]:
        async with self._open_client() as client:
            transport = SessionTransport(client, self._config, telemetry=self._tele)

            call.advance(CallState.SESSION_CREATING)
            try:
                session = await transport.create_session()
            except BaseException:
                call.advance(CallState.FAILED)
                call.advance(CallState.DONE)
                raise
            call.session_id = session.id
            call.advance(CallState.SESSION_ACTIVE)

            try:
                async with EventStream(
                    client, session.id, on_token=on_token, telemetry=self._tele
                ) as events:
                    call.advance(CallState.PROMPT_SUBMITTING)
                    reply = await transport.submit_prompt(session.id, parts)
                    call.advance(CallState.STREAMING)
                    if reply.is_synchronous:
                        for text in reply.texts():
                            if on_token is not None:
                                on_token(text)
                            yield text
                    else:
                        async with aclosing(aiter(events)) as texts:
                            async for text in texts:
                                yield text
                call.advance(CallState.COMPLETED)
            except BaseException as exc:
                logger.debug(
                    "session %s failed during %s: %r", session.id, call.state, exc
                )
                call.advance(CallState.FAILED)
                raise
            finally:
                call.advance(CallState.SESSION_DELETING)
                await transport.delete_session(session.id)
                call.advance(CallState.DONE)
