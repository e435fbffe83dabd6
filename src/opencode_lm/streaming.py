"""Server-sent event decoding for the shared ``/event`` endpoint.

The endpoint is not session-scoped, so frames that name another session are
dropped. Frames that name no session are treated as belonging to the
current call.

Decoding is layered:

- ``SSELineBuffer`` turns raw byte chunks into complete lines.
- ``parse_data_line`` turns one line into a ``StreamEvent``, the ``DONE``
  marker, or ``None`` for non-data lines.
- ``EventStream`` owns the HTTP response and yields text increments.
"""

from __future__ import annotations

import asyncio
import codecs
from enum import Enum
import json
import logging
import re
from typing import TYPE_CHECKING, Final, Literal

import httpx

from opencode_lm._http import EVENT_PATH, SSE_DATA_PREFIX, SSE_DONE_SENTINEL
from opencode_lm.errors import ProtocolError, StreamFrameError, TransportError
from opencode_lm.models import StreamEvent, TextPart
from opencode_lm.telemetry import TelemetryContext

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable
    from types import TracebackType

    from opencode_lm.telemetry import TelemetryContextProtocol

logger = logging.getLogger(__name__)

# SSE allows CRLF, LF, or a bare CR as the line terminator.
_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class _Done(Enum):
    DONE = "done"


DONE: Final = _Done.DONE


class SSELineBuffer:
    """Incremental UTF-8 decoder that yields complete lines.

    Multi-byte characters split across reads are held by the decoder, and a
    trailing partial line is held until the next newline or ``flush()``.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: bytes) -> list[str]:
        text = self._pending + self._decoder.decode(chunk)
        # A trailing CR may be the first half of a CRLF split across reads.
        held = "\r" if text.endswith("\r") else ""
        *lines, rest = _LINE_BREAK.split(text.removesuffix(held))
        self._pending = rest + held
        return lines

    def flush(self) -> list[str]:
        """Return whatever is left once the stream has ended."""
        rest = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        return [line for line in _LINE_BREAK.split(rest) if line]


def parse_data_line(line: str) -> StreamEvent | Literal[_Done.DONE] | None:
    """Parse one SSE line.

    Returns ``None`` for anything that is not a ``data:`` line, ``DONE`` for
    the ``[DONE]`` sentinel, and a ``StreamEvent`` otherwise.

    Raises:
        StreamFrameError: If the payload is not a JSON object.
    """
    if not line.startswith(SSE_DATA_PREFIX):
        return None
    payload = line[len(SSE_DATA_PREFIX) :].removeprefix(" ")
    if payload.strip() == SSE_DONE_SENTINEL:
        return DONE
    try:
        data = json.loads(payload)
    except ValueError as exc:
        raise StreamFrameError(f"Malformed event frame: {exc}", line=line) from exc
    if not isinstance(data, dict):
        raise StreamFrameError(
            f"Event frame is not a JSON object: {type(data).__name__}", line=line
        )
    return StreamEvent.from_dict(data)


class EventStream:
    """Lazy, single-use sequence of text increments for one session.

    Use as an async context manager so the connection is opened (and its
    status checked) before the prompt is submitted, and always released::

        async with EventStream(client, session.id) as events:
            await transport.submit_prompt(session.id, parts)
            async for text in events:
                ...
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        session_id: str,
        *,
        on_token: Callable[[str], None] | None = None,
        telemetry: TelemetryContextProtocol | None = None,
    ) -> None:
        self._client = client
        self._session_id = session_id
        self._on_token = on_token
        self._tele = telemetry if telemetry is not None else TelemetryContext()
        self._response: httpx.Response | None = None
        self._consumed = False
        self.completed = False

    async def __aenter__(self) -> EventStream:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def open(self) -> None:
        """Open the long-lived stream connection; it has no request timeout."""
        if self._response is not None:
            return
        request = self._client.build_request(
            "GET",
            EVENT_PATH,
            headers={"Accept": "text/event-stream"},
            timeout=httpx.Timeout(None),
        )
        try:
            response = await self._client.send(request, stream=True)
        except asyncio.CancelledError:
            raise
        except httpx.RequestError as exc:
            raise TransportError(
                f"Failed to open event stream: {exc}",
                phase="event_stream",
                hint=f"Check that the OpenCode server is reachable at {self._client.base_url}.",
            ) from exc
        self._response = response

        if not response.is_success:
            try:
                body = (await response.aread()).decode("utf-8", errors="replace")
            finally:
                await self.aclose()
            raise TransportError(
                f"Failed to open event stream ({response.status_code}): {body}",
                status_code=response.status_code,
                body=body,
                phase="event_stream",
            )
        if response.status_code == 204 or response.headers.get("content-length") == "0":
            await self.aclose()
            raise ProtocolError("Event stream response has no body")

    async def aclose(self) -> None:
        """Release the connection; errors while closing are logged only."""
        response = self._response
        if response is None or response.is_closed:
            return
        try:
            await response.aclose()
        except Exception as exc:
            logger.debug("Ignoring error while closing event stream: %s", exc)

    def __aiter__(self) -> AsyncIterator[str]:
        if self._consumed:
            raise RuntimeError("EventStream can only be iterated once")
        if self._response is None:
            raise RuntimeError("EventStream must be opened before iteration")
        self._consumed = True
        return self._iter_text(self._response)

    async def _iter_lines(self, response: httpx.Response) -> AsyncIterator[str]:
        buffer = SSELineBuffer()
        chunks = response.aiter_bytes()
        while True:
            try:
                chunk = await anext(chunks)
            except StopAsyncIteration:
                break
            except asyncio.CancelledError:
                raise
            except httpx.RequestError as exc:
                raise TransportError(
                    f"Event stream read failed: {exc}", phase="event_stream"
                ) from exc
            for line in buffer.feed(chunk):
                yield line
        for line in buffer.flush():
            yield line

    async def _iter_text(self, response: httpx.Response) -> AsyncIterator[str]:
        lines = self._iter_lines(response)
        try:
            async for line in lines:
                try:
                    frame = parse_data_line(line)
                except StreamFrameError as exc:
                    self._tele.count("opencode.stream.frame_skipped")
                    logger.debug("Skipping event frame: %s (%r)", exc, exc.line)
                    continue

                if frame is None:
                    continue
                if frame is DONE:
                    self.completed = True
                    return
                text = self._text_of(frame)
                if text:
                    if self._on_token is not None:
                        self._on_token(text)
                    yield text
                elif self._is_own_completion(frame):
                    self.completed = True
                    return
        finally:
            await lines.aclose()
            await self.aclose()

    def _belongs_here(self, event: StreamEvent) -> bool:
        sid = event.session_id
        return sid is None or sid == self._session_id

    def _text_of(self, event: StreamEvent) -> str | None:
        part = event.part
        if isinstance(part, TextPart) and part.text and self._belongs_here(event):
            return part.text
        return None

    def _is_own_completion(self, event: StreamEvent) -> bool:
        return event.is_completion and self._belongs_here(event)
