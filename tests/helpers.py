"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: the fake server below stands in for
``opencode serve`` behind ``httpx.MockTransport`` so no test touches the
network.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass, field
import inspect
import json
import re
from typing import Any

import httpx

_PROMPT_RE = re.compile(r"^/session/([^/]+)/prompt$")
_SESSION_RE = re.compile(r"^/session/([^/]+)$")

Handler = Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]]


def sse(event: dict[str, Any] | str) -> bytes:
    """Encode one SSE data frame."""
    payload = event if isinstance(event, str) else json.dumps(event)
    return f"data: {payload}\n\n".encode()


def text_event(text: str, *, session_id: str | None = None) -> dict[str, Any]:
    part: dict[str, Any] = {"type": "text", "text": text}
    if session_id is not None:
        part["sessionID"] = session_id
    return {"type": "message.part.updated", "properties": {"part": part}}


def completed_event(*, session_id: str | None = None) -> dict[str, Any]:
    info: dict[str, Any] = {"status": "completed", "cost": 0.001}
    if session_id is not None:
        info["id"] = session_id
    return {"type": "session.updated", "properties": {"info": info}}


@dataclass
class FakeOpenCodeServer:
    """Request-scoped fake of the agent server.

    Sessions are numbered from ``session_ids``; the ``/event`` stream replays
    ``event_chunks`` and then either ends or, with ``hold_open``, blocks until
    the client goes away. ``overrides`` replace a route by ``(method, path)``.
    """

    session_ids: list[str] = field(default_factory=lambda: ["s1"])
    event_chunks: list[bytes] = field(default_factory=list)
    prompt_reply: Any = field(default_factory=lambda: {"status": "queued"})
    hold_open: bool = False
    overrides: dict[tuple[str, str], Handler] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)
    sessions: dict[str, dict[str, Any]] = field(default_factory=dict)

    def emit(self, *events: dict[str, Any] | str) -> None:
        self.event_chunks.extend(sse(e) for e in events)

    def calls(self, method: str, path: str | None = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method and (path is None or r.url.path == path)
        ]

    @property
    def deleted(self) -> list[str]:
        return [r.url.path for r in self.calls("DELETE")]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        override = self.overrides.get((request.method, request.url.path))
        if override is not None:
            result = override(request)
            if inspect.isawaitable(result):
                result = await result
            return result

        path = request.url.path
        if request.method == "POST" and path == "/session":
            body = json.loads(request.content)
            session_id = self.session_ids.pop(0) if self.session_ids else "s-extra"
            session = {"id": session_id, "createdAt": "2025-01-01T00:00:00Z", **body}
            self.sessions[session_id] = session
            return httpx.Response(200, json=session)

        if request.method == "POST" and (m := _PROMPT_RE.match(path)):
            if m.group(1) not in self.sessions:
                return httpx.Response(404, json={"error": "Session not found"})
            return httpx.Response(200, json=self.prompt_reply)

        if request.method == "GET" and path == "/event":
            return httpx.Response(
                200,
                headers={"content-type": "text/event-stream"},
                content=self._event_body(),
            )

        if request.method == "DELETE" and (m := _SESSION_RE.match(path)):
            self.sessions.pop(m.group(1), None)
            return httpx.Response(200, json={"status": "deleted"})

        return httpx.Response(404, json={"error": "Not found"})

    async def _event_body(self) -> AsyncIterator[bytes]:
        yield sse({"type": "server.connected", "properties": {}})
        for chunk in self.event_chunks:
            yield chunk
        if self.hold_open:
            await asyncio.Event().wait()
