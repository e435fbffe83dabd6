"""Domain models for the session/prompt/event protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from opencode_lm._http import (
    PART_UPDATED_EVENT,
    SESSION_COMPLETED_STATUS,
    SESSION_UPDATED_EVENT,
)


@dataclass(frozen=True)
class Message:
    """A conversational message turn.

    ``content`` is either plain text or an ordered list of content items,
    each a string or a mapping tagged by ``type``.
    """

    role: str
    content: str | list[Any] = ""


@dataclass(frozen=True)
class TextPart:
    """Plain text content."""

    text: str
    type: Literal["text"] = "text"

    def to_wire(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class FilePart:
    """A file reference attached by the agent."""

    url: str = ""
    filename: str | None = None
    mime: str | None = None
    type: Literal["file"] = "file"


@dataclass(frozen=True)
class ToolPart:
    """A tool invocation reported by the agent."""

    tool: str = ""
    state: dict[str, Any] = field(default_factory=dict)
    type: Literal["tool"] = "tool"


@dataclass(frozen=True)
class ReasoningPart:
    """Model reasoning text; never part of the answer text."""

    text: str = ""
    type: Literal["reasoning"] = "reasoning"


@dataclass(frozen=True)
class UnknownPart:
    """A part kind this client does not model; kept verbatim."""

    type: str
    raw: dict[str, Any] = field(default_factory=dict)


PromptPart = TextPart | FilePart | ToolPart | ReasoningPart | UnknownPart


def _opt_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def part_from_dict(data: dict[str, Any]) -> PromptPart:
    """Build a typed part from its wire dict, tolerating unknown kinds."""
    kind = data.get("type")
    if kind == "text":
        return TextPart(text=_opt_str(data.get("text")) or "")
    if kind == "reasoning":
        return ReasoningPart(text=_opt_str(data.get("text")) or "")
    if kind == "file":
        return FilePart(
            url=_opt_str(data.get("url")) or "",
            filename=_opt_str(data.get("filename")),
            mime=_opt_str(data.get("mime")),
        )
    if kind == "tool":
        state = data.get("state")
        return ToolPart(
            tool=_opt_str(data.get("tool")) or "",
            state=state if isinstance(state, dict) else {},
        )
    return UnknownPart(type=str(kind), raw=dict(data))


@dataclass(frozen=True)
class Session:
    """A server-side conversation context, owned by exactly one call."""

    id: str
    created_at: str = ""


@dataclass(frozen=True)
class StreamEvent:
    """One decoded server-sent event."""

    type: str
    properties: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StreamEvent:
        props = data.get("properties")
        return cls(
            type=str(data.get("type", "")),
            properties=props if isinstance(props, dict) else {},
        )

    @property
    def part(self) -> PromptPart | None:
        """The part carried by a ``message.part.updated`` event."""
        if self.type != PART_UPDATED_EVENT:
            return None
        raw = self.properties.get("part")
        return part_from_dict(raw) if isinstance(raw, dict) else None

    @property
    def status(self) -> str | None:
        """The session status carried by a ``session.updated`` event."""
        if self.type != SESSION_UPDATED_EVENT:
            return None
        info = self.properties.get("info")
        if isinstance(info, dict):
            return _opt_str(info.get("status"))
        return None

    @property
    def is_completion(self) -> bool:
        return self.status == SESSION_COMPLETED_STATUS

    @property
    def session_id(self) -> str | None:
        """Session named by the frame, or ``None`` when it names none."""
        props = self.properties
        direct = _opt_str(props.get("sessionID"))
        if direct:
            return direct
        for key in ("part", "info"):
            nested = props.get(key)
            if isinstance(nested, dict):
                sid = _opt_str(nested.get("sessionID"))
                if sid:
                    return sid
        # session.* events describe the session itself in ``info``.
        info = props.get("info")
        if self.type.startswith("session.") and isinstance(info, dict):
            return _opt_str(info.get("id")) or None
        return None


@dataclass(frozen=True)
class PromptReply:
    """Parsed prompt-submission response.

    ``parts`` is set only when the server answered synchronously.
    """

    parts: tuple[PromptPart, ...] | None = None

    @property
    def is_synchronous(self) -> bool:
        return self.parts is not None

    def texts(self) -> list[str]:
        """Non-empty text contents, in order."""
        return [p.text for p in self.parts or () if isinstance(p, TextPart) and p.text]


@dataclass(frozen=True)
class CompletionResult:
    """Final text of one call plus its assistant message wrapper."""

    text: str
    message: Message
    session_id: str
    chunks: int = 0
