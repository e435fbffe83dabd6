"""Message translation: host conversation turns to prompt parts."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from opencode_lm.errors import ConfigurationError
from opencode_lm.models import Message, TextPart

MessagesInput = str | Sequence[Message | Mapping[str, Any]]


def normalize_messages(messages: MessagesInput) -> tuple[Message, ...]:
    """Validate and normalize host messages into ``Message`` values.

    A bare string is shorthand for a single user message. Mappings need a
    ``content`` key; ``role`` defaults to ``"user"``. Objects exposing
    ``role``/``content`` attributes (chat-framework message classes) are
    accepted as-is.

    Raises:
        ConfigurationError: If a message has no usable content.
    """
    if isinstance(messages, str):
        return (Message(role="user", content=messages),)

    normalized: list[Message] = []
    for i, item in enumerate(messages):
        if isinstance(item, Message):
            msg = item
        elif isinstance(item, Mapping):
            if "content" not in item:
                raise ConfigurationError(
                    f"messages[{i}] has no 'content' field",
                    hint="Pass {'role': 'user', 'content': '...'}.",
                )
            msg = Message(role=str(item.get("role", "user")), content=item["content"])
        elif hasattr(item, "content"):
            msg = Message(role=str(getattr(item, "role", "user")), content=item.content)
        else:
            raise ConfigurationError(
                f"messages[{i}] must be a Message or mapping, got {type(item).__name__}"
            )

        if not isinstance(msg.content, str | list):
            raise ConfigurationError(
                f"messages[{i}].content must be a string or a list of content items",
                hint="Use a plain string, or items like {'type': 'text', 'text': '...'}.",
            )
        normalized.append(msg)
    return tuple(normalized)


def to_prompt_parts(messages: MessagesInput) -> list[TextPart]:
    """Flatten conversation messages into ordered text prompt parts.

    String content yields one part. List content yields one part per string
    item or ``text``-tagged item; other item kinds (images, audio, ...) are
    dropped without error.
    """
    parts: list[TextPart] = []
    for msg in normalize_messages(messages):
        content = msg.content
        if isinstance(content, str):
            parts.append(TextPart(text=content))
            continue
        for item in content:
            if isinstance(item, str):
                parts.append(TextPart(text=item))
            elif isinstance(item, Mapping) and item.get("type") == "text":
                text = item.get("text")
                parts.append(TextPart(text=text if isinstance(text, str) else ""))
    return parts
