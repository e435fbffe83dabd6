"""Chat model protocol: the capability surface hosts integrate against."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from opencode_lm.messages import MessagesInput
    from opencode_lm.models import Message


@runtime_checkable
class ChatModel(Protocol):
    """Minimal chat model protocol: invoke, stream, and a type tag."""

    @property
    def llm_type(self) -> str:
        """Stable identifier of the model family."""
        ...

    async def invoke(
        self,
        messages: MessagesInput,
        *,
        on_token: Callable[[str], None] | None = None,
    ) -> Message:
        """Return the complete assistant reply."""
        ...

    def stream(
        self,
        messages: MessagesInput,
        *,
        on_token: Callable[[str], None] | None = None,
    ) -> AsyncIterator[str]:
        """Yield reply text increments as they arrive."""
        ...

    def bind_tools(self, tools: list[Any]) -> ChatModel:
        """Return a model that may call the given tools."""
        ...
