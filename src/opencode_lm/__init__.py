"""opencode-lm: use an OpenCode agent server as a chat model.

Public API:
    - OpenCodeChatModel: invoke()/generate()/stream() over ephemeral sessions
    - ModelConfig: validated, immutable construction parameters
    - to_prompt_parts(): host messages to prompt parts
    - list_agents()/list_providers()/list_models(): option discovery
"""

from __future__ import annotations

import logging

from opencode_lm.base import ChatModel
from opencode_lm.chat_model import CallState, OpenCodeChatModel
from opencode_lm.completions import CompletionOptions, complete
from opencode_lm.config import UNLIMITED_TOKENS, ModelConfig
from opencode_lm.discovery import Option, list_agents, list_models, list_providers
from opencode_lm.errors import (
    ConfigurationError,
    OpenCodeError,
    ProtocolError,
    RequestTimeoutError,
    StreamFrameError,
    TransportError,
)
from opencode_lm.messages import to_prompt_parts
from opencode_lm.models import (
    CompletionResult,
    FilePart,
    Message,
    PromptPart,
    ReasoningPart,
    Session,
    StreamEvent,
    TextPart,
    ToolPart,
)

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("opencode-lm")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("opencode_lm").addHandler(logging.NullHandler())

__all__ = [
    "UNLIMITED_TOKENS",
    "CallState",
    "ChatModel",
    "CompletionOptions",
    "CompletionResult",
    "ConfigurationError",
    "FilePart",
    "Message",
    "ModelConfig",
    "OpenCodeChatModel",
    "OpenCodeError",
    "Option",
    "PromptPart",
    "ProtocolError",
    "ReasoningPart",
    "RequestTimeoutError",
    "Session",
    "StreamEvent",
    "StreamFrameError",
    "TextPart",
    "ToolPart",
    "TransportError",
    "complete",
    "list_agents",
    "list_models",
    "list_providers",
    "to_prompt_parts",
]
