"""Exception hierarchy for opencode-lm."""

from __future__ import annotations


class OpenCodeError(Exception):
    """Base exception for all opencode-lm errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(OpenCodeError):
    """Construction parameters or message shapes failed validation."""


class TransportError(OpenCodeError):
    """A request to the agent server failed.

    ``status_code`` and ``body`` are populated for non-2xx responses and left
    as ``None`` when the request never produced a response.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        status_code: int | None = None,
        body: str | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status_code = status_code
        self.body = body
        self.phase = phase


class RequestTimeoutError(OpenCodeError, TimeoutError):
    """A bounded request exceeded its deadline."""

    def __init__(
        self,
        message: str,
        *,
        timeout_s: float,
        phase: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.timeout_s = timeout_s
        self.phase = phase


class ProtocolError(OpenCodeError):
    """A success response did not have the shape the protocol requires."""


class StreamFrameError(OpenCodeError):
    """A single event-stream frame could not be decoded.

    Raised by the frame parser and always recovered by the stream decoder.
    """

    def __init__(self, message: str, *, line: str) -> None:
        super().__init__(message)
        self.line = line
