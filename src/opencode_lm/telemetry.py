"""Opt-in timings and counters for session requests.

Scopes time the bounded requests of a call. Counters mark recoverable events
such as skipped stream frames or a failed session cleanup. Nothing is
recorded unless reporters are passed or ``OPENCODE_LM_TELEMETRY=1`` is set.
"""

from __future__ import annotations

from collections import defaultdict, deque
from contextvars import ContextVar
import logging
import os
import time
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

TELEMETRY_ENV_VAR = "OPENCODE_LM_TELEMETRY"

# Scopes open in the current task, outermost first.
_open_scopes: ContextVar[tuple[str, ...]] = ContextVar("opencode_lm_scopes", default=())


@runtime_checkable
class TelemetryReporter(Protocol):
    """Anything that accepts scope timings and metric values."""

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None: ...  # noqa: D102
    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None: ...  # noqa: D102


class _NoOpTelemetry:
    """Shared stand-in used while telemetry is off."""

    __slots__ = ()

    is_enabled = False

    def __call__(self, name: str, **metadata: Any) -> _NoOpTelemetry:  # noqa: ARG002
        return self

    def __enter__(self) -> _NoOpTelemetry:
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    def metric(self, name: str, value: Any, **metadata: Any) -> None:
        return None

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        return None


def _qualified(name: str, stack: tuple[str, ...]) -> tuple[str, dict[str, Any]]:
    """Dotted path of ``name`` under ``stack`` and its position metadata."""
    position = {"depth": len(stack), "parent_scope": ".".join(stack) or None}
    return ".".join((*stack, name)), position


class _Scope:
    """One timed scope. Records on exit, flagging whether the body raised."""

    __slots__ = ("_metadata", "_name", "_owner", "_stack", "_start", "_token")

    def __init__(
        self, owner: _RecordingTelemetry, name: str, metadata: dict[str, Any]
    ) -> None:
        if not name or not isinstance(name, str):
            raise ValueError("Scope name must be a non-empty string")
        self._owner = owner
        self._name = name
        self._metadata = metadata
        self._stack: tuple[str, ...] = ()
        self._start = 0.0
        self._token: Any = None

    def __enter__(self) -> _RecordingTelemetry:
        self._stack = _open_scopes.get()
        self._token = _open_scopes.set((*self._stack, self._name))
        self._start = time.perf_counter()
        return self._owner

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        duration = time.perf_counter() - self._start
        _open_scopes.reset(self._token)
        path, position = _qualified(self._name, self._stack)
        details = {**position, "failed": exc_type is not None, **self._metadata}
        self._owner._dispatch("record_timing", path, duration, details)


class _RecordingTelemetry:
    """Forwards scope timings and metrics to every reporter."""

    __slots__ = ("reporters",)

    is_enabled = True

    def __init__(self, *reporters: TelemetryReporter) -> None:
        self.reporters = reporters

    def __call__(self, name: str, **metadata: Any) -> _Scope:
        return _Scope(self, name, metadata)

    def metric(self, name: str, value: Any, **metadata: Any) -> None:
        """Record a value under the currently open scope."""
        path, position = _qualified(name, _open_scopes.get())
        self._dispatch("record_metric", path, value, {**position, **metadata})

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        self.metric(name, increment, metric_type="counter", **metadata)

    def _dispatch(
        self, method: str, scope: str, value: Any, metadata: dict[str, Any]
    ) -> None:
        # A broken reporter must never fail the call being measured.
        for reporter in self.reporters:
            try:
                getattr(reporter, method)(scope, value, **metadata)
            except Exception:
                logger.exception(
                    "Telemetry reporter %s failed to record %s",
                    type(reporter).__name__,
                    scope,
                )


_NO_OP = _NoOpTelemetry()

TelemetryContextProtocol = _RecordingTelemetry | _NoOpTelemetry


def TelemetryContext(*reporters: TelemetryReporter) -> TelemetryContextProtocol:  # noqa: N802
    """Return a recording context, or the shared no-op one.

    Explicit reporters always record. Without reporters,
    ``OPENCODE_LM_TELEMETRY=1`` records into a fresh ``InMemoryReporter``.
    """
    if reporters:
        return _RecordingTelemetry(*reporters)
    if os.getenv(TELEMETRY_ENV_VAR) == "1":
        return _RecordingTelemetry(InMemoryReporter())
    return _NO_OP


class InMemoryReporter:
    """Keeps the most recent timings and metrics per scope."""

    def __init__(self, max_entries_per_scope: int = 1000) -> None:
        def bounded() -> deque[tuple[Any, dict[str, Any]]]:
            return deque(maxlen=max_entries_per_scope)

        self.timings: defaultdict[str, deque[tuple[Any, dict[str, Any]]]] = defaultdict(
            bounded
        )
        self.metrics: defaultdict[str, deque[tuple[Any, dict[str, Any]]]] = defaultdict(
            bounded
        )

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None:
        self.timings[scope].append((duration, metadata))

    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None:
        self.metrics[scope].append((value, metadata))

    def total(self, scope: str) -> float:
        """Sum of the numeric values recorded under ``scope``."""
        entries = self.metrics.get(scope, ())
        return sum(v for v, _ in entries if isinstance(v, int | float))

    def reset(self) -> None:
        self.timings.clear()
        self.metrics.clear()

    def as_dict(self) -> dict[str, Any]:
        """JSON-friendly snapshot of everything recorded so far."""
        return {
            "timings": {scope: list(rows) for scope, rows in self.timings.items()},
            "metrics": {scope: list(rows) for scope, rows in self.metrics.items()},
        }
