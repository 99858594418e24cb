"""Per-operation tracing for ``--verbose`` runs.

A service method wrapped in :func:`traced` opens the root span; phases
inside it (walking the vault, resolving references, writing files) open
child spans with :func:`trace_span` and bump counters such as
``files_indexed``. The finished tree lands in
``ServiceResult.meta["telemetry"]``.

A traced method called while another one is running (a workflow apply
reindexing the files it touched, say) becomes a child span instead of a
second root, so one command always yields one tree.

Tracing is off unless :func:`enable_telemetry` ran in the current
context; the disabled path is one ContextVar lookup.
"""

from __future__ import annotations

import functools
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, ParamSpec, TypeVar

import structlog

from ravenctl.services.result import ServiceResult

_enabled: ContextVar[bool] = ContextVar("ravenctl_trace_enabled", default=False)
_active: ContextVar[Span | None] = ContextVar("ravenctl_active_span", default=None)

log = structlog.get_logger("ravenctl.telemetry")


@dataclass
class Span:
    """One timed phase of an operation."""

    name: str
    children: list[Span] = field(default_factory=list)
    counters: dict[str, int] = field(default_factory=dict)
    notes: dict[str, Any] = field(default_factory=dict)
    started: float = field(default_factory=time.perf_counter)
    finished: float | None = None

    @property
    def elapsed_ms(self) -> float:
        if self.finished is None:
            return 0.0
        return (self.finished - self.started) * 1000

    def finish(self) -> None:
        if self.finished is None:
            self.finished = time.perf_counter()

    def count(self, key: str, amount: int = 1) -> None:
        self.counters[key] = self.counters.get(key, 0) + amount

    def note(self, key: str, value: Any) -> None:
        self.notes[key] = value

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name, "duration_ms": round(self.elapsed_ms, 2)}
        if self.counters:
            out["counters"] = dict(self.counters)
        if self.notes:
            out["notes"] = dict(self.notes)
        if self.children:
            out["children"] = [c.to_dict() for c in self.children]
        return out


@contextmanager
def _opened(span: Span) -> Iterator[Span]:
    token = _active.set(span)
    try:
        yield span
    finally:
        span.finish()
        _active.reset(token)


@contextmanager
def trace_span(name: str) -> Iterator[Span | None]:
    """Open a child phase of the running operation.

    Yields None when tracing is off or nothing is being traced, so callers
    guard counter updates with ``if span:``.
    """
    parent = _active.get() if _enabled.get() else None
    if parent is None:
        yield None
        return
    child = Span(name)
    parent.children.append(child)
    with _opened(child):
        yield child


_P = ParamSpec("_P")
_R = TypeVar("_R")


def traced(func: Callable[_P, _R]) -> Callable[_P, _R]:  # noqa: UP047
    """Trace a service method; the root call attaches the tree to its result."""

    @functools.wraps(func)
    def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> _R:
        if not _enabled.get():
            return func(*args, **kwargs)

        parent = _active.get()
        span = Span(func.__qualname__)
        if parent is not None:
            parent.children.append(span)
        with _opened(span):
            result = func(*args, **kwargs)

        if parent is not None or not isinstance(result, ServiceResult):
            return result
        log.debug(
            "operation.traced",
            op=result.op,
            ok=result.ok,
            duration_ms=round(span.elapsed_ms, 2),
            phases=[c.name for c in span.children],
        )
        meta = {**(result.meta or {}), "telemetry": span.to_dict()}
        return result.model_copy(update={"meta": meta})  # type: ignore[return-value]

    return wrapper


def enable_telemetry() -> None:
    """Turn tracing on for the current context (``--verbose``)."""
    _enabled.set(True)


def disable_telemetry() -> None:
    _enabled.set(False)


def get_current_span() -> Span | None:
    return _active.get() if _enabled.get() else None
