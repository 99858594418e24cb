"""Tests for operation tracing."""

from __future__ import annotations

from collections.abc import Generator

import pytest

from ravenctl.services.result import ServiceResult
from ravenctl.services.telemetry import (
    Span,
    _active,
    disable_telemetry,
    enable_telemetry,
    get_current_span,
    trace_span,
    traced,
)


@pytest.fixture(autouse=True)
def _reset_tracing() -> Generator[None]:
    yield
    disable_telemetry()
    _active.set(None)


class TestSpan:
    def test_elapsed_before_finish_is_zero(self) -> None:
        assert Span("walk").elapsed_ms == 0.0

    def test_counters_and_notes(self) -> None:
        span = Span("walk")
        span.count("files")
        span.count("files", 2)
        span.note("cancelled", False)
        span.finish()
        d = span.to_dict()
        assert d["counters"] == {"files": 3}
        assert d["notes"] == {"cancelled": False}
        assert "children" not in d


class _Reindexer:
    @traced
    def reindex_file(self) -> ServiceResult:
        with trace_span("parse") as span:
            if span:
                span.count("objects", 5)
        return ServiceResult(ok=True, op="reindex_file")


class _Workflow:
    @traced
    def apply(self) -> ServiceResult:
        inner = _Reindexer().reindex_file()
        assert inner.meta is None
        return ServiceResult(ok=True, op="workflow_apply")


class TestTraced:
    def test_disabled_leaves_meta_alone(self) -> None:
        assert _Reindexer().reindex_file().meta is None

    def test_enabled_injects_span_tree(self) -> None:
        enable_telemetry()
        result = _Reindexer().reindex_file()
        assert result.meta is not None
        tree = result.meta["telemetry"]
        assert tree["name"] == "_Reindexer.reindex_file"
        assert tree["children"][0]["counters"] == {"objects": 5}

    def test_nested_operation_becomes_child(self) -> None:
        enable_telemetry()
        tree = _Workflow().apply().meta["telemetry"]
        assert tree["name"] == "_Workflow.apply"
        assert tree["children"][0]["name"] == "_Reindexer.reindex_file"
        assert tree["children"][0]["children"][0]["name"] == "parse"

    def test_trace_span_outside_operation_yields_none(self) -> None:
        enable_telemetry()
        with trace_span("orphan") as span:
            assert span is None

    def test_current_span_none_when_disabled(self) -> None:
        assert get_current_span() is None

    def test_exception_restores_context(self) -> None:
        enable_telemetry()

        @traced
        def boom() -> ServiceResult:
            raise RuntimeError("x")

        with pytest.raises(RuntimeError):
            boom()
        assert _active.get() is None
