"""Tests for ServiceResult, ServiceError and failure()."""

import json

import pytest
from pydantic import ValidationError

from ravenctl.services.result import ServiceError, ServiceResult, failure


class TestServiceResult:
    def test_success_construction(self) -> None:
        result = ServiceResult(ok=True, op="resolve", data={"object_id": "people/freya"})
        assert result.ok is True
        assert result.op == "resolve"
        assert result.data == {"object_id": "people/freya"}
        assert result.warnings == []
        assert result.error is None
        assert result.meta is None

    def test_json_serialization(self) -> None:
        result = ServiceResult(ok=True, op="stats", data={"files": 3}, meta={"duration_ms": 42})
        parsed = json.loads(result.model_dump_json())
        assert parsed["data"]["files"] == 3
        assert parsed["meta"]["duration_ms"] == 42

    def test_frozen(self) -> None:
        result = ServiceResult(ok=True, op="stats")
        with pytest.raises(ValidationError):
            result.ok = False  # type: ignore[misc]


class TestFailure:
    def test_builds_error(self) -> None:
        result = failure("resolve", "AMBIGUOUS", "two matches", detail={"reference": "freya"})
        assert result.ok is False
        assert result.error == ServiceError(
            code="AMBIGUOUS", message="two matches", detail={"reference": "freya"}
        )

    def test_defaults(self) -> None:
        result = failure("get", "NOT_FOUND", "missing")
        assert result.error is not None
        assert result.error.detail == {}
        assert result.warnings == []

    def test_unknown_code_rejected(self) -> None:
        with pytest.raises(ValidationError):
            failure("resolve", "TEAPOT", "nope")  # type: ignore[arg-type]
