"""Tests for schema.yaml parsing."""

from __future__ import annotations

import pytest

from ravenctl.domain.schema import Schema, SchemaError, effective_trait_value, parse_schema
from tests.conftest import SCHEMA_YAML


@pytest.fixture
def schema() -> Schema:
    return parse_schema(SCHEMA_YAML)


class TestParseSchema:
    def test_types(self, schema: Schema) -> None:
        assert schema.name_field_for("person") == "name"
        assert schema.name_field_for("book") == "title"
        assert schema.name_field_for("unknown") is None
        assert schema.types["person"].default_path == "people/"

    def test_ref_fields(self, schema: Schema) -> None:
        assert schema.ref_fields_for("person") == ["company"]
        assert schema.ref_fields_for("company") == []

    def test_empty_document(self) -> None:
        assert parse_schema("") == Schema()

    def test_shorthand_empty_type(self) -> None:
        parsed = parse_schema("types:\n  meeting:\n")
        assert "meeting" in parsed.types

    def test_invalid_yaml(self) -> None:
        with pytest.raises(SchemaError):
            parse_schema("types: [unclosed")

    def test_not_a_mapping(self) -> None:
        with pytest.raises(SchemaError, match="mapping"):
            parse_schema("- a\n- b\n")


class TestTraitDefaults:
    def test_declared_default(self, schema: Schema) -> None:
        assert schema.trait_default("priority") == "medium"

    def test_bool_without_default(self, schema: Schema) -> None:
        assert schema.trait_default("highlight") == "true"

    def test_no_default(self, schema: Schema) -> None:
        assert schema.trait_default("due") is None
        assert schema.trait_default("undeclared") is None

    def test_effective_value(self, schema: Schema) -> None:
        assert effective_trait_value("high", "priority", schema) == "high"
        assert effective_trait_value(None, "priority", schema) == "medium"
        assert effective_trait_value(None, "priority", None) is None
