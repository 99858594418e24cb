"""Vault schema — type and trait declarations from ``schema.yaml``.

Example::

    types:
      person:
        default_path: people/
        name_field: name
        fields:
          name: {type: string, required: true}
          company: {type: ref, target: company}
    traits:
      due: {type: date}
      task: {type: enum, values: [todo, done], default: todo}
      highlight: {type: bool}

The schema is read-only for every core operation: indexing consults it
for trait filtering/defaults, ref-typed fields and name fields.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError

from ravenctl.domain.content import FrontmatterError, load_yaml, to_plain

SCHEMA_FILENAME = "schema.yaml"

# Types every vault has, whether or not the schema declares them.
BUILTIN_TYPES = frozenset({"page", "section", "date"})

REF_FIELD_TYPES = frozenset({"ref", "ref[]"})


class SchemaError(ValueError):
    """Raised when ``schema.yaml`` cannot be parsed or validated."""


class FieldDefinition(BaseModel):
    """A typed frontmatter field."""

    model_config = {"frozen": True}

    type: str = "string"
    required: bool = False
    default: Any = None
    values: list[str] = Field(default_factory=list)
    target: str | None = None


class TypeDefinition(BaseModel):
    """An object type (person, project, meeting, ...)."""

    model_config = {"frozen": True}

    default_path: str | None = None
    name_field: str | None = None
    fields: dict[str, FieldDefinition] = Field(default_factory=dict)


class TraitDefinition(BaseModel):
    """An inline trait (``@due``, ``@task``, ...)."""

    model_config = {"frozen": True}

    type: str = "string"
    values: list[str] = Field(default_factory=list)
    default: Any = None


class Schema(BaseModel):
    """Parsed ``schema.yaml``."""

    model_config = {"frozen": True}

    version: int = 1
    types: dict[str, TypeDefinition] = Field(default_factory=dict)
    traits: dict[str, TraitDefinition] = Field(default_factory=dict)

    def name_field_for(self, type_name: str) -> str | None:
        typedef = self.types.get(type_name)
        return typedef.name_field if typedef else None

    def ref_fields_for(self, type_name: str) -> list[str]:
        typedef = self.types.get(type_name)
        if typedef is None:
            return []
        return [name for name, fd in typedef.fields.items() if fd.type in REF_FIELD_TYPES]

    def trait_default(self, trait_type: str) -> str | None:
        """Effective value of a bare ``@trait``.

        The declared default wins; a bool trait without a default is
        ``"true"``; anything else has no value.
        """
        tdef = self.traits.get(trait_type)
        if tdef is None:
            return None
        if tdef.default is not None:
            default = to_plain(tdef.default)
            if isinstance(default, bool):
                return "true" if default else "false"
            return str(default)
        if tdef.type in ("bool", "boolean"):
            return "true"
        return None


def parse_schema(text: str) -> Schema:
    """Parse and validate schema YAML text.

    Raises:
        SchemaError: On malformed YAML or a structure pydantic rejects.
    """
    try:
        data = load_yaml(text)
    except FrontmatterError as exc:
        raise SchemaError(str(exc)) from exc
    if data is None:
        return Schema()
    if not isinstance(data, dict):
        msg = "schema.yaml must be a mapping"
        raise SchemaError(msg)

    plain = to_plain(data)
    # ``types: {person: }`` is legal shorthand for an empty definition.
    for section in ("types", "traits"):
        entries = plain.get(section) or {}
        plain[section] = {k: (v or {}) for k, v in entries.items()}
    try:
        return Schema.model_validate(plain)
    except ValidationError as exc:
        msg = f"Invalid schema.yaml: {exc}"
        raise SchemaError(msg) from exc


def effective_trait_value(value: str | None, trait_type: str, schema: Schema | None) -> str | None:
    """Explicit value if present, else the schema default."""
    if value is not None:
        return value
    if schema is None:
        return None
    return schema.trait_default(trait_type)
