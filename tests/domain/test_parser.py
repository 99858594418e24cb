"""Tests for the document parser."""

from __future__ import annotations

import pytest

from ravenctl.domain.parser import ParseError, parse_document, parse_type_declaration

NOTE = """\
---
type: project
owner: "[[people/freya]]"
tags: [web, client]
---
# Website

Kickoff with [[freya|Freya]] on @due(2026-02-14).

## Tasks
- @task(todo) Draft sitemap #planning
- @priority(high) @highlight Review `@ignored(x)` copy

## Standup
::meeting(id=daily-standup, time="09:00")
Notes about [[projects/api#endpoints]].

```
@due(2099-01-01) [[not-a-link]]
```
"""


class TestFileObject:
    def test_type_and_fields_from_frontmatter(self) -> None:
        doc = parse_document(NOTE, "projects/website.md")
        obj = doc.file_object
        assert obj.id == "projects/website"
        assert obj.type == "project"
        assert obj.fields["owner"] == "[[people/freya]]"
        assert "type" not in obj.fields

    def test_default_type_is_page(self) -> None:
        doc = parse_document("# Hello\n", "inbox.md")
        assert doc.file_object.type == "page"

    def test_file_object_spans_file(self) -> None:
        doc = parse_document(NOTE, "projects/website.md")
        assert doc.file_object.line_start == 1
        assert doc.file_object.line_end == doc.line_count == 20

    def test_bad_frontmatter_raises(self) -> None:
        with pytest.raises(ParseError, match="broken.md"):
            parse_document("---\n- just\n- a list\n---\n", "broken.md")


class TestSections:
    def test_headings_become_sections(self) -> None:
        doc = parse_document(NOTE, "projects/website.md")
        ids = [o.id for o in doc.objects]
        assert "projects/website#website" in ids
        assert "projects/website#tasks" in ids

    def test_nested_parent(self) -> None:
        doc = parse_document(NOTE, "projects/website.md")
        tasks = next(o for o in doc.objects if o.id == "projects/website#tasks")
        assert tasks.parent_id == "projects/website#website"
        assert tasks.type == "section"
        assert tasks.fields == {"title": "Tasks", "level": 2}

    def test_line_end_stops_before_next_heading(self) -> None:
        doc = parse_document(NOTE, "projects/website.md")
        tasks = next(o for o in doc.objects if o.id == "projects/website#tasks")
        assert tasks.line_start == 10
        assert tasks.line_end == 13

    def test_duplicate_headings_get_unique_slugs(self) -> None:
        doc = parse_document("# Notes\n## Notes\n", "a.md")
        assert [o.id for o in doc.objects[1:]] == ["a#notes", "a#notes-2"]

    def test_typed_embedded_object(self) -> None:
        doc = parse_document(NOTE, "projects/website.md")
        meeting = next(o for o in doc.objects if o.type == "meeting")
        assert meeting.id == "projects/website#daily-standup"
        assert meeting.fields == {"time": "09:00"}
        assert meeting.heading == "Standup"


class TestTraits:
    def test_traits_in_order_with_spans(self) -> None:
        doc = parse_document(NOTE, "projects/website.md")
        assert [(t.trait_type, t.value) for t in doc.traits] == [
            ("due", "2026-02-14"),
            ("task", "todo"),
            ("priority", "high"),
            ("highlight", None),
        ]
        task = doc.traits[1]
        line = NOTE.split("\n")[task.line - 1]
        assert line[task.start : task.end] == "@task(todo)"

    def test_inline_code_and_fences_are_skipped(self) -> None:
        doc = parse_document(NOTE, "projects/website.md")
        assert all(t.trait_type != "ignored" for t in doc.traits)
        assert all(t.value != "2099-01-01" for t in doc.traits)

    def test_trait_parent_and_content(self) -> None:
        doc = parse_document(NOTE, "projects/website.md")
        task = doc.traits[1]
        assert task.parent_object_id == "projects/website#tasks"
        assert task.content == "@task(todo) Draft sitemap #planning"


class TestRefsAndTags:
    def test_frontmatter_refs_have_positions(self) -> None:
        doc = parse_document(NOTE, "projects/website.md")
        owner = doc.refs[0]
        assert owner.target_raw == "people/freya"
        assert owner.line == 3
        assert owner.source_id == "projects/website"

    def test_body_refs(self) -> None:
        doc = parse_document(NOTE, "projects/website.md")
        targets = [r.target_raw for r in doc.refs]
        assert "freya" in targets
        assert "projects/api#endpoints" in targets
        assert "not-a-link" not in targets
        freya = next(r for r in doc.refs if r.target_raw == "freya")
        assert freya.display_text == "Freya"

    def test_declaration_line_refs_attach_to_embedded_object(self) -> None:
        doc = parse_document("# M\n::meeting(with=[[people/freya]])\n", "m.md")
        assert doc.refs[0].source_id == "m#m"

    def test_tags(self) -> None:
        doc = parse_document(NOTE, "projects/website.md")
        assert {t.tag for t in doc.tags} == {"web", "client", "planning"}


class TestTypeDeclaration:
    def test_quoted_values_and_commas(self) -> None:
        assert parse_type_declaration('::meeting(title="a, b", id=x)') == (
            "meeting",
            {"title": "a, b", "id": "x"},
        )

    def test_not_a_declaration(self) -> None:
        assert parse_type_declaration("meeting(id=x)") is None
