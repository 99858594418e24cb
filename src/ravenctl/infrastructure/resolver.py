"""Reference resolver — raw reference string to canonical object ID.

Resolution order (first strategy with at least one candidate decides):

1. ``literal_path`` — ``ref`` or ``ref.md`` exists as a vault file
2. ``object_id``    — exact indexed object ID
3. ``short_name``   — final path segment of a file-level object ID
4. ``alias``        — the object's ``alias`` field
5. ``name_field``   — value of the type's schema-declared name field
6. ``date``         — ISO date or today/tomorrow/yesterday -> daily note

A trailing ``#fragment`` is split off before matching and reattached to
the winning file object ID. One candidate resolves; two or more are
ambiguous, and every candidate keeps the strategy that produced it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any

from ravenctl.domain.dates import daily_note_id, parse_date_ref
from ravenctl.domain.links import strip_wikilink
from ravenctl.domain.paths import (
    MARKDOWN_SUFFIX,
    file_path_to_object_id,
    normalize_rel_path,
    object_id_to_file_path,
    short_name,
    slugify,
    split_fragment,
)
from ravenctl.infrastructure.filesystem import resolve_in_vault

LITERAL_PATH = "literal_path"
OBJECT_ID = "object_id"
SHORT_NAME = "short_name"
ALIAS = "alias"
NAME_FIELD = "name_field"
DATE = "date"


@dataclass(frozen=True)
class ResolveOptions:
    """Per-call resolver options."""

    vault_root: Path | None = None
    daily_directory: str = "daily"
    allow_missing: bool = False
    today: date | None = None


@dataclass(frozen=True)
class ObjectEntry:
    """The subset of an indexed object the resolver needs."""

    id: str
    file_path: str
    type: str = "page"
    alias: str | None = None
    name_value: str | None = None
    parent_id: str | None = None


@dataclass(frozen=True)
class Candidate:
    object_id: str
    strategy: str


@dataclass(frozen=True)
class ResolveResult:
    """Outcome of resolving one reference.

    ``target_id`` is empty when nothing (or more than one thing) matched.
    """

    reference: str
    target_id: str = ""
    file_path: str = ""
    file_object_id: str = ""
    is_section: bool = False
    match_source: str = ""
    ambiguous: bool = False
    matches: list[str] = field(default_factory=list)
    match_sources: dict[str, str] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return bool(self.target_id)

    def to_dict(self) -> dict[str, Any]:
        if self.found:
            return {
                "resolved": True,
                "reference": self.reference,
                "object_id": self.target_id,
                "file_object_id": self.file_object_id,
                "file_path": self.file_path,
                "is_section": self.is_section,
                "match_source": self.match_source,
            }
        data: dict[str, Any] = {
            "resolved": False,
            "reference": self.reference,
            "ambiguous": self.ambiguous,
        }
        if self.ambiguous:
            data["matches"] = [
                {"object_id": m, "match_source": self.match_sources[m]} for m in self.matches
            ]
        return data


def _add(index: dict[str, list[str]], key: str | None, object_id: str) -> None:
    if not key:
        return
    bucket = index.setdefault(key, [])
    if object_id not in bucket:
        bucket.append(object_id)


class Resolver:
    """In-memory resolver over a snapshot of the index's object table.

    Built by :meth:`IndexDatabase.resolver`; cheap to query repeatedly
    (the resolution sweep reuses one instance for every reference).
    """

    def __init__(self, entries: Iterable[ObjectEntry], options: ResolveOptions | None = None) -> None:
        self._options = options or ResolveOptions()
        self._by_id: dict[str, ObjectEntry] = {}
        self._short: dict[str, list[str]] = {}
        self._alias: dict[str, list[str]] = {}
        self._alias_slug: dict[str, list[str]] = {}
        self._name: dict[str, list[str]] = {}
        self._name_lower: dict[str, list[str]] = {}
        self._name_slug: dict[str, list[str]] = {}

        for entry in entries:
            self._by_id[entry.id] = entry
            if entry.parent_id is None:
                _add(self._short, short_name(entry.id), entry.id)
            if entry.alias:
                _add(self._alias, entry.alias, entry.id)
                _add(self._alias_slug, slugify(entry.alias), entry.id)
            if entry.name_value:
                _add(self._name, entry.name_value, entry.id)
                _add(self._name_lower, entry.name_value.lower(), entry.id)
                _add(self._name_slug, slugify(entry.name_value), entry.id)

        self._strategies: list[tuple[str, Callable[[str, bool], list[str]]]] = [
            (LITERAL_PATH, self._match_literal_path),
            (OBJECT_ID, self._match_object_id),
            (SHORT_NAME, self._match_short_name),
            (ALIAS, self._match_alias),
            (NAME_FIELD, self._match_name_field),
            (DATE, self._match_date),
        ]

    @property
    def options(self) -> ResolveOptions:
        return self._options

    def object_ids(self) -> list[str]:
        return list(self._by_id)

    # ------------------------------------------------------------------
    # Strategies: each returns candidate object IDs (possibly empty)
    # ------------------------------------------------------------------

    def _match_literal_path(self, ref: str, _allow_missing: bool) -> list[str]:
        root = self._options.vault_root
        if root is None:
            return []
        rel = normalize_rel_path(ref)
        tries = [rel] if rel.endswith(MARKDOWN_SUFFIX) else [rel + MARKDOWN_SUFFIX, rel]
        for candidate in tries:
            try:
                path = resolve_in_vault(root, candidate)
            except ValueError:
                return []
            if path.is_file() and path.name.endswith(MARKDOWN_SUFFIX):
                return [file_path_to_object_id(candidate)]
        return []

    def _match_object_id(self, ref: str, _allow_missing: bool) -> list[str]:
        oid = file_path_to_object_id(ref)
        return [oid] if oid in self._by_id else []

    def _match_short_name(self, ref: str, _allow_missing: bool) -> list[str]:
        if "/" not in ref:
            return list(self._short.get(ref, []))
        suffix = "/" + normalize_rel_path(ref)
        return [
            oid
            for oid, entry in self._by_id.items()
            if entry.parent_id is None and oid.endswith(suffix)
        ]

    def _match_alias(self, ref: str, _allow_missing: bool) -> list[str]:
        exact = self._alias.get(ref)
        if exact:
            return list(exact)
        return list(self._alias_slug.get(slugify(ref), [])) if slugify(ref) else []

    def _match_name_field(self, ref: str, _allow_missing: bool) -> list[str]:
        for index, key in (
            (self._name, ref),
            (self._name_lower, ref.lower()),
            (self._name_slug, slugify(ref)),
        ):
            if key and index.get(key):
                return list(index[key])
        return []

    def _match_date(self, ref: str, allow_missing: bool) -> list[str]:
        day = parse_date_ref(ref, today=self._options.today)
        if day is None:
            return []
        oid = daily_note_id(day, self._options.daily_directory)
        if oid in self._by_id or allow_missing:
            return [oid]
        return []

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def candidates(self, reference: str, *, allow_missing: bool | None = None) -> list[Candidate]:
        """Tagged candidates from the first strategy that produced any."""
        ref, _fragment = split_fragment(strip_wikilink(reference))
        ref = ref.strip()
        if not ref:
            return []
        missing_ok = self._options.allow_missing if allow_missing is None else allow_missing

        for strategy, match in self._strategies:
            found = [Candidate(oid, strategy) for oid in dict.fromkeys(match(ref, missing_ok))]
            if found:
                return _prefer_parents(found)
        return []

    def resolve(self, reference: str, *, allow_missing: bool | None = None) -> ResolveResult:
        """Resolve *reference* to a single object ID (or report why not)."""
        raw = reference.strip()
        found = self.candidates(raw, allow_missing=allow_missing)
        if not found:
            return ResolveResult(reference=raw)

        sources = {c.object_id: c.strategy for c in found}
        if len(found) > 1:
            return ResolveResult(
                reference=raw,
                ambiguous=True,
                matches=[c.object_id for c in found],
                match_sources=sources,
            )

        winner = found[0]
        file_object_id = split_fragment(winner.object_id)[0]
        fragment = split_fragment(strip_wikilink(raw))[1]
        target_id = f"{file_object_id}#{fragment}" if fragment else winner.object_id
        entry = self._by_id.get(file_object_id)
        file_path = entry.file_path if entry else object_id_to_file_path(file_object_id)
        return ResolveResult(
            reference=raw,
            target_id=target_id,
            file_path=file_path,
            file_object_id=file_object_id,
            is_section="#" in target_id,
            match_source=winner.strategy,
            matches=[winner.object_id],
            match_sources=sources,
        )


def _prefer_parents(found: list[Candidate]) -> list[Candidate]:
    """Drop section candidates whose parent file object also matched."""
    ids = {c.object_id for c in found}
    kept = [c for c in found if "#" not in c.object_id or split_fragment(c.object_id)[0] not in ids]
    return kept or found
