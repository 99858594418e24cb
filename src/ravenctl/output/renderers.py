"""Operation-specific Rich renderers for ServiceResult.

Each renderer writes to a Rich Console (backed by StringIO). Renderers
are dispatched by ``result.op`` in :func:`render_result`; unknown ops
fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ravenctl.output.console import create_console, get_output, style_for_status

if TYPE_CHECKING:
    from rich.console import Console

    from ravenctl.services.result import ServiceResult


# ── Public API ────────────────────────────────────────────────────────


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich."""
    console = create_console()

    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)

    return get_output(console).rstrip("\n")


def render_quiet(result: ServiceResult) -> str:
    """Minimal output for ``--quiet``: one ID per line where that makes sense."""
    if not result.ok:
        msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op}: {msg}"

    if result.op == "resolve":
        return str(result.data.get("object_id", ""))

    rows = result.data.get("items") or result.data.get("results")
    if rows and isinstance(rows, list):
        return "\n".join(i for i in (_extract_id(row) for row in rows) if i)

    return f"OK: {result.op}"


# ── Helpers ───────────────────────────────────────────────────────────


def _extract_id(item: Any) -> str:
    if isinstance(item, dict):
        for key in ("id", "object_id", "source_id", "tag"):
            val = item.get(key)
            if val is not None:
                return str(val)
    return ""


def _status_line(console: Console, result: ServiceResult) -> None:
    label = Text("OK", style="raven.ok")
    op = Text(f"  {result.op}", style="raven.op")
    console.print(label, op, end="")
    console.print()


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    k = Text(f"  {key}: ", style="raven.key")
    if key == "id" or key.endswith("_id"):
        v = Text(str(value), style="raven.id")
    elif key.endswith("path"):
        v = Text(str(value), style="raven.path")
    elif isinstance(value, (dict, list)):
        v = Text(json.dumps(value, separators=(",", ":")))
    else:
        v = Text(str(value))
    console.print(k, v, end="")
    console.print()


def _render_meta(console: Console, result: ServiceResult) -> None:
    """Print the meta block, including the telemetry span tree."""
    if not result.meta:
        return

    console.print()
    console.print(Text("  meta:", style="dim"))
    for k, v in result.meta.items():
        if k == "telemetry":
            _render_telemetry_tree(console, v, indent=4)
        else:
            console.print(f"    {k}: {v}")


def _render_telemetry_tree(console: Console, span_data: dict[str, Any], indent: int = 4) -> None:
    prefix = " " * indent
    duration = span_data.get("duration_ms", 0.0)
    if duration > 1000:
        style = "bold red"
    elif duration > 100:
        style = "yellow"
    else:
        style = "dim"

    line = f"{prefix}[{style}]{duration:>8.2f}ms[/{style}]  {span_data.get('name', '?')}"
    extras = [f"{k}={v}" for k, v in span_data.get("counters", {}).items()]
    extras.extend(f"{k}={v}" for k, v in span_data.get("notes", {}).items())
    if extras:
        line += f"  ({', '.join(extras)})"
    console.print(line)

    for child in span_data.get("children", []):
        _render_telemetry_tree(console, child, indent=indent + 4)


def _table(columns: list[tuple[str, str]]) -> Table:
    table = Table(show_header=True, show_lines=False, pad_edge=False, expand=False)
    for header, style in columns:
        table.add_column(header, style=style or None, no_wrap=header == "ID")
    return table


def _count_footer(console: Console, result: ServiceResult, noun: str) -> None:
    count = result.data.get("count", len(result.data.get("items", [])))
    console.print(f"\n{count} {noun}")


# ── Error renderer ────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    label = Text("ERROR", style="raven.error")
    op = Text(f"  {result.op}", style="raven.op")
    console.print(label, op, Text(": "), msg)

    if err and err.code == "AMBIGUOUS":
        for match in err.detail.get("matches", []):
            console.print(f"    [raven.id]{match['object_id']}[/raven.id]  ({match['match_source']})")
    elif verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")


# ── Index renderers ───────────────────────────────────────────────────


def _render_reindex(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    _status_line(console, result)
    mode = "incremental" if d.get("incremental") else "full"
    if d.get("dry_run"):
        mode += " (dry run)"
    _field(console, "mode", mode)
    if d.get("schema_rebuilt"):
        _field(console, "schema_rebuilt", True)

    if d.get("dry_run"):
        would_index = d.get("would_index", [])
        would_delete = d.get("would_delete", [])
        _field(console, "would_index", len(would_index))
        _field(console, "would_delete", len(would_delete))
        _field(console, "files_skipped", d.get("files_skipped", 0))
        for path in would_index:
            console.print(f"    [raven.ok]+[/raven.ok] [raven.path]{path}[/raven.path]")
        for path in would_delete:
            console.print(f"    [raven.error]-[/raven.error] [raven.path]{path}[/raven.path]")
    else:
        for key in ("files_indexed", "files_skipped", "files_deleted", "objects", "traits", "references"):
            _field(console, key, d.get(key, 0))
        _field(console, "refs", f"{d.get('refs_resolved', 0)} resolved, {d.get('refs_unresolved', 0)} unresolved")

    if d.get("cancelled"):
        console.print("  [raven.warning]cancelled[/raven.warning] before all files were processed")
    for err in d.get("errors", []):
        console.print(f"  [raven.error]error[/raven.error] {err.get('file_path')}: {err.get('error')}")
    if verbose:
        _render_meta(console, result)


def _render_resolve(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    for key in ("reference", "object_id", "file_path", "match_source", "is_section"):
        if key in result.data:
            _field(console, key, result.data[key])
    if verbose:
        _render_meta(console, result)


def _render_object(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Render a single object as a panel with its fields."""
    d = result.data
    lines = [f"type: {d.get('type')}", f"file: {d.get('file_path')}:{d.get('line_start')}-{d.get('line_end')}"]
    if d.get("parent_id"):
        lines.append(f"parent: {d['parent_id']}")
    if d.get("alias"):
        lines.append(f"alias: {d['alias']}")
    fields = d.get("fields") or {}
    if fields:
        lines.append("")
        lines.extend(f"{k}: {json.dumps(v) if isinstance(v, (dict, list)) else v}" for k, v in fields.items())
    console.print(Panel("\n".join(lines), title=str(d.get("id", "?")), border_style="dim", expand=False))
    if verbose:
        _render_meta(console, result)


def _render_trait(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    for key in ("id", "trait_type", "value", "parent_object_id", "file_path", "line_number", "content"):
        if key in result.data:
            _field(console, key, result.data[key])


# ── Query renderers ───────────────────────────────────────────────────


def _render_objects(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    table = _table([("ID", "raven.id"), ("Type", ""), ("File", "raven.path"), ("Lines", "dim")])
    for item in result.data.get("items", []):
        table.add_row(
            str(item.get("id", "")),
            str(item.get("type", "")),
            str(item.get("file_path", "")),
            f"{item.get('line_start')}-{item.get('line_end')}",
        )
    console.print(table)
    _count_footer(console, result, "objects")


def _render_traits(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    table = _table([("ID", "raven.id"), ("Value", "raven.value"), ("Content", ""), ("Parent", "dim")])
    for item in result.data.get("items", []):
        table.add_row(
            str(item.get("id", "")),
            "" if item.get("value") is None else str(item["value"]),
            str(item.get("content", "")),
            str(item.get("parent_object_id", "")),
        )
    console.print(table)
    _count_footer(console, result, "traits")


def _render_backlinks(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    console.print(Text(f"Backlinks to {result.data.get('target_id')}", style="bold"))
    table = _table([("Source", "raven.id"), ("Link", ""), ("Location", "raven.path")])
    for item in result.data.get("items", []):
        table.add_row(
            str(item.get("source_id", "")),
            str(item.get("target_raw", "")),
            f"{item.get('file_path')}:{item.get('line_number')}",
        )
    console.print(table)
    _count_footer(console, result, "references")


def _render_tags(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    items = result.data.get("items", [])
    if result.data.get("tag") is None:
        table = _table([("Tag", "raven.value"), ("Objects", "")])
        for item in items:
            table.add_row(f"#{item.get('tag')}", str(item.get("count", 0)))
    else:
        table = _table([("Object", "raven.id"), ("File", "raven.path")])
        for item in items:
            table.add_row(str(item.get("object_id", "")), str(item.get("file_path", "")))
    console.print(table)
    _count_footer(console, result, "rows")


def _render_dates(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    console.print(Text(f"{result.data.get('date')}  ({result.data.get('daily_note')})", style="bold"))
    table = _table([("Source", "raven.id"), ("Kind", "dim"), ("Field", "")])
    for item in result.data.get("items", []):
        table.add_row(
            str(item.get("source_id", "")),
            str(item.get("source_type", "")),
            str(item.get("field_name", "")),
        )
    console.print(table)
    _count_footer(console, result, "entries")


def _render_id_list(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    for item in result.data.get("items", []):
        console.print(Text(str(item.get("id", "")), style="raven.id"))
    _count_footer(console, result, "pages")


# ── Mutation renderers ────────────────────────────────────────────────


def _render_trait_update(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    heading = "Applied" if d.get("confirm") else "Preview"
    console.print(
        Text(f"{heading}: @{d.get('trait_type') or 'trait'} -> {d.get('new_value')}", style="bold")
    )
    table = _table([("ID", "raven.id"), ("Status", ""), ("Old", "dim"), ("New", "raven.value"), ("Reason", "")])
    for item in d.get("results", []):
        status = str(item.get("status", ""))
        table.add_row(
            str(item.get("id", "")),
            Text(status, style=style_for_status(status)),
            "" if item.get("old_value") is None else str(item["old_value"]),
            str(item.get("new_value", "")),
            str(item.get("reason") or ""),
        )
    if d.get("results"):
        console.print(table)
    console.print(
        f"\n{d.get('total', 0)} total, {d.get('modified', 0)} modified, "
        f"{d.get('skipped', 0)} skipped, {d.get('errors', 0)} errors"
    )
    if not d.get("confirm") and d.get("modified"):
        console.print("[dim]Re-run with --confirm to apply.[/dim]")
    if verbose:
        _render_meta(console, result)


def _render_workflow(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    d = result.data
    heading = "Applied plan" if d.get("confirm") else "Plan preview"
    console.print(Text(f"{heading}: {d.get('workflow')}", style="bold"))
    for i, item in enumerate(d.get("items", [])):
        console.print(f"  {i}. [raven.op]{item.get('op')}[/raven.op]  {item.get('summary')}")
        if item.get("why"):
            console.print(f"     [dim]{item['why']}[/dim]")
    if d.get("confirm"):
        console.print(f"\n{d.get('applied', 0)} op(s) applied")
    else:
        console.print("\n[dim]Re-run with --confirm to apply.[/dim]")
    if verbose:
        _render_meta(console, result)


def _render_init(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    _status_line(console, result)
    _field(console, "vault_root", result.data.get("vault_root"))
    _field(console, "index_path", result.data.get("index_path"))
    for name in result.data.get("files_created", []):
        console.print(f"    [raven.ok]created[/raven.ok] {name}")
    for name in result.data.get("files_kept", []):
        console.print(f"    [dim]kept[/dim]    {name}")


# ── Generic renderer ──────────────────────────────────────────────────


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)
    if verbose:
        _render_meta(console, result)


_OP_RENDERERS: dict[str, Any] = {
    # Index
    "reindex": _render_reindex,
    "reindex_file": _render_generic,
    "resolve": _render_resolve,
    "stats": _render_generic,
    "get": _render_object,
    "get_trait": _render_trait,
    # Query
    "query_objects": _render_objects,
    "query_traits": _render_traits,
    "backlinks": _render_backlinks,
    "query_tags": _render_tags,
    "query_date": _render_dates,
    "untyped_pages": _render_id_list,
    # Mutations
    "trait_update": _render_trait_update,
    "workflow_preview": _render_workflow,
    "workflow_apply": _render_workflow,
    "init_vault": _render_init,
}
