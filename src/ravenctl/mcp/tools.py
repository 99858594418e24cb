"""MCP tool definitions.

Each tool has a ``*_impl`` function testable without the mcp package;
``register_tools()`` wraps them with FastMCP decorators.
"""

from __future__ import annotations

from typing import Any

from ravenctl.services.result import ServiceResult


def _to_mcp_response(result: ServiceResult) -> dict[str, Any]:
    """Convert a ServiceResult to an MCP-friendly dict."""
    response: dict[str, Any] = {
        "ok": result.ok,
        "op": result.op,
        "data": result.data,
    }
    if result.warnings:
        response["warnings"] = result.warnings
    if result.error is not None:
        response["error"] = {
            "code": result.error.code,
            "message": result.error.message,
        }
        if result.error.detail:
            response["error"]["detail"] = result.error.detail
    return response


# ---------------------------------------------------------------------------
# Index tools
# ---------------------------------------------------------------------------


def resolve_impl(vault: Any, reference: str, *, allow_missing: bool = False) -> dict[str, Any]:
    """Resolve a reference to an object ID."""
    from ravenctl.services.query import QueryService

    return _to_mcp_response(QueryService(vault).resolve(reference, allow_missing=allow_missing))


def reindex_impl(vault: Any, *, full: bool = False, dry_run: bool = False) -> dict[str, Any]:
    """Bring the index up to date."""
    from ravenctl.services.reindex import ReindexOptions, ReindexService

    result = ReindexService(vault).reindex(ReindexOptions(full=full, dry_run=dry_run))
    return _to_mcp_response(result)


def stats_impl(vault: Any) -> dict[str, Any]:
    from ravenctl.services.query import QueryService

    return _to_mcp_response(QueryService(vault).stats())


# ---------------------------------------------------------------------------
# Query tools
# ---------------------------------------------------------------------------


def query_traits_impl(vault: Any, trait_type: str, *, value: str | None = None) -> dict[str, Any]:
    """List traits of one type, optionally filtered by value."""
    from ravenctl.services.query import QueryService

    return _to_mcp_response(QueryService(vault).traits(trait_type, value=value))


def backlinks_impl(vault: Any, reference: str) -> dict[str, Any]:
    """List references pointing at an object."""
    from ravenctl.services.query import QueryService

    return _to_mcp_response(QueryService(vault).backlinks(reference))


# ---------------------------------------------------------------------------
# Mutation tools
# ---------------------------------------------------------------------------


def trait_update_impl(
    vault: Any,
    trait_type: str,
    new_value: str,
    *,
    where_value: str | None = None,
    trait_ids: list[str] | None = None,
    confirm: bool = False,
) -> dict[str, Any]:
    """Preview or apply a bulk trait update."""
    from ravenctl.services.traits import TraitBulkService

    result = TraitBulkService(vault).update(
        trait_type,
        new_value,
        where_value=where_value,
        ids=trait_ids or (),
        confirm=confirm,
    )
    return _to_mcp_response(result)


def apply_plan_impl(
    vault: Any,
    workflow: str,
    plan: dict[str, Any],
    *,
    confirm: bool = False,
) -> dict[str, Any]:
    """Preview or apply a workflow plan."""
    from ravenctl.services.workflow import WorkflowService

    svc = WorkflowService(vault)
    result = svc.apply(workflow, plan) if confirm else svc.preview(workflow, plan)
    return _to_mcp_response(result)


def register_tools(server: Any, vault: Any, *, read_only: bool = False) -> None:
    """Register the MCP tools on the FastMCP server.

    A *read_only* server gets no tool that changes vault files; reindex
    stays, since it only rewrites the derived index.
    """

    @server.tool()  # type: ignore[untyped-decorator]
    def raven_resolve(reference: str, allow_missing: bool = False) -> dict[str, Any]:
        """Resolve a path, ID, short name, alias, name or date to an object."""
        return resolve_impl(vault, reference, allow_missing=allow_missing)

    @server.tool()  # type: ignore[untyped-decorator]
    def raven_reindex(full: bool = False, dry_run: bool = False) -> dict[str, Any]:
        """Index new and changed files; full=True rebuilds from scratch."""
        return reindex_impl(vault, full=full, dry_run=dry_run)

    @server.tool()  # type: ignore[untyped-decorator]
    def raven_stats() -> dict[str, Any]:
        """Counts of indexed files, objects, traits and references."""
        return stats_impl(vault)

    @server.tool()  # type: ignore[untyped-decorator]
    def raven_query_traits(trait_type: str, value: str | None = None) -> dict[str, Any]:
        """List @trait annotations of one type in file order."""
        return query_traits_impl(vault, trait_type, value=value)

    @server.tool()  # type: ignore[untyped-decorator]
    def raven_backlinks(reference: str) -> dict[str, Any]:
        """List references pointing at an object or its sections."""
        return backlinks_impl(vault, reference)

    if read_only:
        return

    @server.tool()  # type: ignore[untyped-decorator]
    def raven_trait_update(
        trait_type: str,
        new_value: str,
        where_value: str | None = None,
        trait_ids: list[str] | None = None,
        confirm: bool = False,
    ) -> dict[str, Any]:
        """Preview (default) or apply a bulk @trait value change."""
        return trait_update_impl(
            vault,
            trait_type,
            new_value,
            where_value=where_value,
            trait_ids=trait_ids,
            confirm=confirm,
        )

    @server.tool()  # type: ignore[untyped-decorator]
    def raven_apply_plan(
        workflow: str, plan: dict[str, Any], confirm: bool = False
    ) -> dict[str, Any]:
        """Preview (default) or apply an all-or-nothing edit plan."""
        return apply_plan_impl(vault, workflow, plan, confirm=confirm)
