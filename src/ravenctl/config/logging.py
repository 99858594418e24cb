"""structlog setup for the ravenctl CLI and MCP server.

Everything is written to stderr so that stdout carries only command
output (tables, ``--json`` payloads, MCP stdio frames). ``--log-json``
switches the renderer to one JSON object per line; otherwise the console
renderer is used, colored when stderr is a terminal.

Stdlib loggers (``logging.getLogger(__name__)`` in the infrastructure
layer) are routed through the same processor chain, so walker and index
messages look the same as structlog events.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog
from structlog.types import Processor

# Libraries whose DEBUG/INFO output would drown ravenctl's own events.
_QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "mcp", "uvicorn.access")


def _shared_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(
    *,
    verbose: bool = False,
    log_json: bool = False,
    vault_root: Path | None = None,
) -> None:
    """Route structlog and stdlib logging to stderr.

    ``verbose`` lowers the ``ravenctl`` logger to DEBUG; everything else
    stays at WARNING. When *vault_root* is given it is bound as ``vault``
    on every event. Safe to call repeatedly: the root handler is replaced,
    not stacked.
    """
    chain = _shared_chain()
    renderer: Processor = (
        structlog.processors.JSONRenderer()
        if log_json
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[*chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(logging.WARNING)

    logging.getLogger("ravenctl").setLevel(logging.DEBUG if verbose else logging.WARNING)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.contextvars.clear_contextvars()
    if vault_root is not None:
        structlog.contextvars.bind_contextvars(vault=str(vault_root))
