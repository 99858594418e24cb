"""Tests for structlog configuration."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
import structlog

from ravenctl.config.logging import configure_logging


@pytest.fixture(autouse=True)
def _restore_logging() -> Generator[None]:
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    raven_level = logging.getLogger("ravenctl").level
    yield
    root.handlers = handlers
    root.setLevel(level)
    logging.getLogger("ravenctl").setLevel(raven_level)
    structlog.contextvars.clear_contextvars()


def _last_event(capfd: pytest.CaptureFixture[str]) -> dict[str, Any]:
    lines = capfd.readouterr().err.strip().splitlines()
    return json.loads(lines[-1])


class TestLevels:
    def test_verbose_opens_debug_for_ravenctl_only(self) -> None:
        configure_logging(verbose=True)
        assert logging.getLogger("ravenctl").level == logging.DEBUG
        assert logging.getLogger().level == logging.WARNING

    def test_default_is_warning(self) -> None:
        configure_logging()
        assert logging.getLogger("ravenctl").level == logging.WARNING

    def test_library_chatter_is_dropped(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        logging.getLogger("sqlalchemy.engine").info("PRAGMA journal_mode=WAL")
        logging.getLogger("mcp").debug("transport noise")
        assert capfd.readouterr().err == ""


class TestJsonRenderer:
    def test_structlog_event(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        structlog.get_logger("ravenctl.services.reindex").warning("reindex.parse_failed", file="bad.md")
        event = _last_event(capfd)
        assert event["event"] == "reindex.parse_failed"
        assert event["file"] == "bad.md"
        assert event["level"] == "warning"
        assert event["logger"] == "ravenctl.services.reindex"
        assert "timestamp" in event

    def test_stdlib_logger_shares_the_chain(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(verbose=True, log_json=True)
        logging.getLogger("ravenctl.infrastructure.walker").debug("Walk cancelled before a.md")
        event = _last_event(capfd)
        assert event["event"] == "Walk cancelled before a.md"
        assert event["level"] == "debug"

    def test_vault_bound_on_every_event(self, tmp_path: Path, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging(log_json=True, vault_root=tmp_path)
        structlog.get_logger("ravenctl.test").warning("x")
        assert _last_event(capfd)["vault"] == str(tmp_path)


class TestReconfigure:
    def test_handlers_do_not_stack(self) -> None:
        configure_logging(verbose=True)
        configure_logging(verbose=True, log_json=True)
        assert len(logging.getLogger().handlers) == 1

    def test_console_renderer_writes_to_stderr(self, capfd: pytest.CaptureFixture[str]) -> None:
        configure_logging()
        structlog.get_logger("ravenctl.test").warning("hello vault")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "hello vault" in captured.err
