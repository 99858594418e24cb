"""Shared service-layer helper functions."""

from __future__ import annotations


def plural(count: int, noun: str) -> str:
    """``plural(1, "field")`` -> ``"1 field"``; ``plural(2, ...)`` -> ``"2 fields"``.

    Examples:
        >>> plural(0, "file")
        '0 files'
    """
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"
