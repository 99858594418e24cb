"""ravenctl — markdown knowledge vault indexer and mutation CLI."""

__version__ = "0.1.0"
