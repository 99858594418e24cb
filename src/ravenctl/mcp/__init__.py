"""MCP adapter — optional FastMCP server exposing vault operations."""
