"""Knowledger companion: MCP tool server that talks to the Knowledger HTTP API."""

__version__ = "0.1.0"
