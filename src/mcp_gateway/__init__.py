"""Reconcile MCP server entries across AI tool configuration files."""

__version__ = "0.3.0"
