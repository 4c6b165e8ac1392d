"""Shared pytest fixtures for mcp-gateway-sync tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mcp_gateway.adapters.json_adapter import JsonTargetAdapter
from mcp_gateway.domain import ServerDefinition


def write_servers(
    path: Path, servers: dict, field_name: str = "mcpServers", **extra
) -> Path:
    """Write a target document holding *servers* (plain dicts)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    document = {**extra, field_name: servers}
    path.write_text(json.dumps(document, indent=2) + "\n", encoding="utf-8")
    return path


def read_servers(path: Path, field_name: str = "mcpServers") -> dict:
    return json.loads(path.read_text(encoding="utf-8"))[field_name]


@pytest.fixture
def node_definition() -> ServerDefinition:
    return ServerDefinition(command="node", args=["time-server.js"])


@pytest.fixture
def make_adapter():
    """Factory for adapters whose only default candidate is *path*."""

    def _make(
        target: str, path: Path | None = None, field_name: str = "mcpServers"
    ) -> JsonTargetAdapter:
        defaults = [str(path)] if path is not None else []
        return JsonTargetAdapter(target, lambda: defaults, field_name)

    return _make


@pytest.fixture
def three_targets(tmp_path: Path, make_adapter):
    """Three freshly initialized empty targets ``a``, ``b``, ``c``.

    Returns:
        ``(adapters, paths)`` keyed by target id, in apply order.
    """
    paths = {}
    adapters = {}
    for target in ("a", "b", "c"):
        path = write_servers(tmp_path / target / "mcp.json", {})
        paths[target] = str(path)
        adapters[target] = make_adapter(target, path)
    return adapters, paths


@pytest.fixture
def journal_path(tmp_path: Path) -> Path:
    return tmp_path / "state" / "sync-journal.jsonl"


@pytest.fixture
def write_config():
    """``write_servers`` as a fixture for tests that build documents."""
    return write_servers


@pytest.fixture
def read_config():
    """``read_servers`` as a fixture for tests that inspect documents."""
    return read_servers
