"""Tests for target default paths and adapter factories."""

from __future__ import annotations

import pytest

from mcp_gateway.adapters.targets import (
    BUILTIN_TARGETS,
    KNOWN_TARGETS,
    builtin_adapters,
    claude_default_candidates,
    create_builtin_adapter,
    create_custom_adapter,
    create_known_adapter,
    discover_target_configs,
    display_name,
)


class TestBuiltinTargets:
    def test_apply_order(self):
        assert BUILTIN_TARGETS == ("claude", "cursor", "codex")
        assert list(builtin_adapters("/home/u")) == list(BUILTIN_TARGETS)

    def test_claude_candidates_under_home(self):
        candidates = claude_default_candidates("/home/u")
        assert candidates[0].startswith("/home/u/Library/Application Support/Claude")
        assert "/home/u/.claude/mcp.json" in candidates

    def test_adapter_uses_home_dir(self):
        adapter = create_builtin_adapter("cursor", "/home/u")
        assert adapter.default_candidate_paths()[0] == "/home/u/.cursor/mcp.json"
        assert adapter.field_name == "mcpServers"

    def test_unknown_builtin(self):
        with pytest.raises(ValueError, match="Unknown built-in target"):
            create_builtin_adapter("windsurf")


class TestKnownTargets:
    def test_ids_are_unique(self):
        ids = [t.id for t in KNOWN_TARGETS]
        assert len(ids) == len(set(ids))
        assert not set(ids) & set(BUILTIN_TARGETS)

    def test_vscode_uses_servers_field(self):
        adapter = create_known_adapter("vscode", "/home/u")
        assert adapter.field_name == "servers"

    def test_linux_candidates(self):
        vscode = next(t for t in KNOWN_TARGETS if t.id == "vscode")
        assert vscode.candidate_paths("/home/u", "linux") == [
            "/home/u/.config/Code/User/mcp.json"
        ]

    def test_platform_without_candidates(self):
        zed = next(t for t in KNOWN_TARGETS if t.id == "zed")
        assert zed.candidate_paths("/home/u", "win32") == []

    def test_appdata_segment(self, monkeypatch):
        monkeypatch.setenv("APPDATA", "/roaming")
        vscode = next(t for t in KNOWN_TARGETS if t.id == "vscode")
        assert vscode.candidate_paths("/home/u", "win32") == [
            "/roaming/Code/User/mcp.json"
        ]

    def test_unknown_known_target(self):
        with pytest.raises(ValueError):
            create_known_adapter("not-a-tool")


def test_custom_adapter(tmp_path):
    path = str(tmp_path / "tool.json")
    adapter = create_custom_adapter("mytool", path, "tools")
    assert adapter.target == "mytool"
    assert adapter.field_name == "tools"
    assert adapter.default_candidate_paths() == [path]


def test_display_names():
    assert display_name("claude") == "Claude"
    assert display_name("vscode") == "VS Code"
    assert display_name("mytool") == "mytool"


async def test_discover_target_configs(tmp_path):
    cursor_path = tmp_path / ".cursor" / "mcp.json"
    cursor_path.parent.mkdir()
    cursor_path.write_text("{}", encoding="utf-8")
    override = tmp_path / "codex.json"
    override.write_text("{}", encoding="utf-8")

    results = await discover_target_configs(
        str(tmp_path), {"codex": [str(override)]}
    )

    assert [r.target for r in results] == ["claude", "cursor", "codex"]
    assert results[0].found is False
    assert results[1].path == str(cursor_path)
    assert results[2].path == str(override)
