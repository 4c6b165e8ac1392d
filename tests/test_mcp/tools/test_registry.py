"""Tests for ToolSpec and ToolRegistry.

Covers:
- ToolSpec immutability
- ToolRegistry read-only filtering
- ToolRegistry list_tools, tool_count, call_tool
- Error translation in call_tool
"""

import pytest

import mcp.types as types

from mcp_gateway.errors import ConfigIOError, RevisionNotFoundError
from mcp_gateway.mcp.tools import ALL_SPECS
from mcp_gateway.mcp.tools.registry import ToolRegistry, ToolSpec


def _make_spec(name: str, read_only: bool = True, handler=None) -> ToolSpec:
    """Helper to create a ToolSpec for testing."""
    if handler is None:

        async def handler(engine, args):
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=f"ok:{name}")]
            )

    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        read_only=read_only,
        handler=handler,
    )


def _raising(exc: Exception):
    async def handler(engine, args):
        raise exc

    return handler


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


class TestToolSpec:
    def test_frozen(self):
        spec = _make_spec("t")
        with pytest.raises(AttributeError):
            spec.read_only = False  # type: ignore[misc]


class TestToolRegistry:
    """Tests for ToolRegistry filtering and dispatch."""

    def test_all_tools_by_default(self):
        registry = ToolRegistry([_make_spec("r"), _make_spec("w", read_only=False)])
        assert registry.tool_count() == 2
        assert [t.name for t in registry.list_tools()] == ["r", "w"]

    def test_read_only_drops_write_tools(self):
        registry = ToolRegistry(
            [_make_spec("r"), _make_spec("w", read_only=False)], read_only=True
        )
        assert [t.name for t in registry.list_tools()] == ["r"]

    def test_shipped_read_only_tools(self):
        registry = ToolRegistry(ALL_SPECS, read_only=True)
        assert sorted(t.name for t in registry.list_tools()) == [
            "sync_history",
            "sync_preview",
            "sync_targets",
        ]

    async def test_call_tool_dispatches(self):
        registry = ToolRegistry([_make_spec("r")])
        result = await registry.call_tool("r", None, engine=None)
        assert _text(result) == "ok:r"

    async def test_unknown_tool_raises(self):
        registry = ToolRegistry([_make_spec("w", read_only=False)], read_only=True)
        with pytest.raises(ValueError, match="Unknown tool: w"):
            await registry.call_tool("w", {}, engine=None)

    async def test_gateway_error_translated(self):
        registry = ToolRegistry(
            [_make_spec("r", handler=_raising(RevisionNotFoundError("abc")))]
        )
        result = await registry.call_tool("r", {}, engine=None)
        assert result.isError is True
        assert _text(result).startswith("Error (not_found)")

    async def test_adapter_error_translated(self):
        registry = ToolRegistry(
            [_make_spec("r", handler=_raising(ConfigIOError("claude", "/c.json", "denied")))]
        )
        result = await registry.call_tool("r", {}, engine=None)
        assert _text(result).startswith("Error (config_error): [claude] denied")

    async def test_value_error_is_validation_error(self):
        registry = ToolRegistry([_make_spec("r", handler=_raising(ValueError("bad limit")))])
        result = await registry.call_tool("r", {}, engine=None)
        assert "Error (validation_error): bad limit" in _text(result)

    async def test_unexpected_error_is_server_error(self):
        registry = ToolRegistry([_make_spec("r", handler=_raising(RuntimeError("boom")))])
        result = await registry.call_tool("r", {}, engine=None)
        assert "Error (server_error): boom" in _text(result)
