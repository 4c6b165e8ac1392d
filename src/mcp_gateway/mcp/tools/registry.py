"""ToolSpec and ToolRegistry for MCP tool dispatch.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition, whether the
  tool only reads, and an async handler (engine, args) -> CallToolResult.
- ToolRegistry: Optionally drops write tools at construction time
  (``--read-only``), then provides list_tools() and call_tool() dispatch
  with error translation.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import mcp.types as types

from ...errors import GatewayError
from ...sync.engine import SyncEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        read_only: True when the tool never writes target files or the
            journal.
        handler: Async handler with signature (engine, args) -> CallToolResult.
    """

    tool: types.Tool
    read_only: bool
    handler: Callable[[SyncEngine, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs, optionally restricted to read-only tools."""

    def __init__(self, specs: list[ToolSpec], read_only: bool = False):
        self._specs: dict[str, ToolSpec] = {
            spec.tool.name: spec
            for spec in specs
            if spec.read_only or not read_only
        }

    def list_tools(self) -> list[types.Tool]:
        """Return types.Tool for every registered spec."""
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        engine: SyncEngine,
    ) -> types.CallToolResult:
        """Dispatch a tool call to its handler.

        Gateway errors, validation errors and unexpected exceptions are
        translated into CallToolResult responses with a corrective action.

        Raises:
            ValueError: If the tool name is not registered.
        """
        from .errors import build_error_response, translate_gateway_error

        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(engine, args)
        except GatewayError as e:
            logger.warning("%s failed: %s", name, e)
            return translate_gateway_error(e)
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log file and retry.",
            )
