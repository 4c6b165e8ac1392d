"""MCP tool handlers for configuration sync.

Defines six tools:

- ``sync_targets`` -- merged view of every target's server entries.
- ``sync_preview`` -- plan a sync for a list of policies (no writes).
- ``sync_apply`` -- apply that plan, journaled under one revision id.
- ``sync_history`` -- list recorded revisions, newest first.
- ``sync_revert`` -- restore every file of a revision from its backups.
- ``sync_snapshot`` -- copy current target files to manual backups.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...sync.engine import SyncEngine, policies_from_payload
from ...sync.models import ManagedPolicy
from ...sync.reporter import (
    apply_result_to_json,
    format_apply_result,
    format_history,
    format_plan_preview,
    format_revert_result,
    history_to_json,
    plan_to_json,
    revert_result_to_json,
    state_to_json,
)
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shared schema fragments
# ---------------------------------------------------------------------------

_DEFINITION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "command": {"type": "string"},
        "args": {"type": "array", "items": {"type": "string"}},
        "env": {"type": "object", "additionalProperties": {"type": "string"}},
        "cwd": {"type": "string"},
        "enabled": {"type": "boolean"},
    },
    "required": ["command"],
}

_POLICIES_SCHEMA: dict[str, Any] = {
    "type": "array",
    "description": (
        "Desired entries. Either {name, definition, shared, global_enabled, "
        "overrides: {target: {definition?, enabled?}}} or the per-target form "
        "{name, globalEnabled, platformDefinitions, platformEnabled}."
    ),
    "items": {
        "type": "object",
        "properties": {
            "name": {"type": "string"},
            "definition": _DEFINITION_SCHEMA,
            "shared": {"type": "boolean", "default": True},
            "global_enabled": {"type": "boolean", "default": True},
            "overrides": {"type": "object"},
            "globalEnabled": {"type": "boolean"},
            "platformDefinitions": {"type": "object"},
            "platformEnabled": {"type": "object"},
        },
        "required": ["name"],
    },
}

_TARGETS_SCHEMA: dict[str, Any] = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Restrict to these target ids (default: all)",
}


def _text_result(text: str, structured: dict) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


def _parse_policies(
    engine: SyncEngine, raw: Any
) -> list[ManagedPolicy]:
    """Accept both policy shapes; ``ValueError`` on anything else."""
    if not isinstance(raw, list):
        raise ValueError("policies must be an array")
    payload_items = [i for i in raw if isinstance(i, dict) and "platformDefinitions" in i]
    managed_items = [i for i in raw if isinstance(i, dict) and "platformDefinitions" not in i]
    if len(payload_items) + len(managed_items) != len(raw):
        raise ValueError("each policy must be an object")

    policies = [ManagedPolicy.model_validate(i) for i in managed_items]
    policies += policies_from_payload(payload_items, list(engine.bindings))
    return policies


def _targets_arg(args: dict[str, Any]) -> list[str] | None:
    targets = args.get("targets")
    if targets is None:
        return None
    if not isinstance(targets, list) or not all(isinstance(t, str) for t in targets):
        raise ValueError("targets must be an array of strings")
    return targets


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_sync_targets(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    state = await engine.load_state(_targets_arg(args))
    lines = [f"Last applied: {state.last_applied_at or 'never'}"]
    for snap in state.targets.values():
        status = "found" if snap.found else "missing"
        lines.append(
            f"[{snap.target}] {snap.name} ({status}) {snap.config_path}: "
            f"{len(snap.servers)} server(s)"
        )
        for warning in snap.warnings:
            lines.append(f"  warning: {warning}")
    return _text_result("\n".join(lines), state_to_json(state))


async def _handle_sync_preview(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    policies = _parse_policies(engine, args.get("policies", []))
    state = await engine.load_state(_targets_arg(args))
    plan = await engine.plan(
        policies,
        preserve_unmanaged=args.get("preserve_unmanaged", True),
        state=state,
    )
    text = format_plan_preview(plan, show_diff=args.get("show_diff", False))
    warnings = [
        f"{snap.target}: {w}"
        for snap in state.targets.values()
        for w in snap.warnings
    ]
    if warnings:
        text += "\n\nWarnings:\n" + "\n".join(f"  {w}" for w in warnings)
    structured = plan_to_json(plan)
    structured["warnings"] = warnings
    return _text_result(text, structured)


async def _handle_sync_apply(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    policies = _parse_policies(engine, args.get("policies", []))
    result = await engine.apply(
        policies,
        preserve_unmanaged=args.get("preserve_unmanaged", True),
        targets=_targets_arg(args),
    )
    return _text_result(format_apply_result(result), apply_result_to_json(result))


async def _handle_sync_history(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    limit = args.get("limit", 50)
    if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
        raise ValueError("limit must be a positive integer")
    revisions = await engine.history(limit)
    return _text_result(format_history(revisions), history_to_json(revisions))


async def _handle_sync_revert(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    revision_id = args.get("revision_id")
    if not isinstance(revision_id, str) or not revision_id.strip():
        raise ValueError("revision_id is required")
    result = await engine.revert(revision_id)
    if args.get("strict", False):
        result.raise_for_failures()
    return _text_result(format_revert_result(result), revert_result_to_json(result))


async def _handle_sync_snapshot(
    engine: SyncEngine, args: dict[str, Any]
) -> types.CallToolResult:
    result = await engine.snapshot(_targets_arg(args), reason=args.get("reason"))
    lines = [result.message]
    for entry in result.entries:
        lines.append(f"  {entry.target}: {entry.backup_path}")
    return _text_result("\n".join(lines), result.model_dump(mode="json"))


# ---------------------------------------------------------------------------
# Specs
# ---------------------------------------------------------------------------


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=types.Tool(
            name="sync_targets",
            description=(
                "Show every target tool's config file and the MCP server "
                "entries it currently holds, with recovery warnings."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {"targets": _TARGETS_SCHEMA},
            },
        ),
        read_only=True,
        handler=_handle_sync_targets,
    ),
    ToolSpec(
        tool=types.Tool(
            name="sync_preview",
            description=(
                "Preview the add/update/remove operations a sync would "
                "perform on each target. Writes nothing."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "policies": _POLICIES_SCHEMA,
                    "preserve_unmanaged": {
                        "type": "boolean",
                        "default": True,
                        "description": "Keep entries no policy manages",
                    },
                    "show_diff": {
                        "type": "boolean",
                        "default": False,
                        "description": "Include a unified diff per target",
                    },
                    "targets": _TARGETS_SCHEMA,
                },
                "required": ["policies"],
            },
        ),
        read_only=True,
        handler=_handle_sync_preview,
    ),
    ToolSpec(
        tool=types.Tool(
            name="sync_apply",
            description=(
                "Apply policies to every target. Each changed file is "
                "backed up then written atomically; any failure rolls back "
                "the files already written. Returns the revision id."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=True,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "policies": _POLICIES_SCHEMA,
                    "preserve_unmanaged": {"type": "boolean", "default": True},
                    "targets": _TARGETS_SCHEMA,
                },
                "required": ["policies"],
            },
        ),
        read_only=False,
        handler=_handle_sync_apply,
    ),
    ToolSpec(
        tool=types.Tool(
            name="sync_history",
            description="List applied revisions, newest first.",
            annotations=types.ToolAnnotations(
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "limit": {
                        "type": "integer",
                        "default": 50,
                        "minimum": 1,
                    },
                },
            },
        ),
        read_only=True,
        handler=_handle_sync_history,
    ),
    ToolSpec(
        tool=types.Tool(
            name="sync_revert",
            description=(
                "Restore every file written by a revision from the backups "
                "recorded in the journal. Missing backups are reported per "
                "file."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=True,
                idempotentHint=False,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "revision_id": {"type": "string"},
                    "strict": {
                        "type": "boolean",
                        "default": False,
                        "description": "Return an error if any file was not restored",
                    },
                },
                "required": ["revision_id"],
            },
        ),
        read_only=False,
        handler=_handle_sync_revert,
    ),
    ToolSpec(
        tool=types.Tool(
            name="sync_snapshot",
            description=(
                "Copy current target config files to manual backup files. "
                "Snapshots are not journaled."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=False,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "targets": _TARGETS_SCHEMA,
                    "reason": {"type": "string"},
                },
            },
        ),
        read_only=False,
        handler=_handle_sync_snapshot,
    ),
]
