"""Plan, apply, history and revert formatting.

Provides human-readable and machine-readable output:

- ``format_plan_preview`` -- operations per target, optionally with diffs.
- ``format_target_diff`` -- unified diff of current vs desired mapping.
- ``format_apply_result`` / ``format_revert_result`` /
  ``format_history`` -- post-action summaries.
- ``*_to_json`` -- structured dicts for MCP ``structuredContent`` output.
"""

from __future__ import annotations

import difflib
import json
from typing import TYPE_CHECKING

from ..domain import config_to_mapping

if TYPE_CHECKING:
    from .models import (
        ApplyResult,
        GatewayState,
        RevertResult,
        RevisionSummary,
        SyncOperation,
        SyncPlan,
        TargetSyncPlan,
    )

_SYMBOLS = {"add": "+", "update": "~", "remove": "-"}

# ------------------------------------------------------------------
# Plan preview
# ------------------------------------------------------------------


def format_target_diff(target_plan: TargetSyncPlan) -> str:
    """Unified diff between the current and desired server mapping."""
    current = json.dumps(
        config_to_mapping(target_plan.current_config), indent=2, sort_keys=True
    ).splitlines(keepends=True)
    desired = json.dumps(
        config_to_mapping(target_plan.next_config), indent=2, sort_keys=True
    ).splitlines(keepends=True)
    diff = "".join(
        difflib.unified_diff(
            current,
            desired,
            fromfile=f"current: {target_plan.config_path}",
            tofile=f"desired: {target_plan.config_path}",
        )
    )
    return diff.rstrip() or "(no textual differences)"


def _operation_line(op: SyncOperation) -> str:
    line = f"  {_SYMBOLS[op.type.value]} {op.entry_name}"
    if op.after is not None and not op.after.is_enabled:
        line += " (disabled)"
    return line


def format_plan_preview(plan: SyncPlan, show_diff: bool = False) -> str:
    """Format a plan as text, one section per target.

    Args:
        plan: Plan to describe.
        show_diff: Append a unified diff for every changed target.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append("PREVIEW -- No changes will be made")
    lines.append(f"Generated: {plan.generated_at}")
    lines.append(
        f"{plan.total_operations} operation(s) across "
        f"{len(plan.changed_targets())} target(s)"
    )
    lines.append("")

    for target_plan in plan.targets.values():
        if not target_plan.has_changes:
            lines.append(f"[{target_plan.target}] up to date")
            continue
        lines.append(f"[{target_plan.target}] {target_plan.config_path}")
        for op in target_plan.operations:
            lines.append(_operation_line(op))
        if show_diff:
            lines.append(format_target_diff(target_plan))
        lines.append("")

    if plan.total_operations == 0:
        lines.append("")
        lines.append("No changes needed.")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Post-action summaries
# ------------------------------------------------------------------


def format_apply_result(result: ApplyResult) -> str:
    if not result.operations:
        return "Nothing to apply; every target is up to date."
    lines = [
        f"Applied revision {result.revision_id} at {result.applied_at}",
    ]
    for op in result.operations:
        backup = op.backup_path or "no backup (new file)"
        lines.append(
            f"  {op.target}: {op.operation_count} operation(s) -> "
            f"{op.config_path} [backup: {backup}]"
        )
    return "\n".join(lines)


def format_revert_result(result: RevertResult) -> str:
    reverted = sum(1 for r in result.results if r.reverted)
    lines = [
        f"Revert of {result.revision_id}: "
        f"{reverted}/{len(result.results)} config file(s) restored"
    ]
    for r in result.results:
        status = "OK" if r.reverted else "FAILED"
        lines.append(f"  [{status}] {r.platform} {r.config_path}: {r.message}")
    return "\n".join(lines)


def format_history(revisions: list[RevisionSummary]) -> str:
    if not revisions:
        return "No revisions recorded."
    lines = []
    for rev in revisions:
        lines.append(
            f"{rev.applied_at}  {rev.revision_id}  "
            f"{rev.total_operations} op(s)  {', '.join(rev.platforms)}"
        )
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def _operation_to_json(op: SyncOperation) -> dict:
    return {
        "type": op.type.value,
        "entry_name": op.entry_name,
        "before": op.before.to_dict() if op.before is not None else None,
        "after": op.after.to_dict() if op.after is not None else None,
    }


def plan_to_json(plan: SyncPlan) -> dict:
    return {
        "generated_at": plan.generated_at,
        "total_operations": plan.total_operations,
        "targets": {
            target: {
                "config_path": p.config_path,
                "has_changes": p.has_changes,
                "operations": [_operation_to_json(op) for op in p.operations],
                "next_config": config_to_mapping(p.next_config),
            }
            for target, p in plan.targets.items()
        },
    }


def apply_result_to_json(result: ApplyResult) -> dict:
    return result.model_dump(mode="json")


def revert_result_to_json(result: RevertResult) -> dict:
    return result.model_dump(mode="json")


def history_to_json(revisions: list[RevisionSummary]) -> dict:
    """Revision summaries; entries use the journal's camelCase keys."""
    return {
        "revisions": [
            {
                "revision_id": rev.revision_id,
                "applied_at": rev.applied_at,
                "total_operations": rev.total_operations,
                "platforms": list(rev.platforms),
                "entries": [e.to_record() for e in rev.entries],
            }
            for rev in revisions
        ]
    }


def state_to_json(state: GatewayState) -> dict:
    return {
        "last_applied_at": state.last_applied_at,
        "targets": {
            target: {
                "name": snap.name,
                "category": snap.category.value,
                "field_name": snap.field_name,
                "found": snap.found,
                "config_path": snap.config_path,
                "servers": config_to_mapping(snap.servers),
                "warnings": list(snap.warnings),
                "sources": list(snap.sources),
            }
            for target, snap in state.targets.items()
        },
    }
