"""Tests for plan / apply / revert / history formatting.

Covers:
- format_plan_preview with changed and unchanged targets
- format_target_diff output
- post-action summaries
- JSON structures used for structured tool output
"""

from __future__ import annotations

from mcp_gateway.domain import ServerDefinition
from mcp_gateway.sync.models import (
    AppliedOperation,
    ApplyResult,
    ManagedPolicy,
    RevertEntryResult,
    RevertResult,
    RevisionEntry,
    RevisionSummary,
    TargetOverride,
)
from mcp_gateway.sync.planner import plan_sync
from mcp_gateway.sync.reporter import (
    format_apply_result,
    format_history,
    format_plan_preview,
    format_revert_result,
    format_target_diff,
    history_to_json,
    plan_to_json,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _plan(current=None):
    policy = ManagedPolicy(
        name="localTime",
        definition=ServerDefinition(command="node"),
        overrides={"cursor": TargetOverride(enabled=False)},
    )
    return plan_sync(
        current or {},
        {"claude": "/c/mcp.json", "cursor": "/k/mcp.json"},
        [policy],
    )


def _applied(target: str, backup: str | None) -> AppliedOperation:
    return AppliedOperation(
        revision_id="rev-1",
        target=target,
        config_path=f"/{target}.json",
        backup_path=backup,
        operation_count=2,
        applied_at="2026-02-07T10:00:00.000000Z",
    )


# ---------------------------------------------------------------------------
# Plan preview
# ---------------------------------------------------------------------------


class TestFormatPlanPreview:
    def test_lists_operations_per_target(self):
        text = format_plan_preview(_plan())
        assert text.startswith("PREVIEW -- No changes will be made")
        assert "2 operation(s) across 2 target(s)" in text
        assert "[claude] /c/mcp.json" in text
        assert "  + localTime" in text
        assert "  + localTime (disabled)" in text

    def test_unchanged_target(self):
        plan = _plan()
        current = {t: p.next_config for t, p in plan.targets.items()}
        text = format_plan_preview(_plan(current))
        assert "[claude] up to date" in text
        assert text.endswith("No changes needed.")

    def test_show_diff(self):
        text = format_plan_preview(_plan(), show_diff=True)
        assert "--- current: /c/mcp.json" in text
        assert "+++ desired: /c/mcp.json" in text


def test_target_diff_without_changes():
    plan = _plan()
    current = {t: p.next_config for t, p in plan.targets.items()}
    unchanged = _plan(current).targets["claude"]
    assert format_target_diff(unchanged) == "(no textual differences)"


# ---------------------------------------------------------------------------
# Summaries
# ---------------------------------------------------------------------------


class TestSummaries:
    def test_apply_result(self):
        result = ApplyResult(
            applied_at="2026-02-07T10:00:01.000000Z",
            revision_id="rev-1",
            operations=(_applied("claude", "/claude.json.bak.x"), _applied("codex", None)),
        )
        text = format_apply_result(result)
        assert text.splitlines()[0].startswith("Applied revision rev-1")
        assert "[backup: /claude.json.bak.x]" in text
        assert "no backup (new file)" in text

    def test_empty_apply_result(self):
        result = ApplyResult(applied_at="t", revision_id="rev-1")
        assert format_apply_result(result) == (
            "Nothing to apply; every target is up to date."
        )

    def test_revert_result(self):
        result = RevertResult(
            revision_id="rev-1",
            reverted_at="t",
            results=(
                RevertEntryResult(
                    platform="claude",
                    config_path="/c.json",
                    backup_path="/c.bak",
                    reverted=True,
                    message="Reverted from backup.",
                ),
                RevertEntryResult(
                    platform="cursor",
                    config_path="/k.json",
                    backup_path="/k.bak",
                    reverted=False,
                    message="Backup file not found.",
                ),
            ),
        )
        text = format_revert_result(result)
        assert "1/2 config file(s) restored" in text
        assert "[FAILED] cursor /k.json: Backup file not found." in text

    def test_empty_history(self):
        assert format_history([]) == "No revisions recorded."


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


class TestJson:
    def test_plan_to_json(self):
        data = plan_to_json(_plan())
        assert data["total_operations"] == 2
        cursor = data["targets"]["cursor"]
        assert cursor["operations"][0]["type"] == "add"
        assert cursor["operations"][0]["before"] is None
        assert cursor["next_config"]["localTime"] == {
            "command": "node",
            "enabled": False,
        }

    def test_history_to_json_uses_journal_keys(self):
        entry = RevisionEntry(
            revision_id="rev-1",
            timestamp="t",
            platform="claude",
            config_path="/c.json",
            backup_path=None,
            operation_count=1,
        )
        summary = RevisionSummary(
            revision_id="rev-1",
            applied_at="t",
            total_operations=1,
            platforms=("claude",),
            entries=(entry,),
        )
        data = history_to_json([summary])
        assert data["revisions"][0]["entries"][0]["revisionId"] == "rev-1"
        assert data["revisions"][0]["entries"][0]["backupPath"] is None
