"""Tests for sync planning: policy resolution, desired configs and diffs."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from mcp_gateway.domain import ServerDefinition
from mcp_gateway.sync.models import ManagedPolicy, OperationType, TargetOverride
from mcp_gateway.sync.planner import desired_config, diff_configs, plan_sync

PATHS = {"targetA": "/a/mcp.json", "targetB": "/b/mcp.json"}


@pytest.fixture
def local_time(node_definition) -> ManagedPolicy:
    """Shared policy disabled on targetB only."""
    return ManagedPolicy(
        name="localTime",
        definition=node_definition,
        overrides={"targetB": TargetOverride(enabled=False)},
    )


# ---------------------------------------------------------------------------
# ManagedPolicy.resolve
# ---------------------------------------------------------------------------


class TestResolve:
    def test_shared_policy_applies_base(self, node_definition):
        policy = ManagedPolicy(name="p", definition=node_definition)
        resolved = policy.resolve("anything")
        assert resolved.command == "node"
        assert resolved.enabled is True

    def test_override_definition_wins(self, node_definition):
        policy = ManagedPolicy(
            name="p",
            definition=node_definition,
            overrides={
                "cursor": TargetOverride(
                    definition=ServerDefinition(command="python")
                )
            },
        )
        assert policy.resolve("cursor").command == "python"
        assert policy.resolve("claude").command == "node"

    def test_unshared_policy_needs_override(self, node_definition):
        policy = ManagedPolicy(
            name="p",
            definition=node_definition,
            shared=False,
            overrides={
                "codex": TargetOverride(
                    definition=ServerDefinition(command="deno")
                )
            },
        )
        assert policy.resolve("claude") is None
        assert policy.resolve("codex").command == "deno"

    def test_global_switch_overrides_target_enable(self, node_definition):
        policy = ManagedPolicy(
            name="p",
            definition=node_definition,
            global_enabled=False,
            overrides={"claude": TargetOverride(enabled=True)},
        )
        assert policy.resolve("claude").enabled is False

    def test_invalid_definition_rejected(self):
        with pytest.raises(ValidationError, match="non-empty string 'command'"):
            ManagedPolicy(name="p", definition=ServerDefinition(command=""))

    def test_blank_name_rejected(self, node_definition):
        with pytest.raises(ValidationError):
            ManagedPolicy(name="", definition=node_definition)


# ---------------------------------------------------------------------------
# desired_config / diff_configs
# ---------------------------------------------------------------------------


class TestDesiredConfig:
    def test_preserves_unmanaged_entries(self, local_time):
        current = {"other": ServerDefinition(command="x")}
        desired = desired_config("targetA", current, [local_time], True)
        assert set(desired) == {"localTime", "other"}

    def test_drops_unmanaged_entries(self, local_time):
        current = {"other": ServerDefinition(command="x")}
        desired = desired_config("targetA", current, [local_time], False)
        assert set(desired) == {"localTime"}

    def test_managed_name_without_definition_is_removed(self, node_definition):
        policy = ManagedPolicy(name="gone", definition=node_definition, shared=False)
        current = {"gone": ServerDefinition(command="old")}
        assert desired_config("targetA", current, [policy], True) == {}


class TestDiffConfigs:
    def test_operations_sorted_by_name(self):
        current = {
            "b": ServerDefinition(command="x"),
            "c": ServerDefinition(command="same"),
        }
        desired = {
            "a": ServerDefinition(command="new"),
            "b": ServerDefinition(command="y"),
            "c": ServerDefinition(command="same"),
        }
        operations = diff_configs(current, desired)
        assert [(o.entry_name, o.type) for o in operations] == [
            ("a", OperationType.ADD),
            ("b", OperationType.UPDATE),
        ]

    def test_remove(self):
        operations = diff_configs({"a": ServerDefinition(command="x")}, {})
        assert operations[0].type is OperationType.REMOVE
        assert operations[0].after is None

    def test_argument_order_is_significant(self):
        current = {"a": ServerDefinition(command="x", args=["1", "2"])}
        desired = {"a": ServerDefinition(command="x", args=["2", "1"])}
        assert len(diff_configs(current, desired)) == 1


# ---------------------------------------------------------------------------
# plan_sync
# ---------------------------------------------------------------------------


class TestPlanSync:
    """Tests for plan_sync()."""

    def test_per_target_enable_flag(self, local_time):
        plan = plan_sync({}, PATHS, [local_time])

        a = plan.targets["targetA"]
        b = plan.targets["targetB"]
        assert a.next_config["localTime"].enabled is True
        assert b.next_config["localTime"].enabled is False
        assert a.operations[0].type is OperationType.ADD
        assert b.operations[0].type is OperationType.ADD
        assert plan.total_operations == 2

    def test_target_order_follows_paths(self, local_time):
        paths = {"z": "/z.json", "a": "/a.json", "m": "/m.json"}
        plan = plan_sync({}, paths, [local_time])
        assert list(plan.targets) == ["z", "a", "m"]

    def test_missing_current_state_is_empty(self, local_time):
        plan = plan_sync({"targetA": {}}, PATHS, [local_time])
        assert plan.targets["targetB"].current_config == {}

    def test_idempotent_after_apply(self, local_time):
        first = plan_sync({}, PATHS, [local_time])
        applied_state = {
            target: p.next_config for target, p in first.targets.items()
        }

        second = plan_sync(applied_state, PATHS, [local_time])

        assert second.total_operations == 0
        assert second.changed_targets() == []
        assert all(not p.has_changes for p in second.targets.values())

    def test_deterministic(self, local_time):
        current = {"targetA": {"x": ServerDefinition(command="y")}}
        one = plan_sync(current, PATHS, [local_time])
        two = plan_sync(current, PATHS, [local_time])
        assert one.model_dump(exclude={"generated_at"}) == two.model_dump(
            exclude={"generated_at"}
        )

    def test_does_not_mutate_current_state(self, local_time):
        entry = ServerDefinition(command="keep")
        current = {"targetA": {"keep": entry}}
        plan_sync(current, PATHS, [local_time], preserve_unmanaged=False)
        assert current == {"targetA": {"keep": entry}}
