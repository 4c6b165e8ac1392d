"""Compute desired per-target configs from policies and diff them.

``plan_sync()`` is a pure function: it never touches the filesystem and,
given identical inputs, returns plans that differ only in
``generated_at``.

Resolution rules (per policy, per target):

* effective definition = override definition if present, else the base
  definition when the policy is shared, else nothing;
* effective enabled = ``global_enabled and (override.enabled ?? True)``;
* a policy with no effective definition contributes nothing to that
  target, but its name still counts as managed.

With ``preserve_unmanaged`` every current entry whose name no policy
claims is carried into the desired config unchanged, so a sync never
deletes entries it does not manage.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from ..core.file_ops import utc_now_iso
from ..domain import TargetConfig, clone_config, definitions_equal
from .models import (
    ManagedPolicy,
    OperationType,
    SyncOperation,
    SyncPlan,
    TargetSyncPlan,
)

logger = logging.getLogger(__name__)


def desired_config(
    target: str,
    current: TargetConfig,
    policies: Iterable[ManagedPolicy],
    preserve_unmanaged: bool = True,
) -> TargetConfig:
    """Build the desired ``TargetConfig`` for one target."""
    policies = list(policies)
    desired: TargetConfig = {}
    for policy in policies:
        definition = policy.resolve(target)
        if definition is not None:
            desired[policy.name] = definition

    if preserve_unmanaged:
        managed = {policy.name for policy in policies}
        for name, definition in current.items():
            if name in managed or name in desired:
                continue
            desired[name] = definition.model_copy(deep=True)
    return desired


def diff_configs(
    current: TargetConfig, desired: TargetConfig
) -> list[SyncOperation]:
    """Operations turning *current* into *desired*, sorted by entry name."""
    operations: list[SyncOperation] = []
    for name in sorted(set(current) | set(desired)):
        before = current.get(name)
        after = desired.get(name)
        if before is None and after is not None:
            operations.append(
                SyncOperation(type=OperationType.ADD, entry_name=name, after=after)
            )
        elif before is not None and after is None:
            operations.append(
                SyncOperation(
                    type=OperationType.REMOVE, entry_name=name, before=before
                )
            )
        elif not definitions_equal(before, after):
            operations.append(
                SyncOperation(
                    type=OperationType.UPDATE,
                    entry_name=name,
                    before=before,
                    after=after,
                )
            )
    return operations


def plan_sync(
    current_state: Mapping[str, TargetConfig],
    target_paths: Mapping[str, str],
    policies: Iterable[ManagedPolicy],
    preserve_unmanaged: bool = True,
) -> SyncPlan:
    """Build a ``SyncPlan`` covering every target in *target_paths*.

    Args:
        current_state: Current config per target; a missing target is
            treated as empty.
        target_paths: Write path per target.  Its iteration order is the
            plan's (and therefore the apply) order.
        policies: Declared desired entries.
        preserve_unmanaged: Keep entries no policy claims.

    Returns:
        The plan.  ``total_operations`` sums every target's operations.
    """
    policies = list(policies)
    targets: dict[str, TargetSyncPlan] = {}
    total = 0

    for target, config_path in target_paths.items():
        current = clone_config(current_state.get(target, {}))
        desired = desired_config(target, current, policies, preserve_unmanaged)
        operations = diff_configs(current, desired)
        total += len(operations)
        targets[target] = TargetSyncPlan(
            target=target,
            config_path=config_path,
            current_config=current,
            next_config=desired,
            operations=tuple(operations),
            has_changes=bool(operations),
        )

    logger.debug(
        "Planned %d operation(s) across %d target(s)", total, len(targets)
    )
    return SyncPlan(
        generated_at=utc_now_iso(),
        targets=targets,
        total_operations=total,
    )
