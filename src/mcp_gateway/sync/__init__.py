"""Configuration reconciliation: plan, apply, journal and revert."""

from .applier import apply_sync_plan
from .engine import SyncEngine, TargetBinding, build_bindings, policies_from_payload
from .journal import (
    append_journal_entry,
    read_revision_entries,
    read_revision_history,
    revert_revision,
)
from .merge_read import candidate_paths, read_merged_config, read_with_recovery
from .models import (
    AppliedOperation,
    ApplyResult,
    GatewayState,
    ManagedPolicy,
    MergedConfig,
    OperationType,
    RevertEntryResult,
    RevertResult,
    RevisionEntry,
    RevisionSummary,
    SyncOperation,
    SyncPlan,
    TargetOverride,
    TargetSyncPlan,
)
from .planner import plan_sync
from .rollback import rollback_from_backups

__all__ = [
    "AppliedOperation",
    "ApplyResult",
    "GatewayState",
    "ManagedPolicy",
    "MergedConfig",
    "OperationType",
    "RevertEntryResult",
    "RevertResult",
    "RevisionEntry",
    "RevisionSummary",
    "SyncEngine",
    "SyncOperation",
    "SyncPlan",
    "TargetBinding",
    "TargetOverride",
    "TargetSyncPlan",
    "append_journal_entry",
    "apply_sync_plan",
    "build_bindings",
    "candidate_paths",
    "plan_sync",
    "policies_from_payload",
    "read_merged_config",
    "read_revision_entries",
    "read_revision_history",
    "read_with_recovery",
    "revert_revision",
    "rollback_from_backups",
]
