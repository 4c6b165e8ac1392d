"""Pydantic models for the configuration reconciliation engine.

Defines the data contracts passed between planner, applier, rollback,
merge-read and journal:

- ``TargetOverride`` / ``ManagedPolicy``: user-declared desired entries.
- ``SyncOperation``: one add / update / remove of a named entry.
- ``TargetSyncPlan`` / ``SyncPlan``: what a sync would change.
- ``AppliedOperation`` / ``ApplyResult``: what an apply actually wrote.
- ``RevisionEntry`` / ``RevisionSummary``: persisted journal rows and
  their per-revision grouping.
- ``RevertEntryResult`` / ``RevertResult``: outcome of a revert.
- ``MergedConfig``: tolerant multi-source read of one target.
- ``TargetSnapshot`` / ``GatewayState``: explicit state returned to callers.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..domain import ServerDefinition, TargetConfig, validate_definition
from ..errors import RestoreFailure, RevertError

# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------


class TargetOverride(BaseModel):
    """Per-target adjustment of a policy.

    Attributes:
        definition: Replaces the policy definition for this target.
        enabled: ``False`` disables the entry for this target only.
    """

    definition: ServerDefinition | None = None
    enabled: bool | None = None

    model_config = {"frozen": True}


class ManagedPolicy(BaseModel):
    """One user-declared desired entry.

    Attributes:
        name: Entry name written into every target.
        definition: Base definition.
        shared: When ``True`` the base definition applies to every target
            lacking an override definition; when ``False`` only targets with
            an override definition receive the entry.
        global_enabled: Master switch, ANDed with each override's
            ``enabled``.
        overrides: Per-target overrides keyed by target id.
    """

    name: str = Field(min_length=1)
    definition: ServerDefinition | None = None
    shared: bool = True
    global_enabled: bool = True
    overrides: dict[str, TargetOverride] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _valid_definitions(self) -> ManagedPolicy:
        candidates = [("base", self.definition)] + [
            (target, o.definition) for target, o in self.overrides.items()
        ]
        errors: list[str] = []
        for where, definition in candidates:
            if definition is not None:
                errors.extend(
                    f"{where}: {e}"
                    for e in validate_definition(self.name, definition.to_dict())
                )
        if errors:
            raise ValueError(" ".join(errors))
        return self

    def resolve(self, target: str) -> ServerDefinition | None:
        """Effective definition for *target*, or ``None`` if it has none."""
        override = self.overrides.get(target)
        override_definition = override.definition if override is not None else None
        base = override_definition
        if base is None and self.shared:
            base = self.definition
        if base is None:
            return None
        override_enabled = (
            override.enabled
            if override is not None and override.enabled is not None
            else True
        )
        return base.with_enabled(self.global_enabled and override_enabled)


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


class OperationType(str, Enum):
    ADD = "add"
    UPDATE = "update"
    REMOVE = "remove"


class SyncOperation(BaseModel):
    """One diff result for a named entry.

    Attributes:
        type: ``add``, ``update`` or ``remove``.
        entry_name: Entry name within the target mapping.
        before: Current definition (``None`` for ``add``).
        after: Desired definition (``None`` for ``remove``).
    """

    type: OperationType
    entry_name: str
    before: ServerDefinition | None = None
    after: ServerDefinition | None = None

    model_config = {"frozen": True}


class TargetSyncPlan(BaseModel):
    """Plan for a single target.

    Attributes:
        target: Target id.
        config_path: File the plan would write.
        current_config: Snapshot of what the target holds now.
        next_config: Desired document after the sync.
        operations: Operations sorted by entry name.
        has_changes: ``True`` when ``operations`` is non-empty.
    """

    target: str
    config_path: str
    current_config: TargetConfig
    next_config: TargetConfig
    operations: tuple[SyncOperation, ...] = ()
    has_changes: bool = False

    model_config = {"frozen": True}


class SyncPlan(BaseModel):
    """Aggregate plan across targets, in apply order."""

    generated_at: str
    targets: dict[str, TargetSyncPlan]
    total_operations: int = 0

    model_config = {"frozen": True}

    def changed_targets(self) -> list[TargetSyncPlan]:
        return [p for p in self.targets.values() if p.has_changes]


# ---------------------------------------------------------------------------
# Apply results
# ---------------------------------------------------------------------------


class AppliedOperation(BaseModel):
    """A target written successfully during one apply pass.

    Attributes:
        revision_id: Identifier shared by every write of the pass.
        target: Target id.
        config_path: File that was written.
        backup_path: Backup taken before writing; ``None`` when the file
            did not exist beforehand.
        operation_count: Number of entry operations written.
        applied_at: ISO 8601 timestamp of the write.
    """

    revision_id: str
    target: str
    config_path: str
    backup_path: str | None = None
    operation_count: int
    applied_at: str

    model_config = {"frozen": True}


class ApplyResult(BaseModel):
    applied_at: str
    revision_id: str
    operations: tuple[AppliedOperation, ...] = ()

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Journal
# ---------------------------------------------------------------------------


class RevisionEntry(BaseModel):
    """One journal line: one target written by one apply pass.

    Serialized with camelCase keys (``revisionId``, ``configPath`` ...)
    so journals stay readable by other tools sharing the file.
    """

    revision_id: str = Field(alias="revisionId", min_length=1)
    timestamp: str = Field(min_length=1)
    platform: str = Field(min_length=1)
    config_path: str = Field(alias="configPath", min_length=1)
    backup_path: str | None = Field(alias="backupPath")
    operation_count: int = Field(alias="operationCount", ge=0)

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True)


class RevisionSummary(BaseModel):
    """All journal entries sharing one revision id (derived, not stored)."""

    revision_id: str
    applied_at: str
    total_operations: int
    platforms: tuple[str, ...]
    entries: tuple[RevisionEntry, ...]

    model_config = {"frozen": True}


class RevertEntryResult(BaseModel):
    platform: str
    config_path: str
    backup_path: str | None
    reverted: bool
    message: str

    model_config = {"frozen": True}


class RevertResult(BaseModel):
    """Per-entry outcome of reverting one revision."""

    revision_id: str
    reverted_at: str
    results: tuple[RevertEntryResult, ...]

    model_config = {"frozen": True}

    @property
    def failures(self) -> list[RevertEntryResult]:
        return [r for r in self.results if not r.reverted]

    @property
    def ok(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        """Raise ``RevertError`` listing every entry that was not restored."""
        if self.failures:
            raise RevertError(
                [
                    RestoreFailure(
                        config_path=r.config_path,
                        backup_path=r.backup_path or "",
                        reason=r.message,
                    )
                    for r in self.failures
                ]
            )


# ---------------------------------------------------------------------------
# Reads and state
# ---------------------------------------------------------------------------


class MergedConfig(BaseModel):
    """Tolerant read of one target over several candidate files.

    Attributes:
        found: ``True`` when at least one candidate file contributed.
        config_path: Path writes go to: the first contributing source, or
            the first candidate when none exists.
        config: Merged entries, first source wins.
        warnings: Human-readable recovery messages.
        sources: Candidate files that contributed, in order.
    """

    found: bool
    config_path: str
    config: TargetConfig = Field(default_factory=dict)
    warnings: tuple[str, ...] = ()
    sources: tuple[str, ...] = ()

    model_config = {"frozen": True}


class TargetCategory(str, Enum):
    BUILTIN = "builtin"
    KNOWN = "known"
    CUSTOM = "custom"


class TargetSnapshot(BaseModel):
    target: str
    name: str
    category: TargetCategory
    field_name: str
    found: bool
    config_path: str
    servers: TargetConfig = Field(default_factory=dict)
    warnings: tuple[str, ...] = ()
    sources: tuple[str, ...] = ()

    model_config = {"frozen": True}


class GatewayState(BaseModel):
    """Snapshot of every target plus the last successful apply time."""

    targets: dict[str, TargetSnapshot]
    last_applied_at: str | None = None

    model_config = {"frozen": True}

    def current_state(self) -> dict[str, TargetConfig]:
        return {t: s.servers for t, s in self.targets.items()}

    def target_paths(self) -> dict[str, str]:
        return {t: s.config_path for t, s in self.targets.items()}


class SnapshotEntry(BaseModel):
    target: str
    config_path: str
    backup_path: str
    created_at: str

    model_config = {"frozen": True}


class SnapshotResult(BaseModel):
    """Manual snapshot of target files; never journaled, never reverted to."""

    created_at: str
    entries: tuple[SnapshotEntry, ...] = ()
    message: str = ""

    model_config = {"frozen": True}
