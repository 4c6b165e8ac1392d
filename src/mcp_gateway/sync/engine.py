"""Coordinator tying adapters, merge-read, planner, applier and journal.

The ``SyncEngine`` is the entry point used by the MCP tools.  It:

1. Builds one adapter binding per target: built-in targets always, known
   targets when configured or detected, custom targets from config.
2. Merge-reads every target's candidate files into a ``GatewayState``.
3. Plans a sync for a set of ``ManagedPolicy`` objects.
4. Pre-seeds missing files for changed targets, then applies the plan.
5. Lists and reverts journal revisions and takes manual snapshots.

State is never kept between calls: every operation reads the target files
and the journal afresh and returns an explicit result.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..adapters.base import TargetAdapter
from ..adapters.targets import (
    BUILTIN_TARGETS,
    KNOWN_TARGETS,
    create_builtin_adapter,
    create_custom_adapter,
    create_known_adapter,
    display_name,
)
from ..config_schema import GatewayConfig
from ..core.async_utils import gather_limited, run_sync
from ..core.file_ops import create_manual_snapshot, path_exists, utc_now_iso
from ..domain import ServerDefinition, validate_definition
from ..errors import GatewayError
from .applier import apply_sync_plan
from .journal import (
    DEFAULT_HISTORY_LIMIT,
    last_applied_at,
    read_revision_history,
    revert_revision,
)
from .merge_read import candidate_paths, read_merged_config
from .models import (
    ApplyResult,
    GatewayState,
    ManagedPolicy,
    RevertResult,
    RevisionSummary,
    SnapshotEntry,
    SnapshotResult,
    SyncPlan,
    TargetCategory,
    TargetOverride,
    TargetSnapshot,
)
from .planner import plan_sync

logger = logging.getLogger(__name__)


def _expand(path: str) -> str:
    return str(Path(path).expanduser())


@dataclass(frozen=True)
class TargetBinding:
    """An adapter plus where to look for its files.

    Attributes:
        target: Target id.
        name: Display name.
        category: Built-in, known or custom.
        adapter: Adapter serving the target.
        override: Explicit config path; disables default candidates.
        additional: Extra source files merged after the primary one.
        always: Include the target even when none of its files exist.
    """

    target: str
    name: str
    category: TargetCategory
    adapter: TargetAdapter
    override: str | None = None
    additional: tuple[str, ...] = ()
    always: bool = True

    def candidates(self) -> list[str]:
        return candidate_paths(
            self.adapter.default_candidate_paths(),
            self.override,
            self.additional,
        )


def build_bindings(
    config: GatewayConfig, home_dir: str | None = None
) -> list[TargetBinding]:
    """Bindings for every target, in apply order.

    Order: built-in targets, then known targets, then custom targets in
    declaration order.
    """
    bindings: list[TargetBinding] = []

    for target in BUILTIN_TARGETS:
        paths = config.target_paths(target)
        bindings.append(
            TargetBinding(
                target=target,
                name=display_name(target),
                category=TargetCategory.BUILTIN,
                adapter=create_builtin_adapter(target, home_dir),
                override=_expand(paths.config_path_override)
                if paths.config_path_override
                else None,
                additional=tuple(_expand(p) for p in paths.additional_config_paths),
            )
        )

    for known in KNOWN_TARGETS:
        configured = known.id in config.targets
        paths = config.target_paths(known.id)
        bindings.append(
            TargetBinding(
                target=known.id,
                name=known.name,
                category=TargetCategory.KNOWN,
                adapter=create_known_adapter(known.id, home_dir),
                override=_expand(paths.config_path_override)
                if paths.config_path_override
                else None,
                additional=tuple(_expand(p) for p in paths.additional_config_paths),
                always=configured,
            )
        )

    for custom in config.custom_targets:
        bindings.append(
            TargetBinding(
                target=custom.id,
                name=custom.display_name,
                category=TargetCategory.CUSTOM,
                adapter=create_custom_adapter(
                    custom.id, _expand(custom.config_path), custom.field_name
                ),
                additional=tuple(_expand(p) for p in custom.candidates),
            )
        )

    return bindings


# ---------------------------------------------------------------------------
# Policy payloads
# ---------------------------------------------------------------------------


def _definition_from_payload(
    name: str, target: str, raw: Any
) -> ServerDefinition:
    errors = validate_definition(name, raw)
    if errors:
        raise ValueError(f"Invalid definition for {target}: " + " ".join(errors))
    return ServerDefinition.model_validate(raw)


def policies_from_payload(
    payload: Iterable[Mapping[str, Any]],
    target_order: Sequence[str] | None = None,
) -> list[ManagedPolicy]:
    """Convert per-target policy payloads into ``ManagedPolicy`` objects.

    Each payload item has ``name``, ``globalEnabled``,
    ``platformDefinitions`` (target -> definition) and ``platformEnabled``
    (target -> bool).  Every target with a definition becomes an override
    whose ``enabled`` defaults to ``False``; the resulting policy is not
    shared, so targets without a definition are left alone.  Items with no
    definition at all are skipped.

    Args:
        payload: Policy payload items.
        target_order: Order in which targets are considered; the first
            definition found becomes the base definition.  Defaults to the
            payload's own order.

    Raises:
        ValueError: If an item lacks a name or holds an invalid definition.
    """
    policies: list[ManagedPolicy] = []
    for item in payload:
        name = item.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValueError("Each policy requires a non-empty 'name'.")
        definitions = item.get("platformDefinitions") or {}
        enabled = item.get("platformEnabled") or {}
        order = list(target_order) if target_order else list(definitions)

        overrides: dict[str, TargetOverride] = {}
        base: ServerDefinition | None = None
        for target in order:
            raw = definitions.get(target)
            if not raw:
                continue
            definition = _definition_from_payload(name, target, raw)
            if base is None:
                base = definition
            overrides[target] = TargetOverride(
                definition=definition,
                enabled=bool(enabled.get(target, False)),
            )

        if base is None:
            logger.debug("Skipping policy %s: no target definitions", name)
            continue

        policies.append(
            ManagedPolicy(
                name=name,
                definition=base,
                shared=False,
                global_enabled=bool(item.get("globalEnabled", True)),
                overrides=overrides,
            )
        )
    return policies


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class SyncEngine:
    """Reconcile managed server entries across every target.

    Args:
        config: Gateway configuration (zero-config when omitted).
        bindings: Explicit target bindings; built from *config* when
            omitted.
        home_dir: Home directory for default candidate paths.
    """

    def __init__(
        self,
        config: GatewayConfig | None = None,
        bindings: Sequence[TargetBinding] | None = None,
        home_dir: str | None = None,
    ) -> None:
        self.config = config or GatewayConfig()
        self.bindings: dict[str, TargetBinding] = {
            b.target: b
            for b in (
                bindings
                if bindings is not None
                else build_bindings(self.config, home_dir)
            )
        }
        self.journal_path = self.config.state.journal_path
        self.max_parallel = self.config.state.max_parallel_reads

    @property
    def adapters(self) -> dict[str, TargetAdapter]:
        return {t: b.adapter for t, b in self.bindings.items()}

    def _select(self, targets: Iterable[str] | None) -> list[TargetBinding]:
        if targets is None:
            return list(self.bindings.values())
        wanted = list(dict.fromkeys(targets))
        unknown = [t for t in wanted if t not in self.bindings]
        if unknown:
            raise ValueError(
                f"Unknown target(s): {', '.join(unknown)}. "
                f"Available: {', '.join(self.bindings)}"
            )
        # Keep apply order regardless of request order
        return [b for t, b in self.bindings.items() if t in wanted]

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    async def _snapshot(self, binding: TargetBinding) -> TargetSnapshot:
        merged = await read_merged_config(
            binding.adapter,
            binding.candidates(),
            fallback_path=binding.override,
            max_parallel=self.max_parallel,
        )
        warnings = list(merged.warnings)
        config_path = merged.config_path
        if not merged.found and binding.override:
            config_path = binding.override
            warnings.append(
                "Configured path does not exist yet. "
                "Apply sync to initialize this file."
            )
        return TargetSnapshot(
            target=binding.target,
            name=binding.name,
            category=binding.category,
            field_name=binding.adapter.field_name,
            found=merged.found,
            config_path=config_path,
            servers=merged.config,
            warnings=tuple(warnings),
            sources=merged.sources,
        )

    async def load_state(
        self, targets: Iterable[str] | None = None
    ) -> GatewayState:
        """Read every selected target and the journal.

        Known targets that are neither configured nor present on disk are
        left out.

        Raises:
            ValueError: If *targets* names an unknown target.
        """
        selected = self._select(targets)
        snapshots = await gather_limited(
            [self._snapshot(b) for b in selected], self.max_parallel
        )
        included = {
            s.target: s
            for b, s in zip(selected, snapshots)
            if b.always or s.found or targets is not None
        }
        return GatewayState(
            targets=included,
            last_applied_at=await last_applied_at(self.journal_path),
        )

    # ------------------------------------------------------------------
    # Plan / apply
    # ------------------------------------------------------------------

    async def plan(
        self,
        policies: Iterable[ManagedPolicy],
        preserve_unmanaged: bool = True,
        state: GatewayState | None = None,
        targets: Iterable[str] | None = None,
    ) -> SyncPlan:
        """Plan a sync against fresh (or the given) state; writes nothing."""
        if state is None:
            state = await self.load_state(targets)
        return plan_sync(
            state.current_state(),
            state.target_paths(),
            policies,
            preserve_unmanaged=preserve_unmanaged,
        )

    async def _preseed(self, plan: SyncPlan) -> None:
        """Write an empty document for each changed target lacking a file."""
        for target_plan in plan.changed_targets():
            if await run_sync(path_exists, target_plan.config_path):
                continue
            adapter = self.bindings[target_plan.target].adapter
            logger.info(
                "Initializing %s config %s",
                target_plan.target,
                target_plan.config_path,
            )
            await adapter.write_atomic(target_plan.config_path, {})

    async def apply_plan(self, plan: SyncPlan) -> ApplyResult:
        """Apply a previously computed plan.

        Raises:
            ApplyError: If any target fails; earlier targets are rolled
                back.
            AdapterError: If pre-seeding a missing file fails (nothing
                has been written by the plan yet).
        """
        await self._preseed(plan)
        return await apply_sync_plan(plan, self.adapters, self.journal_path)

    async def apply(
        self,
        policies: Iterable[ManagedPolicy],
        preserve_unmanaged: bool = True,
        targets: Iterable[str] | None = None,
    ) -> ApplyResult:
        """Plan against fresh state and apply the result."""
        plan = await self.plan(
            policies, preserve_unmanaged=preserve_unmanaged, targets=targets
        )
        if plan.total_operations == 0:
            logger.info("Every target is up to date; nothing to apply")
        return await self.apply_plan(plan)

    # ------------------------------------------------------------------
    # Journal
    # ------------------------------------------------------------------

    async def history(
        self, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[RevisionSummary]:
        return await read_revision_history(self.journal_path, limit)

    async def revert(self, revision_id: str) -> RevertResult:
        return await revert_revision(self.journal_path, revision_id)

    # ------------------------------------------------------------------
    # Manual snapshots
    # ------------------------------------------------------------------

    async def snapshot(
        self,
        targets: Iterable[str] | None = None,
        reason: str | None = None,
    ) -> SnapshotResult:
        """Copy every existing target file to a ``.manual.*.bak`` sibling.

        Snapshots are not journaled and revert never uses them.
        """
        state = await self.load_state(targets)
        created_at = utc_now_iso()
        entries: list[SnapshotEntry] = []
        for snap in state.targets.values():
            if not snap.found or not await run_sync(path_exists, snap.config_path):
                continue
            try:
                backup = await run_sync(create_manual_snapshot, snap.config_path)
            except OSError as exc:
                raise GatewayError(
                    f"Snapshot of {snap.config_path} failed: {exc}"
                ) from exc
            entries.append(
                SnapshotEntry(
                    target=snap.target,
                    config_path=snap.config_path,
                    backup_path=str(backup),
                    created_at=created_at,
                )
            )

        suffix = f" ({reason})" if reason else ""
        if entries:
            message = f"Created {len(entries)} manual backup file(s){suffix}."
        else:
            message = (
                "No backups created because selected config files "
                f"were not found{suffix}."
            )
        logger.info(message)
        return SnapshotResult(
            created_at=created_at, entries=tuple(entries), message=message
        )
