"""Execute a ``SyncPlan`` transactionally across targets.

For each changed target, in plan order:

1. back up the current file (skipped when the file does not exist yet);
2. atomically write the desired config through the target's adapter;
3. record an ``AppliedOperation`` and append one journal line.

Any failure rolls back every target written so far in this pass, plus the
target that failed, then raises ``ApplyError``.  One revision id is
generated per call and shared by every journal line it appends.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from pathlib import Path

from ..adapters.base import TargetAdapter
from ..core.async_utils import run_sync
from ..core.file_ops import path_exists, utc_now_iso
from ..errors import ApplyError, GatewayError, RollbackError
from .journal import append_journal_entry
from .models import AppliedOperation, ApplyResult, RevisionEntry, SyncPlan
from .rollback import rollback_from_backups

logger = logging.getLogger(__name__)


def new_revision_id() -> str:
    return str(uuid.uuid4())


def journal_entry_for(operation: AppliedOperation) -> RevisionEntry:
    return RevisionEntry(
        revision_id=operation.revision_id,
        timestamp=operation.applied_at,
        platform=operation.target,
        config_path=operation.config_path,
        backup_path=operation.backup_path,
        operation_count=operation.operation_count,
    )


async def apply_sync_plan(
    plan: SyncPlan,
    adapters: Mapping[str, TargetAdapter],
    journal_path: str | Path,
    revision_id: str | None = None,
) -> ApplyResult:
    """Apply every changed target of *plan*.

    Args:
        plan: Plan to execute; never mutated.
        adapters: Adapter per target id.
        journal_path: Append-only journal file.
        revision_id: Revision to record under; generated when omitted.

    Returns:
        ``ApplyResult`` listing every written target in apply order.

    Raises:
        ApplyError: On the first failure of any kind, after rollback.
            ``operations`` lists the targets that had been written (and
            were restored); ``rollback_error`` is set if restoring failed
            too.  Journal lines already appended for those targets are
            kept, so the aborted revision still shows up in history and
            reverting it restores the same backups again.
    """
    revision_id = revision_id or new_revision_id()
    operations: list[AppliedOperation] = []

    for target_plan in plan.changed_targets():
        target = target_plan.target
        config_path = target_plan.config_path
        pending: AppliedOperation | None = None

        try:
            adapter = adapters.get(target)
            if adapter is None:
                raise GatewayError(f"No adapter registered for target '{target}'")

            backup_path: str | None = None
            if await run_sync(path_exists, config_path):
                backup = await adapter.backup(config_path)
                backup_path = backup.backup_path

            pending = AppliedOperation(
                revision_id=revision_id,
                target=target,
                config_path=config_path,
                backup_path=backup_path,
                operation_count=len(target_plan.operations),
                applied_at=utc_now_iso(),
            )
            await adapter.write_atomic(config_path, target_plan.next_config)

            operation = pending.model_copy(update={"applied_at": utc_now_iso()})
            operations.append(operation)
            pending = None
            logger.info(
                "Applied %d operation(s) to %s (%s)",
                operation.operation_count,
                target,
                config_path,
            )
            await run_sync(
                append_journal_entry, journal_path, journal_entry_for(operation)
            )
        except Exception as exc:
            logger.error("Apply failed on %s: %s", target, exc)
            recovery = operations + ([pending] if pending is not None else [])
            try:
                await rollback_from_backups(recovery)
            except RollbackError as rollback_exc:
                raise ApplyError(
                    f"Apply failed on {target} and rollback also failed: "
                    f"{rollback_exc}",
                    operations,
                    rollback_exc,
                ) from rollback_exc
            raise ApplyError(
                f"Apply failed on {target}: {exc}", operations
            ) from exc

    logger.info(
        "Revision %s applied to %d target(s)", revision_id, len(operations)
    )
    return ApplyResult(
        applied_at=utc_now_iso(),
        revision_id=revision_id,
        operations=tuple(operations),
    )
