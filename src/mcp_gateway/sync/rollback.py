"""Restore targets written during a failed apply pass.

Operations are undone most-recent-first.  Every operation is attempted
even after a failure; failures are collected and raised together so a
partially restored state is always reported.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence

from ..core.async_utils import run_sync
from ..core.file_ops import restore_file
from ..errors import RestoreFailure, RollbackError
from .models import AppliedOperation

logger = logging.getLogger(__name__)


def _remove_created(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


async def rollback_from_backups(
    operations: Sequence[AppliedOperation],
) -> None:
    """Copy each operation's backup back over its config path.

    An operation without a backup created its file, so rolling it back
    removes the file instead.

    Raises:
        RollbackError: Listing every operation that could not be restored.
    """
    failures: list[RestoreFailure] = []

    for operation in reversed(operations):
        try:
            if operation.backup_path is None:
                await run_sync(_remove_created, operation.config_path)
            else:
                await run_sync(
                    restore_file, operation.backup_path, operation.config_path
                )
        except OSError as exc:
            logger.error(
                "Rollback of %s (%s) failed: %s",
                operation.target,
                operation.config_path,
                exc,
            )
            failures.append(
                RestoreFailure(
                    config_path=operation.config_path,
                    backup_path=operation.backup_path or "",
                    reason=str(exc),
                )
            )
            continue
        logger.info(
            "Rolled back %s config %s", operation.target, operation.config_path
        )

    if failures:
        raise RollbackError(failures)
