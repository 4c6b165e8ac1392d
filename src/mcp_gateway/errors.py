"""Exception hierarchy for the configuration reconciliation engine.

Read-side errors (``AdapterError`` subclasses) are raised by target
adapters and recovered into warnings by the merge-read layer.  Write-side
errors (``ApplyError``, ``RollbackError``) are never recovered locally:
they always reach the caller.

Hierarchy::

    GatewayError
    ├── AdapterError
    │   ├── ConfigFileNotFoundError
    │   ├── MalformedDocumentError
    │   ├── InvalidConfigError
    │   └── ConfigIOError
    ├── RestoreError
    │   ├── RollbackError
    │   └── RevertError
    ├── ApplyError
    └── RevisionNotFoundError
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .sync.models import AppliedOperation


class GatewayError(Exception):
    """Base class for every error raised by mcp_gateway."""


# ---------------------------------------------------------------------------
# Adapter errors
# ---------------------------------------------------------------------------


class AdapterError(GatewayError):
    """A target adapter failed to read, validate, back up or write a file.

    Attributes:
        code: Stable machine-readable error code.
        target: Target id the adapter serves (e.g. ``"claude"``).
        path: Filesystem path the operation was acting on.
    """

    code = "ADAPTER_ERROR"

    def __init__(self, target: str, path: str, message: str) -> None:
        super().__init__(message)
        self.target = target
        self.path = path

    def __str__(self) -> str:
        return f"[{self.target}] {self.args[0]}"


class ConfigFileNotFoundError(AdapterError):
    code = "FILE_NOT_FOUND"


class MalformedDocumentError(AdapterError):
    code = "MALFORMED_DOCUMENT"


class InvalidConfigError(AdapterError):
    """The document parses but fails schema validation.

    Attributes:
        errors: Field-level validation messages.
    """

    code = "INVALID_CONFIG"

    def __init__(
        self,
        target: str,
        path: str,
        message: str,
        errors: list[str] | None = None,
    ) -> None:
        super().__init__(target, path, message)
        self.errors = list(errors or [])


class ConfigIOError(AdapterError):
    code = "IO_ERROR"


# ---------------------------------------------------------------------------
# Restore errors (rollback / revert)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RestoreFailure:
    """One target that could not be restored from its backup."""

    config_path: str
    backup_path: str
    reason: str


class RestoreError(GatewayError):
    """Restoring one or more targets from backup failed.

    Attributes:
        failures: Every target that could not be restored.
    """

    action = "Restore"

    def __init__(self, failures: list[RestoreFailure]) -> None:
        self.failures = list(failures)
        super().__init__(
            f"{self.action} failed for {len(self.failures)} operation(s): "
            + "; ".join(
                f"{f.config_path} ({f.reason})" for f in self.failures
            )
        )


class RollbackError(RestoreError):
    action = "Rollback"


class RevertError(RestoreError):
    action = "Revert"


# ---------------------------------------------------------------------------
# Apply errors
# ---------------------------------------------------------------------------


class ApplyError(GatewayError):
    """An apply pass aborted and was rolled back.

    Attributes:
        operations: Operations written successfully before the failure
            (all of them have been rolled back).  Their journal lines
            stay in the journal under the aborted revision id.
        rollback_error: Set when the rollback itself failed; also chained
            as ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        operations: list[AppliedOperation],
        rollback_error: RollbackError | None = None,
    ) -> None:
        super().__init__(message)
        self.operations = list(operations)
        self.rollback_error = rollback_error
        if rollback_error is not None:
            self.__cause__ = rollback_error

    @property
    def rolled_back_targets(self) -> list[str]:
        """Target ids that were written and then rolled back."""
        return [op.target for op in self.operations]


class RevisionNotFoundError(GatewayError):
    def __init__(self, revision_id: str) -> None:
        super().__init__(f"No revision found for '{revision_id}'.")
        self.revision_id = revision_id
