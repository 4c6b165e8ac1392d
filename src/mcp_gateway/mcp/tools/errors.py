"""Error response builders for MCP tool handlers.

Structured errors carry a corrective action so an agent can recover
without human help.
"""

import mcp.types as types

from ...errors import (
    AdapterError,
    ApplyError,
    GatewayError,
    RestoreError,
    RevisionNotFoundError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (not_found, validation_error,
            config_error, apply_failed, rollback_failed, revert_incomplete,
            server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take

    Returns:
        CallToolResult with isError=True
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


def _failure_lines(error: RestoreError) -> str:
    return "\n".join(
        f"  {f.config_path} <- {f.backup_path or '(no backup)'}: {f.reason}"
        for f in error.failures
    )


def translate_gateway_error(error: GatewayError) -> types.CallToolResult:
    """Map a ``GatewayError`` to a structured error response."""
    match error:
        case RevisionNotFoundError():
            return build_error_response(
                "not_found",
                str(error),
                "Use sync_history to list recorded revision ids.",
            )
        case ApplyError(rollback_error=rollback) if rollback is not None:
            return build_error_response(
                "rollback_failed",
                f"{error}\n{_failure_lines(rollback)}",
                "Restore the listed files by hand from their backup paths, "
                "then run sync_targets to confirm.",
            )
        case ApplyError():
            restored = ", ".join(error.rolled_back_targets) or "none"
            return build_error_response(
                "apply_failed",
                f"{error} (rolled back: {restored})",
                "Fix the failing target file or path, then retry sync_apply.",
            )
        case RestoreError():
            return build_error_response(
                "revert_incomplete",
                f"{error}\n{_failure_lines(error)}",
                "Missing backups cannot be restored; inspect the listed files.",
            )
        case AdapterError():
            return build_error_response(
                "config_error",
                str(error),
                f"Fix or move the file at {error.path}, or set "
                f"targets.{error.target}.config_path_override in the config.",
            )
        case _:
            return build_error_response(
                "server_error",
                str(error),
                "Check the server log file and retry.",
            )
