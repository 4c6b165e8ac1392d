"""Entity definitions shared by adapters, planner, applier and journal.

A target document is a JSON object holding one named mapping of server
entries (``mcpServers``, ``servers``, ``context_servers`` ...).  Documents
are edited by humans outside this program, so every read re-validates them
at runtime with ``validate_document()`` and reports field-level messages
instead of trusting their shape.

Two read paths exist:

* **Strict** -- ``validate_document()`` then ``parse_servers()``; used by
  adapters.  Unknown keys inside an entry are kept so a round-trip never
  drops data the user put there.
* **Permissive** -- ``sanitize_definition()``; used by merge-read recovery.
  Keeps only the known fields that have the right type and rejects an
  entry whose ``command`` is missing or blank.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ConfigDict

DEFAULT_FIELD_NAME = "mcpServers"


class ServerDefinition(BaseModel):
    """One managed server entry.

    Attributes:
        command: Executable to launch (trimmed, non-empty).
        args: Ordered command-line arguments.
        env: Environment variables passed to the server.
        cwd: Working directory.
        enabled: Whether the entry is active; absent means enabled.
    """

    command: str
    args: list[str] | None = None
    env: dict[str, str] | None = None
    cwd: str | None = None
    enabled: bool | None = None

    model_config = ConfigDict(frozen=True, extra="allow")

    @property
    def is_enabled(self) -> bool:
        return self.enabled is not False

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the on-disk JSON shape.

        Unset declared fields are omitted; extra keys are kept as written,
        ``null`` values included.
        """
        declared = type(self).model_fields
        return {
            key: value
            for key, value in self.model_dump().items()
            if value is not None or key not in declared
        }

    def with_enabled(self, enabled: bool) -> ServerDefinition:
        return self.model_copy(update={"enabled": enabled}, deep=True)

    def fingerprint(self) -> str:
        """Serialized form used for structural comparison.

        Key order and argument order are significant: any difference in
        the serialized definition counts as a change.
        """
        return json.dumps(self.to_dict(), separators=(",", ":"))


TargetConfig = dict[str, ServerDefinition]
"""Whole document of one target: entry name -> definition."""


def empty_config() -> TargetConfig:
    return {}


def clone_config(config: TargetConfig) -> TargetConfig:
    return {
        name: definition.model_copy(deep=True)
        for name, definition in config.items()
    }


def definitions_equal(
    a: ServerDefinition | None, b: ServerDefinition | None
) -> bool:
    if a is None and b is None:
        return True
    if a is None or b is None:
        return False
    return a.fingerprint() == b.fingerprint()


def config_to_mapping(config: TargetConfig) -> dict[str, dict[str, Any]]:
    """Serialize a ``TargetConfig`` to plain dicts (field mapping value)."""
    return {name: d.to_dict() for name, d in config.items()}


# ---------------------------------------------------------------------------
# Strict validation
# ---------------------------------------------------------------------------


def _is_string_list(value: Any) -> bool:
    return isinstance(value, list) and all(
        isinstance(item, str) for item in value
    )


def _is_string_map(value: Any) -> bool:
    return isinstance(value, dict) and all(
        isinstance(k, str) and isinstance(v, str)
        for k, v in value.items()
    )


def validate_definition(name: str, value: Any) -> list[str]:
    """Return field-level errors for a single entry (empty when valid)."""
    if not isinstance(value, dict):
        return [f"Server '{name}' must be an object."]

    errors: list[str] = []
    command = value.get("command")
    if not isinstance(command, str) or not command.strip():
        errors.append(
            f"Server '{name}' requires a non-empty string 'command'."
        )
    if "args" in value and not _is_string_list(value["args"]):
        errors.append(
            f"Server '{name}' field 'args' must be a string array when provided."
        )
    if "env" in value and not _is_string_map(value["env"]):
        errors.append(
            f"Server '{name}' field 'env' must be a string record when provided."
        )
    if "cwd" in value and not isinstance(value["cwd"], str):
        errors.append(
            f"Server '{name}' field 'cwd' must be a string when provided."
        )
    if "enabled" in value and not isinstance(value["enabled"], bool):
        errors.append(
            f"Server '{name}' field 'enabled' must be a boolean when provided."
        )
    return errors


def validate_document(
    document: Any, field_name: str = DEFAULT_FIELD_NAME
) -> list[str]:
    """Validate a parsed JSON document.

    Args:
        document: Parsed JSON value.
        field_name: Top-level key holding the server mapping.

    Returns:
        List of human-readable errors; empty when the document is valid.
    """
    if not isinstance(document, dict):
        return ["Config must be an object."]

    servers = document.get(field_name)
    if not isinstance(servers, dict):
        return [
            f"Config must include an object field named '{field_name}'."
        ]

    errors: list[str] = []
    for name, value in servers.items():
        errors.extend(validate_definition(name, value))
    return errors


def validate_config(config: TargetConfig) -> list[str]:
    """Validate an in-memory ``TargetConfig`` before it is written."""
    errors: list[str] = []
    for name, definition in config.items():
        if not name:
            errors.append("Server names must be non-empty strings.")
            continue
        errors.extend(validate_definition(name, definition.to_dict()))
    return errors


def parse_servers(
    document: dict[str, Any], field_name: str = DEFAULT_FIELD_NAME
) -> TargetConfig:
    """Build a ``TargetConfig`` from a document that passed validation."""
    return {
        name: ServerDefinition.model_validate(value)
        for name, value in document[field_name].items()
    }


# ---------------------------------------------------------------------------
# Permissive recovery
# ---------------------------------------------------------------------------


def sanitize_definition(raw: Any) -> ServerDefinition | None:
    """Salvage what can be salvaged from a damaged entry.

    Returns ``None`` when the entry has no usable ``command``.  Fields of
    the wrong type are dropped; ``env`` keeps only its string values.
    """
    if not isinstance(raw, dict):
        return None

    command = raw.get("command")
    if not isinstance(command, str) or not command.strip():
        return None

    fields: dict[str, Any] = {"command": command.strip()}

    args = raw.get("args")
    if _is_string_list(args):
        fields["args"] = list(args)

    env = raw.get("env")
    if isinstance(env, dict):
        kept = {
            k: v
            for k, v in env.items()
            if isinstance(k, str) and isinstance(v, str)
        }
        if kept:
            fields["env"] = kept

    cwd = raw.get("cwd")
    if isinstance(cwd, str) and cwd:
        fields["cwd"] = cwd

    enabled = raw.get("enabled")
    if isinstance(enabled, bool):
        fields["enabled"] = enabled

    return ServerDefinition(**fields)
