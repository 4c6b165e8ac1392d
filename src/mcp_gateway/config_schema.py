"""Configuration schema for mcp_gateway.

Pydantic models for the config file: per-target path overrides, custom
targets, state (journal) location, logging and the restart policy table
consumed by whatever restarts tools after a sync.

Usage:
    from mcp_gateway.config_schema import build_config
    from mcp_gateway.config_loader import load_hierarchical_config

    config = build_config(load_hierarchical_config())
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from .adapters.targets import BUILTIN_TARGETS, KNOWN_TARGETS
from .domain import DEFAULT_FIELD_NAME

logger = logging.getLogger(__name__)

_TARGET_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class TargetPathConfig(BaseModel):
    """Where to look for one target's config file.

    Attributes:
        config_path_override: When set, only this path (plus the
            additional paths) is searched and defaults are ignored.
        additional_config_paths: Extra source files merged after the
            primary one.
    """

    config_path_override: str | None = Field(
        default=None, description="Explicit config file path"
    )
    additional_config_paths: list[str] = Field(
        default_factory=list, description="Extra source files to merge"
    )

    model_config = {"frozen": True}

    @field_validator("config_path_override")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()

    @field_validator("additional_config_paths")
    @classmethod
    def _clean_paths(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(p.strip() for p in value if p.strip()))


class CustomTargetConfig(BaseModel):
    """A user-declared target: any JSON file holding a server mapping."""

    id: str = Field(description="Target id (lowercase, digits, - and _)")
    name: str = Field(default="", description="Display name")
    config_path: str = Field(min_length=1, description="Config file path")
    field_name: str = Field(
        default=DEFAULT_FIELD_NAME,
        min_length=1,
        description="Top-level key holding the server mapping",
    )
    candidates: list[str] = Field(
        default_factory=list, description="Extra source files to merge"
    )

    model_config = {"frozen": True}

    @field_validator("id")
    @classmethod
    def _valid_id(cls, value: str) -> str:
        value = value.strip().lower()
        if not _TARGET_ID_PATTERN.match(value):
            raise ValueError(
                f"custom target id '{value}' must match {_TARGET_ID_PATTERN.pattern}"
            )
        return value

    @property
    def display_name(self) -> str:
        return self.name or self.id


class StateConfig(BaseModel):
    """Where the revision journal lives.

    Attributes:
        state_dir: Directory holding the journal (``~`` expanded).
        journal_file: Journal file name inside *state_dir*.
        max_parallel_reads: Bound on concurrent config reads.
    """

    state_dir: str = Field(default="~/.mcp_gateway")
    journal_file: str = Field(default="sync-journal.jsonl", min_length=1)
    max_parallel_reads: int = Field(
        default=8,
        ge=1,
        le=64,
        description="Maximum concurrent config file reads (1-64)",
    )

    model_config = {"frozen": True}

    @property
    def journal_path(self) -> Path:
        return Path(self.state_dir).expanduser() / self.journal_file


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL);
            unset means the mode default.
        file: Optional log file path.
    """

    level: str | None = Field(default=None, description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


class RestartPolicyConfig(BaseModel):
    """Which targets may be restarted automatically after a sync.

    Carried for the process that restarts tools; the sync engine never
    restarts anything itself.  Targets not listed default to ``True``.
    """

    auto_restart: dict[str, bool] = Field(
        default_factory=lambda: {"codex": False}
    )

    model_config = {"frozen": True}

    def allows(self, target: str) -> bool:
        return self.auto_restart.get(target, True)


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


class GatewayConfig(BaseModel):
    """Top-level configuration.

    Every section has defaults, so ``GatewayConfig()`` (zero-config) is
    always valid.
    """

    targets: dict[str, TargetPathConfig] = Field(default_factory=dict)
    custom_targets: list[CustomTargetConfig] = Field(default_factory=list)
    state: StateConfig = Field(default_factory=StateConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    restart: RestartPolicyConfig = Field(default_factory=RestartPolicyConfig)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _unique_custom_ids(self) -> GatewayConfig:
        seen: set[str] = set(BUILTIN_TARGETS) | {t.id for t in KNOWN_TARGETS}
        reserved = set(seen)
        for custom in self.custom_targets:
            if custom.id in reserved:
                raise ValueError(
                    f"custom target id '{custom.id}' is reserved"
                )
            if custom.id in seen:
                raise ValueError(f"duplicate custom target id '{custom.id}'")
            seen.add(custom.id)
        return self

    def target_paths(self, target: str) -> TargetPathConfig:
        return self.targets.get(target) or TargetPathConfig()


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict | None) -> GatewayConfig:
    """Construct a ``GatewayConfig`` from the merged raw dict.

    Missing sections get defaults; ``None`` sections (an empty YAML key)
    are treated as missing.

    Raises:
        pydantic.ValidationError: If a section is malformed.
    """
    if not raw_data:
        return GatewayConfig()
    cleaned = {k: v for k, v in raw_data.items() if v is not None}
    return GatewayConfig(**cleaned)
