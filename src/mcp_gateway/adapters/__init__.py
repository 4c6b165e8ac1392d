"""Target adapters: one JSON adapter class, parameterized per target."""

from .base import (
    BackupResult,
    DetectResult,
    ReadResult,
    TargetAdapter,
    ValidationResult,
)
from .json_adapter import JsonTargetAdapter
from .targets import (
    BUILTIN_TARGETS,
    KNOWN_TARGETS,
    KnownTarget,
    builtin_adapters,
    create_builtin_adapter,
    create_custom_adapter,
    create_known_adapter,
    discover_target_configs,
    display_name,
)

__all__ = [
    "BUILTIN_TARGETS",
    "BackupResult",
    "DetectResult",
    "JsonTargetAdapter",
    "KNOWN_TARGETS",
    "KnownTarget",
    "ReadResult",
    "TargetAdapter",
    "ValidationResult",
    "builtin_adapters",
    "create_builtin_adapter",
    "create_custom_adapter",
    "create_known_adapter",
    "discover_target_configs",
    "display_name",
]
