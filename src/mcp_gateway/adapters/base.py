"""Adapter contract shared by every target.

An adapter owns everything file-specific about one target: where its
config usually lives, how to read and validate it, how to back it up and
how to write it atomically.  The planner never touches the filesystem and
the applier only talks to files through an adapter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from ..domain import TargetConfig


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ReadResult:
    """Outcome of a successful typed read.

    Attributes:
        target: Target id.
        path: File that was read.
        config: Validated server mapping.
        raw: File content as text.
    """

    target: str
    path: str
    config: TargetConfig
    raw: str


@dataclass(frozen=True)
class BackupResult:
    target: str
    source_path: str
    backup_path: str
    created_at: str


@dataclass(frozen=True)
class DetectResult:
    """First existing candidate path for a target, if any."""

    target: str
    found: bool
    path: str | None
    searched_paths: list[str]


class TargetAdapter(Protocol):
    """Capabilities every target adapter provides.

    ``read`` raises ``ConfigFileNotFoundError``, ``MalformedDocumentError``
    or ``InvalidConfigError``; ``backup`` and ``write_atomic`` raise
    ``ConfigIOError`` (or ``ConfigFileNotFoundError`` when the file to
    back up is missing).  Every error carries the target id and path.
    """

    target: str
    field_name: str

    def default_candidate_paths(self) -> list[str]:
        ...  # pragma: no cover

    def validate(self, document: Any) -> ValidationResult:
        ...  # pragma: no cover

    async def detect(
        self, override_paths: list[str] | None = None
    ) -> DetectResult:
        ...  # pragma: no cover

    async def read(self, path: str) -> ReadResult:
        ...  # pragma: no cover

    async def read_raw(self, path: str) -> str:
        ...  # pragma: no cover

    async def backup(self, path: str) -> BackupResult:
        ...  # pragma: no cover

    async def write_atomic(self, path: str, config: TargetConfig) -> None:
        ...  # pragma: no cover
