"""JSON document adapter parameterized by the server-mapping field name.

Every target -- built-in, known or user-declared -- is served by this one
class; targets differ only in their id, their default candidate paths and
the top-level key holding the server mapping.  That keeps a single
reconciliation algorithm for all of them.

Writes replace only the managed field: any other top-level key already in
the document (editor settings in a Zed ``settings.json``, for instance) is
carried over unchanged.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from ..core.async_utils import run_sync
from ..core.file_ops import (
    create_timestamped_backup,
    path_exists,
    read_text_with_encoding,
    utc_now_iso,
    write_json_atomic,
)
from ..domain import (
    DEFAULT_FIELD_NAME,
    TargetConfig,
    config_to_mapping,
    parse_servers,
    validate_config,
    validate_document,
)
from ..errors import (
    ConfigFileNotFoundError,
    ConfigIOError,
    InvalidConfigError,
    MalformedDocumentError,
)
from .base import BackupResult, DetectResult, ReadResult, ValidationResult

logger = logging.getLogger(__name__)


def _io_error(
    target: str, path: str, message: str, exc: OSError
) -> ConfigFileNotFoundError | ConfigIOError:
    if isinstance(exc, FileNotFoundError):
        return ConfigFileNotFoundError(target, path, message)
    return ConfigIOError(target, path, f"{message}: {exc}")


class JsonTargetAdapter:
    """Adapter for a JSON config file holding one named server mapping.

    Args:
        target: Target id (``"claude"``, ``"vscode"``, ``"custom-foo"`` ...).
        default_candidates: Callable returning default config paths in
            preference order.
        field_name: Top-level key of the server mapping.
    """

    def __init__(
        self,
        target: str,
        default_candidates: Callable[[], list[str]] | None = None,
        field_name: str = DEFAULT_FIELD_NAME,
    ) -> None:
        self.target = target
        self.field_name = field_name
        self._default_candidates = default_candidates or (lambda: [])

    def __repr__(self) -> str:
        return (
            f"JsonTargetAdapter(target={self.target!r}, "
            f"field_name={self.field_name!r})"
        )

    def default_candidate_paths(self) -> list[str]:
        return list(self._default_candidates())

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    async def detect(
        self, override_paths: list[str] | None = None
    ) -> DetectResult:
        """Return the first existing candidate path.

        Args:
            override_paths: Searched instead of the defaults when non-empty.
        """
        searched = (
            list(override_paths)
            if override_paths
            else self.default_candidate_paths()
        )
        for candidate in searched:
            if await run_sync(path_exists, candidate):
                return DetectResult(
                    target=self.target,
                    found=True,
                    path=candidate,
                    searched_paths=searched,
                )
        return DetectResult(
            target=self.target,
            found=False,
            path=None,
            searched_paths=searched,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, document: Any) -> ValidationResult:
        errors = validate_document(document, self.field_name)
        return ValidationResult(valid=not errors, errors=errors)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def read_raw(self, path: str) -> str:
        """Return the file text.

        Raises:
            ConfigFileNotFoundError: If *path* does not exist.
            ConfigIOError: For any other read failure.
        """
        try:
            content, _encoding = await run_sync(
                read_text_with_encoding, path
            )
        except OSError as exc:
            raise _io_error(
                self.target,
                path,
                f"Failed to read {self.target} config at '{path}'",
                exc,
            ) from exc
        return content

    def parse_document(self, path: str, raw: str) -> Any:
        """Parse JSON text.

        Raises:
            MalformedDocumentError: If *raw* is not valid JSON.
        """
        try:
            return json.loads(raw)
        except (ValueError, RecursionError) as exc:
            raise MalformedDocumentError(
                self.target,
                path,
                f"Config at '{path}' is not valid JSON: {exc}",
            ) from exc

    async def read(self, path: str) -> ReadResult:
        """Read, parse and validate a config file.

        Raises:
            ConfigFileNotFoundError: If *path* does not exist.
            MalformedDocumentError: If the file is not valid JSON.
            InvalidConfigError: If the document fails schema validation.
        """
        raw = await self.read_raw(path)
        document = self.parse_document(path, raw)

        validation = self.validate(document)
        if not validation.valid:
            raise InvalidConfigError(
                self.target,
                path,
                f"Config at '{path}' failed validation: "
                + " ".join(validation.errors),
                errors=validation.errors,
            )

        return ReadResult(
            target=self.target,
            path=path,
            config=parse_servers(document, self.field_name),
            raw=raw,
        )

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    async def backup(self, path: str) -> BackupResult:
        """Copy *path* to a timestamped sibling.

        Raises:
            ConfigFileNotFoundError: If *path* does not exist.
            ConfigIOError: For any other copy failure.
        """
        try:
            backup_path = await run_sync(create_timestamped_backup, path)
        except OSError as exc:
            raise _io_error(
                self.target,
                path,
                f"Failed to create backup for '{path}'",
                exc,
            ) from exc

        logger.info("Backed up %s config %s -> %s", self.target, path, backup_path)
        return BackupResult(
            target=self.target,
            source_path=path,
            backup_path=str(backup_path),
            created_at=utc_now_iso(),
        )

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    async def _existing_document(self, path: str) -> dict[str, Any]:
        """Top-level keys to carry over when rewriting *path*."""
        if not await run_sync(path_exists, path):
            return {}
        try:
            raw = await self.read_raw(path)
            document = self.parse_document(path, raw)
        except (
            ConfigFileNotFoundError,
            ConfigIOError,
            MalformedDocumentError,
        ) as exc:
            logger.warning(
                "Replacing unreadable %s config %s: %s",
                self.target,
                path,
                exc,
            )
            return {}
        return document if isinstance(document, dict) else {}

    async def write_atomic(self, path: str, config: TargetConfig) -> None:
        """Validate *config* and atomically write it to *path*.

        Raises:
            InvalidConfigError: If *config* fails validation; nothing is
                written.
            ConfigIOError: If the document cannot be serialized or the write
                fails; *path* is left untouched.
        """
        errors = validate_config(config)
        if errors:
            raise InvalidConfigError(
                self.target,
                path,
                f"Cannot write invalid {self.target} config: "
                + " ".join(errors),
                errors=errors,
            )

        document = await self._existing_document(path)
        document[self.field_name] = config_to_mapping(config)

        try:
            await run_sync(write_json_atomic, Path(path), document)
        except (OSError, ValueError, TypeError) as exc:
            raise ConfigIOError(
                self.target,
                path,
                f"Failed atomic write for '{path}': {exc}",
            ) from exc

        logger.debug(
            "Wrote %d server(s) to %s config %s",
            len(config),
            self.target,
            path,
        )
