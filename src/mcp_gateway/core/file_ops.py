"""File operations: encoding-aware reads, backups and atomic writes.

All functions here are synchronous and do blocking I/O; async callers wrap
them with ``run_sync()``.

Key design choices:

* **Atomic writes** -- ``write_json_atomic()`` writes to a temp file in the
  target's directory then calls ``os.replace()`` so readers never see a
  half-written document.  Restores from backup go through the same path.
* **Backup naming** -- ``<path>.bak.<stamp>`` for sync backups and
  ``<path>.manual.<stamp>.<random>.bak`` for manual snapshots, where
  ``<stamp>`` is a UTC ISO 8601 timestamp with ``:`` and ``.`` replaced
  by ``-``.
"""

from __future__ import annotations

import json
import os
import shutil
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from charset_normalizer import from_bytes

PathLike = str | os.PathLike[str]

# =============================================================================
# Timestamps
# =============================================================================


def utc_now_iso() -> str:
    """Current UTC time as an ISO 8601 string with a ``Z`` suffix."""
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="microseconds")
        .replace("+00:00", "Z")
    )


def timestamp_stamp(now: datetime | None = None) -> str:
    """Filesystem-safe timestamp: ISO 8601 with ``:`` and ``.`` -> ``-``."""
    moment = now or datetime.now(timezone.utc)
    iso = moment.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return iso.replace(":", "-").replace(".", "-")


# =============================================================================
# Reads
# =============================================================================


def path_exists(path: PathLike) -> bool:
    return Path(path).is_file()


def read_text_with_encoding(path: PathLike) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Config files are edited by hand with arbitrary editors, so a BOM or a
    legacy encoding is possible.  Defaults to UTF-8 for empty files or when
    detection fails.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).

    Raises:
        FileNotFoundError: If the file does not exist.
        OSError: For any other read failure.
    """
    raw = Path(path).read_bytes()
    if not raw:
        return ("", "utf-8")

    result = from_bytes(raw).best()
    if result is None:
        encoding = "utf-8"
        content = raw.decode(encoding, errors="replace")
    else:
        encoding = result.encoding
        # ascii is a strict subset of utf-8
        if encoding == "ascii":
            encoding = "utf-8"
        content = str(result)
    return (content.lstrip("\ufeff"), encoding)


# =============================================================================
# Writes
# =============================================================================


def _replace_atomically(target: Path, write: Any) -> None:
    """Create a temp file beside *target*, fill it via *write*, rename it."""
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=str(target.parent),
        prefix=f".{target.name}.",
        suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            write(fh)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, target)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def write_json_atomic(target: PathLike, data: Any) -> None:
    """Serialize *data* as indented JSON and atomically replace *target*.

    Creates parent directories as needed.  On any failure the temp file is
    removed and *target* is left untouched.
    """
    payload = (json.dumps(data, indent=2, ensure_ascii=False) + "\n").encode(
        "utf-8"
    )
    _replace_atomically(Path(target), lambda fh: fh.write(payload))


def restore_file(backup: PathLike, target: PathLike) -> None:
    """Copy *backup* over *target* atomically.

    Raises:
        FileNotFoundError: If *backup* does not exist.
    """
    source = Path(backup)
    if not source.is_file():
        raise FileNotFoundError(f"Backup file not found: {source}")

    def _copy(fh: Any) -> None:
        with open(source, "rb") as src:
            shutil.copyfileobj(src, fh)

    _replace_atomically(Path(target), _copy)


def append_line(path: PathLike, line: str) -> None:
    """Append one newline-terminated line, creating parents as needed."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "a", encoding="utf-8") as fh:
        fh.write(line.rstrip("\n") + "\n")


# =============================================================================
# Backups
# =============================================================================


def backup_path_for(source: PathLike, now: datetime | None = None) -> Path:
    return Path(f"{source}.bak.{timestamp_stamp(now)}")


def manual_snapshot_path_for(
    source: PathLike, now: datetime | None = None
) -> Path:
    return Path(
        f"{source}.manual.{timestamp_stamp(now)}.{uuid.uuid4().hex[:8]}.bak"
    )


def create_timestamped_backup(
    source: PathLike, now: datetime | None = None
) -> Path:
    """Copy *source* to ``<source>.bak.<stamp>`` and return the backup path.

    Raises:
        FileNotFoundError: If *source* does not exist.
    """
    backup = backup_path_for(source, now)
    shutil.copyfile(source, backup)
    return backup


def create_manual_snapshot(
    source: PathLike, now: datetime | None = None
) -> Path:
    """Copy *source* to ``<source>.manual.<stamp>.<random>.bak``."""
    snapshot = manual_snapshot_path_for(source, now)
    shutil.copyfile(source, snapshot)
    return snapshot
