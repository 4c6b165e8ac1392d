"""Append-only revision journal and revision revert.

The journal is a newline-delimited JSON file; each line is one
``RevisionEntry``: one target written by one apply pass.  Revisions are
derived by grouping lines on ``revisionId``.

Readers tolerate damage: blank, unparseable or schema-invalid lines are
skipped, and lines written before revision ids existed are grouped under
``legacy-<timestamp>-<platform>``.

Revert only trusts backup paths recorded here.  Manual snapshots
(``.manual.*.bak``) never appear in the journal and are never restored.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ..core.async_utils import run_sync
from ..core.file_ops import PathLike, append_line, path_exists, restore_file, utc_now_iso
from ..errors import RevisionNotFoundError
from .models import RevertEntryResult, RevertResult, RevisionEntry, RevisionSummary

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------


def append_journal_entry(journal_path: PathLike, entry: RevisionEntry) -> None:
    """Append *entry* as one JSON line, creating the journal if needed."""
    append_line(
        journal_path,
        json.dumps(entry.to_record(), separators=(",", ":")),
    )


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def parse_journal_line(line: str) -> RevisionEntry | None:
    """Parse one journal line; ``None`` when it is not a usable entry."""
    try:
        record: Any = json.loads(line)
    except (ValueError, RecursionError):
        return None
    if not isinstance(record, dict):
        return None

    revision_id = record.get("revisionId")
    if not isinstance(revision_id, str) or not revision_id.strip():
        record = {
            **record,
            "revisionId": (
                f"legacy-{record.get('timestamp')}-{record.get('platform')}"
            ),
        }
    try:
        return RevisionEntry.model_validate(record)
    except ValidationError:
        return None


def load_journal(journal_path: PathLike) -> list[RevisionEntry]:
    """Every valid entry in file order.  Missing journal -> ``[]``."""
    path = Path(journal_path)
    if not path_exists(path):
        return []
    try:
        data = path.read_bytes()
    except OSError as exc:
        logger.warning("Cannot read sync journal %s: %s", path, exc)
        return []

    entries: list[RevisionEntry] = []
    for number, raw_line in enumerate(data.splitlines(), start=1):
        try:
            line = raw_line.decode("utf-8").strip()
        except UnicodeDecodeError:
            logger.debug("Skipping undecodable journal line %d in %s", number, path)
            continue
        if not line:
            continue
        entry = parse_journal_line(line)
        if entry is None:
            logger.debug("Skipping invalid journal line %d in %s", number, path)
            continue
        entries.append(entry)
    return entries


def newest_first(entries: list[RevisionEntry]) -> list[RevisionEntry]:
    """Sort by timestamp, newest first; ties keep later lines first."""
    return sorted(reversed(entries), key=lambda e: e.timestamp, reverse=True)


async def read_revision_entries(journal_path: PathLike) -> list[RevisionEntry]:
    """All valid journal entries, newest first."""
    return newest_first(await run_sync(load_journal, journal_path))


def group_revisions(entries: list[RevisionEntry]) -> list[RevisionSummary]:
    """Group entries by revision id, newest revision first."""
    grouped: dict[str, list[RevisionEntry]] = {}
    for entry in newest_first(entries):
        grouped.setdefault(entry.revision_id, []).append(entry)

    summaries = []
    for revision_id, members in grouped.items():
        platforms = list(dict.fromkeys(e.platform for e in members))
        summaries.append(
            RevisionSummary(
                revision_id=revision_id,
                applied_at=max(e.timestamp for e in members),
                total_operations=sum(e.operation_count for e in members),
                platforms=tuple(platforms),
                entries=tuple(members),
            )
        )
    summaries.sort(key=lambda s: s.applied_at, reverse=True)
    return summaries


async def read_revision_history(
    journal_path: PathLike, limit: int = DEFAULT_HISTORY_LIMIT
) -> list[RevisionSummary]:
    """Revision summaries, newest first, truncated to *limit*.

    Raises:
        ValueError: If *limit* is negative.
    """
    if limit < 0:
        raise ValueError(f"limit must be non-negative, got {limit}")
    entries = await run_sync(load_journal, journal_path)
    return group_revisions(entries)[:limit]


async def last_applied_at(journal_path: PathLike) -> str | None:
    entries = await run_sync(load_journal, journal_path)
    return max((e.timestamp for e in entries), default=None)


# ---------------------------------------------------------------------------
# Revert
# ---------------------------------------------------------------------------


async def _revert_entry(entry: RevisionEntry) -> RevertEntryResult:
    def result(reverted: bool, message: str) -> RevertEntryResult:
        return RevertEntryResult(
            platform=entry.platform,
            config_path=entry.config_path,
            backup_path=entry.backup_path,
            reverted=reverted,
            message=message,
        )

    if entry.backup_path is None:
        return result(False, "No backup recorded for this entry.")
    if not await run_sync(path_exists, entry.backup_path):
        logger.warning(
            "Backup %s for %s is missing", entry.backup_path, entry.config_path
        )
        return result(False, "Backup file not found.")
    try:
        await run_sync(restore_file, entry.backup_path, entry.config_path)
    except OSError as exc:
        logger.error("Revert of %s failed: %s", entry.config_path, exc)
        return result(False, str(exc))

    logger.info(
        "Reverted %s config %s from %s",
        entry.platform,
        entry.config_path,
        entry.backup_path,
    )
    return result(True, "Reverted from backup.")


async def revert_revision(journal_path: PathLike, revision_id: str) -> RevertResult:
    """Restore every target of *revision_id* from its recorded backup.

    Entries are restored newest first.  A missing backup is reported as a
    failed entry and the remaining entries are still attempted.

    Raises:
        ValueError: If *revision_id* is blank.
        RevisionNotFoundError: If no journal entry carries *revision_id*.
    """
    if not isinstance(revision_id, str) or not revision_id.strip():
        raise ValueError("Revert requires a non-empty revision id.")
    revision_id = revision_id.strip()

    entries = await read_revision_entries(journal_path)
    matched = [e for e in entries if e.revision_id == revision_id]
    if not matched:
        raise RevisionNotFoundError(revision_id)

    results = [await _revert_entry(entry) for entry in matched]
    reverted = sum(1 for r in results if r.reverted)
    logger.info(
        "%d/%d config file(s) reverted for %s",
        reverted,
        len(results),
        revision_id,
    )
    return RevertResult(
        revision_id=revision_id,
        reverted_at=utc_now_iso(),
        results=tuple(results),
    )
