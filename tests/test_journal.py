"""Tests for the revision journal: reading, grouping, history and revert."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from mcp_gateway.errors import RevertError, RevisionNotFoundError
from mcp_gateway.sync.journal import (
    append_journal_entry,
    group_revisions,
    last_applied_at,
    load_journal,
    parse_journal_line,
    read_revision_entries,
    read_revision_history,
    revert_revision,
)
from mcp_gateway.sync.models import RevisionEntry


def _entry(
    revision_id: str,
    timestamp: str,
    platform: str,
    config_path: str = "/x/mcp.json",
    backup_path: str | None = "/x/mcp.json.bak.1",
    operation_count: int = 1,
) -> RevisionEntry:
    return RevisionEntry(
        revision_id=revision_id,
        timestamp=timestamp,
        platform=platform,
        config_path=config_path,
        backup_path=backup_path,
        operation_count=operation_count,
    )


def _write_lines(path: Path, lines: list) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        "\n".join(
            line if isinstance(line, str) else json.dumps(line)
            for line in lines
        )
        + "\n",
        encoding="utf-8",
    )


class TestParsing:
    def test_appended_entry_uses_camel_case(self, journal_path):
        append_journal_entry(journal_path, _entry("r1", "2024-01-01T00:00:00Z", "claude"))
        record = json.loads(journal_path.read_text(encoding="utf-8"))
        assert record == {
            "revisionId": "r1",
            "timestamp": "2024-01-01T00:00:00Z",
            "platform": "claude",
            "configPath": "/x/mcp.json",
            "backupPath": "/x/mcp.json.bak.1",
            "operationCount": 1,
        }

    def test_legacy_line_gets_synthesized_id(self):
        entry = parse_journal_line(
            json.dumps(
                {
                    "timestamp": "2023-05-05T10:00:00Z",
                    "platform": "cursor",
                    "configPath": "/c.json",
                    "backupPath": "/c.json.bak",
                    "operationCount": 2,
                }
            )
        )
        assert entry.revision_id == "legacy-2023-05-05T10:00:00Z-cursor"

    @pytest.mark.parametrize(
        "line",
        [
            "not json",
            "[1, 2]",
            '{"revisionId": "r", "timestamp": "t"}',
            '{"revisionId": "r", "timestamp": "t", "platform": "p", '
            '"configPath": "/a", "backupPath": "/b", "operationCount": -1}',
        ],
    )
    def test_invalid_lines(self, line):
        assert parse_journal_line(line) is None

    def test_load_skips_invalid_lines(self, journal_path):
        valid = _entry("r1", "2024-01-01T00:00:00Z", "claude").to_record()
        _write_lines(journal_path, ["garbage", "", valid, "{}"])
        entries = load_journal(journal_path)
        assert [e.revision_id for e in entries] == ["r1"]

    def test_load_skips_undecodable_lines(self, journal_path):
        valid = json.dumps(_entry("r1", "2024-01-01T00:00:00Z", "claude").to_record())
        journal_path.parent.mkdir(parents=True)
        journal_path.write_bytes(valid.encode("utf-8") + b"\n\xff\xfe garbage\n")

        entries = load_journal(journal_path)

        assert [e.revision_id for e in entries] == ["r1"]

    async def test_history_survives_undecodable_lines(self, journal_path):
        valid = json.dumps(_entry("r1", "2024-01-01T00:00:00Z", "claude").to_record())
        journal_path.parent.mkdir(parents=True)
        journal_path.write_bytes(b"\xff\xfe garbage\n" + valid.encode("utf-8") + b"\n")

        history = await read_revision_history(journal_path)

        assert [r.revision_id for r in history] == ["r1"]
        assert await last_applied_at(journal_path) == "2024-01-01T00:00:00Z"

    def test_deeply_nested_line_is_skipped(self):
        assert parse_journal_line("[" * 100000 + "]" * 100000) is None

    def test_missing_journal(self, tmp_path):
        assert load_journal(tmp_path / "none.jsonl") == []


class TestHistory:
    async def test_entries_newest_first(self, journal_path):
        for entry in [
            _entry("r1", "2024-01-01T00:00:00Z", "claude"),
            _entry("r2", "2024-02-01T00:00:00Z", "claude"),
        ]:
            append_journal_entry(journal_path, entry)

        entries = await read_revision_entries(journal_path)

        assert [e.revision_id for e in entries] == ["r2", "r1"]

    def test_grouping(self):
        summaries = group_revisions(
            [
                _entry("r1", "2024-01-01T00:00:00Z", "claude", operation_count=2),
                _entry("r1", "2024-01-01T00:00:01Z", "cursor", operation_count=3),
                _entry("r2", "2024-03-01T00:00:00Z", "codex"),
            ]
        )
        assert [s.revision_id for s in summaries] == ["r2", "r1"]
        r1 = summaries[1]
        assert r1.total_operations == 5
        assert r1.applied_at == "2024-01-01T00:00:01Z"
        assert set(r1.platforms) == {"claude", "cursor"}

    async def test_limit(self, journal_path):
        for i in range(5):
            append_journal_entry(
                journal_path, _entry(f"r{i}", f"2024-01-0{i + 1}T00:00:00Z", "claude")
            )
        history = await read_revision_history(journal_path, limit=2)
        assert [s.revision_id for s in history] == ["r4", "r3"]

    async def test_negative_limit(self, journal_path):
        with pytest.raises(ValueError):
            await read_revision_history(journal_path, limit=-1)

    async def test_last_applied_at(self, journal_path):
        assert await last_applied_at(journal_path) is None
        append_journal_entry(journal_path, _entry("r1", "2024-01-01T00:00:00Z", "a"))
        append_journal_entry(journal_path, _entry("r2", "2024-06-01T00:00:00Z", "a"))
        assert await last_applied_at(journal_path) == "2024-06-01T00:00:00Z"


class TestRevert:
    """Tests for revert_revision()."""

    async def test_restores_each_entry(self, tmp_path, journal_path):
        config = tmp_path / "mcp.json"
        backup = tmp_path / "mcp.json.bak.1"
        config.write_text("changed", encoding="utf-8")
        backup.write_text("original", encoding="utf-8")
        append_journal_entry(
            journal_path,
            _entry("r1", "2024-01-01T00:00:00Z", "claude", str(config), str(backup)),
        )

        result = await revert_revision(journal_path, " r1 ")

        assert result.revision_id == "r1"
        assert result.ok is True
        assert result.results[0].message == "Reverted from backup."
        assert config.read_text(encoding="utf-8") == "original"

    async def test_missing_backup_continues(self, tmp_path, journal_path):
        good_config = tmp_path / "good.json"
        good_backup = tmp_path / "good.json.bak"
        good_config.write_text("changed", encoding="utf-8")
        good_backup.write_text("original", encoding="utf-8")
        append_journal_entry(
            journal_path,
            _entry("r1", "2024-01-01T00:00:00Z", "claude",
                   str(good_config), str(good_backup)),
        )
        append_journal_entry(
            journal_path,
            _entry("r1", "2024-01-01T00:00:01Z", "cursor",
                   str(tmp_path / "other.json"), str(tmp_path / "gone.bak")),
        )

        result = await revert_revision(journal_path, "r1")

        # newest entry first
        assert [r.platform for r in result.results] == ["cursor", "claude"]
        assert result.results[0].reverted is False
        assert result.results[0].message == "Backup file not found."
        assert result.results[1].reverted is True
        assert good_config.read_text(encoding="utf-8") == "original"
        with pytest.raises(RevertError):
            result.raise_for_failures()

    async def test_entry_without_backup(self, journal_path):
        append_journal_entry(
            journal_path,
            _entry("r1", "2024-01-01T00:00:00Z", "claude", backup_path=None),
        )
        result = await revert_revision(journal_path, "r1")
        assert result.results[0].message == "No backup recorded for this entry."

    async def test_unknown_revision(self, journal_path):
        append_journal_entry(journal_path, _entry("r1", "2024-01-01T00:00:00Z", "a"))
        with pytest.raises(RevisionNotFoundError, match="No revision found for 'r9'"):
            await revert_revision(journal_path, "r9")

    async def test_blank_revision(self, journal_path):
        with pytest.raises(ValueError):
            await revert_revision(journal_path, "   ")
