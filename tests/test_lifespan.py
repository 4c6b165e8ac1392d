"""Tests for mcp_gateway.mcp.lifespan -- server startup/shutdown lifecycle.

Tests the server_lifespan() async context manager which:
- Loads .env and the YAML config (explicit path or discovery)
- Builds the SyncEngine and reads target state once
- Fails fast with RuntimeError on config errors
- Prints status messages to stderr
"""

import logging
import textwrap
from unittest.mock import patch

import pytest

from mcp_gateway.mcp.lifespan import server_lifespan
from mcp_gateway.sync.engine import SyncEngine


@pytest.fixture(autouse=True)
def quiet(monkeypatch):
    """Silence stderr output and keep .env and the root level untouched."""
    root = logging.getLogger()
    level = root.level
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    with (
        patch("mcp_gateway.mcp.lifespan.load_dotenv"),
        patch("mcp_gateway.mcp.lifespan._stderr_print") as mock_print,
    ):
        yield mock_print
    root.setLevel(level)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "gateway.yml"
    path.write_text(
        textwrap.dedent(f"""\
        targets:
          claude:
            config_path_override: {tmp_path / "claude.json"}
        state:
          state_dir: {tmp_path / "state"}
        logging:
          level: ERROR
        """)
    )
    return path


class TestServerLifespanSuccess:
    """Tests for the happy path through server_lifespan()."""

    async def test_yields_engine_and_config(self, tmp_path, config_file):
        overrides = {"config": str(config_file), "home_dir": str(tmp_path / "home")}

        async with server_lifespan(config_overrides=overrides) as ctx:
            engine = ctx["engine"]
            assert isinstance(engine, SyncEngine)
            assert engine.journal_path == tmp_path / "state" / "sync-journal.jsonl"
            assert ctx["config"].target_paths("claude").config_path_override == str(
                tmp_path / "claude.json"
            )

    async def test_config_log_level_applied(self, tmp_path, config_file):
        overrides = {"config": str(config_file), "home_dir": str(tmp_path / "home")}
        async with server_lifespan(config_overrides=overrides):
            assert logging.getLogger().level == logging.ERROR

    async def test_debug_flag_wins(self, tmp_path, config_file):
        overrides = {
            "config": str(config_file),
            "home_dir": str(tmp_path / "home"),
            "debug": True,
        }
        async with server_lifespan(config_overrides=overrides):
            assert logging.getLogger().level == logging.DEBUG

    async def test_prints_status(self, tmp_path, config_file, quiet):
        overrides = {"config": str(config_file), "home_dir": str(tmp_path / "home")}
        async with server_lifespan(config_overrides=overrides):
            pass
        messages = [c.args[0] for c in quiet.call_args_list]
        assert messages[0] == "MCP Gateway Sync starting..."
        assert any("Targets found: none" in m for m in messages)
        assert messages[-1] == "MCP Gateway Sync shutting down."


class TestConfigLogFile:
    """``logging.file`` applies only without --log-file and LOG_FILE."""

    @pytest.fixture
    def root_handlers(self, monkeypatch):
        root = logging.getLogger()
        monkeypatch.setattr(root, "handlers", [])
        monkeypatch.delenv("LOG_FILE", raising=False)
        yield root
        for handler in root.handlers:
            handler.close()

    @pytest.fixture
    def log_config(self, tmp_path):
        path = tmp_path / "gateway.yml"
        path.write_text(
            textwrap.dedent(f"""\
            state:
              state_dir: {tmp_path / "state"}
            logging:
              file: {tmp_path / "from-config.log"}
            """)
        )
        return path

    def _file_names(self, root):
        return [
            h.baseFilename
            for h in root.handlers
            if isinstance(h, logging.FileHandler)
        ]

    async def test_config_file_used(self, tmp_path, log_config, root_handlers):
        overrides = {"config": str(log_config), "home_dir": str(tmp_path / "home")}
        async with server_lifespan(config_overrides=overrides):
            assert self._file_names(root_handlers) == [
                str(tmp_path / "from-config.log")
            ]

    async def test_cli_log_file_wins(self, tmp_path, log_config, root_handlers):
        overrides = {
            "config": str(log_config),
            "home_dir": str(tmp_path / "home"),
            "log_file": str(tmp_path / "cli.log"),
        }
        async with server_lifespan(config_overrides=overrides):
            assert self._file_names(root_handlers) == []

    async def test_env_log_file_wins(
        self, tmp_path, log_config, root_handlers, monkeypatch
    ):
        monkeypatch.setenv("LOG_FILE", str(tmp_path / "env.log"))
        overrides = {"config": str(log_config), "home_dir": str(tmp_path / "home")}
        async with server_lifespan(config_overrides=overrides):
            assert self._file_names(root_handlers) == []


class TestServerLifespanFailures:
    async def test_missing_config_file(self, tmp_path):
        overrides = {"config": str(tmp_path / "missing.yml")}
        with pytest.raises(RuntimeError, match="Configuration error"):
            async with server_lifespan(config_overrides=overrides):
                pass

    async def test_invalid_config(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("state:\n  max_parallel_reads: 0\n")
        with pytest.raises(RuntimeError, match="Configuration error"):
            async with server_lifespan(config_overrides={"config": str(path)}):
                pass

    async def test_yaml_syntax_error(self, tmp_path):
        path = tmp_path / "broken.yml"
        path.write_text("state: [unclosed\n")
        with pytest.raises(RuntimeError, match="Configuration error"):
            async with server_lifespan(config_overrides={"config": str(path)}):
                pass
