"""Lifespan management for MCP server startup and shutdown."""

import logging
import os
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from ..config_loader import discover_config_files, load_hierarchical_config
from ..config_schema import build_config
from ..logger import resolve_level, use_log_file
from ..sync.engine import SyncEngine

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env (so values are visible to ``${VAR}`` interpolation)
    - Load and validate the YAML config (explicit ``config`` override or
      discovered files)
    - Build the SyncEngine and read target state once to report what was
      found

    Args:
        config_overrides: Optional dict with ``config`` (path),
            ``log_file``, ``debug`` and ``home_dir`` from the CLI.  The
            config file's ``logging.file`` is used only when neither
            ``log_file`` nor ``LOG_FILE`` is set.

    Yields:
        Dict with ``engine`` and ``config`` keys.

    Raises:
        RuntimeError: If the configuration cannot be loaded.
    """
    logger.info("MCP server starting...")
    _stderr_print("MCP Gateway Sync starting...")

    overrides = config_overrides or {}
    try:
        load_dotenv()
        explicit = overrides.get("config")
        explicit_path = Path(explicit).expanduser() if explicit else None
        raw = load_hierarchical_config(explicit_path)
        config = build_config(raw)
    except (OSError, ValueError, ValidationError, yaml.YAMLError) as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    # LOG_LEVEL and --debug still take precedence over the config file
    logging.getLogger().setLevel(
        resolve_level("mcp", overrides.get("debug", False), config.logging.level)
    )
    if (
        config.logging.file
        and not overrides.get("log_file")
        and not os.getenv("LOG_FILE")
    ):
        use_log_file(config.logging.file)
        logger.info("Logging to %s", config.logging.file)

    sources = (
        [str(explicit_path)]
        if explicit_path
        else [str(p) for p in discover_config_files()]
    )
    source_desc = ", ".join(sources) if sources else "defaults"
    logger.info("Configuration loaded from: %s", source_desc)
    _stderr_print(f"  Configuration loaded from: {source_desc}")

    engine = SyncEngine(config, home_dir=overrides.get("home_dir"))
    state = await engine.load_state()
    found = [s.target for s in state.targets.values() if s.found]
    logger.info(
        "Targets: %d (found on disk: %s)",
        len(state.targets),
        ", ".join(found) or "none",
    )
    _stderr_print(f"  Journal: {engine.journal_path}")
    _stderr_print(f"  Targets found: {', '.join(found) or 'none'}")
    _stderr_print("Server ready. Waiting for MCP client connection...")

    yield {"engine": engine, "config": config}

    logger.info("MCP server shutting down")
    _stderr_print("MCP Gateway Sync shutting down.")
