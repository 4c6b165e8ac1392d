"""
Hierarchical configuration loader for mcp_gateway.

Discovers YAML config files by convention, resolves ``!include``
directives, merges files with "most specific wins" semantics and expands
``${VAR}`` / ``${VAR:-default}`` references.

Usage:
    from mcp_gateway.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "MCP_GATEWAY_CONFIG"
PROJECT_DIR_NAME = ".mcp_gateway"

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# ${VAR} or ${VAR:-default}
_ENV_REF = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` in *value*.

    An unset or empty variable expands to its default, or to ``""`` when
    there is none.  An unterminated ``${`` is left as-is.
    """

    def _expand(match: re.Match) -> str:
        current = os.environ.get(match.group(1))
        if current:
            return current
        return match.group(2) or ""

    return _ENV_REF.sub(_expand, value)


def expand_env_refs(obj: Any) -> Any:
    """Apply ``interpolate_env_vars`` to every string in a nested structure."""
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, list):
        return [expand_env_refs(item) for item in obj]
    if isinstance(obj, dict):
        return {key: expand_env_refs(item) for key, item in obj.items()}
    return obj


# ---------------------------------------------------------------------------
# 2. YAML loading with !include
# ---------------------------------------------------------------------------


class IncludeLoader(yaml.SafeLoader):
    """``SafeLoader`` subclass understanding ``!include <path>``.

    A private subclass keeps ``yaml.SafeLoader`` itself untouched.  Each
    loader carries the chain of files being loaded so a file including
    itself, directly or indirectly, is reported instead of recursing.
    """

    include_chain: list[Path]


def _construct_include(loader: IncludeLoader, node: yaml.ScalarNode) -> Any:
    """Load the file named by an ``!include`` node.

    Relative paths resolve against the including file's directory.
    """
    requested = Path(loader.construct_scalar(node)).expanduser()
    including_file = Path(loader.name).resolve()
    if not requested.is_absolute():
        requested = including_file.parent / requested
    requested = requested.resolve()

    chain = getattr(loader, "include_chain", [including_file])
    if requested in chain:
        cycle = " -> ".join(str(p) for p in [*chain, requested])
        raise ValueError(f"Circular include detected: {cycle}")
    if not requested.is_file():
        raise FileNotFoundError(
            f"Include file not found: {requested} (referenced from {including_file})"
        )
    return load_yaml_file(requested, chain=[*chain, requested])


IncludeLoader.add_constructor("!include", _construct_include)


def load_yaml_file(path: Path, *, chain: list[Path] | None = None) -> Any:
    """Parse one YAML file, following ``!include`` directives."""
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = IncludeLoader(fh)
        loader.include_chain = chain or [path]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# 3. Discovery
# ---------------------------------------------------------------------------


def config_search_paths() -> list[Path]:
    """Every conventional location, highest precedence first.

    1. ``$MCP_GATEWAY_CONFIG``
    2. ``./.mcp_gateway/config.yml``
    3. ``./.mcp_gateway/config.yaml``
    4. ``~/.config/mcp_gateway/config.yml``
    """
    paths: list[Path] = []
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        paths.append(Path(explicit).expanduser().resolve())
    project_dir = Path.cwd() / PROJECT_DIR_NAME
    paths.append(project_dir / "config.yml")
    paths.append(project_dir / "config.yaml")
    paths.append(Path.home() / ".config" / "mcp_gateway" / "config.yml")
    return paths


def discover_config_files() -> list[Path]:
    """Existing config files in precedence order (highest first)."""
    return [p for p in config_search_paths() if p.is_file()]


# ---------------------------------------------------------------------------
# 4. Starter config
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# mcp-gateway-sync configuration
#
# Per-target search paths.  With config_path_override set, default
# locations are ignored for that target.
#
# targets:
#   claude:
#     config_path_override: ~/.claude/mcp.json
#     additional_config_paths: []
#   cursor:
#     additional_config_paths:
#       - ${HOME}/work/.cursor/mcp.json
#
# Any JSON file holding a server mapping can be managed:
#
# custom_targets:
#   - id: my-editor
#     name: My Editor
#     config_path: ~/.my-editor/settings.json
#     field_name: mcpServers
#
# state:
#   state_dir: ~/.mcp_gateway
#   journal_file: sync-journal.jsonl
#   max_parallel_reads: 8
#
# restart:
#   auto_restart:
#     codex: false
#
# logging:
#   level: INFO
#   file: null
"""


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a commented starter if none exists.

    Args:
        target: Where to create the starter file; defaults to
            ``./.mcp_gateway/config.yml``.

    Returns:
        Path to the existing or newly created config file.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or Path.cwd() / PROJECT_DIR_NAME / "config.yml"
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# 5. Merge
# ---------------------------------------------------------------------------


def load_hierarchical_config(explicit_path: Path | None = None) -> dict[str, Any]:
    """Load and merge config files.

    Files are applied lowest precedence first; each file's top-level keys
    replace those of the files before it (no deep merge).  Environment
    references are expanded after merging.

    Args:
        explicit_path: Load only this file instead of discovering.

    Returns:
        Merged dict; empty when no config file exists.

    Raises:
        FileNotFoundError: If *explicit_path* (or an include) is missing.
        ValueError: On a circular include.
        yaml.YAMLError: On a syntax error.
    """
    if explicit_path is not None:
        if not explicit_path.is_file():
            raise FileNotFoundError(f"Config file not found: {explicit_path}")
        paths = [explicit_path]
    else:
        paths = discover_config_files()

    if not paths:
        logger.debug("No config files found, using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = load_yaml_file(path)
        except Exception:
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has a %s root, expected a mapping; skipping",
                path,
                type(data).__name__,
            )

    return expand_env_refs(merged)
