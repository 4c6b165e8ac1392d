"""Default-path tables and adapter factories for every supported target.

Three groups of targets exist:

* **Built-in** (``claude``, ``cursor``, ``codex``) -- always present, applied
  first and in that order.
* **Known** (``windsurf``, ``vscode``, ``zed`` ...) -- tools whose config
  location and field name are known ahead of time; candidates differ per
  operating system.
* **Custom** -- declared by the user in configuration with an explicit path
  and field name (see ``config_schema.CustomTargetConfig``).
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from ..core.async_utils import gather_limited
from ..domain import DEFAULT_FIELD_NAME
from .base import DetectResult
from .json_adapter import JsonTargetAdapter

BUILTIN_TARGETS: tuple[str, ...] = ("claude", "cursor", "codex")
"""Built-in targets in their fixed apply order."""


def _home(home_dir: str | None) -> Path:
    return Path(home_dir) if home_dir else Path.home()


def claude_default_candidates(home_dir: str | None = None) -> list[str]:
    home = _home(home_dir)
    return [
        str(home / "Library" / "Application Support" / "Claude" / "claude_desktop_config.json"),
        str(home / "Library" / "Application Support" / "Claude" / "mcp.json"),
        str(home / ".claude" / "mcp.json"),
        str(home / ".config" / "claude" / "mcp.json"),
    ]


def cursor_default_candidates(home_dir: str | None = None) -> list[str]:
    home = _home(home_dir)
    return [
        str(home / ".cursor" / "mcp.json"),
        str(home / ".config" / "cursor" / "mcp.json"),
        str(home / "Library" / "Application Support" / "Cursor" / "User" / "mcp.json"),
    ]


def codex_default_candidates(home_dir: str | None = None) -> list[str]:
    home = _home(home_dir)
    return [
        str(home / ".codex" / "mcp.json"),
        str(home / ".config" / "codex" / "mcp.json"),
        str(home / "Library" / "Application Support" / "Codex" / "mcp.json"),
    ]


_BUILTIN_CANDIDATES = {
    "claude": claude_default_candidates,
    "cursor": cursor_default_candidates,
    "codex": codex_default_candidates,
}

_DISPLAY_NAMES = {"claude": "Claude", "cursor": "Cursor", "codex": "Codex"}


# ---------------------------------------------------------------------------
# Known targets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KnownTarget:
    """A tool with a known config location.

    Attributes:
        id: Target id.
        name: Display name.
        field_name: Top-level key of the server mapping.
        candidates: Path segments relative to a base directory, keyed by
            ``sys.platform`` prefix (``darwin``, ``win32``, ``linux``).
            A leading ``"%APPDATA%"`` segment resolves to the Windows
            roaming profile (falling back to the home directory).
    """

    id: str
    name: str
    field_name: str = DEFAULT_FIELD_NAME
    candidates: dict[str, list[tuple[str, ...]]] = field(default_factory=dict)

    def candidate_paths(
        self, home_dir: str | None = None, platform: str | None = None
    ) -> list[str]:
        home = _home(home_dir)
        system = platform or sys.platform
        key = next(
            (k for k in self.candidates if system.startswith(k)), None
        )
        if key is None:
            return []
        paths: list[str] = []
        for segments in self.candidates[key]:
            if segments and segments[0] == "%APPDATA%":
                base = Path(os.environ.get("APPDATA") or home)
                paths.append(str(base.joinpath(*segments[1:])))
            else:
                paths.append(str(home.joinpath(*segments)))
        return paths


def _everywhere(*segments: str) -> dict[str, list[tuple[str, ...]]]:
    return {os_key: [segments] for os_key in ("darwin", "win32", "linux")}


_VSCODE_GLOBAL_STORAGE = ("Code", "User", "globalStorage")

KNOWN_TARGETS: tuple[KnownTarget, ...] = (
    KnownTarget(
        id="windsurf",
        name="Windsurf",
        candidates=_everywhere(".codeium", "windsurf", "mcp_config.json"),
    ),
    KnownTarget(
        id="vscode",
        name="VS Code",
        field_name="servers",
        candidates={
            "darwin": [("Library", "Application Support", "Code", "User", "mcp.json")],
            "win32": [("%APPDATA%", "Code", "User", "mcp.json")],
            "linux": [(".config", "Code", "User", "mcp.json")],
        },
    ),
    KnownTarget(
        id="zed",
        name="Zed",
        field_name="context_servers",
        candidates={
            "darwin": [(".config", "zed", "settings.json")],
            "linux": [(".config", "zed", "settings.json")],
        },
    ),
    KnownTarget(
        id="continue",
        name="Continue",
        candidates=_everywhere(".continue", "config.json"),
    ),
    KnownTarget(
        id="cline",
        name="Cline",
        candidates={
            "darwin": [
                ("Library", "Application Support", *_VSCODE_GLOBAL_STORAGE,
                 "saoudrizwan.claude-dev", "settings", "cline_mcp_settings.json")
            ],
            "win32": [
                ("%APPDATA%", *_VSCODE_GLOBAL_STORAGE,
                 "saoudrizwan.claude-dev", "settings", "cline_mcp_settings.json")
            ],
            "linux": [
                (".config", *_VSCODE_GLOBAL_STORAGE,
                 "saoudrizwan.claude-dev", "settings", "cline_mcp_settings.json")
            ],
        },
    ),
    KnownTarget(
        id="roo-code",
        name="Roo Code",
        candidates={
            "darwin": [
                ("Library", "Application Support", *_VSCODE_GLOBAL_STORAGE,
                 "rooveterinaryinc.roo-cline", "settings", "mcp_settings.json")
            ],
            "win32": [
                ("%APPDATA%", *_VSCODE_GLOBAL_STORAGE,
                 "rooveterinaryinc.roo-cline", "settings", "mcp_settings.json")
            ],
            "linux": [
                (".config", *_VSCODE_GLOBAL_STORAGE,
                 "rooveterinaryinc.roo-cline", "settings", "mcp_settings.json")
            ],
        },
    ),
    KnownTarget(
        id="docker",
        name="Docker Desktop",
        candidates=_everywhere(".docker", "mcp.json"),
    ),
)

_KNOWN_BY_ID = {t.id: t for t in KNOWN_TARGETS}


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def display_name(target: str) -> str:
    if target in _DISPLAY_NAMES:
        return _DISPLAY_NAMES[target]
    if target in _KNOWN_BY_ID:
        return _KNOWN_BY_ID[target].name
    return target


def create_builtin_adapter(
    target: str, home_dir: str | None = None
) -> JsonTargetAdapter:
    """Adapter for ``claude``, ``cursor`` or ``codex``.

    Raises:
        ValueError: If *target* is not a built-in target.
    """
    if target not in _BUILTIN_CANDIDATES:
        raise ValueError(
            f"Unknown built-in target '{target}'. "
            f"Expected one of: {', '.join(BUILTIN_TARGETS)}"
        )
    candidates = _BUILTIN_CANDIDATES[target]
    return JsonTargetAdapter(
        target, lambda: candidates(home_dir), DEFAULT_FIELD_NAME
    )


def create_known_adapter(
    target: str, home_dir: str | None = None
) -> JsonTargetAdapter:
    """Adapter for one of ``KNOWN_TARGETS``.

    Raises:
        ValueError: If *target* is not a known target.
    """
    known = _KNOWN_BY_ID.get(target)
    if known is None:
        raise ValueError(f"Unknown target '{target}'")
    return JsonTargetAdapter(
        known.id,
        lambda: known.candidate_paths(home_dir),
        known.field_name,
    )


def create_custom_adapter(
    target: str, config_path: str, field_name: str = DEFAULT_FIELD_NAME
) -> JsonTargetAdapter:
    return JsonTargetAdapter(target, lambda: [config_path], field_name)


def builtin_adapters(
    home_dir: str | None = None,
) -> dict[str, JsonTargetAdapter]:
    """Adapters for every built-in target, in apply order."""
    return {t: create_builtin_adapter(t, home_dir) for t in BUILTIN_TARGETS}


async def discover_target_configs(
    home_dir: str | None = None,
    override_paths: dict[str, list[str]] | None = None,
) -> list[DetectResult]:
    """Detect built-in target configs on this machine.

    Args:
        home_dir: Home directory used for default candidates.
        override_paths: Per-target paths searched instead of defaults.

    Returns:
        One ``DetectResult`` per built-in target, in apply order.
    """
    overrides = override_paths or {}
    adapters = builtin_adapters(home_dir)
    return await gather_limited(
        [
            adapter.detect(overrides.get(target))
            for target, adapter in adapters.items()
        ]
    )
