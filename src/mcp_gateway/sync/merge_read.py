"""Tolerant multi-source reads of a target's configuration.

A target may be described by several candidate files (an explicit
override, discovered defaults, extra user-added sources).  Merge-read
produces one ``TargetConfig`` from all of them without ever raising:

* a candidate that does not exist is skipped;
* a candidate that is malformed or fails validation is re-parsed
  permissively, keeping every entry with a usable ``command`` and naming
  the dropped ones in a warning;
* any other read failure becomes a warning;
* when two candidates define the same entry name, the earlier one wins.

Candidates are read concurrently but merged strictly in candidate order.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable

from ..adapters.base import TargetAdapter
from ..core.async_utils import gather_limited, run_sync
from ..core.file_ops import path_exists
from ..domain import TargetConfig, sanitize_definition
from ..errors import (
    GatewayError,
    InvalidConfigError,
    MalformedDocumentError,
)
from .models import MergedConfig

logger = logging.getLogger(__name__)


def candidate_paths(
    default_paths: Iterable[str],
    config_path_override: str | None = None,
    additional_paths: Iterable[str] = (),
    preferred_path: str | None = None,
) -> list[str]:
    """Ordered, de-duplicated candidate list for one target.

    With an override only the override and the additional paths are
    searched.  Otherwise *preferred_path* comes first, then the defaults,
    then the additional paths.  Blank entries are dropped.
    """
    if config_path_override and config_path_override.strip():
        ordered = [config_path_override.strip(), *additional_paths]
    else:
        ordered = [
            *([preferred_path] if preferred_path else []),
            *default_paths,
            *additional_paths,
        ]
    return unique_paths(ordered)


def unique_paths(paths: Iterable[str]) -> list[str]:
    return list(
        dict.fromkeys(p.strip() for p in paths if p and p.strip())
    )


def _recover(
    adapter: TargetAdapter, raw: str
) -> tuple[TargetConfig, str]:
    """Permissive re-parse of a damaged document."""
    field_name = adapter.field_name
    try:
        document = json.loads(raw)
    except (ValueError, RecursionError):
        return {}, (
            "Config recovery: file is malformed JSON. "
            "Preview and apply will ignore existing entries."
        )

    servers = document.get(field_name) if isinstance(document, dict) else None
    if not isinstance(servers, dict):
        return {}, (
            f"Config recovery: missing or invalid '{field_name}' object. "
            "Existing entries were ignored."
        )

    config: TargetConfig = {}
    dropped: list[str] = []
    for name, value in servers.items():
        definition = sanitize_definition(value)
        if definition is None:
            dropped.append(name)
        else:
            config[name] = definition

    if dropped:
        return config, (
            f"Config recovery dropped invalid servers: {', '.join(dropped)}."
        )
    return config, "Config recovery succeeded."


async def read_with_recovery(
    adapter: TargetAdapter, path: str
) -> tuple[TargetConfig, str | None]:
    """Read *path*, falling back to permissive recovery.

    Returns:
        ``(config, warning)``; *warning* is ``None`` for a clean read.

    Raises:
        ConfigFileNotFoundError: If *path* does not exist.
        ConfigIOError: If *path* cannot be read.
    """
    try:
        result = await adapter.read(path)
    except (InvalidConfigError, MalformedDocumentError) as exc:
        logger.warning("Recovering %s config %s: %s", adapter.target, path, exc)
    else:
        return result.config, None

    raw = await adapter.read_raw(path)
    return _recover(adapter, raw)


async def _read_candidate(
    adapter: TargetAdapter, path: str
) -> tuple[bool, TargetConfig, str | None]:
    if not await run_sync(path_exists, path):
        return False, {}, None
    try:
        config, warning = await read_with_recovery(adapter, path)
    except (GatewayError, OSError) as exc:
        logger.warning("Skipping %s config %s: %s", adapter.target, path, exc)
        return True, {}, str(exc)
    return True, config, warning


async def read_merged_config(
    adapter: TargetAdapter,
    candidates: Iterable[str],
    fallback_path: str | None = None,
    max_parallel: int | None = None,
) -> MergedConfig:
    """Merge every existing candidate into one config; never raises.

    Args:
        adapter: Adapter for the target.
        candidates: Candidate paths in preference order.
        fallback_path: Reported as ``config_path`` when *candidates* is
            empty; defaults to the adapter's first default candidate.
        max_parallel: Bound on concurrent candidate reads.

    Returns:
        ``MergedConfig``.  ``found`` is ``False`` and ``config`` empty when
        no candidate exists.
    """
    unique = unique_paths(candidates)
    if not unique:
        defaults = adapter.default_candidate_paths()
        return MergedConfig(
            found=False,
            config_path=fallback_path or (defaults[0] if defaults else ""),
        )

    reads = await gather_limited(
        [_read_candidate(adapter, path) for path in unique],
        max_parallel,
    )

    merged: TargetConfig = {}
    warnings: list[str] = []
    sources: list[str] = []
    for path, (exists, config, warning) in zip(unique, reads):
        if not exists:
            continue
        sources.append(path)
        if warning:
            warnings.append(f"{os.path.basename(path)}: {warning}")
        for name, definition in config.items():
            if name not in merged:
                merged[name] = definition.model_copy(deep=True)

    return MergedConfig(
        found=bool(sources),
        config_path=sources[0] if sources else unique[0],
        config=merged,
        warnings=tuple(warnings),
        sources=tuple(sources),
    )
