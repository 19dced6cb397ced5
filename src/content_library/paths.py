from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path

from content_library.config import Settings, get_settings
from content_library.constants import DEFAULT_ENVIRONMENT_DIR, ENVIRONMENT_DIR_VAR

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class EnvironmentPaths:
    root: Path
    ledgers: Path


def resolve_environment_dir(
    settings: Settings | None = None,
    *,
    cwd: Path | None = None,
    override: str | Path | None = None,
) -> Path:
    base = cwd or Path.cwd()
    raw: str | Path | None = override
    if raw is None:
        raw = os.environ.get(ENVIRONMENT_DIR_VAR)
    if raw is None:
        resolved_settings = settings or get_settings()
        raw = resolved_settings.environment_dir
    if not raw:
        raw = DEFAULT_ENVIRONMENT_DIR

    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = base / path
    return path.resolve()


def resolve_environment_paths(
    settings: Settings | None = None,
    *,
    cwd: Path | None = None,
    override: str | Path | None = None,
) -> EnvironmentPaths:
    root = resolve_environment_dir(settings, cwd=cwd, override=override)
    return EnvironmentPaths(root=root, ledgers=root / "ledgers")


def ledger_path(environment_paths: EnvironmentPaths, tenant_id: str) -> Path:
    """Per-tenant ledger file; the tenant id is sanitized into a filename."""
    safe = _UNSAFE_FILENAME_CHARS.sub("_", tenant_id.strip()) or "default"
    return environment_paths.ledgers / f"{safe}.json"
