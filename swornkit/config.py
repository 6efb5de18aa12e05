from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomllib  # py311+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # pyright: ignore[reportMissingImports]

CONFIG_FILENAMES: tuple[str, ...] = (".swornkit.toml", "swornkit.toml")
PYPROJECT_FILENAME = "pyproject.toml"

DEFAULT_INCLUDES: list[str] = [
    "**/*.md",
    "**/*.yml",
    "**/*.yaml",
    "**/*.json",
]

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class Config:
    include: list[str] = field(default_factory=lambda: DEFAULT_INCLUDES.copy())
    exclude: list[str] = field(default_factory=list)
    respect_gitignore: bool = True
    # Folder (relative to the content dir) whose children are each a package.
    meta_root: str | None = None
    # Extra folders tracked as standalone (campaign) packages.
    roots: list[str] = field(default_factory=list)
    package_id: str = "campaign"
    # Debounce windows; 0 builds/indexes immediately.
    file_debounce_ms: int = 0
    build_debounce_ms: int = 100
    log_level: str = "WARNING"


def _find_config_path(root: Path) -> Path | None:
    root = root.resolve()
    for name in CONFIG_FILENAMES:
        p = root / name
        if p.exists():
            return p
    pyproject = root / PYPROJECT_FILENAME
    if pyproject.exists():
        return pyproject
    return None


def _extract_section(data: Any, *, from_pyproject: bool) -> dict[str, Any]:
    if not isinstance(data, dict):
        return {}

    if not from_pyproject:
        # Preferred for dedicated config files: [swornkit]
        section = data.get("swornkit")
        if isinstance(section, dict):
            return section

    # Supported in all files; required for pyproject.toml.
    tool = data.get("tool")
    if isinstance(tool, dict):
        section = tool.get("swornkit")
        if isinstance(section, dict):
            return section

    return {}


def _int_or(value: Any, default: int) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return default


def load_config(root: Path) -> Config:
    cfg_path = _find_config_path(root)
    if cfg_path is None:
        return Config()

    data = tomllib.loads(cfg_path.read_text(encoding="utf-8"))
    section = _extract_section(data, from_pyproject=cfg_path.name == PYPROJECT_FILENAME)
    cfg = Config()

    inc = section.get("include")
    if isinstance(inc, list):
        cfg.include = [str(x) for x in inc]
    exc = section.get("exclude")
    if isinstance(exc, list):
        cfg.exclude = [str(x) for x in exc]
    cfg.respect_gitignore = bool(
        section.get("respect_gitignore", cfg.respect_gitignore)
    )

    meta_root = section.get("meta_root")
    if isinstance(meta_root, str) and meta_root.strip():
        cfg.meta_root = meta_root.strip().strip("/")

    roots = section.get("roots")
    if isinstance(roots, list):
        cfg.roots = [str(r).strip("/") for r in roots if str(r).strip("/")]

    package_id = section.get("package_id", cfg.package_id)
    if isinstance(package_id, str) and package_id.strip():
        cfg.package_id = package_id.strip()

    cfg.file_debounce_ms = _int_or(
        section.get("file_debounce_ms", cfg.file_debounce_ms), cfg.file_debounce_ms
    )
    cfg.build_debounce_ms = _int_or(
        section.get("build_debounce_ms", cfg.build_debounce_ms), cfg.build_debounce_ms
    )

    level = section.get("log_level", cfg.log_level)
    if isinstance(level, str) and level.strip().upper() in LOG_LEVELS:
        cfg.log_level = level.strip().upper()

    return cfg
