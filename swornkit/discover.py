from __future__ import annotations

from pathlib import Path

import pathspec

from .config import DEFAULT_INCLUDES

DEFAULT_EXCLUDES = [
    "**/.git/**",
    "**/.obsidian/**",
    "**/.trash/**",
    "**/node_modules/**",
    ".swornkit.toml",
    "swornkit.toml",
    "pyproject.toml",
]


def _load_ignore_lines(root: Path, filename: str) -> list[str]:
    p = root / filename
    if not p.exists():
        return []
    return p.read_text(encoding="utf-8", errors="replace").splitlines()


def _load_combined_ignore(root: Path, *, respect_gitignore: bool) -> pathspec.PathSpec:
    # Order matters: patterns later in the list take precedence (e.g. negations).
    lines: list[str] = []
    if respect_gitignore:
        lines.extend(_load_ignore_lines(root, ".gitignore"))
    lines.extend(_load_ignore_lines(root, ".swornkitignore"))
    return pathspec.PathSpec.from_lines("gitwildmatch", lines)


def _is_confined_to_root(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root)
    except (OSError, ValueError):
        return False
    return True


def discover_content_files(
    root: Path,
    include: list[str] | None = None,
    exclude: list[str] | None = None,
    respect_gitignore: bool = True,
) -> list[Path]:
    """Find content files below ``root``, sorted.

    ``.gitignore`` (when ``respect_gitignore``) and ``.swornkitignore`` in
    ``root`` are honoured with gitignore semantics.
    """
    root = root.resolve()
    ignore = _load_combined_ignore(root, respect_gitignore=respect_gitignore)
    inc = pathspec.PathSpec.from_lines("gitwildmatch", include or DEFAULT_INCLUDES)
    exc = pathspec.PathSpec.from_lines(
        "gitwildmatch", DEFAULT_EXCLUDES + (exclude or [])
    )

    out: list[Path] = []
    for p in root.rglob("*"):
        if not p.is_file() or not _is_confined_to_root(p, root):
            continue
        rel_s = p.relative_to(root).as_posix()

        if ignore.match_file(rel_s):
            continue
        if not inc.match_file(rel_s):
            continue
        if exc.match_file(rel_s):
            continue

        out.append(p)

    out.sort()
    return out
