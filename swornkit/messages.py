"""Commands accepted by ``DataLoader.handle`` and the results it emits."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from .builder import FileProblem
from .result import Result


@dataclass(frozen=True)
class SetMetaRoot:
    root: str | None


@dataclass(frozen=True)
class AddRoot:
    root: str


@dataclass(frozen=True)
class RemoveRoot:
    root: str


@dataclass(frozen=True)
class IndexFile:
    path: str
    mtime: float
    content: str
    frontmatter: dict[str, Any] | None = None


@dataclass(frozen=True)
class DeleteFile:
    path: str


@dataclass(frozen=True)
class RenameFile:
    old_path: str
    new_path: str


IndexCommand = Union[SetMetaRoot, AddRoot, RemoveRoot, IndexFile, DeleteFile, RenameFile]


@dataclass(frozen=True)
class PackageUpdated:
    root: str
    files: dict[str, Result[dict[str, Any], FileProblem]] = field(default_factory=dict)
    package: dict[str, Any] | None = None


@dataclass(frozen=True)
class PackageRemoved:
    root: str


IndexResult = Union[PackageUpdated, PackageRemoved]
