from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal, Union

from .result import Ok, Result


@dataclass(frozen=True)
class EntryContent:
    """A parsed content entry, or the error produced while parsing it.

    ``data`` holds the Datasworn source dict (with at least a ``type`` tag) on
    success. ``declared_type`` keeps the type the file claimed even when parsing
    failed.
    """

    kind: ClassVar[Literal["content"]] = "content"
    data: Result[dict[str, Any], Exception]
    declared_type: str | None = None

    @property
    def entry_type(self) -> str | None:
        if isinstance(self.data, Ok):
            value = self.data.value.get("type")
            return value if isinstance(value, str) else None
        return None


@dataclass(frozen=True)
class IndexContent:
    """Attributes for the enclosing collection (from an ``_index`` file)."""

    kind: ClassVar[Literal["index"]] = "index"
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def declared_type(self) -> str | None:
        value = self.data.get("type")
        return value if isinstance(value, str) else None


@dataclass(frozen=True)
class PackageContent:
    """A whole rules package (ruleset or expansion) stored in one file."""

    kind: ClassVar[Literal["package"]] = "package"
    package: dict[str, Any]


ContentValue = Union[EntryContent, IndexContent, PackageContent]


@dataclass(frozen=True)
class Content:
    path: str  # root-relative, slash-delimited, no leading slash
    mtime: float
    hash: str  # opaque change-detection token
    value: ContentValue


@dataclass(frozen=True)
class GroupAnnotations:
    """Group payload for content trees; the root is pinned to ``"root"``."""

    collection_type: str | None = None
