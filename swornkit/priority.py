"""Index of Datasworn entries coming from several packages.

Every id may be provided by more than one source (package); readers see the
entry from the source with the lowest ``priority`` number.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from .builder import deep_merge
from .errors import IndexConsistencyError
from .versioned import ProjectableMixin, VersionedMap


@dataclass
class Source:
    path: str
    priority: int
    keys: set[str] = field(default_factory=set)


@dataclass(frozen=True)
class Sourced:
    id: str
    source: Source
    kind: str
    value: Any


@dataclass(frozen=True)
class IndexEntry:
    id: str
    kind: str
    value: Any


def get_highest_priority(entries: Iterable[Sourced]) -> Sourced | None:
    """Pick the entry whose source has the lowest priority number (first one wins ties)."""
    best: Sourced | None = None
    for entry in entries:
        if best is None or entry.source.priority < best.source.priority:
            best = entry
    return best


class PriorityIndex(ProjectableMixin[str, Sourced], Mapping[str, Sourced]):
    def __init__(self) -> None:
        self._data: VersionedMap[str, tuple[Sourced, ...]] = VersionedMap()
        self._sources: dict[str, Source] = {}

    @property
    def revision(self) -> int:
        return self._data.revision

    def __getitem__(self, key: str) -> Sourced:
        best = get_highest_priority(self._data.get(key, ()))
        if best is None:
            raise KeyError(key)
        return best

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def all_entries(self, key: str) -> tuple[Sourced, ...]:
        return self._data.get(key, ())

    def sources(self) -> Mapping[str, Source]:
        return dict(self._sources)

    def _check_kinds(self, path: str, entries: list[IndexEntry]) -> None:
        seen: dict[str, str] = {}
        for entry in entries:
            kind = seen.setdefault(entry.id, entry.kind)
            if kind != entry.kind:
                raise IndexConsistencyError(
                    f"Source {path} provides {entry.id} as both {kind} and {entry.kind}."
                )
            for other in self._data.get(entry.id, ()):
                if other.source.path != path and other.kind != entry.kind:
                    raise IndexConsistencyError(
                        f"Source {path} provides {entry.id} as {entry.kind}, but "
                        f"{other.source.path} provides it as {other.kind}."
                    )

    def _drop_source(self, data: VersionedMap[str, tuple[Sourced, ...]], path: str) -> None:
        source = self._sources.pop(path)
        for key in source.keys:
            remaining = tuple(e for e in data.get(key, ()) if e.source is not source)
            if len(remaining) == len(data.get(key, ())):
                raise IndexConsistencyError(
                    f"index consistency violation: no {key} entry with source {path}"
                )
            if remaining:
                data[key] = remaining
            else:
                del data[key]

    def index(self, path: str, priority: int, entries: Iterable[IndexEntry]) -> None:
        """Replace everything ``path`` provides with ``entries`` as one revision.

        Kind conflicts with other sources raise ``IndexConsistencyError`` and
        leave the previous entries of ``path`` untouched.
        """
        materialized = list(entries)
        self._check_kinds(path, materialized)

        def apply(data: VersionedMap[str, tuple[Sourced, ...]]) -> None:
            if path in self._sources:
                self._drop_source(data, path)
            source = Source(path, priority)
            self._sources[path] = source
            for entry in materialized:
                source.keys.add(entry.id)
                sourced = Sourced(entry.id, source, entry.kind, entry.value)
                existing = tuple(
                    e for e in data.get(entry.id, ()) if e.source is not source
                )
                data[entry.id] = (*existing, sourced)

        self._data.as_single_revision(apply)

    def remove_source(self, path: str) -> bool:
        if path not in self._sources:
            return False
        self._data.as_single_revision(lambda data: self._drop_source(data, path))
        return True

    def rename_source(self, old_path: str, new_path: str) -> None:
        source = self._sources.pop(old_path, None)
        if source is None:
            raise KeyError(f"index has no source {old_path}")
        source.path = new_path
        self._sources[new_path] = source

    def of_kind(self, kind: str) -> Any:
        """Live view of the winning values of one kind."""
        return self.projected(
            lambda sourced, _key: sourced.value if sourced.kind == kind else None
        )


def _merge_metadata(parent: dict[str, Any], **child: Any) -> dict[str, Any]:
    merged = dict(parent)
    merged.update(
        (k, v) for k, v in child.items() if k not in ("tags", "source", "ancestors")
    )
    merged["tags"] = deep_merge(parent.get("tags") or {}, child.get("tags") or {})
    merged["source"] = child.get("source") or parent.get("source")
    merged["ancestors"] = [*parent.get("ancestors", []), *(child.get("ancestors") or [])]
    return merged


def _make(data: dict[str, Any], metadata: dict[str, Any]) -> IndexEntry:
    return IndexEntry(data["_id"], data["type"], {"metadata": metadata, "data": data})


def _walk_oracles(
    collection: dict[str, Any], parent: dict[str, Any]
) -> Iterator[IndexEntry]:
    metadata = _merge_metadata(
        parent, tags=collection.get("tags"), source=collection.get("_source")
    )
    yield _make(collection, metadata)

    child_base = _merge_metadata(metadata, ancestors=[collection["_id"]])
    for oracle in (collection.get("contents") or {}).values():
        yield _make(
            oracle,
            _merge_metadata(child_base, tags=oracle.get("tags"), source=oracle.get("_source")),
        )
    for sub in (collection.get("collections") or {}).values():
        yield from _walk_oracles(sub, child_base)


def _walk_moves(
    category: dict[str, Any], parent: dict[str, Any]
) -> Iterator[IndexEntry]:
    category_meta = _merge_metadata(
        parent, tags=category.get("tags"), source=category.get("_source")
    )
    yield _make(category, category_meta)

    child_base = _merge_metadata(category_meta, ancestors=[category["_id"]])
    for move in (category.get("contents") or {}).values():
        move_meta = _merge_metadata(
            child_base,
            tags=move.get("tags"),
            source=move.get("_source"),
            move_origin={},
        )
        yield _make(move, move_meta)
        for oracle in (move.get("oracles") or {}).values():
            yield _make(
                oracle,
                _merge_metadata(move_meta, tags=oracle.get("tags"), ancestors=[move["_id"]]),
            )
    for sub in (category.get("collections") or {}).values():
        yield from _walk_moves(sub, child_base)


def _walk_assets(
    collection: dict[str, Any], parent: dict[str, Any]
) -> Iterator[IndexEntry]:
    collection_meta = _merge_metadata(
        parent, tags=collection.get("tags"), source=collection.get("_source")
    )
    child_base = _merge_metadata(collection_meta, ancestors=[collection["_id"]])
    for asset in (collection.get("contents") or {}).values():
        asset_meta = _merge_metadata(
            child_base, tags=asset.get("tags"), source=asset.get("_source")
        )
        yield _make(asset, asset_meta)
        for ability in asset.get("abilities") or []:
            ability_meta = _merge_metadata(
                asset_meta, tags=ability.get("tags"), ancestors=[asset["_id"]]
            )
            for move in (ability.get("moves") or {}).values():
                # The ability is not a hierarchical ancestor of its moves.
                yield _make(
                    move,
                    _merge_metadata(
                        ability_meta,
                        tags=move.get("tags"),
                        move_origin={"asset_id": asset["_id"]},
                    ),
                )
    for sub in (collection.get("collections") or {}).values():
        yield from _walk_assets(sub, child_base)


def walk_rules_package(package: dict[str, Any]) -> Iterator[IndexEntry]:
    """Yield every indexable entry of an assembled rules package."""
    package_id = package["_id"]

    for category in (package.get("moves") or {}).values():
        yield from _walk_moves(
            category,
            {"tags": {}, "source": None, "ancestors": [package_id]},
        )

    for collection in (package.get("assets") or {}).values():
        yield from _walk_assets(
            collection,
            {"tags": {}, "source": None, "ancestors": [package_id]},
        )

    root_meta = {
        "tags": {},
        "source": {
            key: package.get(key)
            for key in ("authors", "date", "license", "title", "url")
        },
        "ancestors": [],
    }
    root_child_meta = _merge_metadata(root_meta, ancestors=[package_id])

    for collection in (package.get("oracles") or {}).values():
        yield from _walk_oracles(collection, root_child_meta)

    for truth in (package.get("truths") or {}).values():
        yield _make(
            truth,
            {
                "tags": truth.get("tags") or {},
                "source": truth.get("_source"),
                "ancestors": [package_id],
            },
        )

    yield IndexEntry(package_id, "rules_package", {"metadata": root_child_meta, "data": package})
