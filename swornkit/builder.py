"""Assemble a Datasworn expansion from the content of one root.

The content paths are loaded into a ``NodeTree``, the folders are labelled
with their collection type and every leaf is then turned into a *partial*
package: a minimal expansion that nests just that leaf inside its chain of
collections. Partials are merged into the final package, which gets its
``_id`` fields assigned last.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Callable

from .ids import sanitize_name_for_id
from .labels import (
    COLLECTION_TYPES,
    PARENTS_FOR_ENTRY,
    CollectionLabel,
    ContentNodeMap,
    IndexLabel,
    label_collections,
)
from .model import (
    Content,
    ContentValue,
    EntryContent,
    GroupAnnotations,
    IndexContent,
    PackageContent,
)
from .nodes import DataGroup, DataLeaf, DataNode, NodeTree, ReducedChildren, reduce_nodes
from .paths import WHOLE_VAULT, FilePath
from .result import Err, Ok, Result

logger = logging.getLogger(__name__)

DATASWORN_VERSION = "0.1.0"
WILDCARD_TARGET_RULESET = "*"

# Package attribute and id segment holding each collection type.
COLLECTION_KEYS = {
    "oracle_collection": "oracles",
    "move_category": "moves",
    "asset_collection": "assets",
}

ENTRY_FOR_COLLECTION = {
    parents[0]: entry_type for entry_type, parents in PARENTS_FOR_ENTRY.items()
}

ContentTree = NodeTree[ContentValue, GroupAnnotations]
ContentGroup = DataGroup[ContentValue, GroupAnnotations]
ContentLeaf = DataLeaf[ContentValue, GroupAnnotations]
Partial = tuple[str, Result[dict[str, Any], Exception]]
Wrap = Callable[[str, dict[str, Any]], dict[str, Any]]


@dataclass(frozen=True)
class FileProblem:
    message: str

    @property
    def tag(self) -> str:
        return type(self).__name__

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class WrongDataswornVersionProblem(FileProblem):
    pass


@dataclass(frozen=True)
class ErrorProblem(FileProblem):
    error: Exception | None = None

    @classmethod
    def from_error(cls, error: Exception) -> ErrorProblem:
        return cls(str(error), error)


@dataclass
class PackageResults:
    files: dict[str, Result[dict[str, Any], FileProblem]] = field(default_factory=dict)
    result: dict[str, Any] | None = None

    @property
    def problems(self) -> dict[str, FileProblem]:
        return {
            path: outcome.error
            for path, outcome in self.files.items()
            if isinstance(outcome, Err)
        }


def deep_merge(base: dict[str, Any], other: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``other`` into a copy of ``base``; ``other`` wins on leaves."""
    merged = dict(base)
    for key, value in other.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _assign_embedded_ids(item: dict[str, Any], kind: str) -> None:
    """Give move oracles and asset ability moves ids below their owner's ``_id``."""
    owner_id = item["_id"]
    if kind == "moves":
        for key, oracle in (item.get("oracles") or {}).items():
            if isinstance(oracle, dict):
                oracle.setdefault("_id", f"{owner_id}/oracles/{key}")
                oracle.setdefault("type", "oracle_rollable")
    elif kind == "assets":
        for index, ability in enumerate(item.get("abilities") or []):
            if not isinstance(ability, dict):
                continue
            ability_id = ability.setdefault("_id", f"{owner_id}/abilities/{index}")
            for key, move in (ability.get("moves") or {}).items():
                if isinstance(move, dict):
                    move.setdefault("_id", f"{ability_id}/moves/{key}")
                    move.setdefault("type", "move")


def _assign_collection_ids(
    collections: dict[str, Any], package_id: str, kind: str, parents: list[str]
) -> None:
    for key, collection in collections.items():
        if not isinstance(collection, dict):
            continue
        keys = [*parents, key]
        collection.setdefault("_id", f"{package_id}/collections/{kind}/{'/'.join(keys)}")
        for item_key, item in (collection.get("contents") or {}).items():
            if isinstance(item, dict):
                item.setdefault("_id", f"{package_id}/{kind}/{'/'.join([*keys, item_key])}")
                _assign_embedded_ids(item, kind)
        _assign_collection_ids(
            collection.get("collections") or {}, package_id, kind, keys
        )


def assign_ids(package: dict[str, Any]) -> dict[str, Any]:
    """Fill in missing ``_id`` fields below every top-level collection, in place."""
    package_id = package["_id"]
    for kind in COLLECTION_KEYS.values():
        _assign_collection_ids(package.get(kind) or {}, package_id, kind, [])
    return package


def build_content_tree(content: Iterable[Content]) -> ContentTree:
    tree: ContentTree = NodeTree(
        GroupAnnotations, GroupAnnotations(collection_type="root")
    )
    for item in content:
        logger.debug("Adding item at path: %s", item.path)
        tree.add_leaf_node_at_path(item.path, item.value, True)
    return tree


def _check_package_version(package: dict[str, Any]) -> FileProblem | None:
    version = package.get("datasworn_version")
    if version != DATASWORN_VERSION:
        return WrongDataswornVersionProblem(
            f"Datasworn schema version {version} does not match expected version "
            f"{DATASWORN_VERSION}"
        )
    return None


class PackageBuilder:
    def __init__(self, root: ContentGroup, package_id: str) -> None:
        self.root = root
        self.package_id = package_id
        self.labels: ContentNodeMap = label_collections(root)
        self._package_leaves: set[str] = set()
        self.partials: list[Partial] = self.build()

    @classmethod
    def from_content(
        cls,
        root: str,
        content: Iterable[Content],
        package_id: str | None = None,
    ) -> PackageResults:
        """Build the package for ``root`` out of a full content snapshot."""
        tree = build_content_tree(content)
        node = tree.root if root == WHOLE_VAULT else tree.get_node(root)
        if node is None:
            return PackageResults()

        if isinstance(node, DataGroup):
            name = node.name or "root"
            return cls(node, package_id or sanitize_name_for_id(name)).compile()

        if isinstance(node.data, PackageContent):
            package = node.data.package
            problem = _check_package_version(package)
            if problem is not None:
                return PackageResults(files={root: Err(problem)})
            return PackageResults(files={root: Ok(package)}, result=package)

        error = ValueError(f'Root path "{root}" is a leaf node, not a group.')
        return PackageResults(files={root: Err(ErrorProblem.from_error(error))})

    def source_info(self) -> dict[str, Any]:
        return {
            "authors": [{"name": "Unknown"}],
            "date": "0000-00-00",
            "license": None,
            "title": self.root.name or self.package_id,
            "url": "",
        }

    def build(self) -> list[Partial]:
        source = self.source_info()
        package = {
            **source,
            "datasworn_version": DATASWORN_VERSION,
            "type": "expansion",
            "ruleset": WILDCARD_TARGET_RULESET,
            "_id": self.package_id,
        }
        partials: list[Partial] = []
        for child in self.root.children:
            if isinstance(child, DataGroup):
                partials.extend(self.build_top_collection(child, package, source))
            elif not isinstance(child.data, IndexContent):
                partials.append(
                    (
                        child.path,
                        Err(ValueError("Content must be placed inside a collection folder.")),
                    )
                )
        return partials

    def compile(self) -> PackageResults:
        results = PackageResults()
        if not self.partials:
            logger.debug("[%s] No packages to compile.", self.package_id)
            return results

        merged: dict[str, Any] | None = None
        for path, outcome in self.partials:
            if isinstance(outcome, Err):
                logger.info(
                    "[%s] Error building file %s: %s", self.package_id, path, outcome.error
                )
                results.files[path] = Err(ErrorProblem.from_error(outcome.error))
                continue

            if path in self._package_leaves:
                problem = _check_package_version(outcome.value)
                results.files[path] = Err(problem) if problem else outcome
                continue

            results.files[path] = outcome
            merged = outcome.value if merged is None else deep_merge(merged, outcome.value)

        results.result = assign_ids(merged) if merged is not None else None
        return results

    def group_type(self, node: DataNode[ContentValue, GroupAnnotations]) -> Result[str, Exception]:
        if not isinstance(node, DataGroup):
            return Err(TypeError("Expected a group node"))
        label = self.labels.get(node)
        if not isinstance(label, CollectionLabel):
            return Err(TypeError("Expected a collection node"))
        if isinstance(label.allowable_types, Err):
            return label.allowable_types
        types = label.allowable_types.value
        if len(types) != 1:
            return Err(
                ValueError(
                    f"Expected exactly one collection type, but found {', '.join(types)}."
                )
            )
        return Ok(types[0])

    def index_attributes(self, group: ContentGroup) -> dict[str, Any]:
        for child in group.children:
            if isinstance(self.labels.get(child), IndexLabel) and isinstance(
                child.data, IndexContent
            ):
                return dict(child.data.data)
        return {}

    def _unresolved(self, node: ContentGroup, error: Exception) -> list[Partial]:
        def reduce_leaf(leaf: ContentLeaf) -> list[Partial]:
            value = leaf.data
            if isinstance(value, EntryContent):
                if isinstance(value.data, Err):
                    return [(leaf.path, Err(value.data.error))]
                return [
                    (
                        leaf.path,
                        Err(
                            ValueError(
                                "Content parsed successfully, but collection type "
                                "could not be determined."
                            )
                        ),
                    )
                ]
            if isinstance(value, PackageContent):
                self._package_leaves.add(leaf.path)
                return [(leaf.path, Ok(value.package))]
            return []

        def reduce_group(
            _group: ContentGroup,
            params: ReducedChildren[ContentValue, GroupAnnotations, Any, Any],
        ) -> list[Partial]:
            return [item for _, items in params.children for item in items]

        return [
            (node.path, Err(error)),
            *reduce_nodes(node, reduce_leaf=reduce_leaf, reduce_group=reduce_group),
        ]

    def build_top_collection(
        self,
        node: ContentGroup,
        package: dict[str, Any],
        source: dict[str, Any],
    ) -> list[Partial]:
        group_type = self.group_type(node)
        if isinstance(group_type, Err):
            return self._unresolved(node, group_type.error)

        collection_type = group_type.value
        if collection_type not in COLLECTION_TYPES:
            return [(node.path, Err(ValueError(f"Unexpected collection type: {collection_type}")))]

        attribute = COLLECTION_KEYS[collection_type]

        def wrap(key: str, collection: dict[str, Any]) -> dict[str, Any]:
            partial = copy.deepcopy(package)
            partial[attribute] = {key: collection}
            return partial

        return self.build_collection(node, collection_type, source, wrap)

    def build_collection(
        self,
        node: ContentGroup,
        collection_type: str,
        parent_source: dict[str, Any],
        wrap: Wrap,
    ) -> list[Partial]:
        """Build one partial per leaf below ``node``, each nested through ``wrap``."""
        group_type = self.group_type(node)
        if isinstance(group_type, Err):
            return [(node.path, group_type)]
        if group_type.value != collection_type:
            return [
                (
                    node.path,
                    Err(
                        ValueError(
                            f"Expected a {collection_type} collection, but found a "
                            f"{group_type.value} collection."
                        )
                    ),
                )
            ]

        attributes = self.index_attributes(node)
        collection: dict[str, Any] = {
            **attributes,
            "type": collection_type,
            "name": attributes.get("name") or node.name,
            "_source": attributes.get("_source") or parent_source,
        }
        if collection_type == "oracle_collection":
            collection["oracle_type"] = "tables"
        this_key = sanitize_name_for_id(node.name)

        def nest(slot: str) -> Wrap:
            def wrap_child(key: str, child: dict[str, Any]) -> dict[str, Any]:
                nested = copy.deepcopy(collection)
                nested[slot] = {key: child}
                return wrap(this_key, nested)

            return wrap_child

        partials: list[Partial] = []
        for child in node.children:
            if isinstance(child, DataGroup):
                partials.extend(
                    self.build_collection(
                        child, collection_type, collection["_source"], nest("collections")
                    )
                )
            else:
                partials.extend(
                    self.build_leaf(
                        ENTRY_FOR_COLLECTION[collection_type], child, nest("contents")
                    )
                )
        return partials

    def build_leaf(self, leaf_type: str, node: ContentLeaf, wrap: Wrap) -> list[Partial]:
        value = node.data
        if isinstance(value, IndexContent):
            return []
        if isinstance(value, PackageContent):
            self._package_leaves.add(node.path)
            return [(node.path, Ok(value.package))]
        if isinstance(value.data, Err):
            return [(node.path, Err(value.data.error))]

        attributes = value.data.value
        if attributes.get("type") != leaf_type:
            return [
                (
                    node.path,
                    Err(
                        ValueError(
                            f"Expected a {leaf_type}, but found a {attributes.get('type')}."
                        )
                    ),
                )
            ]
        key = sanitize_name_for_id(FilePath(node.name).basename)
        return [(node.path, Ok(wrap(key, copy.deepcopy(attributes))))]
