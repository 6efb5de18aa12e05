"""Infer which collection type every folder of a content tree may hold.

Each leaf contributes the collection types that may legally contain it and
each group intersects the contributions of its direct children. A group that
resolved cleanly contributes its own types to its parent, so constraints travel
up through intermediate folders. Conflicts are reported as ``Err`` values on the
affected group and never raised.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import ClassVar, Literal, Union

from .errors import CollectionTypeError
from .model import ContentValue, EntryContent, GroupAnnotations, IndexContent
from .nodes import DataGroup, DataLeaf, NodeMap, ReducedChildren, collect_nodes
from .result import Err, Ok, Result

logger = logging.getLogger(__name__)

ROOT_TYPE = "root"

ENTRY_TYPES: tuple[str, ...] = ("oracle_rollable", "move", "asset")

COLLECTION_TYPES: tuple[str, ...] = (
    "oracle_collection",
    "move_category",
    "asset_collection",
)

# Canonical ordering for every type tuple this module produces.
COLLECTION_TYPES_WITH_ROOT: tuple[str, ...] = (*COLLECTION_TYPES, ROOT_TYPE)

PARENTS_FOR_ENTRY: Mapping[str, tuple[str, ...]] = {
    "oracle_rollable": ("oracle_collection",),
    "move": ("move_category",),
    "asset": ("asset_collection",),
}

NO_COLLECTION_TYPES_MESSAGE = "No valid collection types found."


@dataclass(frozen=True)
class LeafLabel:
    kind: ClassVar[Literal["leaf"]] = "leaf"
    leaf_type: str | None
    allowable_parents: tuple[str, ...] | None


@dataclass(frozen=True)
class IndexLabel:
    kind: ClassVar[Literal["index"]] = "index"
    allowable_parents: tuple[str, ...] | None


@dataclass(frozen=True)
class PackageLabel:
    kind: ClassVar[Literal["package"]] = "package"
    allowable_parents: ClassVar[None] = None


@dataclass(frozen=True)
class CollectionLabel:
    kind: ClassVar[Literal["collection"]] = "collection"
    allowable_types: Result[tuple[str, ...], CollectionTypeError]

    @property
    def allowable_parents(self) -> tuple[str, ...] | None:
        # A resolved group constrains its parent exactly as it is constrained.
        if isinstance(self.allowable_types, Ok):
            if self.allowable_types.value == (ROOT_TYPE,):
                return None
            return self.allowable_types.value
        return None


NodeLabel = Union[LeafLabel, IndexLabel, PackageLabel, CollectionLabel]
ContentNodeMap = NodeMap[ContentValue, GroupAnnotations, NodeLabel]


def canonical_types(types: Iterable[str]) -> tuple[str, ...]:
    """Order collection types canonically; unknown tags sort last, alphabetically."""
    order = {name: i for i, name in enumerate(COLLECTION_TYPES_WITH_ROOT)}
    return tuple(
        sorted(set(types), key=lambda t: (order.get(t, len(order)), t))
    )


def _label_leaf(
    leaf: DataLeaf[ContentValue, GroupAnnotations],
    parents_for_entry: Mapping[str, tuple[str, ...]],
) -> NodeLabel:
    value = leaf.data
    if isinstance(value, EntryContent):
        entry_type = value.entry_type
        if entry_type is not None and entry_type in parents_for_entry:
            return LeafLabel(
                leaf_type=entry_type,
                allowable_parents=canonical_types(parents_for_entry[entry_type]),
            )
        # Parse errors and unknown entry types do not constrain the parent.
        return LeafLabel(leaf_type=entry_type, allowable_parents=None)
    if isinstance(value, IndexContent):
        declared = value.declared_type
        if declared is None:
            return IndexLabel(allowable_parents=None)
        if declared not in COLLECTION_TYPES_WITH_ROOT:
            logger.warning(
                "Index file %s declares unknown collection type %r; ignoring it",
                leaf.path,
                declared,
            )
            return IndexLabel(allowable_parents=None)
        return IndexLabel(allowable_parents=(declared,))
    return PackageLabel()


def _conflict_message(children: list[tuple[str, tuple[str, ...]]]) -> str:
    required = sorted({", ".join(types) for _, types in children})
    return (
        f"{NO_COLLECTION_TYPES_MESSAGE} Children require incompatible types: "
        + "; ".join(required)
    )


def _label_group(
    group: DataGroup[ContentValue, GroupAnnotations],
    params: ReducedChildren[ContentValue, GroupAnnotations, NodeLabel, NodeLabel],
    tree: DataGroup[ContentValue, GroupAnnotations],
) -> NodeLabel:
    if group is tree or group.is_root():
        return CollectionLabel(allowable_types=Ok((ROOT_TYPE,)))

    if any(isinstance(label, PackageLabel) for _, label in params.leaves):
        return PackageLabel()

    contributions: list[tuple[str, tuple[str, ...]]] = []
    for child, label in params.children:
        parents = label.allowable_parents
        if parents is not None:
            contributions.append((child.path, parents))

    forced = group.data.collection_type if group.data is not None else None
    allowable = {forced} if forced is not None else set(COLLECTION_TYPES)
    for _, parents in contributions:
        allowable.intersection_update(parents)

    if not allowable:
        message = _conflict_message(contributions)
        logger.debug("Collection conflict at %s: %s", group.path, message)
        return CollectionLabel(allowable_types=Err(CollectionTypeError(message)))

    return CollectionLabel(allowable_types=Ok(canonical_types(allowable)))


def label_collections(
    tree: DataGroup[ContentValue, GroupAnnotations],
    parents_for_entry: Mapping[str, tuple[str, ...]] = PARENTS_FOR_ENTRY,
) -> ContentNodeMap:
    """Label every node below (and including) ``tree``.

    Groups get a ``CollectionLabel`` (or ``PackageLabel`` when they directly
    hold a package file); leaves get ``LeafLabel``, ``IndexLabel`` or
    ``PackageLabel``.
    """
    return collect_nodes(
        tree,
        reduce_leaf=lambda leaf: _label_leaf(leaf, parents_for_entry),
        reduce_group=lambda group, params: _label_group(group, params, tree),
    )


def collection_labels(
    labels: ContentNodeMap,
) -> dict[str, CollectionLabel | PackageLabel]:
    """Project a label map onto group paths only."""
    out: dict[str, CollectionLabel | PackageLabel] = {}
    for node, label in labels.items():
        if isinstance(node, DataGroup) and isinstance(
            label, (CollectionLabel, PackageLabel)
        ):
            out[node.path] = label
    return out
