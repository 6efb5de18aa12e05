"""Incremental indexing and assembly of Datasworn content folders."""

from __future__ import annotations

from .content import ContentManager, MetarootContentManager
from .labels import label_collections
from .loader import DataLoader
from .nodes import NodeTree, collect_nodes, reduce_nodes
from .versioned import EmittingIndex, ProjectedMap, VersionedMap

__all__ = [
    "ContentManager",
    "DataLoader",
    "EmittingIndex",
    "MetarootContentManager",
    "NodeTree",
    "ProjectedMap",
    "VersionedMap",
    "collect_nodes",
    "label_collections",
    "reduce_nodes",
]
