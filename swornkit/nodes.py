from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Generic, Literal, TypeVar, Union

from .errors import (
    EmptyPathError,
    MissingParentError,
    TypeConflictError,
    UnknownNodeError,
)

L = TypeVar("L")
G = TypeVar("G")
RL = TypeVar("RL")
RG = TypeVar("RG")
R = TypeVar("R")

_MISSING: Any = object()


class DataLeaf(Generic[L, G]):
    kind: ClassVar[Literal["leaf"]] = "leaf"
    __slots__ = ("path", "name", "parent", "data")

    def __init__(self, path: str, parent: DataGroup[L, G], data: L) -> None:
        if not path:
            raise EmptyPathError()
        self.path = path
        self.name = path.rsplit("/", 1)[-1]
        self.parent = parent
        self.data = data

    def __repr__(self) -> str:
        return f"DataLeaf({self.path!r})"


class DataGroup(Generic[L, G]):
    kind: ClassVar[Literal["group"]] = "group"
    __slots__ = ("path", "name", "parent", "data", "children")

    def __init__(self, path: str, parent: DataGroup[L, G] | None, data: G) -> None:
        if parent is None:
            if path != "":
                raise ValueError("Root group must have an empty path.")
        elif not path:
            raise EmptyPathError()
        self.path = path
        self.name = path.rsplit("/", 1)[-1]
        self.parent = parent
        self.data = data
        # Groups and leaves, in insertion order.
        self.children: list[DataNode[L, G]] = []

    def is_root(self) -> bool:
        return self.parent is None

    def __repr__(self) -> str:
        return f"DataGroup({self.path!r}, children={len(self.children)})"


DataNode = Union[DataLeaf[L, G], DataGroup[L, G]]


class NodeTree(Generic[L, G]):
    """Path-addressed tree of groups and leaves.

    Every node is created (and owned) by the tree; re-adding a node at an
    existing path replaces its payload but keeps the node object, so node maps
    built earlier from this tree stay valid.
    """

    def __init__(
        self,
        default_group_value: Callable[[], G],
        root_value: G = _MISSING,
    ) -> None:
        self.default_group_value = default_group_value
        if root_value is _MISSING:
            root_value = default_group_value()
        self._nodes: dict[str, DataNode[L, G]] = {"": DataGroup("", None, root_value)}

    @property
    def root(self) -> DataGroup[L, G]:
        root = self._nodes[""]
        assert isinstance(root, DataGroup)
        return root

    def get_node(self, path: str) -> DataNode[L, G] | None:
        return self._nodes.get(path)

    def __contains__(self, path: object) -> bool:
        return path in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def _parent_for(
        self, path: str, what: str, create_if_missing: bool
    ) -> DataGroup[L, G]:
        parent_path = path.rsplit("/", 1)[0] if "/" in path else ""
        parent = self._nodes.get(parent_path)
        if parent is None:
            if not create_if_missing:
                raise MissingParentError(path, parent_path)
            return self.add_group_node_at_path(
                parent_path, self.default_group_value(), True
            )
        if not isinstance(parent, DataGroup):
            raise TypeConflictError(
                f"Cannot create a {what} node at {path} because {parent_path} is a leaf."
            )
        return parent

    def add_group_node_at_path(
        self, path: str, data: G, create_if_missing: bool = False
    ) -> DataGroup[L, G]:
        """Create (or update) a group node at ``path``."""
        if not path:
            raise EmptyPathError()
        existing = self._nodes.get(path)
        if existing is not None:
            if isinstance(existing, DataGroup):
                existing.data = data
                return existing
            raise TypeConflictError(
                f"Cannot create a group node at {path} because a leaf node already "
                "exists at this path."
            )

        parent = self._parent_for(path, "group", create_if_missing)
        node: DataGroup[L, G] = DataGroup(path, parent, data)
        parent.children.append(node)
        self._nodes[path] = node
        return node

    def add_leaf_node_at_path(
        self, path: str, data: L, create_if_missing: bool = False
    ) -> DataLeaf[L, G]:
        """Create (or update) a leaf at ``path``, optionally creating missing folders."""
        if not path:
            raise EmptyPathError()
        existing = self._nodes.get(path)
        if existing is not None:
            if isinstance(existing, DataLeaf):
                existing.data = data
                return existing
            raise TypeConflictError(
                f"Cannot create a leaf node at {path} because a group node already "
                "exists at this path."
            )

        parent = self._parent_for(path, "leaf", create_if_missing)
        node: DataLeaf[L, G] = DataLeaf(path, parent, data)
        parent.children.append(node)
        self._nodes[path] = node
        return node

    def find_longest_prefix(self, path: str) -> DataNode[L, G]:
        """Return the deepest existing node along ``path``, falling back to the root."""
        segments = path.split("/")
        for i in range(len(segments), 0, -1):
            node = self._nodes.get("/".join(segments[:i]))
            if node is not None:
                return node
        return self.root


class NodeMap(dict, Generic[L, G, R]):  # type: ignore[type-arg]
    """Node -> value mapping that can also be addressed by path."""

    def __init__(self) -> None:
        super().__init__()
        self._by_path: dict[str, DataNode[L, G]] = {}

    def __setitem__(self, node: DataNode[L, G], value: R) -> None:
        super().__setitem__(node, value)
        self._by_path[node.path] = node

    def __delitem__(self, node: DataNode[L, G]) -> None:
        super().__delitem__(node)
        self._by_path.pop(node.path, None)

    def node_at_path(self, path: str) -> DataNode[L, G] | None:
        return self._by_path.get(path)

    def get_at_path(self, path: str) -> R | None:
        node = self.node_at_path(path)
        return None if node is None else self.get(node)

    def set_at_path(self, path: str, value: R) -> None:
        node = self.node_at_path(path)
        if node is None:
            raise UnknownNodeError(path)
        self[node] = value


@dataclass
class ReducedChildren(Generic[L, G, RL, RG]):
    """Already-reduced children of a group, handed to ``reduce_group``."""

    groups: list[tuple[DataGroup[L, G], RG]] = field(default_factory=list)
    leaves: list[tuple[DataLeaf[L, G], RL]] = field(default_factory=list)
    # Both kinds, interleaved in insertion order.
    children: list[tuple[DataNode[L, G], RL | RG]] = field(default_factory=list)


LeafReducer = Callable[[DataLeaf[L, G]], RL]
GroupReducer = Callable[[DataGroup[L, G], ReducedChildren[L, G, RL, RG]], RG]


def _reduce_group(
    group: DataGroup[L, G],
    reduce_leaf: LeafReducer[L, G, RL],
    reduce_group: GroupReducer[L, G, RL, RG],
) -> RG:
    reduced: dict[int, Any] = {}
    params: ReducedChildren[L, G, RL, RG] = ReducedChildren()

    # Sub-groups first (post-order), then the leaves of this group.
    for child in group.children:
        if isinstance(child, DataGroup):
            value = _reduce_group(child, reduce_leaf, reduce_group)
            reduced[id(child)] = value
            params.groups.append((child, value))
    for child in group.children:
        if isinstance(child, DataLeaf):
            leaf_value = reduce_leaf(child)
            reduced[id(child)] = leaf_value
            params.leaves.append((child, leaf_value))

    params.children = [(child, reduced[id(child)]) for child in group.children]
    return reduce_group(group, params)


def reduce_nodes(
    root: DataGroup[L, G],
    *,
    reduce_leaf: LeafReducer[L, G, RL],
    reduce_group: GroupReducer[L, G, RL, RG],
) -> RG:
    """Reduce a group starting at the leaves and working up to ``root``."""
    return _reduce_group(root, reduce_leaf, reduce_group)


def collect_nodes(
    root: DataGroup[L, G],
    *,
    reduce_leaf: LeafReducer[L, G, RL],
    reduce_group: GroupReducer[L, G, RL, RG],
) -> NodeMap[L, G, RL | RG]:
    """Like ``reduce_nodes`` but keeps the reduced value of every node."""
    results: NodeMap[L, G, RL | RG] = NodeMap()

    def leaf(node: DataLeaf[L, G]) -> RL:
        value = reduce_leaf(node)
        results[node] = value
        return value

    def group(node: DataGroup[L, G], params: ReducedChildren[L, G, RL, RG]) -> RG:
        value = reduce_group(node, params)
        results[node] = value
        return value

    reduce_nodes(root, reduce_leaf=leaf, reduce_group=group)
    return results
