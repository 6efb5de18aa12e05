from __future__ import annotations

import pytest

from swornkit.errors import (
    EmptyPathError,
    MissingParentError,
    TypeConflictError,
    UnknownNodeError,
)
from swornkit.nodes import (
    DataGroup,
    DataLeaf,
    NodeMap,
    NodeTree,
    ReducedChildren,
    collect_nodes,
    reduce_nodes,
)


def _tree() -> NodeTree[str, str]:
    return NodeTree(lambda: "default", "root")


def _count_leaf(_leaf: DataLeaf[str, str]) -> int:
    return 1


def _sum_children(
    _group: DataGroup[str, str], params: ReducedChildren[str, str, int, int]
) -> int:
    return sum(value for _, value in params.children)


def test_root_is_an_empty_path_group() -> None:
    tree = _tree()
    assert tree.root.path == ""
    assert tree.root.parent is None
    assert tree.root.data == "root"
    assert tree.get_node("") is tree.root


def test_add_leaf_requires_parent_unless_create_if_missing() -> None:
    tree = _tree()
    with pytest.raises(MissingParentError) as exc:
        tree.add_leaf_node_at_path("a/b/c", "leaf")
    assert exc.value.parent_path == "a/b"

    leaf = tree.add_leaf_node_at_path("a/b/c", "leaf", True)
    assert leaf.name == "c"
    a = tree.get_node("a")
    b = tree.get_node("a/b")
    assert isinstance(a, DataGroup) and isinstance(b, DataGroup)
    assert a.data == "default"
    assert leaf.parent is b
    assert b.parent is a
    assert a.parent is tree.root


def test_empty_path_is_rejected() -> None:
    tree = _tree()
    with pytest.raises(EmptyPathError):
        tree.add_group_node_at_path("", "x")
    with pytest.raises(EmptyPathError):
        tree.add_leaf_node_at_path("", "x")


def test_re_adding_same_kind_keeps_identity() -> None:
    tree = _tree()
    first = tree.add_leaf_node_at_path("x", "one")
    second = tree.add_leaf_node_at_path("x", "two")
    assert first is second
    assert second.data == "two"
    assert len(tree.root.children) == 1

    group = tree.add_group_node_at_path("g", "a")
    assert tree.add_group_node_at_path("g", "b") is group
    assert group.data == "b"


def test_opposite_kind_at_existing_path_conflicts() -> None:
    tree = _tree()
    tree.add_leaf_node_at_path("x", "leaf")
    tree.add_group_node_at_path("g", "group")
    with pytest.raises(TypeConflictError):
        tree.add_group_node_at_path("x", "group")
    with pytest.raises(TypeConflictError):
        tree.add_leaf_node_at_path("g", "leaf")


def test_leaf_cannot_become_a_parent() -> None:
    tree = _tree()
    tree.add_leaf_node_at_path("x", "leaf")
    with pytest.raises(TypeConflictError):
        tree.add_leaf_node_at_path("x/y", "leaf", True)


def test_find_longest_prefix() -> None:
    tree = _tree()
    tree.add_leaf_node_at_path("a/b/c", "leaf", True)
    b = tree.get_node("a/b")
    assert tree.find_longest_prefix("a/b/zzz/deeper") is b
    assert tree.find_longest_prefix("a/b/c") is tree.get_node("a/b/c")
    assert tree.find_longest_prefix("nowhere/at/all") is tree.root


def test_reduce_empty_tree_calls_group_reducer_once() -> None:
    tree = _tree()
    calls: list[ReducedChildren[str, str, int, int]] = []

    def reduce_group(
        _group: DataGroup[str, str], params: ReducedChildren[str, str, int, int]
    ) -> int:
        calls.append(params)
        return 0

    assert reduce_nodes(tree.root, reduce_leaf=_count_leaf, reduce_group=reduce_group) == 0
    assert len(calls) == 1
    assert calls[0].groups == [] and calls[0].leaves == [] and calls[0].children == []


def test_collect_nodes_counts_leaves_per_group() -> None:
    tree = _tree()
    leaf1 = tree.add_leaf_node_at_path("group1/leaf1", "l", True)
    leaf2 = tree.add_leaf_node_at_path("group1/leaf2", "l", True)
    leaf3 = tree.add_leaf_node_at_path("group2/leaf3", "l", True)

    counts = collect_nodes(tree.root, reduce_leaf=_count_leaf, reduce_group=_sum_children)

    assert counts[tree.root] == 3
    assert counts.get_at_path("group1") == 2
    assert counts.get_at_path("group2") == 1
    assert counts[leaf1] == counts[leaf2] == counts[leaf3] == 1
    assert len(counts) == 6


def test_traversal_is_groups_first_post_order_with_interleaved_children() -> None:
    tree = _tree()
    tree.add_leaf_node_at_path("first", "l")
    tree.add_group_node_at_path("g", "g")
    tree.add_leaf_node_at_path("g/inner", "l")
    tree.add_leaf_node_at_path("last", "l")

    visits: list[str] = []
    seen_children: dict[str, list[str]] = {}

    def reduce_leaf(leaf: DataLeaf[str, str]) -> str:
        visits.append(leaf.path)
        return leaf.path

    def reduce_group(
        group: DataGroup[str, str], params: ReducedChildren[str, str, str, str]
    ) -> str:
        visits.append(group.path or "<root>")
        seen_children[group.path] = [node.path for node, _ in params.children]
        return group.path

    reduce_nodes(tree.root, reduce_leaf=reduce_leaf, reduce_group=reduce_group)

    assert visits == ["g/inner", "g", "first", "last", "<root>"]
    assert seen_children[""] == ["first", "g", "last"]


def test_node_map_path_access() -> None:
    tree = _tree()
    leaf = tree.add_leaf_node_at_path("a", "l")
    values: NodeMap[str, str, int] = NodeMap()
    values[leaf] = 1
    assert values.node_at_path("a") is leaf
    values.set_at_path("a", 5)
    assert values[leaf] == 5
    assert values.get_at_path("missing") is None
    with pytest.raises(UnknownNodeError):
        values.set_at_path("missing", 1)
