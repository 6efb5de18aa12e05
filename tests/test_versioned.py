from __future__ import annotations

import pytest

from swornkit.result import Err, Ok, ok_value
from swornkit.versioned import EmittingIndex, VersionedMap


def test_set_and_delete_bump_revision_once_per_change() -> None:
    m: VersionedMap[str, int] = VersionedMap()
    assert m.revision == 0

    m.set("a", 1).set("b", 2)
    assert m.revision == 2

    assert m.delete("a") is True
    assert m.revision == 3

    # Deleting an absent key is not an observable change.
    assert m.delete("missing") is False
    assert m.revision == 3


def test_del_of_missing_key_raises_and_keeps_revision() -> None:
    m: VersionedMap[str, int] = VersionedMap({"a": 1})
    with pytest.raises(KeyError):
        del m["b"]
    assert m.revision == 0


def test_clear_bumps_only_when_not_empty() -> None:
    m: VersionedMap[str, int] = VersionedMap()
    m.clear()
    assert m.revision == 0

    m["a"] = 1
    m["b"] = 2
    m.clear()
    assert len(m) == 0
    assert m.revision == 3


def test_as_single_revision_groups_mutations() -> None:
    m: VersionedMap[str, int] = VersionedMap()

    def batch(inner: VersionedMap[str, int]) -> str:
        for i in range(5):
            inner[f"k{i}"] = i
        inner.delete("k0")
        return "done"

    assert m.as_single_revision(batch) == "done"
    assert m.revision == 1
    assert sorted(m) == ["k1", "k2", "k3", "k4"]


def test_as_single_revision_without_changes_does_not_bump() -> None:
    m: VersionedMap[str, int] = VersionedMap({"a": 1})
    m.as_single_revision(lambda inner: inner.get("a"))
    assert m.revision == 0


def test_as_single_revision_bumps_even_when_the_batch_raises() -> None:
    m: VersionedMap[str, int] = VersionedMap()

    def failing(inner: VersionedMap[str, int]) -> None:
        inner["a"] = 1
        inner["b"] = 2
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        m.as_single_revision(failing)
    assert m.revision == 1
    assert dict(m) == {"a": 1, "b": 2}


def test_nested_single_revision_bumps_once() -> None:
    m: VersionedMap[str, int] = VersionedMap()

    def outer(inner: VersionedMap[str, int]) -> None:
        inner["a"] = 1
        inner.as_single_revision(lambda nested: nested.update({"b": 2, "c": 3}))
        inner["d"] = 4

    m.as_single_revision(outer)
    assert m.revision == 1


def test_update_is_a_single_revision() -> None:
    m: VersionedMap[str, int] = VersionedMap()
    m.update({"a": 1, "b": 2}, c=3)
    assert m.revision == 1
    assert dict(m) == {"a": 1, "b": 2, "c": 3}


def test_projection_is_live_and_hides_no_value_entries() -> None:
    m: VersionedMap[str, int] = VersionedMap({"a": 1, "b": 2, "c": 3})
    odd = m.projected(lambda value, _key: value * 10 if value % 2 else None)

    assert dict(odd.items()) == {"a": 10, "c": 30}
    assert len(odd) == 2
    assert "b" not in odd
    assert odd.get("b") is None
    with pytest.raises(KeyError):
        odd["b"]

    # Flip "b" to visible and "a" to hidden without re-subscribing.
    m["b"] = 5
    m["a"] = 4
    assert sorted(odd) == ["b", "c"]
    assert odd["b"] == 50
    assert "a" not in odd


def test_projection_revision_passes_through() -> None:
    m: VersionedMap[str, int] = VersionedMap()
    view = m.projected(lambda value, _key: value)
    assert view.revision == 0
    m["a"] = 1
    assert view.revision == m.revision == 1


def test_chained_projections_compose() -> None:
    m: VersionedMap[str, int] = VersionedMap({"a": 1, "b": 2, "c": 3, "d": 4})
    doubled = m.projected(lambda value, _key: value * 2)
    big = doubled.projected(lambda value, _key: value if value > 4 else None)

    assert dict(big.items()) == {"c": 6, "d": 8}
    m["a"] = 10
    assert dict(big.items()) == {"a": 20, "c": 6, "d": 8}
    assert big.revision == m.revision


def test_projection_for_each_sees_only_visible_entries() -> None:
    m: VersionedMap[str, str] = VersionedMap({"x": "keep", "y": "drop"})
    view = m.projected(lambda value, _key: value if value == "keep" else None)
    seen: list[tuple[str, str]] = []
    view.for_each(lambda value, key: seen.append((key, value)))
    assert seen == [("x", "keep")]


def test_emitting_index_fires_changed_and_renamed() -> None:
    index: EmittingIndex[str, int] = EmittingIndex()
    changed: list[str] = []
    renamed: list[tuple[str, str]] = []
    index.on("changed", changed.append)
    index.on("renamed", lambda old, new: renamed.append((old, new)))

    index["a.md"] = 1
    index.delete("a.md")
    index["b.md"] = 2
    assert changed == ["a.md", "a.md", "b.md"]

    revision = index.revision
    assert index.rename("b.md", "c.md") is True
    assert index.revision == revision + 1
    assert renamed == [("b.md", "c.md")]
    assert dict(index) == {"c.md": 2}

    assert index.rename("missing.md", "x.md") is False


def test_emitting_index_unsubscribe_and_unknown_event() -> None:
    index: EmittingIndex[str, int] = EmittingIndex()
    seen: list[str] = []
    unsubscribe = index.on("changed", seen.append)
    index["a"] = 1
    unsubscribe()
    index["b"] = 2
    assert seen == ["a"]

    with pytest.raises(ValueError):
        index.on("exploded", seen.append)


def test_emitting_index_clear_notifies_each_key() -> None:
    index: EmittingIndex[str, int] = EmittingIndex({"a": 1, "b": 2})
    seen: list[str] = []
    index.on("changed", seen.append)
    index.clear()
    assert sorted(seen) == ["a", "b"]


def test_failing_listener_does_not_break_the_index() -> None:
    index: EmittingIndex[str, int] = EmittingIndex()
    seen: list[str] = []

    def broken(_key: str) -> None:
        raise RuntimeError("listener bug")

    index.on("changed", broken)
    index.on("changed", seen.append)
    index["a"] = 1
    assert seen == ["a"]
    assert index["a"] == 1


def test_of_valid_exposes_only_ok_values() -> None:
    index: EmittingIndex[str, object] = EmittingIndex()
    index["good"] = Ok({"name": "Thunder"})
    index["bad"] = Err(ValueError("nope"))

    assert dict(index.of_valid.items()) == {"good": {"name": "Thunder"}}
    index["bad"] = Ok({"name": "Fixed"})
    assert sorted(index.of_valid) == ["bad", "good"]


def test_emitting_index_off_removes_listener() -> None:
    index: EmittingIndex[str, int] = EmittingIndex()
    seen: list[str] = []
    index.on("changed", seen.append)
    index.off("changed", seen.append)
    index["a"] = 1
    assert seen == []


def test_ok_value() -> None:
    assert ok_value(Ok(3)) == 3
    assert ok_value(Err(ValueError("nope"))) is None
    assert ok_value("plain") is None
