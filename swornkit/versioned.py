from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, MutableMapping
from typing import Any, Callable, Generic, Iterable, TypeVar

from .result import ok_value

K = TypeVar("K")
V = TypeVar("V")
U = TypeVar("U")
X = TypeVar("X")

logger = logging.getLogger(__name__)


class ProjectableMixin(Generic[K, V]):
    """Shared ``projected`` support for anything exposing a revision."""

    @property
    def revision(self) -> int:  # pragma: no cover - overridden
        raise NotImplementedError

    def projected(self, transform: Callable[[V, K], X | None]) -> ProjectedMap[K, X]:
        return ProjectedMap(self, transform)  # type: ignore[arg-type]


class VersionedMap(ProjectableMixin[K, V], MutableMapping[K, V]):
    """A dict that stamps a revision on every observable structural change.

    Consumers compare ``revision`` numbers to detect staleness without diffing
    contents.
    """

    def __init__(self, initial: Mapping[K, V] | Iterable[tuple[K, V]] = ()) -> None:
        self._data: dict[K, V] = dict(initial)
        self._revision = 0

    @property
    def revision(self) -> int:
        return self._revision

    def _bump(self) -> None:
        self._revision += 1

    def __getitem__(self, key: K) -> V:
        return self._data[key]

    def __setitem__(self, key: K, value: V) -> None:
        self._data[key] = value
        self._bump()

    def __delitem__(self, key: K) -> None:
        del self._data[key]
        self._bump()

    def __iter__(self) -> Iterator[K]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r}, revision={self._revision})"

    def set(self, key: K, value: V) -> VersionedMap[K, V]:
        self[key] = value
        return self

    def delete(self, key: K) -> bool:
        if key not in self._data:
            return False
        del self[key]
        return True

    def clear(self) -> None:
        if not self._data:
            return
        self._data.clear()
        self._bump()

    def update(self, *args: Any, **kwargs: Any) -> None:
        self.as_single_revision(lambda m: MutableMapping.update(m, *args, **kwargs))

    def as_single_revision(self, op: Callable[[Any], X]) -> X:
        """Run ``op(self)`` bumping the revision at most once, even if it raises."""
        starting = self._revision
        try:
            return op(self)
        finally:
            if self._revision > starting:
                self._revision = starting + 1


class ProjectedMap(ProjectableMixin[K, U], Mapping[K, U]):
    """Read-only live view of a versioned map through ``transform``.

    Nothing is cached: every access re-runs the transform against the source,
    so a key appears or disappears as soon as the source changes.
    """

    def __init__(
        self,
        source: VersionedMap[K, Any] | ProjectedMap[K, Any],
        transform: Callable[[Any, K], U | None],
    ) -> None:
        self._source = source
        self._transform = transform

    @property
    def revision(self) -> int:
        return self._source.revision

    def _select(self, key: K) -> U | None:
        try:
            value = self._source[key]
        except KeyError:
            return None
        return self._transform(value, key)

    def __getitem__(self, key: K) -> U:
        selected = self._select(key)
        if selected is None:
            raise KeyError(key)
        return selected

    def __contains__(self, key: object) -> bool:
        return self._select(key) is not None  # type: ignore[arg-type]

    def get(self, key: K, default: Any = None) -> Any:
        selected = self._select(key)
        return default if selected is None else selected

    def items(self) -> Iterator[tuple[K, U]]:  # type: ignore[override]
        for key, value in self._source.items():
            selected = self._transform(value, key)
            if selected is not None:
                yield key, selected

    def __iter__(self) -> Iterator[K]:
        for key, _ in self.items():
            yield key

    def values(self) -> Iterator[U]:  # type: ignore[override]
        for _, value in self.items():
            yield value

    def __len__(self) -> int:
        return sum(1 for _ in self.items())

    def for_each(self, callback: Callable[[U, K], None]) -> None:
        for key, value in self.items():
            callback(value, key)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({dict(self.items())!r})"


Listener = Callable[..., Any]


class EmittingIndex(VersionedMap[K, V]):
    """VersionedMap that notifies listeners of ``changed`` and ``renamed`` events."""

    EVENTS = ("changed", "renamed")

    def __init__(self, initial: Mapping[K, V] | Iterable[tuple[K, V]] = ()) -> None:
        super().__init__(initial)
        self._listeners: dict[str, list[Listener]] = {name: [] for name in self.EVENTS}
        self.of_valid: ProjectedMap[K, Any] = self.projected(
            lambda value, _key: ok_value(value)
        )

    def on(self, event: str, callback: Listener) -> Callable[[], None]:
        if event not in self._listeners:
            raise ValueError(f"Unknown event {event!r}; expected one of {self.EVENTS}")
        self._listeners[event].append(callback)
        return lambda: self.off(event, callback)

    def off(self, event: str, callback: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def trigger(self, event: str, *args: Any) -> None:
        for callback in list(self._listeners.get(event, [])):
            try:
                callback(*args)
            except Exception:
                logger.exception("Listener for %r failed", event)

    def __setitem__(self, key: K, value: V) -> None:
        super().__setitem__(key, value)
        self.trigger("changed", key)

    def __delitem__(self, key: K) -> None:
        super().__delitem__(key)
        self.trigger("changed", key)

    def clear(self) -> None:
        keys = list(self._data)
        super().clear()
        for key in keys:
            self.trigger("changed", key)

    def rename(self, old_key: K, new_key: K) -> bool:
        """Move the value at ``old_key`` to ``new_key`` as a single revision."""
        if old_key not in self._data or old_key == new_key:
            return False

        def move(m: EmittingIndex[K, V]) -> None:
            value = m._data.pop(old_key)
            m._bump()
            m._data[new_key] = value
            m._bump()

        self.as_single_revision(move)
        self.trigger("renamed", old_key, new_key)
        return True
