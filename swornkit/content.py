"""Flat path -> content store partitioned into independently tracked roots.

Every mutation that touches a tracked root re-sends the *complete* content
snapshot of that root to the registered callbacks; a root that stops being
tracked is announced with ``None``.
"""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Iterator
from typing import Callable, Optional, Protocol

from .errors import RootConflictError
from .model import Content
from .paths import child_of_path, find_top_level_parent_path, is_same_or_child

module_logger = logging.getLogger(__name__)

RootCallback = Callable[[str, Optional[list[Content]]], object]


class ContentManagerProtocol(Protocol):
    def on_update_root(self, callback: RootCallback) -> Callable[[], None]: ...

    def add_root(self, path: str) -> None: ...

    def remove_root(self, path: str) -> bool: ...

    def get_content(self, path: str) -> Content | None: ...

    def add_content(self, content: Content) -> None: ...

    def delete_content(self, path: str) -> bool: ...

    def rename_content(self, old_path: str, new_path: str) -> bool: ...

    def get_roots(self) -> frozenset[str]: ...

    def root_for_path(self, path: str) -> str | None: ...

    def values_under_path(self, path: str) -> Iterator[Content]: ...


class ContentManager:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or module_logger
        self._index: dict[str, Content] = {}
        self._roots: list[str] = []
        self._callbacks: list[RootCallback] = []

    def on_update_root(self, callback: RootCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def _notify(self, root: str, content: list[Content] | None) -> None:
        for callback in list(self._callbacks):
            callback(root, content)

    def get_roots(self) -> frozenset[str]:
        return frozenset(self._roots)

    def add_root(self, path: str) -> None:
        for root in self._roots:
            if root == path:
                raise RootConflictError(f"Path {path} is already a root.")
            if is_same_or_child(root, path) or is_same_or_child(path, root):
                self.logger.error("Path %s overlaps existing root %s.", path, root)
                raise RootConflictError(
                    f"Path {path} overlaps existing root {root}. "
                    "Cannot register as a new root."
                )
        self._roots.append(path)
        self._update_root(path)

    def remove_root(self, path: str) -> bool:
        if path not in self._roots:
            return False
        self._roots.remove(path)
        self.logger.debug("Removed root %s", path)
        self._notify(path, None)
        return True

    def _update_root(self, root: str) -> None:
        content = list(self.values_under_path(root))
        self.logger.debug("Updating root %s with %d content items.", root, len(content))
        self._notify(root, content)

    def _update_root_for_path(self, path: str) -> None:
        root = self.root_for_path(path)
        if root is None:
            self.logger.debug("No root found for path %s.", path)
            return
        self._update_root(root)

    def get_content(self, path: str) -> Content | None:
        return self._index.get(path)

    def add_content(self, content: Content) -> None:
        self._index[content.path] = content
        self._update_root_for_path(content.path)

    def delete_content(self, path: str) -> bool:
        if path not in self._index:
            return False
        del self._index[path]
        self._update_root_for_path(path)
        return True

    def rename_content(self, old_path: str, new_path: str) -> bool:
        content = self._index.pop(old_path, None)
        if content is None:
            return False
        self.logger.debug("Renaming content from %s to %s", old_path, new_path)
        self._index[new_path] = dataclasses.replace(content, path=new_path)
        old_root = self.root_for_path(old_path)
        new_root = self.root_for_path(new_path)
        if old_root is not None:
            self._update_root(old_root)
        if new_root is not None and new_root != old_root:
            self._update_root(new_root)
        return True

    def values_under_path(self, path: str) -> Iterator[Content]:
        for key, content in list(self._index.items()):
            if is_same_or_child(path, key):
                yield content

    def root_for_path(self, path: str) -> str | None:
        for root in self._roots:
            if is_same_or_child(root, path):
                return root
        return None


class MetarootContentManager:
    """Decorates a manager so that roots below a meta root are discovered automatically.

    Each direct child of the meta root that holds content becomes a root.
    Manual ``add_root`` / ``remove_root`` calls inside the meta root are ignored.
    """

    def __init__(
        self,
        delegate: ContentManagerProtocol | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.logger = logger or module_logger
        self.delegate: ContentManagerProtocol = delegate or ContentManager(self.logger)
        self.meta_root: str | None = None

    def on_update_root(self, callback: RootCallback) -> Callable[[], None]:
        return self.delegate.on_update_root(callback)

    def is_in_meta_root(self, path: str) -> bool:
        return self.meta_root is not None and child_of_path(self.meta_root, path)

    def _ensure_root(self, path: str) -> None:
        if path in self.delegate.get_roots():
            return
        try:
            self.delegate.add_root(path)
        except RootConflictError as exc:
            self.logger.warning("Skipping root %s: %s", path, exc)

    def set_meta_root(self, path: str | None) -> None:
        if self.meta_root == path:
            self.logger.debug("Meta root is already %s. Ignoring.", path)
            return

        if self.meta_root is not None:
            self.logger.debug(
                "Meta root changed from %s to %s. Clearing old roots.",
                self.meta_root,
                path,
            )
            for root in sorted(self.delegate.get_roots()):
                if child_of_path(self.meta_root, root):
                    self.logger.debug("Removing root %s due to meta root change.", root)
                    self.delegate.remove_root(root)

        self.meta_root = path
        if path is None:
            return

        self.logger.debug("Meta root set to %s. Updating roots.", path)
        for content in list(self.delegate.values_under_path(path)):
            top_level = find_top_level_parent_path(path, content.path)
            if top_level is not None:
                self._ensure_root(top_level)

    def add_root(self, path: str) -> None:
        if self.is_in_meta_root(path):
            self.logger.debug(
                "Ignoring add_root %s because it is within the meta root %s.",
                path,
                self.meta_root,
            )
            return
        self.delegate.add_root(path)

    def remove_root(self, path: str) -> bool:
        if self.is_in_meta_root(path):
            self.logger.debug(
                "Ignoring remove_root %s because it is within the meta root %s.",
                path,
                self.meta_root,
            )
            return False
        return self.delegate.remove_root(path)

    def get_content(self, path: str) -> Content | None:
        return self.delegate.get_content(path)

    def _top_level(self, path: str) -> str | None:
        if self.meta_root is None:
            return None
        return find_top_level_parent_path(self.meta_root, path)

    def add_content(self, content: Content) -> None:
        top_level = self._top_level(content.path)
        if top_level is not None:
            self._ensure_root(top_level)
        self.delegate.add_content(content)

    def delete_content(self, path: str) -> bool:
        return self.delegate.delete_content(path)

    def rename_content(self, old_path: str, new_path: str) -> bool:
        changed = False
        if self._top_level(old_path) == old_path:
            changed = self.delegate.remove_root(old_path) or changed
        if self._top_level(new_path) == new_path:
            self._ensure_root(new_path)
            changed = True
        if self.delegate.rename_content(old_path, new_path):
            changed = True
        return changed

    def get_roots(self) -> frozenset[str]:
        return self.delegate.get_roots()

    def root_for_path(self, path: str) -> str | None:
        return self.delegate.root_for_path(path)

    def values_under_path(self, path: str) -> Iterator[Content]:
        return self.delegate.values_under_path(path)
