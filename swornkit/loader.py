"""Glue between file events and assembled packages.

``DataLoader`` applies index commands to a meta-root aware content manager.
Every root notification rebuilds that root's package (debounced per root),
publishes the per-file results through an ``EmittingIndex`` and re-indexes the
package entries into a ``PriorityIndex``.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable

from .builder import FileProblem, PackageBuilder, PackageResults
from .content import ContentManager, MetarootContentManager
from .debounce import KeyedDebouncer, debouncer_by_key
from .discover import discover_content_files
from .errors import IndexConsistencyError
from .ids import compute_hash
from .indexer import ContentIndexer
from .messages import (
    AddRoot,
    DeleteFile,
    IndexCommand,
    IndexFile,
    IndexResult,
    PackageRemoved,
    PackageUpdated,
    RemoveRoot,
    RenameFile,
    SetMetaRoot,
)
from .model import Content
from .paths import is_same_or_child
from .priority import PriorityIndex, walk_rules_package
from .result import Result
from .versioned import EmittingIndex

module_logger = logging.getLogger(__name__)

DEFAULT_PACKAGE_ID = "campaign"
# Lower numbers win: campaign content overrides shared homebrew packages.
CAMPAIGN_PRIORITY = 0
META_ROOT_PRIORITY = 10

ResultCallback = Callable[[IndexResult], object]


class DataLoader:
    def __init__(
        self,
        *,
        package_id: str = DEFAULT_PACKAGE_ID,
        file_debounce_ms: float = 0,
        build_debounce_ms: float = 100,
        logger: logging.Logger | None = None,
    ) -> None:
        self.logger = logger or module_logger
        self.package_id = package_id
        self._lock = threading.RLock()
        self._callbacks: list[ResultCallback] = []

        self.manager = MetarootContentManager(ContentManager(self.logger), self.logger)
        self.indexer = ContentIndexer(self.manager, self.logger)
        self.files: EmittingIndex[str, Result[dict[str, Any], FileProblem]] = EmittingIndex()
        self.packages: dict[str, dict[str, Any]] = {}
        self.priority_index = PriorityIndex()

        self._build_debouncer: KeyedDebouncer | None = (
            debouncer_by_key(build_debounce_ms, self.logger)
            if build_debounce_ms > 0
            else None
        )
        self._file_debouncer: KeyedDebouncer | None = (
            debouncer_by_key(file_debounce_ms, self.logger)
            if file_debounce_ms > 0
            else None
        )
        self.manager.on_update_root(self._on_update_root)

    def on_result(self, callback: ResultCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    def _emit(self, result: IndexResult) -> None:
        for callback in list(self._callbacks):
            callback(result)

    def handle(self, command: IndexCommand) -> None:
        """Apply one command; commands are serialised across threads."""
        with self._lock:
            self.logger.debug("Executing command %s", command)
            if isinstance(command, SetMetaRoot):
                self.manager.set_meta_root(command.root)
            elif isinstance(command, AddRoot):
                self.manager.add_root(command.root)
            elif isinstance(command, RemoveRoot):
                self.manager.remove_root(command.root)
            elif isinstance(command, IndexFile):
                self.indexer.index_file(
                    command.path,
                    command.mtime,
                    compute_hash(command.content),
                    command.content,
                    command.frontmatter,
                )
            elif isinstance(command, DeleteFile):
                self.manager.delete_content(command.path)
            elif isinstance(command, RenameFile):
                if self.manager.rename_content(command.old_path, command.new_path):
                    self.files.rename(command.old_path, command.new_path)
            else:
                raise TypeError(f"Unknown command: {command!r}")

    def schedule_index(
        self,
        path: str,
        mtime: float,
        content: str,
        frontmatter: dict[str, Any] | None = None,
    ) -> None:
        command = IndexFile(path, mtime, content, frontmatter)
        if self._file_debouncer is None:
            self.handle(command)
        else:
            self._file_debouncer(path)(lambda: self.handle(command))

    def index_folder(
        self,
        base_dir: Path,
        prefix: str = "",
        *,
        include: list[str] | None = None,
        exclude: list[str] | None = None,
        respect_gitignore: bool = True,
    ) -> int:
        """Index every content file below ``base_dir``; paths get ``prefix`` prepended."""
        base_dir = base_dir.resolve()
        count = 0
        for file in discover_content_files(base_dir, include, exclude, respect_gitignore):
            rel = file.relative_to(base_dir).as_posix()
            path = f"{prefix.rstrip('/')}/{rel}" if prefix.strip("/") else rel
            text = file.read_text(encoding="utf-8", errors="replace")
            self.handle(IndexFile(path, file.stat().st_mtime, text))
            count += 1
        self.logger.info("Indexed %d files in %s", count, base_dir)
        return count

    def _on_update_root(self, root: str, content: list[Content] | None) -> None:
        if content is None:
            self._remove_package(root)
            return
        if self._build_debouncer is None:
            self.build_package(root)
        else:
            self._build_debouncer(root)(lambda: self.build_package(root))

    def _remove_package(self, root: str) -> None:
        with self._lock:
            self.logger.debug("Root removed: %s", root)
            for path in [p for p in self.files if is_same_or_child(root, p)]:
                self.files.delete(path)
            self.packages.pop(root, None)
            self.priority_index.remove_source(root)
        self._emit(PackageRemoved(root))

    def build_package(self, root: str) -> PackageResults | None:
        """Rebuild ``root`` from the current content snapshot; ``None`` if it is gone."""
        with self._lock:
            if root not in self.manager.get_roots():
                self.logger.debug("Skipping build for untracked root %s", root)
                return None
            content = list(self.manager.values_under_path(root))
            in_meta_root = self.manager.is_in_meta_root(root)
            self.logger.debug(
                "Building package for root %s with %d content items", root, len(content)
            )
            # Packages in the meta root are named after their folder.
            results = PackageBuilder.from_content(
                root, content, None if in_meta_root else self.package_id
            )
            self._store(
                root,
                results,
                META_ROOT_PRIORITY if in_meta_root else CAMPAIGN_PRIORITY,
            )
        self._emit(PackageUpdated(root, dict(results.files), results.result))
        return results

    def _store(self, root: str, results: PackageResults, priority: int) -> None:
        stale = [
            p for p in self.files if is_same_or_child(root, p) and p not in results.files
        ]
        for path in stale:
            self.files.delete(path)
        for path, outcome in results.files.items():
            self.files[path] = outcome

        if results.result is None:
            self.packages.pop(root, None)
            self.priority_index.remove_source(root)
            return

        self.packages[root] = results.result
        try:
            self.priority_index.index(root, priority, walk_rules_package(results.result))
        except IndexConsistencyError as exc:
            self.logger.error("Failed to index package for root %s: %s", root, exc)

    def close(self) -> None:
        for debouncer in (self._build_debouncer, self._file_debouncer):
            if debouncer is not None:
                debouncer.shutdown()
