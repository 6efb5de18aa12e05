from __future__ import annotations

import logging
from typing import Any

from .content import ContentManagerProtocol
from .ids import compute_hash
from .model import Content
from .parse import parse_content

module_logger = logging.getLogger(__name__)


class ContentIndexer:
    """Parse changed files and upsert them into a content manager."""

    def __init__(
        self, manager: ContentManagerProtocol, logger: logging.Logger | None = None
    ) -> None:
        self.manager = manager
        self.logger = logger or module_logger

    compute_hash = staticmethod(compute_hash)

    def index_file(
        self,
        path: str,
        mtime: float,
        hash: str,
        data: str,
        frontmatter: dict[str, Any] | None = None,
    ) -> bool:
        """Index one file; returns False when the file was skipped."""
        existing = self.manager.get_content(path)
        if existing is not None and existing.mtime >= mtime:
            self.logger.debug("File %s has not changed. Skipping re-index.", path)
            return False
        if existing is not None and existing.hash == hash:
            self.logger.debug("File %s content unchanged. Skipping re-index.", path)
            return False

        value = parse_content(path, data, frontmatter)
        if value is None:
            self.logger.error("Failed to parse file %s. No valid content found.", path)
            return False

        self.manager.add_content(Content(path=path, mtime=mtime, hash=hash, value=value))
        return True
