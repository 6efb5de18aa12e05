"""Turn raw file text into content values.

Dispatch is on the file name: ``_index`` files describe their folder, markdown
files are handed to a parser chosen by the frontmatter ``type`` and YAML/JSON
files carry Datasworn source directly.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

import yaml

from .errors import ContentParseError
from .model import ContentValue, EntryContent, IndexContent, PackageContent
from .paths import FilePath
from .result import Err, Ok, Result

logger = logging.getLogger(__name__)

ENTRY_SOURCE_TYPES = ("oracle_rollable", "move", "asset")
PACKAGE_TYPES = ("ruleset", "expansion")
# Root-only fields that individual entries must not carry.
ROOT_FIELDS = ("datasworn_version", "ruleset")

MarkdownParser = Callable[
    [str, str, dict[str, Any]], Result[dict[str, Any], Exception]
]

_MARKDOWN_PARSERS: dict[str, MarkdownParser] = {}


def register_markdown_parser(
    entry_type: str, parser: MarkdownParser | None = None
) -> Any:
    """Register ``parser`` for markdown files whose frontmatter ``type`` is ``entry_type``.

    Usable as a decorator::

        @register_markdown_parser("oracle_rollable")
        def parse_table(body, basename, frontmatter): ...
    """

    def register(fn: MarkdownParser) -> MarkdownParser:
        _MARKDOWN_PARSERS[entry_type] = fn
        return fn

    if parser is not None:
        return register(parser)
    return register


def markdown_parser_for(entry_type: str | None) -> MarkdownParser | None:
    if entry_type is None:
        return None
    return _MARKDOWN_PARSERS.get(entry_type)


def extract_frontmatter(text: str) -> tuple[dict[str, Any] | None, str]:
    """Split leading ``---`` YAML frontmatter from a markdown body.

    Returns ``(None, text)`` when there is no frontmatter block. Malformed YAML
    raises ``yaml.YAMLError``.
    """
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    if not normalized.startswith("---\n"):
        return None, text
    end = normalized.find("\n---", 3)
    if end == -1:
        return None, text
    block = normalized[4:end]
    rest = normalized[end + 4 :]
    if rest and not rest.startswith("\n"):
        # "---" followed by more text on the same line is not a fence.
        return None, text
    body = rest[1:] if rest.startswith("\n") else rest
    loaded = yaml.safe_load(block) if block.strip() else {}
    if loaded is None:
        loaded = {}
    if not isinstance(loaded, dict):
        raise yaml.YAMLError("Frontmatter must be a mapping.")
    return loaded, body


def _strip_root_fields(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if k not in ROOT_FIELDS}


def _frontmatter_entry(
    _body: str, basename: str, frontmatter: dict[str, Any]
) -> Result[dict[str, Any], Exception]:
    data = _strip_root_fields(frontmatter)
    data.setdefault("name", basename)
    return Ok(data)


for _entry_type in ENTRY_SOURCE_TYPES:
    register_markdown_parser(_entry_type, _frontmatter_entry)


def _load_structured(path: FilePath, data: str) -> Any:
    if path.extension == "json":
        return json.loads(data)
    return yaml.safe_load(data)


def _parse_index(
    path: FilePath, data: str, frontmatter: dict[str, Any] | None
) -> ContentValue | None:
    if path.extension == "md":
        if frontmatter is None:
            try:
                frontmatter, _ = extract_frontmatter(data)
            except yaml.YAMLError as exc:
                return EntryContent(
                    Err(ContentParseError(f"Failed to parse frontmatter in {path}: {exc}"))
                )
        return IndexContent(dict(frontmatter or {}))
    if path.extension in ("yml", "yaml"):
        try:
            loaded = yaml.safe_load(data)
        except yaml.YAMLError as exc:
            logger.error("Failed to parse YAML file %s: %s", path, exc)
            return EntryContent(
                Err(ContentParseError(f"Failed to parse YAML file {path}: {exc}"))
            )
        return IndexContent(loaded if isinstance(loaded, dict) else {})
    logger.error("Unexpected file type for index file %s", path)
    return None


def _parse_markdown(
    path: FilePath, data: str, frontmatter: dict[str, Any] | None
) -> ContentValue:
    body = data
    if frontmatter is None:
        try:
            frontmatter, body = extract_frontmatter(data)
        except yaml.YAMLError as exc:
            return EntryContent(
                Err(ContentParseError(f"Failed to parse frontmatter in {path}: {exc}"))
            )
    frontmatter = frontmatter or {}
    declared = frontmatter.get("type")
    declared = declared if isinstance(declared, str) else None
    parser = markdown_parser_for(declared)
    if parser is None:
        return EntryContent(
            Err(
                ContentParseError(
                    f"Could not determine parser for file {path} (type: {declared})."
                )
            ),
            declared_type=declared,
        )
    try:
        result = parser(body, path.basename, frontmatter)
    except Exception as exc:  # parsers are pluggable; keep the failure as data
        logger.debug("Markdown parser for %s raised", path, exc_info=True)
        result = Err(exc)
    return EntryContent(result, declared_type=declared)


def _parse_source(path: FilePath, data: str) -> ContentValue:
    try:
        loaded = _load_structured(path, data)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return EntryContent(Err(ContentParseError(f"Failed to parse {path}: {exc}")))

    data_type = loaded.get("type") if isinstance(loaded, dict) else None
    if data_type in ENTRY_SOURCE_TYPES:
        return EntryContent(Ok(_strip_root_fields(loaded)), declared_type=data_type)
    if data_type in PACKAGE_TYPES:
        return PackageContent(loaded)

    logger.error("Unexpected file type %s in file %s", data_type, path)
    return EntryContent(
        Err(ContentParseError(f"Unexpected file type {data_type} in file {path}")),
        declared_type=data_type if isinstance(data_type, str) else None,
    )


def parse_content(
    path: str, data: str, frontmatter: dict[str, Any] | None = None
) -> ContentValue | None:
    """Parse one file; ``None`` means the file is not content at all."""
    file_path = FilePath(path)
    if file_path.basename == "_index":
        return _parse_index(file_path, data, frontmatter)
    if file_path.extension == "md":
        return _parse_markdown(file_path, data, frontmatter)
    if file_path.extension in ("yml", "yaml", "json"):
        return _parse_source(file_path, data)
    return None
