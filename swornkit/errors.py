from __future__ import annotations


class SwornkitError(Exception):
    """Base class for invariant violations raised by swornkit."""


class NodeTreeError(SwornkitError):
    """Structural error while editing a NodeTree."""


class EmptyPathError(NodeTreeError, ValueError):
    def __init__(self) -> None:
        super().__init__("Path must not be empty.")


class MissingParentError(NodeTreeError, KeyError):
    def __init__(self, path: str, parent_path: str) -> None:
        super().__init__(path, parent_path)
        self.path = path
        self.parent_path = parent_path

    def __str__(self) -> str:
        return (
            f"Cannot create a node at {self.path} because the parent path "
            f"{self.parent_path} does not exist."
        )


class TypeConflictError(NodeTreeError, TypeError):
    """A node of the other kind already occupies the path (or its parent)."""


class UnknownNodeError(NodeTreeError, KeyError):
    def __str__(self) -> str:
        return f"No node found at path: {self.args[0]}"


class RootConflictError(SwornkitError, ValueError):
    """A root was registered twice or overlaps an existing root."""


class IndexConsistencyError(SwornkitError):
    """The priority index was fed data that conflicts with what it holds."""


class CollectionTypeError(SwornkitError):
    """Carried inside ``Err`` on a collection label; never raised by the labeler."""


class ContentParseError(SwornkitError, ValueError):
    """A file could not be turned into a content entry."""
