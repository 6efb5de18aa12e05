from __future__ import annotations

from dataclasses import dataclass

# Paths handled here are normalized, slash-delimited and relative (no leading
# slash). "/" is the conventional "whole vault" root.
WHOLE_VAULT = "/"


def child_of_path(root: str, child: str) -> bool:
    """Return True if ``child`` is strictly below ``root``.

    The test is on a slash boundary: ``foo`` does not contain ``foobar``.
    """
    return root == WHOLE_VAULT or child.startswith(root + "/")


def is_same_or_child(root: str, path: str) -> bool:
    return path == root or child_of_path(root, path)


def parent_folder_of(path: str) -> str:
    parts = path.split("/")
    parts.pop()
    return "/".join(parts) if parts else WHOLE_VAULT


def find_top_level_parent_path(parent: str, path: str) -> str | None:
    """Return the direct child of ``parent`` that contains (or is) ``path``.

    >>> find_top_level_parent_path("homebrew", "homebrew/pkg/oracles/x.md")
    'homebrew/pkg'
    """
    if not child_of_path(parent, path):
        return None
    rest = path if parent == WHOLE_VAULT else path[len(parent) + 1 :]
    head = rest.split("/", 1)[0]
    if not head:
        return None
    return head if parent == WHOLE_VAULT else f"{parent}/{head}"


@dataclass(frozen=True)
class FilePath:
    path: str

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def extension(self) -> str:
        """Extension without the dot, or ``""``."""
        name = self.name
        if "." not in name:
            return ""
        return name.rsplit(".", 1)[-1]

    @property
    def basename(self) -> str:
        """File name without its extension."""
        name = self.name
        if "." not in name:
            return name
        return name.rsplit(".", 1)[0]

    def __str__(self) -> str:
        return self.path
