"""Materialized path encoding.

A path is the string form of every ancestor id plus the node's own id,
joined by a separator in root-to-node order:

- "eu"              a root
- "eu.se"           Sweden under Europe (separator ".")
- "eu.se.sthlm"     Stockholm under Sweden

Prefix queries must be anchored on the separator: the subtree of "a" is
everything starting with "a." and never "ab".

This module is pure string arithmetic and performs no I/O.
"""

from __future__ import annotations

from typing import Any

from treepath.core.enums import IdType
from treepath.core.exceptions import InvalidArgumentsError

PATH_FIELD = "path"


class PathCodec:
    """Encode and decode materialized paths for one separator.

    Example:
        >>> codec = PathCodec(".")
        >>> codec.child_path("eu", "se")
        'eu.se'
        >>> codec.level("eu.se.sthlm")
        3
        >>> codec.ancestor_ids("eu.se.sthlm")
        ['eu', 'se']
        >>> codec.subtree_filter("eu.se")
        {'path': {'$startswith': 'eu.se.'}}
        >>> codec.rewritten_path("eu.se.sthlm", "af.se", "eu.se")
        'af.se.sthlm'
    """

    __slots__ = ("id_type", "separator")

    def __init__(self, separator: str = "#", id_type: IdType = IdType.STR) -> None:
        if not separator:
            raise ValueError("Path separator must not be empty")
        self.separator = separator
        self.id_type = IdType(id_type)

    def check_id(self, node_id: Any) -> str:
        """Return the string form of ``node_id`` after validating it.

        Raises:
            InvalidArgumentsError: If the id is empty or contains the separator.
        """
        if node_id is None:
            raise InvalidArgumentsError("Node id is required")
        segment = str(node_id)
        if not segment:
            raise InvalidArgumentsError("Node id must not be empty")
        if self.separator in segment:
            raise InvalidArgumentsError(
                f"Node id {segment!r} contains the path separator {self.separator!r}"
            )
        return segment

    def root_path(self, node_id: Any) -> str:
        """Path of a node without a parent."""
        return self.check_id(node_id)

    def child_path(self, parent_path: str, node_id: Any) -> str:
        """Path of ``node_id`` placed under a parent stored at ``parent_path``.

        Raises:
            ValueError: If ``parent_path`` is empty.
        """
        if not parent_path:
            raise ValueError("Parent path must not be empty")
        return f"{parent_path}{self.separator}{self.check_id(node_id)}"

    def level(self, path: str | None) -> int:
        """Depth of the node stored at ``path``; roots and empty paths are level 1."""
        if not path:
            return 1
        return path.count(self.separator) + 1

    def split(self, path: str | None) -> list[str]:
        """Path segments in root-to-node order."""
        if not path:
            return []
        return path.split(self.separator)

    def sort_key(self, path: str | None) -> tuple[str, ...]:
        """Ordering key that puts every parent right before its subtree.

        Plain string order only does this when no id contains a character
        that sorts below the separator, so assembly normalizes with this key.
        """
        return tuple(self.split(path))

    def ancestor_ids(self, path: str | None) -> list[Any]:
        """Ancestor ids (root first, immediate parent last), excluding the node itself."""
        return [self.id_type.parse(segment) for segment in self.split(path)[:-1]]

    def subtree_prefix(self, path: str) -> str:
        """Anchored prefix shared by every descendant of ``path``."""
        if not path:
            raise ValueError("Cannot build a subtree prefix for an empty path")
        return f"{path}{self.separator}"

    def subtree_filter(self, path: str) -> dict[str, Any]:
        """Store filter matching every descendant of ``path`` (not the node itself)."""
        return {PATH_FIELD: {"$startswith": self.subtree_prefix(path)}}

    def is_descendant_path(self, path: str | None, ancestor_path: str | None) -> bool:
        """True when ``path`` lies strictly below ``ancestor_path``."""
        if not path or not ancestor_path:
            return False
        return path.startswith(self.subtree_prefix(ancestor_path))

    def rewritten_path(self, old_path: str, new_prefix: str, old_prefix: str) -> str:
        """Replace the ``old_prefix`` ancestor portion of ``old_path`` with ``new_prefix``.

        Raises:
            ValueError: If ``old_path`` is not ``old_prefix`` or one of its descendants.
        """
        if old_path != old_prefix and not self.is_descendant_path(old_path, old_prefix):
            raise ValueError(f"{old_path!r} is not under {old_prefix!r}")
        return new_prefix + old_path[len(old_prefix):]

    def __repr__(self) -> str:
        return f"PathCodec({self.separator!r}, id_type={self.id_type.value!r})"


__all__ = ["PATH_FIELD", "PathCodec"]
