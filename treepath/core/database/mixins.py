"""Mixin for models stored as materialized path tree nodes.

Adds the ``id``, ``parent`` and ``path`` columns the hierarchy layer reads
and writes, plus read-only helpers computed from the stored path. The helpers
never query the database.
"""

from __future__ import annotations

from typing import Any, ClassVar

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from treepath.core.enums import IdType
from treepath.core.hierarchy.codec import PathCodec


class TreeNodeMixin:
    """Columns and path helpers for a tree node model.

    ``parent`` is a plain indexed column rather than a foreign key: in
    REPARENT mode children are re-pointed before their parent row is deleted,
    and in DELETE mode the whole subtree goes in one statement.

    Example:
        >>> class Location(Base, TreeNodeMixin):
        ...     __tablename__ = "locations"
        ...     __path_separator__ = "."
        ...     name: Mapped[str] = mapped_column(String(255))
        >>>
        >>> sthlm = Location(id="sthlm", parent="se", path="eu.se.sthlm")
        >>> sthlm.level
        3
        >>> sthlm.ancestor_ids
        ['eu', 'se']

    Note:
        - Override ``__path_separator__`` to match TreeSettings.path_separator
        - Override ``id`` and ``parent`` for integer or UUID identifiers
    """

    __allow_unmapped__ = True

    __path_separator__: ClassVar[str] = "#"
    __id_type__: ClassVar[IdType] = IdType.STR

    id: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="Node identifier; its string form is a path segment",
    )
    parent: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
        comment="Identifier of the parent node, NULL for roots",
    )
    path: Mapped[str | None] = mapped_column(
        String(2048),
        nullable=True,
        index=True,
        comment="Ancestor ids and own id joined by the path separator",
    )

    @classmethod
    def path_codec(cls) -> PathCodec:
        """Codec configured with this model's separator and id type."""
        return PathCodec(cls.__path_separator__, cls.__id_type__)

    @property
    def level(self) -> int:
        """Depth of this node (1 for roots)."""
        return self.path_codec().level(self.path)

    @property
    def is_root(self) -> bool:
        """True when the node has no parent."""
        return self.parent is None

    @property
    def ancestor_ids(self) -> list[Any]:
        """Ids of every ancestor, root first."""
        return self.path_codec().ancestor_ids(self.path)


__all__ = ["TreeNodeMixin"]
