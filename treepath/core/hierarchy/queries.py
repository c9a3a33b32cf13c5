"""Read query derivation.

Turns a node plus caller arguments into the filters and options sent to the
store:

- immediate children: ``parent == node.id``
- descendants: ``path`` starts with ``node.path + sep``
- ancestors: ``id`` in the ids decoded from ``node.path``
- tree: descendants (or the whole forest), always fetched path ascending and
  with ``id``, ``parent``, ``path`` in the projection so the result can be
  assembled

Derived conditions are merged into the caller filters, inside the ``$query``
wrapper when the caller used one. A derived key replaces a caller key of the
same name. Caller mappings are never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from treepath.core.database.filters import ASCENDING, OP_IN, QUERY_WRAPPER
from treepath.core.database.store import ID_FIELD
from treepath.core.hierarchy.codec import PATH_FIELD, PathCodec
from treepath.core.hierarchy.maintainer import PARENT_FIELD

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from treepath.core.hierarchy.schemas import QueryArgs, TreeQueryArgs

# Matches no document; used for nodes without a stored path
MATCH_NOTHING: dict[str, Any] = {ID_FIELD: {OP_IN: []}}


@dataclass(frozen=True, slots=True)
class StoreQuery:
    """Arguments of one ``DocumentStore.find`` call plus result shaping."""

    filters: dict[str, Any]
    fields: list[str] | None = None
    sort: list[tuple[str, int]] = field(default_factory=list)
    populate: list[str] = field(default_factory=list)
    lean: bool = True


@dataclass(frozen=True, slots=True)
class TreeQuery:
    """Store query of a tree read plus the assembly options applied to its result."""

    query: StoreQuery
    sort: list[tuple[str, int]] = field(default_factory=list)
    min_level: int = 1
    max_level: int | None = None
    root_path: str | None = None
    allow_empty_children: bool = True


def merge_filters(caller: Mapping[str, Any] | None, derived: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``derived`` into a copy of ``caller``.

    Example:
        >>> merge_filters({"$query": {"name": "x"}}, {"parent": "eu"})
        {'$query': {'name': 'x', 'parent': 'eu'}}
    """
    merged = dict(caller or {})
    if QUERY_WRAPPER in merged:
        merged[QUERY_WRAPPER] = {**merged[QUERY_WRAPPER], **derived}
    else:
        merged.update(derived)
    return merged


def _drop_null_parent(filters: Mapping[str, Any]) -> dict[str, Any]:
    result = dict(filters)
    target = result
    if QUERY_WRAPPER in result:
        target = result[QUERY_WRAPPER] = dict(result[QUERY_WRAPPER])
    if PARENT_FIELD in target and target[PARENT_FIELD] is None:
        del target[PARENT_FIELD]
    return result


def _with_tree_fields(fields: Sequence[str] | None) -> list[str] | None:
    if fields is None:
        return None
    required = [name for name in (ID_FIELD, PATH_FIELD, PARENT_FIELD) if name not in fields]
    return [*fields, *required]


class QueryDerivation:
    """Build read queries for one tree.

    Args:
        codec: Path codec of the tree.
        default_lean: ``lean`` used when the caller leaves it unset.
    """

    __slots__ = ("codec", "default_lean")

    def __init__(self, codec: PathCodec, *, default_lean: bool = True) -> None:
        self.codec = codec
        self.default_lean = default_lean

    def _lean(self, args: QueryArgs) -> bool:
        return self.default_lean if args.lean is None else args.lean

    def _query(self, derived: Mapping[str, Any], args: QueryArgs) -> StoreQuery:
        return StoreQuery(
            filters=merge_filters(args.filters, derived),
            fields=list(args.fields) if args.fields is not None else None,
            sort=list(args.sort),
            populate=list(args.populate),
            lean=self._lean(args),
        )

    def node_query(self, node_id: Any, args: QueryArgs) -> StoreQuery:
        """The node stored under ``node_id``."""
        return self._query({ID_FIELD: node_id}, args)

    def children_query(self, node: Mapping[str, Any], args: QueryArgs) -> StoreQuery:
        """Immediate children of ``node``."""
        return self._query({PARENT_FIELD: node[ID_FIELD]}, args)

    def descendants_query(self, node: Mapping[str, Any], args: QueryArgs) -> StoreQuery:
        """Every node below ``node``."""
        path = node.get(PATH_FIELD)
        derived = self.codec.subtree_filter(path) if path else MATCH_NOTHING
        return self._query(derived, args)

    def ancestors_query(self, node: Mapping[str, Any], args: QueryArgs) -> StoreQuery:
        """Every ancestor of ``node``, root first once sorted by path."""
        return self._query({ID_FIELD: {OP_IN: self.codec.ancestor_ids(node.get(PATH_FIELD))}}, args)

    def parent_query(self, node: Mapping[str, Any], args: QueryArgs) -> StoreQuery:
        """Direct parent of ``node``; matches nothing for roots."""
        parent_id = node.get(PARENT_FIELD)
        derived = {ID_FIELD: parent_id} if parent_id is not None else MATCH_NOTHING
        return self._query(derived, args)

    def tree_query(self, root: Mapping[str, Any] | None, args: TreeQueryArgs) -> TreeQuery:
        """Tree below ``root``, or the whole forest when ``root`` is None.

        ``recursive=False`` restricts the read to the first level: the root's
        immediate children, or the top-level nodes of the forest.
        """
        filters: dict[str, Any] = dict(args.filters)
        root_path = root.get(PATH_FIELD) if root is not None else None

        if not args.recursive:
            derived: dict[str, Any] = {PARENT_FIELD: root[ID_FIELD] if root is not None else None}
        else:
            filters = _drop_null_parent(filters)
            if root is None:
                derived = {}
            elif root_path:
                derived = self.codec.subtree_filter(root_path)
            else:
                derived = dict(MATCH_NOTHING)

        query = StoreQuery(
            filters=merge_filters(filters, derived),
            fields=_with_tree_fields(args.fields),
            sort=[(PATH_FIELD, ASCENDING)],
            populate=list(args.populate),
            lean=self._lean(args),
        )
        return TreeQuery(
            query=query,
            sort=list(args.sort),
            min_level=args.min_level,
            max_level=args.max_level,
            root_path=root_path,
            allow_empty_children=args.allow_empty_children,
        )


__all__ = ["MATCH_NOTHING", "QueryDerivation", "StoreQuery", "TreeQuery", "merge_filters"]
