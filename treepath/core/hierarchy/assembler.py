"""Rebuild nested trees from flat, path-ordered node lists.

A store returns tree members as a flat list sorted by path. Because every
parent path is a prefix of its children's paths, a parent always precedes
its subtree, and the node to attach under at each level is simply the most
recently placed node of that level. One pass over the list is enough:

    eu            -> top level
    eu.no         -> walk one level down into eu.children
    eu.se         -> eu.children
    eu.se.sthlm   -> eu.children[-1] (se).children

Nodes are mutated in place: each one receives a ``children`` list.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, MutableMapping, Sequence
from typing import Any

from treepath.core.database.filters import sort_records
from treepath.core.hierarchy.codec import PATH_FIELD, PathCodec

logger = logging.getLogger(__name__)

CHILDREN_FIELD = "children"

Node = MutableMapping[str, Any]


class TreeAssembler:
    """Turn path-ordered node lists into nested trees.

    Example:
        >>> assembler = TreeAssembler(PathCodec("."))
        >>> roots = assembler.assemble(
        ...     [{"id": "eu", "path": "eu"}, {"id": "se", "path": "eu.se"}],
        ... )
        >>> roots[0]["children"][0]["id"]
        'se'
    """

    __slots__ = ("codec",)

    def __init__(self, codec: PathCodec) -> None:
        self.codec = codec

    def placement_level(self, min_level: int = 1, root_path: str | None = None) -> int:
        """Level whose nodes become top-level entries.

        For a rooted read the shallowest candidate is the level right below
        the root node, so ``min_level`` is raised to at least that.
        """
        root_level = self.codec.level(root_path) + 1 if root_path else 1
        return max(min_level, root_level)

    def assemble(
        self,
        nodes: Iterable[Node],
        *,
        sort: Sequence[tuple[str, int]] | None = None,
        min_level: int = 1,
        max_level: int | None = None,
        root_path: str | None = None,
        allow_empty_children: bool = True,
    ) -> list[Node]:
        """Build the nested tree.

        Args:
            nodes: Nodes sorted ascending by path (see ``PathCodec.sort_key``).
            sort: Normalized ``(field, direction)`` pairs applied to every
                sibling group after assembly. None keeps path order.
            min_level: Shallowest level kept (inclusive).
            max_level: Deepest level kept (inclusive), None for unbounded.
            root_path: Path of the node the read is scoped to, if any.
            allow_empty_children: Keep empty ``children`` lists on leaves.

        Returns:
            Top-level nodes with nested ``children``.
        """
        top_level = self.placement_level(min_level, root_path)
        result: list[Node] = []
        discarded = 0

        for node in nodes:
            level = self.codec.level(node.get(PATH_FIELD))
            if level < top_level or (max_level is not None and level > max_level):
                continue
            node[CHILDREN_FIELD] = []
            if not self._place(result, node, level, top_level):
                discarded += 1

        if discarded:
            logger.debug(
                "Dropped nodes without a placed ancestor",
                extra={"count": discarded, "root_path": root_path, "min_level": top_level},
            )

        if sort:
            self._sort_siblings(result, sort)
        if not allow_empty_children:
            self._strip_empty_children(result)
        return result

    def _place(self, siblings: list[Node], node: Node, level: int, top_level: int) -> bool:
        path = node.get(PATH_FIELD)
        while level > top_level:
            if not siblings:
                return False
            candidate = siblings[-1]
            # The parent record may be missing from the queried set
            if not self.codec.is_descendant_path(path, candidate.get(PATH_FIELD)):
                return False
            siblings = candidate[CHILDREN_FIELD]
            level -= 1
        siblings.append(node)
        return True

    def _sort_siblings(self, siblings: list[Node], sort: Sequence[tuple[str, int]]) -> None:
        siblings[:] = sort_records(siblings, sort)
        for node in siblings:
            self._sort_siblings(node[CHILDREN_FIELD], sort)

    def _strip_empty_children(self, siblings: list[Node]) -> None:
        for node in siblings:
            if node[CHILDREN_FIELD]:
                self._strip_empty_children(node[CHILDREN_FIELD])
            else:
                del node[CHILDREN_FIELD]


def flatten_tree(roots: Iterable[Node]) -> Iterator[dict[str, Any]]:
    """Yield every node of a nested tree depth-first, without ``children``.

    Depth-first pre-order over path-ordered siblings is path order again, so
    ``assemble(list(flatten_tree(tree)))`` rebuilds ``tree``.
    """
    for node in roots:
        yield {key: value for key, value in node.items() if key != CHILDREN_FIELD}
        yield from flatten_tree(node.get(CHILDREN_FIELD) or ())


__all__ = ["CHILDREN_FIELD", "TreeAssembler", "flatten_tree"]
