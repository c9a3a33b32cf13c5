"""Deletion policies.

DELETE removes a node and its whole subtree in one store call. REPARENT
(the default) hands every immediate child to the deleted node's own parent,
rewriting each child's subtree through ``PathMaintainer``, and only then
removes the node itself.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from treepath.core.database.filters import OP_OR
from treepath.core.database.store import ID_FIELD
from treepath.core.enums import OnDelete
from treepath.core.exceptions import CascadeRewriteError
from treepath.core.hierarchy.codec import PATH_FIELD
from treepath.core.hierarchy.maintainer import PARENT_FIELD, PathMaintainer
from treepath.utils.batch import run_bounded

if TYPE_CHECKING:
    from collections.abc import Mapping

    from treepath.core.database.store import DocumentStore

logger = logging.getLogger(__name__)


class DeletionPolicy:
    """Delete nodes according to an ``OnDelete`` mode.

    Args:
        maintainer: Maintainer used for child reparenting. Its store and
            codec are used for every deletion.
        on_delete: Mode applied to every deletion.
    """

    def __init__(self, maintainer: PathMaintainer, on_delete: OnDelete = OnDelete.REPARENT) -> None:
        self.maintainer = maintainer
        self.on_delete = OnDelete(on_delete)

    @property
    def store(self) -> DocumentStore:
        return self.maintainer.store

    async def delete(self, node: Mapping[str, Any]) -> int:
        """Delete ``node`` and apply the configured mode to its descendants.

        A node without a stored path is removed on its own, without any
        side effect on other nodes.

        Returns:
            Number of removed nodes.

        Raises:
            CascadeRewriteError: REPARENT mode only, if any child could not be
                reparented. The node is kept in that case.
        """
        node_id = node[ID_FIELD]
        path = node.get(PATH_FIELD)

        if not path:
            await self.store.delete_one(node_id)
            return 1

        match self.on_delete:
            case OnDelete.DELETE:
                return await self._delete_subtree(node_id, path)
            case OnDelete.REPARENT:
                return await self._reparent_children(node)

    async def _delete_subtree(self, node_id: Any, path: str) -> int:
        codec = self.maintainer.codec
        removed = await self.store.delete_many(
            {OP_OR: [{ID_FIELD: node_id}, codec.subtree_filter(path)]}
        )
        logger.info(
            "Subtree deleted",
            extra={"node": str(node_id), "path": path, "removed": removed},
        )
        return removed

    async def _reparent_children(self, node: Mapping[str, Any]) -> int:
        node_id = node[ID_FIELD]
        new_parent = node.get(PARENT_FIELD)
        children = await self.store.find({PARENT_FIELD: node_id})

        if children:
            parent_path = None
            if new_parent is not None:
                parent_path = await self.maintainer.resolve_parent_path(new_parent, node_id)

            async def reparent(child: dict[str, Any]) -> None:
                candidate = {**child, PARENT_FIELD: new_parent}
                plan = self.maintainer.plan(candidate, child, parent_path=parent_path)
                await self.maintainer.apply(plan, {PARENT_FIELD: new_parent})

            result = await run_bounded(
                children,
                reparent,
                max_concurrency=self.maintainer.num_workers,
                key=lambda child: child[ID_FIELD],
            )
            if not result.ok:
                logger.error(
                    "Reparent on delete failed, node kept",
                    extra={
                        "node": str(node_id),
                        "failed": result.failed,
                        "successful": result.successful,
                    },
                )
                raise CascadeRewriteError("delete", result.failures, node_id=node_id)

        await self._repair_stale_descendants(node_id, node[PATH_FIELD])
        await self.store.delete_one(node_id)
        logger.info(
            "Node deleted, children reparented",
            extra={"node": str(node_id), "parent": str(new_parent), "children": len(children)},
        )
        return 1

    async def _repair_stale_descendants(self, node_id: Any, path: str) -> int:
        """Rebuild subtrees of former children still stored under ``path``.

        A child whose own update succeeded but whose descendant rewrite
        failed is no longer found by its ``parent`` reference, so a retried
        delete reaches those descendants only through the old prefix.
        """
        codec = self.maintainer.codec
        stale = await self.store.find(codec.subtree_filter(path), fields=[ID_FIELD, PATH_FIELD])
        if not stale:
            return 0

        depth = codec.level(path)
        head_ids = {codec.id_type.parse(codec.split(document[PATH_FIELD])[depth]) for document in stale}
        repaired = 0
        for head_id in sorted(head_ids, key=str):
            head = await self.store.find_one({ID_FIELD: head_id})
            if head is None:
                logger.warning(
                    "Stale descendants without a subtree head",
                    extra={"node": str(node_id), "head": str(head_id)},
                )
                continue
            repaired += await self.maintainer.rebuild(head)

        logger.warning(
            "Stale descendant paths repaired",
            extra={"node": str(node_id), "stale": len(stale), "repaired": repaired},
        )
        return repaired


__all__ = ["DeletionPolicy"]
