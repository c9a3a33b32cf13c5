"""Path maintenance for node writes.

Every write is classified into one of four states before anything is
persisted:

- no-op: existing node, parent unchanged. The path is left alone and the
  parent is not looked up.
- create-root: new node without parent, ``path = id``.
- create-child: new node with a parent, ``path = parent.path + sep + id``.
- reparent: existing node whose parent changed. The node is written first,
  then every descendant still carrying the old prefix is rewritten.

Planning is pure (``PathMaintainer.plan`` / ``plan_cascade``) so cascades
can be inspected without a store. ``apply`` executes a plan.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from treepath.core.database.store import ID_FIELD
from treepath.core.exceptions import (
    CascadeRewriteError,
    CycleDetectedError,
    InvalidArgumentsError,
    ParentNotFoundError,
)
from treepath.core.hierarchy.codec import PATH_FIELD, PathCodec
from treepath.infra.logging import get_lazy_logger, lazy
from treepath.utils.batch import run_bounded

if TYPE_CHECKING:
    from collections.abc import Iterable

    from treepath.core.database.store import DocumentStore

logger = logging.getLogger(__name__)
_lazy_logger = get_lazy_logger(__name__)

PARENT_FIELD = "parent"


class PathState(StrEnum):
    """Classification of a write."""

    NOOP = "no-op"
    CREATE_ROOT = "create-root"
    CREATE_CHILD = "create-child"
    REPARENT = "reparent"


@dataclass(frozen=True, slots=True)
class PathPlan:
    """Outcome of planning one write.

    Attributes:
        state: Write classification.
        node_id: Node being written.
        parent_id: Parent after the write.
        new_path: Path after the write.
        old_path: Stored path before the write, None for new nodes.
    """

    state: PathState
    node_id: Any
    parent_id: Any
    new_path: str | None
    old_path: str | None = None

    @property
    def is_new(self) -> bool:
        return self.state in (PathState.CREATE_ROOT, PathState.CREATE_CHILD)

    @property
    def cascades(self) -> bool:
        """True when descendants stored under ``old_path`` must be rewritten."""
        return (
            self.state is PathState.REPARENT
            and bool(self.old_path)
            and self.old_path != self.new_path
        )


@dataclass(frozen=True, slots=True)
class PathRewrite:
    """One descendant path update."""

    node_id: Any
    old_path: str
    new_path: str


class PathMaintainer:
    """Compute and persist paths on node writes.

    Args:
        store: Store the nodes live in.
        codec: Path codec of the tree.
        num_workers: Maximum concurrent descendant rewrites.
    """

    def __init__(self, store: DocumentStore, codec: PathCodec, *, num_workers: int = 5) -> None:
        self.store = store
        self.codec = codec
        self.num_workers = num_workers

    # ------------------------------------------------------------------
    # Planning (pure)
    # ------------------------------------------------------------------

    @staticmethod
    def parent_changed(candidate: Mapping[str, Any], previous: Mapping[str, Any] | None) -> bool:
        """True for new nodes and for nodes whose parent was reassigned."""
        if previous is None:
            return True
        return candidate.get(PARENT_FIELD) != previous.get(PARENT_FIELD)

    def plan(
        self,
        candidate: Mapping[str, Any],
        previous: Mapping[str, Any] | None = None,
        *,
        parent_path: str | None = None,
    ) -> PathPlan:
        """Classify a write and compute the resulting path.

        Args:
            candidate: Node fields after the write (``id`` and ``parent`` at least).
            previous: Stored node before the write, None for a new node.
            parent_path: Stored path of ``candidate["parent"]``. Required when
                the parent changed to a non-null value.

        Raises:
            InvalidArgumentsError: Bad id, or a parent without a stored path.
            CycleDetectedError: The new parent is the node or one of its descendants.
        """
        node_id = candidate.get(ID_FIELD)
        self.codec.check_id(node_id)
        parent_id = candidate.get(PARENT_FIELD)
        old_path = previous.get(PATH_FIELD) if previous is not None else None

        if not self.parent_changed(candidate, previous):
            return PathPlan(PathState.NOOP, node_id, parent_id, old_path, old_path)

        if parent_id is None:
            state = PathState.CREATE_ROOT if previous is None else PathState.REPARENT
            return PathPlan(state, node_id, None, self.codec.root_path(node_id), old_path)

        if parent_id == node_id:
            raise CycleDetectedError(node_id, parent_id)
        if not parent_path:
            raise InvalidArgumentsError(
                f"Parent {parent_id!r} has no stored path and cannot take children"
            )
        if old_path and (
            parent_path == old_path or self.codec.is_descendant_path(parent_path, old_path)
        ):
            raise CycleDetectedError(node_id, parent_id)

        state = PathState.CREATE_CHILD if previous is None else PathState.REPARENT
        return PathPlan(
            state,
            node_id,
            parent_id,
            self.codec.child_path(parent_path, node_id),
            old_path,
        )

    def plan_cascade(
        self,
        descendants: Iterable[Mapping[str, Any]],
        old_prefix: str,
        new_prefix: str,
    ) -> list[PathRewrite]:
        """Rewrites moving ``descendants`` from ``old_prefix`` to ``new_prefix``.

        Descendants whose path is already correct are skipped.
        """
        rewrites = []
        for document in descendants:
            path = document.get(PATH_FIELD)
            if not self.codec.is_descendant_path(path, old_prefix):
                continue
            new_path = self.codec.rewritten_path(path, new_prefix, old_prefix)
            if new_path != path:
                rewrites.append(PathRewrite(document[ID_FIELD], path, new_path))
        return rewrites

    # ------------------------------------------------------------------
    # Store interaction
    # ------------------------------------------------------------------

    async def resolve_parent_path(self, parent_id: Any, node_id: Any = None) -> str | None:
        """Stored path of ``parent_id``.

        Raises:
            ParentNotFoundError: If no node has that id.
        """
        parent = await self.store.find_one({ID_FIELD: parent_id})
        if parent is None:
            raise ParentNotFoundError(parent_id, node_id)
        return parent.get(PATH_FIELD)

    async def prepare(
        self,
        candidate: Mapping[str, Any],
        previous: Mapping[str, Any] | None = None,
    ) -> PathPlan:
        """Plan a write, looking up the parent path only when the parent changed."""
        parent_id = candidate.get(PARENT_FIELD)
        parent_path = None
        if parent_id is not None and self.parent_changed(candidate, previous):
            parent_path = await self.resolve_parent_path(parent_id, candidate.get(ID_FIELD))
        return self.plan(candidate, previous, parent_path=parent_path)

    async def apply(self, plan: PathPlan, values: Mapping[str, Any]) -> dict[str, Any] | None:
        """Persist the node described by ``plan`` and cascade if needed.

        Args:
            plan: Result of ``plan`` / ``prepare``.
            values: Fields to write. For new nodes the whole document,
                otherwise only the changed fields.

        Returns:
            The inserted document for new nodes, None for updates.

        Raises:
            CascadeRewriteError: If any descendant rewrite failed. The node
                itself has already been written at that point.
        """
        fields = {key: value for key, value in values.items() if key != PATH_FIELD}

        if plan.is_new:
            document = {
                **fields,
                ID_FIELD: plan.node_id,
                PARENT_FIELD: plan.parent_id,
                PATH_FIELD: plan.new_path,
            }
            stored = await self.store.insert_one(document)
            _lazy_logger.debug(lambda: f"tree.{plan.state}: {plan.node_id} at {plan.new_path}")
            return stored

        if plan.state is PathState.REPARENT:
            fields[PARENT_FIELD] = plan.parent_id
            fields[PATH_FIELD] = plan.new_path
        fields.pop(ID_FIELD, None)
        if fields:
            await self.store.update_one(plan.node_id, fields)

        if plan.cascades:
            await self.cascade(plan.old_path, plan.new_path, node_id=plan.node_id)
        return None

    async def cascade(self, old_prefix: str, new_prefix: str, *, node_id: Any = None) -> int:
        """Rewrite every descendant stored under ``old_prefix``.

        Returns:
            Number of rewritten descendants.
        """
        descendants = await self.store.find(
            self.codec.subtree_filter(old_prefix),
            fields=[ID_FIELD, PATH_FIELD],
        )
        rewrites = self.plan_cascade(descendants, old_prefix, new_prefix)
        return await self._run_rewrites(rewrites, node_id=node_id)

    async def rebuild(self, node: Mapping[str, Any]) -> int:
        """Recompute paths of ``node`` and its subtree from parent references.

        Walks the subtree one level at a time following ``parent`` links, so
        it repairs descendants a failed cascade left behind.

        Returns:
            Number of rewritten nodes.
        """
        node_id = node[ID_FIELD]
        parent_id = node.get(PARENT_FIELD)
        if parent_id is None:
            expected = self.codec.root_path(node_id)
        else:
            parent_path = await self.resolve_parent_path(parent_id, node_id)
            if not parent_path:
                raise InvalidArgumentsError(f"Parent {parent_id!r} has no stored path")
            expected = self.codec.child_path(parent_path, node_id)

        rewrites = []
        if node.get(PATH_FIELD) != expected:
            rewrites.append(PathRewrite(node_id, node.get(PATH_FIELD), expected))
        rewritten = await self._run_rewrites(rewrites, node_id=node_id)

        paths = {node_id: expected}
        frontier = [node_id]
        while frontier:
            children = await self.store.find(
                {PARENT_FIELD: {"$in": frontier}},
                fields=[ID_FIELD, PARENT_FIELD, PATH_FIELD],
            )
            children = [child for child in children if child[ID_FIELD] not in paths]
            rewrites = []
            for child in children:
                child_path = self.codec.child_path(paths[child[PARENT_FIELD]], child[ID_FIELD])
                paths[child[ID_FIELD]] = child_path
                if child.get(PATH_FIELD) != child_path:
                    rewrites.append(PathRewrite(child[ID_FIELD], child.get(PATH_FIELD), child_path))
            rewritten += await self._run_rewrites(rewrites, node_id=node_id)
            frontier = [child[ID_FIELD] for child in children]

        logger.info(
            "Subtree paths rebuilt",
            extra={"node": str(node_id), "visited": len(paths), "rewritten": rewritten},
        )
        return rewritten

    async def _run_rewrites(self, rewrites: list[PathRewrite], *, node_id: Any) -> int:
        if not rewrites:
            return 0

        logger.debug(
            "Path cascade started: %s",
            lazy(lambda: ", ".join(f"{item.old_path} -> {item.new_path}" for item in rewrites)),
            extra={"node": str(node_id), "count": len(rewrites), "workers": self.num_workers},
        )

        async def rewrite(item: PathRewrite) -> None:
            await self.store.update_one(item.node_id, {PATH_FIELD: item.new_path})

        result = await run_bounded(
            rewrites,
            rewrite,
            max_concurrency=self.num_workers,
            key=lambda item: item.node_id,
        )

        if not result.ok:
            logger.error(
                "Path cascade failed",
                extra={
                    "node": str(node_id),
                    "failed": result.failed,
                    "successful": result.successful,
                },
            )
            raise CascadeRewriteError("reparent", result.failures, node_id=node_id)

        logger.debug(
            "Path cascade finished",
            extra={
                "node": str(node_id),
                "count": result.successful,
                "duration_seconds": round(result.duration_seconds, 4),
            },
        )
        return result.successful


__all__ = ["PARENT_FIELD", "PathMaintainer", "PathPlan", "PathRewrite", "PathState"]
