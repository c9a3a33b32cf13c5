"""Materialized path tree over a document store.

``MaterializedPathTree`` is the entry point embedders use. It keeps
``path`` consistent with ``parent`` on every write and answers hierarchy
reads with prefix queries instead of recursion.

Example:
    store = InMemoryStore("locations")
    tree = MaterializedPathTree(store, TreeSettings(path_separator="."))

    await tree.insert({"id": "eu", "name": "Europe"})
    await tree.insert({"id": "se", "name": "Sweden", "parent": "eu"})
    await tree.insert({"id": "sthlm", "name": "Stockholm", "parent": "se"})

    await tree.move("se", "af")               # se and sthlm now live under af
    forest = await tree.get_children_tree(sort="name")
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from treepath.core.database.exceptions import NotFoundError
from treepath.core.database.store import ID_FIELD
from treepath.core.exceptions import InvalidArgumentsError
from treepath.core.hierarchy.assembler import CHILDREN_FIELD, TreeAssembler
from treepath.core.hierarchy.codec import PATH_FIELD, PathCodec
from treepath.core.hierarchy.deletion import DeletionPolicy
from treepath.core.hierarchy.maintainer import PARENT_FIELD, PathMaintainer
from treepath.core.hierarchy.queries import QueryDerivation
from treepath.core.hierarchy.schemas import QueryArgs, TreeNode, TreeQueryArgs, coerce_args
from treepath.core.settings import get_tree_settings
from treepath.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from treepath.core.database.store import DocumentStore
    from treepath.core.hierarchy.queries import StoreQuery
    from treepath.core.settings import TreeSettings

_lazy_logger = get_lazy_logger(__name__)

NodeRef = Any
"""A node id, a mapping carrying ``id``, or a ``TreeNode``."""


def _without_derived(values: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if key not in (PATH_FIELD, CHILDREN_FIELD)}


def _shape(documents: list[dict[str, Any]], lean: bool) -> list[Any]:
    if lean:
        return documents
    return [TreeNode.model_validate(document) for document in documents]


class MaterializedPathTree:
    """Hierarchy operations for the nodes of one store.

    Args:
        store: Any ``DocumentStore`` implementation.
        settings: Tree configuration. Defaults to ``get_tree_settings()``.
    """

    def __init__(self, store: DocumentStore, settings: TreeSettings | None = None) -> None:
        self.store = store
        self.settings = settings or get_tree_settings()
        self.codec = PathCodec(self.settings.path_separator, self.settings.id_type)
        self.maintainer = PathMaintainer(store, self.codec, num_workers=self.settings.num_workers)
        self.deletion = DeletionPolicy(self.maintainer, self.settings.on_delete)
        self.queries = QueryDerivation(self.codec, default_lean=not self.settings.wrap_children_tree)
        self.assembler = TreeAssembler(self.codec)

    def __repr__(self) -> str:
        return f"MaterializedPathTree({self.store!r}, {self.codec!r}, on_delete={self.settings.on_delete})"

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def ref_id(value: NodeRef) -> Any:
        """Normalize a node or parent reference to an id."""
        if value is None:
            return None
        if isinstance(value, TreeNode):
            return value.id
        if isinstance(value, Mapping):
            if value.get(ID_FIELD) is None:
                raise InvalidArgumentsError("Node reference has no id")
            return value[ID_FIELD]
        return value

    def level(self, node: Mapping[str, Any] | TreeNode) -> int:
        """Depth of ``node``; roots are level 1."""
        path = node.path if isinstance(node, TreeNode) else node.get(PATH_FIELD)
        return self.codec.level(path)

    async def _require(self, node_id: Any) -> dict[str, Any]:
        document = await self.store.find_one({ID_FIELD: node_id})
        if document is None:
            raise NotFoundError(getattr(self.store, "collection", "nodes"), {"id": node_id})
        return document

    async def _resolve(self, node: NodeRef) -> dict[str, Any]:
        # snapshots may predate a move of an ancestor
        return await self._require(self.ref_id(node))

    async def _find(self, query: StoreQuery) -> list[dict[str, Any]]:
        return await self.store.find(
            query.filters,
            fields=query.fields,
            sort=query.sort,
            populate=query.populate,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def insert(self, document: Mapping[str, Any]) -> dict[str, Any]:
        """Insert a new node and compute its path.

        A missing ``id`` is generated according to ``id_type``; integer ids
        must be supplied.

        Raises:
            ParentNotFoundError: The parent does not exist. Nothing is written.
            InvalidArgumentsError: The id is missing or contains the separator.
        """
        values = _without_derived(document)
        if values.get(ID_FIELD) is None:
            values[ID_FIELD] = self.settings.id_type.generate()
            if values[ID_FIELD] is None:
                raise InvalidArgumentsError(f"{self.settings.id_type} ids must be supplied")
        values[PARENT_FIELD] = self.ref_id(values.get(PARENT_FIELD))

        plan = await self.maintainer.prepare(values)
        stored = await self.maintainer.apply(plan, values)
        return stored if stored is not None else values

    async def update(self, node: NodeRef, values: Mapping[str, Any]) -> dict[str, Any]:
        """Update a stored node, recomputing paths when ``parent`` changes.

        Raises:
            NotFoundError: The node does not exist.
            ParentNotFoundError: The new parent does not exist. Nothing is written.
            CycleDetectedError: The new parent is the node or one of its descendants.
            CascadeRewriteError: Some descendants could not be rewritten.
        """
        node_id = self.ref_id(node)
        previous = await self._require(node_id)
        changes = _without_derived(values)
        if ID_FIELD in changes and changes[ID_FIELD] != node_id:
            raise InvalidArgumentsError("Node ids cannot be changed", errors=[{"id": node_id}])
        if PARENT_FIELD in changes:
            changes[PARENT_FIELD] = self.ref_id(changes[PARENT_FIELD])

        candidate = {**previous, **changes}
        plan = await self.maintainer.prepare(candidate, previous)
        await self.maintainer.apply(plan, changes)
        _lazy_logger.debug(lambda: f"tree.update: {node_id} {plan.state} {plan.old_path} -> {plan.new_path}")
        return {**candidate, PATH_FIELD: plan.new_path}

    async def move(self, node: NodeRef, parent: NodeRef) -> dict[str, Any]:
        """Reparent ``node`` under ``parent`` (None makes it a root)."""
        return await self.update(node, {PARENT_FIELD: parent})

    async def save(self, document: Mapping[str, Any]) -> dict[str, Any]:
        """Insert ``document`` or update the stored node with the same id."""
        node_id = document.get(ID_FIELD)
        if node_id is not None and await self.store.find_one({ID_FIELD: node_id}) is not None:
            return await self.update(node_id, document)
        return await self.insert(document)

    async def delete(self, node: NodeRef) -> int:
        """Delete ``node`` according to the configured ``on_delete`` mode.

        A mapping or ``TreeNode`` only identifies the node; its stored
        ``path`` and ``parent`` decide what happens to the descendants.

        Returns:
            Number of removed nodes.
        """
        document = await self._resolve(node)
        return await self.deletion.delete(document)

    async def rebuild_paths(self, node: NodeRef) -> int:
        """Recompute the paths of ``node`` and its subtree from parent references.

        Finishes a move interrupted by a ``CascadeRewriteError``.
        """
        document = await self._resolve(node)
        return await self.maintainer.rebuild(document)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_node(self, node_id: Any, args: QueryArgs | Mapping[str, Any] | None = None, **options: Any) -> Any:
        """Node with ``node_id``, or None."""
        query_args = coerce_args(QueryArgs, args, options)
        query = self.queries.node_query(node_id, query_args)
        documents = await self._find(query)
        shaped = _shape(documents[:1], query.lean)
        return shaped[0] if shaped else None

    async def get_parent(self, node: NodeRef, args: QueryArgs | Mapping[str, Any] | None = None, **options: Any) -> Any:
        """Direct parent of ``node``, or None for roots."""
        query_args = coerce_args(QueryArgs, args, options)
        query = self.queries.parent_query(await self._resolve(node), query_args)
        documents = await self._find(query)
        shaped = _shape(documents[:1], query.lean)
        return shaped[0] if shaped else None

    async def get_children(
        self,
        node: NodeRef,
        args: QueryArgs | Mapping[str, Any] | None = None,
        *,
        recursive: bool = False,
        **options: Any,
    ) -> list[Any]:
        """Immediate children of ``node``, or every descendant when ``recursive``."""
        query_args = coerce_args(QueryArgs, args, options)
        document = await self._resolve(node)
        if recursive:
            query = self.queries.descendants_query(document, query_args)
        else:
            query = self.queries.children_query(document, query_args)
        return _shape(await self._find(query), query.lean)

    async def get_immediate_children(
        self, node: NodeRef, args: QueryArgs | Mapping[str, Any] | None = None, **options: Any
    ) -> list[Any]:
        return await self.get_children(node, args, recursive=False, **options)

    async def get_all_children(
        self, node: NodeRef, args: QueryArgs | Mapping[str, Any] | None = None, **options: Any
    ) -> list[Any]:
        return await self.get_children(node, args, recursive=True, **options)

    async def get_ancestors(
        self, node: NodeRef, args: QueryArgs | Mapping[str, Any] | None = None, **options: Any
    ) -> list[Any]:
        """Ancestors of ``node``; in store order unless a sort is given."""
        query_args = coerce_args(QueryArgs, args, options)
        query = self.queries.ancestors_query(await self._resolve(node), query_args)
        return _shape(await self._find(query), query.lean)

    async def get_children_tree(
        self,
        root: NodeRef | None = None,
        args: TreeQueryArgs | Mapping[str, Any] | None = None,
        **options: Any,
    ) -> list[Any]:
        """Nested tree below ``root``, or the whole forest when ``root`` is None.

        Keyword options are ``TreeQueryArgs`` fields (``filters``, ``fields``,
        ``sort``, ``populate``, ``lean``, ``min_level``, ``max_level``,
        ``recursive``, ``allow_empty_children``). They are validated before
        any store call.

        Raises:
            InvalidArgumentsError: Malformed arguments.
        """
        tree_args = coerce_args(TreeQueryArgs, args, options)
        root_document = await self._resolve(root) if root is not None else None
        tree_query = self.queries.tree_query(root_document, tree_args)

        rows = await self._find(tree_query.query)
        rows.sort(key=lambda row: self.codec.sort_key(row.get(PATH_FIELD)))
        roots = self.assembler.assemble(
            rows,
            sort=tree_query.sort,
            min_level=tree_query.min_level,
            max_level=tree_query.max_level,
            root_path=tree_query.root_path,
            allow_empty_children=tree_query.allow_empty_children,
        )
        _lazy_logger.debug(
            lambda: f"tree.get_children_tree: {len(rows)} rows -> {len(roots)} top-level nodes"
        )
        return _shape(roots, tree_query.query.lean)


__all__ = ["MaterializedPathTree", "NodeRef"]
