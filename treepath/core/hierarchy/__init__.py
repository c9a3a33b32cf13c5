"""Materialized path hierarchy.

Components:
    - PathCodec: path string arithmetic (child paths, levels, subtree filters)
    - TreeAssembler: flat path-ordered list to nested tree
    - PathMaintainer: path computation and cascading rewrites on writes
    - DeletionPolicy: DELETE / REPARENT handling of descendants
    - QueryDerivation: children, descendants, ancestors and tree queries
    - MaterializedPathTree: facade combining all of the above

Usage:
    from treepath.core.database import InMemoryStore
    from treepath.core.hierarchy import MaterializedPathTree

    tree = MaterializedPathTree(InMemoryStore())
    await tree.insert({"id": "eu"})
    await tree.insert({"id": "se", "parent": "eu"})
    ancestors = await tree.get_ancestors("se")
"""

from __future__ import annotations

# codec first: the database mixins import it while this package initializes
from treepath.core.hierarchy.codec import PATH_FIELD, PathCodec
from treepath.core.hierarchy.assembler import CHILDREN_FIELD, TreeAssembler, flatten_tree
from treepath.core.hierarchy.deletion import DeletionPolicy
from treepath.core.hierarchy.maintainer import (
    PARENT_FIELD,
    PathMaintainer,
    PathPlan,
    PathRewrite,
    PathState,
)
from treepath.core.hierarchy.queries import QueryDerivation, StoreQuery, TreeQuery, merge_filters
from treepath.core.hierarchy.schemas import QueryArgs, TreeNode, TreeQueryArgs
from treepath.core.hierarchy.tree import MaterializedPathTree

__all__ = [
    "CHILDREN_FIELD",
    "PARENT_FIELD",
    "PATH_FIELD",
    "DeletionPolicy",
    "MaterializedPathTree",
    "PathCodec",
    "PathMaintainer",
    "PathPlan",
    "PathRewrite",
    "PathState",
    "QueryArgs",
    "QueryDerivation",
    "StoreQuery",
    "TreeAssembler",
    "TreeNode",
    "TreeQuery",
    "TreeQueryArgs",
    "flatten_tree",
    "merge_filters",
]
