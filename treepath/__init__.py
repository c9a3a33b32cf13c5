"""treepath: materialized path trees over document stores.

Quick start:
    from treepath import InMemoryStore, MaterializedPathTree, TreeSettings

    tree = MaterializedPathTree(InMemoryStore(), TreeSettings(path_separator="."))
    await tree.insert({"id": "eu", "name": "Europe"})
    await tree.insert({"id": "se", "name": "Sweden", "parent": "eu"})
    forest = await tree.get_children_tree()
"""

from __future__ import annotations

from treepath.core.database import InMemoryStore, SQLAlchemyStore, TreeNodeMixin
from treepath.core.enums import IdType, OnDelete
from treepath.core.exceptions import (
    CascadeRewriteError,
    CycleDetectedError,
    InvalidArgumentsError,
    ParentNotFoundError,
    TreeError,
)
from treepath.core.hierarchy import MaterializedPathTree, PathCodec, TreeNode, TreeQueryArgs
from treepath.core.settings import TreeSettings

__version__ = "0.1.0"

__all__ = [
    "CascadeRewriteError",
    "CycleDetectedError",
    "IdType",
    "InMemoryStore",
    "InvalidArgumentsError",
    "MaterializedPathTree",
    "OnDelete",
    "ParentNotFoundError",
    "PathCodec",
    "SQLAlchemyStore",
    "TreeError",
    "TreeNode",
    "TreeNodeMixin",
    "TreeQueryArgs",
    "TreeSettings",
    "__version__",
]
