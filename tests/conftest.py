"""Pytest configuration and shared fixtures.

Organization:
    - Settings Fixtures: isolated TreeSettings for every test
    - Store Fixtures: in-memory store and a store with injectable failures
    - Tree Fixtures: MaterializedPathTree instances and a sample forest

The sample forest (separator ".") used across the suite:

    af                  Africa
    eu                  Europe
    ├── no              Norway
    └── se              Sweden
        └── sthlm       Stockholm
            └── globe   Globe
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

import pytest

from treepath.core.database import InMemoryStore
from treepath.core.database.exceptions import RepositoryError
from treepath.core.hierarchy import MaterializedPathTree
from treepath.core.settings import TreeSettings, clear_all_caches

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping


WORLD = [
    {"id": "af", "name": "Africa"},
    {"id": "eu", "name": "Europe"},
    {"id": "no", "name": "Norway", "parent": "eu"},
    {"id": "se", "name": "Sweden", "parent": "eu"},
    {"id": "sthlm", "name": "Stockholm", "parent": "se"},
    {"id": "globe", "name": "Globe", "parent": "sthlm"},
]


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Keep TREE_* / LOG_* variables of the host environment out of tests."""
    for key in list(os.environ):
        if key.startswith(("TREE_", "LOG_")):
            monkeypatch.delenv(key, raising=False)
    clear_all_caches()
    yield
    clear_all_caches()


@pytest.fixture
def settings() -> TreeSettings:
    """Tree settings with the "." separator used by the example scenarios."""
    return TreeSettings(path_separator=".")


# ============================================================================
# Store Fixtures
# ============================================================================


class FlakyStore(InMemoryStore):
    """In-memory store whose ``update_one`` fails for selected ids.

    Also records every call so tests can assert on the issued operations.
    """

    def __init__(self, collection: str = "locations") -> None:
        super().__init__(collection)
        self.fail_updates: set[Any] = set()
        self.calls: list[tuple[str, Any]] = []

    async def find_one(self, filters: Mapping[str, Any]) -> dict[str, Any] | None:
        self.calls.append(("find_one", dict(filters)))
        return await super().find_one(filters)

    async def find(self, filters: Mapping[str, Any] | None = None, **kwargs: Any) -> list[dict[str, Any]]:
        self.calls.append(("find", dict(filters or {})))
        return await super().find(filters, **kwargs)

    async def update_one(self, node_id: Any, values: Mapping[str, Any]) -> None:
        self.calls.append(("update_one", node_id))
        if node_id in self.fail_updates:
            raise RepositoryError("Simulated write failure", details={"id": node_id})
        await super().update_one(node_id, values)

    async def delete_many(self, filters: Mapping[str, Any]) -> int:
        self.calls.append(("delete_many", dict(filters)))
        return await super().delete_many(filters)

    def called(self, operation: str) -> list[Any]:
        return [argument for name, argument in self.calls if name == operation]


@pytest.fixture
def store() -> FlakyStore:
    """Empty in-memory store with failure injection."""
    return FlakyStore("locations")


# ============================================================================
# Tree Fixtures
# ============================================================================


@pytest.fixture
def make_tree(store) -> Callable[..., MaterializedPathTree]:
    """Factory for trees over the shared store with setting overrides.

    Example:
        def test_delete_mode(make_tree):
            tree = make_tree(on_delete="DELETE")
    """

    def factory(**overrides: Any) -> MaterializedPathTree:
        return MaterializedPathTree(store, TreeSettings(path_separator=".", **overrides))

    return factory


@pytest.fixture
def tree(make_tree) -> MaterializedPathTree:
    """Tree with default settings and the "." separator."""
    return make_tree()


@pytest.fixture
async def world(tree, store) -> FlakyStore:
    """Store populated with the sample forest; call log reset afterwards."""
    for document in WORLD:
        await tree.insert(document)
    store.calls.clear()
    return store


def paths(store: InMemoryStore) -> dict[Any, str | None]:
    """Map of id to stored path."""
    return {node_id: document.get("path") for node_id, document in store.snapshot().items()}


@pytest.fixture
def stored_paths() -> Callable[[InMemoryStore], dict[Any, str | None]]:
    return paths
