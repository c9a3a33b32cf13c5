"""In-memory document store.

Keeps documents in an insertion-ordered dict keyed by id. Reads and writes
deep-copy documents so callers never hold live references into the store.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Hashable
from typing import TYPE_CHECKING, Any

from treepath.core.database.exceptions import NotFoundError, RepositoryError
from treepath.core.database.filters import parse_filters, sort_records
from treepath.core.database.store import ID_FIELD, project

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Dict-backed ``DocumentStore``.

    Each operation yields to the event loop once, so concurrent cascades
    interleave the way they would against a networked store.

    Example:
        store = InMemoryStore("locations")
        tree = MaterializedPathTree(store, TreeSettings(path_separator="."))
        await tree.insert({"id": "eu", "name": "Europe"})
    """

    def __init__(self, collection: str = "nodes") -> None:
        self.collection = collection
        self._documents: dict[Any, dict[str, Any]] = {}

    def __len__(self) -> int:
        return len(self._documents)

    def snapshot(self) -> dict[Any, dict[str, Any]]:
        """Deep copy of every stored document keyed by id."""
        return copy.deepcopy(self._documents)

    async def find_one(self, filters: Mapping[str, Any]) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        condition = parse_filters(filters)
        for document in self._documents.values():
            if condition.matches(document):
                return copy.deepcopy(document)
        return None

    async def find(
        self,
        filters: Mapping[str, Any] | None = None,
        *,
        fields: Sequence[str] | None = None,
        sort: Sequence[tuple[str, int]] | None = None,
        populate: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        await asyncio.sleep(0)
        condition = parse_filters(filters)
        matched = [doc for doc in self._documents.values() if condition.matches(doc)]
        if sort:
            matched = sort_records(matched, sort)

        results = []
        for document in matched:
            result = copy.deepcopy(project(document, fields))
            for name in populate or ():
                reference = result.get(name)
                if isinstance(reference, Hashable) and reference in self._documents:
                    result[name] = copy.deepcopy(self._documents[reference])
            results.append(result)
        return results

    async def insert_one(self, document: Mapping[str, Any]) -> dict[str, Any]:
        await asyncio.sleep(0)
        node_id = document.get(ID_FIELD)
        if node_id is None:
            raise RepositoryError("Document has no id", details={"collection": self.collection})
        if node_id in self._documents:
            raise RepositoryError(
                "Duplicate id",
                details={"collection": self.collection, "id": node_id},
            )
        self._documents[node_id] = copy.deepcopy(dict(document))
        return copy.deepcopy(self._documents[node_id])

    async def update_one(self, node_id: Any, values: Mapping[str, Any]) -> None:
        await asyncio.sleep(0)
        document = self._documents.get(node_id)
        if document is None:
            raise NotFoundError(self.collection, {"id": node_id})
        document.update(copy.deepcopy(dict(values)))

    async def delete_one(self, node_id: Any) -> None:
        await asyncio.sleep(0)
        if self._documents.pop(node_id, None) is None:
            raise NotFoundError(self.collection, {"id": node_id})

    async def delete_many(self, filters: Mapping[str, Any]) -> int:
        await asyncio.sleep(0)
        condition = parse_filters(filters)
        doomed = [key for key, doc in self._documents.items() if condition.matches(doc)]
        for key in doomed:
            del self._documents[key]
        logger.debug(
            "Deleted documents",
            extra={"collection": self.collection, "count": len(doomed)},
        )
        return len(doomed)


__all__ = ["InMemoryStore"]
