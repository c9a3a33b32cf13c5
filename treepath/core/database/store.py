"""Document store protocol consumed by the hierarchy layer.

The tree logic never talks to a database directly. It issues the filters and
updates described in ``treepath.core.database.filters`` against any object
implementing ``DocumentStore``. Two implementations ship with the package:

- ``InMemoryStore``: dict-backed, for tests and embedding
- ``SQLAlchemyStore``: async SQLAlchemy over a model using ``TreeNodeMixin``

Documents cross this boundary as plain dicts. Every call is an independent
unit of work; implementations must tolerate concurrent calls, since cascades
issue several updates at once.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

ID_FIELD = "id"


@runtime_checkable
class DocumentStore(Protocol):
    """Async document store primitives used by the tree core."""

    async def find_one(self, filters: Mapping[str, Any]) -> dict[str, Any] | None:
        """Return the first document matching ``filters`` or None."""
        ...

    async def find(
        self,
        filters: Mapping[str, Any] | None = None,
        *,
        fields: Sequence[str] | None = None,
        sort: Sequence[tuple[str, int]] | None = None,
        populate: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        """Return documents matching ``filters``.

        Args:
            filters: Filter mapping (None matches everything).
            fields: Projection; ``id`` is always included. None returns all fields.
            sort: Ordered ``(field, 1 | -1)`` pairs. None keeps store order.
            populate: Reference fields to expand into the referenced documents.
        """
        ...

    async def insert_one(self, document: Mapping[str, Any]) -> dict[str, Any]:
        """Insert a document and return the stored copy."""
        ...

    async def update_one(self, node_id: Any, values: Mapping[str, Any]) -> None:
        """Set ``values`` on the document with ``node_id``.

        Raises:
            NotFoundError: If no document has this id.
        """
        ...

    async def delete_one(self, node_id: Any) -> None:
        """Delete the document with ``node_id``.

        Raises:
            NotFoundError: If no document has this id.
        """
        ...

    async def delete_many(self, filters: Mapping[str, Any]) -> int:
        """Delete every document matching ``filters`` and return the count."""
        ...


def project(document: Mapping[str, Any], fields: Sequence[str] | None) -> dict[str, Any]:
    """Copy ``document`` keeping only ``fields`` (plus ``id``)."""
    if fields is None:
        return dict(document)
    keep = {ID_FIELD, *fields}
    return {key: value for key, value in document.items() if key in keep}


__all__ = ["ID_FIELD", "DocumentStore", "project"]
