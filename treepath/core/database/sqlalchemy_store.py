"""Async SQLAlchemy implementation of the document store protocol.

Rows of a declarative model (normally one using ``TreeNodeMixin``) are
exposed as plain dicts keyed by mapped column name. Each store call runs in
its own session and transaction, so the concurrent updates of a cascade
never share a session.

Example:
    engine = create_async_engine("postgresql+psycopg://...")
    session_factory = async_sessionmaker(engine, expire_on_commit=False)
    store = SQLAlchemyStore(session_factory, Location)
    tree = MaterializedPathTree(store)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete as sql_delete
from sqlalchemy import inspect as sa_inspect
from sqlalchemy import select, update
from sqlalchemy.orm import selectinload

from treepath.core.database.exceptions import InvalidFilterError, NotFoundError, RepositoryError
from treepath.core.database.filters import DESCENDING, column_for, parse_filters
from treepath.core.database.store import ID_FIELD, project
from treepath.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class SQLAlchemyStore:
    """``DocumentStore`` backed by one SQLAlchemy model.

    Args:
        session_factory: ``async_sessionmaker`` producing AsyncSession objects.
        model: Declarative model class with an ``id`` primary key column.
    """

    __slots__ = ("_columns", "_lazy", "_logger", "_relationships", "model", "session_factory")

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], model: type) -> None:
        self.session_factory = session_factory
        self.model = model
        mapper = sa_inspect(model)
        self._columns = [attr.key for attr in mapper.column_attrs]
        self._relationships = {rel.key for rel in mapper.relationships}
        if ID_FIELD not in self._columns:
            raise RepositoryError(
                "Model has no id column",
                details={"model": model.__name__},
            )
        self._logger = logging.getLogger(f"store.{model.__name__}")
        self._lazy = get_lazy_logger(f"store.{model.__name__}")

    def _to_dict(self, instance: Any, populate: Sequence[str] = ()) -> dict[str, Any]:
        document = {name: getattr(instance, name) for name in self._columns}
        for name in populate:
            related = getattr(instance, name)
            if related is None:
                document[name] = None
            elif isinstance(related, list | tuple | set):
                document[name] = [self._related_dict(item) for item in related]
            else:
                document[name] = self._related_dict(related)
        return document

    @staticmethod
    def _related_dict(instance: Any) -> dict[str, Any]:
        mapper = sa_inspect(type(instance))
        return {attr.key: getattr(instance, attr.key) for attr in mapper.column_attrs}

    def _check_fields(self, values: Mapping[str, Any]) -> None:
        unknown = sorted(set(values) - set(self._columns))
        if unknown:
            raise RepositoryError(
                "Unknown fields",
                details={"model": self.model.__name__, "fields": unknown},
            )

    async def find_one(self, filters: Mapping[str, Any]) -> dict[str, Any] | None:
        stmt = select(self.model).where(parse_filters(filters).to_clause(self.model)).limit(1)
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            instance = result.scalar_one_or_none()
            document = self._to_dict(instance) if instance is not None else None

        self._lazy.debug(
            lambda: f"store.find_one: {self.model.__name__} {filters!r} -> "
            f"{'found' if document else 'not found'}"
        )
        return document

    async def find(
        self,
        filters: Mapping[str, Any] | None = None,
        *,
        fields: Sequence[str] | None = None,
        sort: Sequence[tuple[str, int]] | None = None,
        populate: Sequence[str] | None = None,
    ) -> list[dict[str, Any]]:
        stmt = select(self.model).where(parse_filters(filters).to_clause(self.model))

        for name, direction in sort or ():
            column = column_for(self.model, name)
            stmt = stmt.order_by(column.desc() if direction == DESCENDING else column.asc())

        populate = list(populate or ())
        for name in populate:
            if name not in self._relationships:
                raise InvalidFilterError(
                    f"{self.model.__name__} has no relationship to populate",
                    filter_name=name,
                )
            stmt = stmt.options(selectinload(getattr(self.model, name)))

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            documents = [
                project(self._to_dict(instance, populate), [*fields, *populate] if fields is not None else None)
                for instance in result.scalars().all()
            ]

        self._lazy.debug(
            lambda: f"store.find: {self.model.__name__} {filters!r} -> {len(documents)} rows"
        )
        return documents

    async def insert_one(self, document: Mapping[str, Any]) -> dict[str, Any]:
        self._check_fields(document)
        async with self.session_factory() as session, session.begin():
            instance = self.model(**dict(document))
            session.add(instance)
            await session.flush()
            stored = self._to_dict(instance)

        self._lazy.debug(lambda: f"store.insert_one: {self.model.__name__}({stored[ID_FIELD]})")
        return stored

    async def update_one(self, node_id: Any, values: Mapping[str, Any]) -> None:
        self._check_fields(values)
        stmt = (
            update(self.model)
            .where(column_for(self.model, ID_FIELD) == node_id)
            .values(**dict(values))
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session, session.begin():
            result = await session.execute(stmt)

        if result.rowcount == 0:
            raise NotFoundError(self.model.__name__, {"id": node_id})
        self._lazy.debug(
            lambda: f"store.update_one: {self.model.__name__}({node_id}) set {sorted(values)}"
        )

    async def delete_one(self, node_id: Any) -> None:
        stmt = (
            sql_delete(self.model)
            .where(column_for(self.model, ID_FIELD) == node_id)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session, session.begin():
            result = await session.execute(stmt)

        if result.rowcount == 0:
            raise NotFoundError(self.model.__name__, {"id": node_id})

    async def delete_many(self, filters: Mapping[str, Any]) -> int:
        stmt = (
            sql_delete(self.model)
            .where(parse_filters(filters).to_clause(self.model))
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session, session.begin():
            result = await session.execute(stmt)

        count = result.rowcount or 0
        self._logger.info(
            "Bulk delete",
            extra={"model": self.model.__name__, "count": count, "operation": "store.delete_many"},
        )
        return count


__all__ = ["SQLAlchemyStore"]
