"""Document store layer.

Exports:
    - DocumentStore: async protocol the hierarchy layer talks to
    - InMemoryStore: dict-backed implementation
    - SQLAlchemyStore: async SQLAlchemy implementation
    - Base, TreeNodeMixin: declarative base and node columns for SQL models
    - Filter language helpers and store exceptions
"""

from __future__ import annotations

from treepath.core.database.base import NAMING_CONVENTION, Base
from treepath.core.database.exceptions import InvalidFilterError, NotFoundError, RepositoryError
from treepath.core.database.filters import normalize_sort, parse_filters, sort_records
from treepath.core.database.memory import InMemoryStore
from treepath.core.database.mixins import TreeNodeMixin
from treepath.core.database.sqlalchemy_store import SQLAlchemyStore
from treepath.core.database.store import ID_FIELD, DocumentStore

__all__ = [
    "ID_FIELD",
    "NAMING_CONVENTION",
    "Base",
    "DocumentStore",
    "InMemoryStore",
    "InvalidFilterError",
    "NotFoundError",
    "RepositoryError",
    "SQLAlchemyStore",
    "TreeNodeMixin",
    "normalize_sort",
    "parse_filters",
    "sort_records",
]
