"""Document filter language shared by every store implementation.

Filters are plain mappings, the way a document store receives them:

    {"parent": "eu"}                               equality
    {"id": {"$in": ["eu", "se"]}}                  membership
    {"path": {"$startswith": "eu.se."}}            literal prefix
    {"$or": [{"id": "se"}, {"path": {...}}]}       disjunction
    {"$query": {"name": "Sweden"}}                 caller wrapper namespace

``parse_filters`` turns a mapping into ``Condition`` objects. Each condition
can evaluate itself against a document (in-memory store) and compile itself
to a SQLAlchemy clause (SQL store), so both stores agree on semantics.

Sort specifications are normalized here as well: a mapping
``{"name": 1, "created": -1}``, a sequence of ``(field, direction)`` pairs,
or a space separated string ``"name -created"``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import and_, false, or_, true

from treepath.core.database.exceptions import InvalidFilterError

if TYPE_CHECKING:
    from sqlalchemy.sql.elements import ColumnElement

QUERY_WRAPPER = "$query"
OP_IN = "$in"
OP_STARTSWITH = "$startswith"
OP_EQ = "$eq"
OP_OR = "$or"

ASCENDING = 1
DESCENDING = -1

_DIRECTIONS = {
    1: ASCENDING,
    -1: DESCENDING,
    "asc": ASCENDING,
    "ascending": ASCENDING,
    "desc": DESCENDING,
    "descending": DESCENDING,
}


def field_value(document: Any, name: str) -> Any:
    """Read a field from a mapping or an attribute-style object."""
    if isinstance(document, Mapping):
        return document.get(name)
    return getattr(document, name, None)


def column_for(model: type, name: str) -> Any:
    """Resolve a filter field to a mapped column attribute.

    Raises:
        InvalidFilterError: If the model has no such attribute.
    """
    column = getattr(model, name, None)
    if column is None:
        raise InvalidFilterError(
            f"Unknown field for {model.__name__}",
            filter_name=name,
        )
    return column


class Condition(ABC):
    """Base class for parsed filter conditions."""

    @abstractmethod
    def matches(self, document: Any) -> bool:
        """Evaluate the condition against a document."""

    @abstractmethod
    def to_clause(self, model: type) -> ColumnElement[bool]:
        """Compile the condition to a SQLAlchemy boolean clause."""


class Equals(Condition):
    """``field == value`` (``None`` matches missing or null fields)."""

    __slots__ = ("field", "value")

    def __init__(self, field: str, value: Any) -> None:
        self.field = field
        self.value = value

    def matches(self, document: Any) -> bool:
        return field_value(document, self.field) == self.value

    def to_clause(self, model: type) -> ColumnElement[bool]:
        column = column_for(model, self.field)
        if self.value is None:
            return column.is_(None)
        return column == self.value

    def __repr__(self) -> str:
        return f"Equals({self.field!r}, {self.value!r})"


class In(Condition):
    """``field in values``."""

    __slots__ = ("field", "values")

    def __init__(self, field: str, values: Sequence[Any]) -> None:
        self.field = field
        self.values = tuple(values)

    def matches(self, document: Any) -> bool:
        return field_value(document, self.field) in self.values

    def to_clause(self, model: type) -> ColumnElement[bool]:
        if not self.values:
            return false()
        return column_for(model, self.field).in_(self.values)

    def __repr__(self) -> str:
        return f"In({self.field!r}, {list(self.values)!r})"


class StartsWith(Condition):
    """Literal string prefix match (no pattern characters)."""

    __slots__ = ("field", "prefix")

    def __init__(self, field: str, prefix: str) -> None:
        self.field = field
        self.prefix = prefix

    def matches(self, document: Any) -> bool:
        value = field_value(document, self.field)
        return isinstance(value, str) and value.startswith(self.prefix)

    def to_clause(self, model: type) -> ColumnElement[bool]:
        # autoescape keeps "%" and "_" inside ids literal
        return column_for(model, self.field).startswith(self.prefix, autoescape=True)

    def __repr__(self) -> str:
        return f"StartsWith({self.field!r}, {self.prefix!r})"


class AllOf(Condition):
    """Conjunction. An empty conjunction matches everything."""

    __slots__ = ("conditions",)

    def __init__(self, conditions: Sequence[Condition]) -> None:
        self.conditions = tuple(conditions)

    def matches(self, document: Any) -> bool:
        return all(condition.matches(document) for condition in self.conditions)

    def to_clause(self, model: type) -> ColumnElement[bool]:
        if not self.conditions:
            return true()
        return and_(*(condition.to_clause(model) for condition in self.conditions))

    def __repr__(self) -> str:
        return f"AllOf({list(self.conditions)!r})"


class AnyOf(Condition):
    """Disjunction. An empty disjunction matches nothing."""

    __slots__ = ("conditions",)

    def __init__(self, conditions: Sequence[Condition]) -> None:
        self.conditions = tuple(conditions)

    def matches(self, document: Any) -> bool:
        return any(condition.matches(document) for condition in self.conditions)

    def to_clause(self, model: type) -> ColumnElement[bool]:
        if not self.conditions:
            return false()
        return or_(*(condition.to_clause(model) for condition in self.conditions))

    def __repr__(self) -> str:
        return f"AnyOf({list(self.conditions)!r})"


def unwrap_query(filters: Mapping[str, Any] | None) -> Mapping[str, Any]:
    """Return the effective conditions, looking inside a ``$query`` wrapper."""
    if not filters:
        return {}
    if QUERY_WRAPPER in filters:
        wrapped = filters[QUERY_WRAPPER]
        if not isinstance(wrapped, Mapping):
            raise InvalidFilterError("$query must be a mapping", filter_name=QUERY_WRAPPER)
        return wrapped
    return filters


def parse_filters(filters: Mapping[str, Any] | None) -> AllOf:
    """Parse a filter mapping into a condition tree.

    Raises:
        InvalidFilterError: On unknown operators or malformed operands.
    """
    conditions: list[Condition] = []
    for name, spec in unwrap_query(filters).items():
        if name == OP_OR:
            if isinstance(spec, (str, bytes)) or not isinstance(spec, Sequence):
                raise InvalidFilterError("$or expects a list of filters", filter_name=OP_OR)
            conditions.append(AnyOf([parse_filters(branch) for branch in spec]))
        elif name.startswith("$"):
            raise InvalidFilterError(f"Unsupported top-level operator {name!r}", filter_name=name)
        elif isinstance(spec, Mapping) and any(str(key).startswith("$") for key in spec):
            conditions.extend(_parse_operators(name, spec))
        else:
            conditions.append(Equals(name, spec))
    return AllOf(conditions)


def _parse_operators(name: str, spec: Mapping[str, Any]) -> list[Condition]:
    conditions: list[Condition] = []
    for operator, operand in spec.items():
        if operator == OP_EQ:
            conditions.append(Equals(name, operand))
        elif operator == OP_IN:
            if isinstance(operand, (str, bytes)) or not isinstance(operand, Sequence | set | frozenset):
                raise InvalidFilterError("$in expects a list of values", filter_name=name)
            conditions.append(In(name, list(operand)))
        elif operator == OP_STARTSWITH:
            if not isinstance(operand, str):
                raise InvalidFilterError("$startswith expects a string", filter_name=name)
            conditions.append(StartsWith(name, operand))
        else:
            raise InvalidFilterError(f"Unsupported operator {operator!r}", filter_name=name)
    return conditions


def normalize_sort(spec: Any) -> list[tuple[str, int]]:
    """Normalize a sort specification to ``[(field, 1 | -1), ...]``.

    Accepts a mapping, a sequence of pairs, or a space separated string where
    a leading ``-`` means descending.

    Raises:
        InvalidFilterError: On an unknown direction or malformed spec.
    """
    if not spec:
        return []
    if isinstance(spec, str):
        return [
            (token[1:], DESCENDING) if token.startswith("-") else (token, ASCENDING)
            for token in spec.split()
        ]
    items = spec.items() if isinstance(spec, Mapping) else spec
    normalized: list[tuple[str, int]] = []
    for item in items:
        try:
            name, direction = item
        except (TypeError, ValueError) as e:
            raise InvalidFilterError(f"Malformed sort entry {item!r}", filter_name="sort") from e
        key = direction.lower() if isinstance(direction, str) else direction
        if key not in _DIRECTIONS:
            raise InvalidFilterError(f"Unknown sort direction {direction!r}", filter_name=name)
        normalized.append((name, _DIRECTIONS[key]))
    return normalized


def _sort_key(name: str) -> Any:
    # None sorts first ascending, mirroring SQL NULLS FIRST on SQLite
    def key(record: Any) -> tuple[bool, Any]:
        value = field_value(record, name)
        return (value is not None, value)

    return key


T = TypeVar("T")


def sort_records(records: Sequence[T], spec: Sequence[tuple[str, int]]) -> list[T]:
    """Stable multi-key sort of records by a normalized sort spec."""
    ordered = list(records)
    for name, direction in reversed(spec):
        ordered.sort(key=_sort_key(name), reverse=direction == DESCENDING)
    return ordered


__all__ = [
    "ASCENDING",
    "DESCENDING",
    "OP_EQ",
    "OP_IN",
    "OP_OR",
    "OP_STARTSWITH",
    "QUERY_WRAPPER",
    "AllOf",
    "AnyOf",
    "Condition",
    "Equals",
    "In",
    "StartsWith",
    "column_for",
    "field_value",
    "normalize_sort",
    "parse_filters",
    "sort_records",
    "unwrap_query",
]
