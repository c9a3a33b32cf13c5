"""Pydantic models for tree reads.

``QueryArgs`` / ``TreeQueryArgs`` replace positional argument juggling with
one explicit structure of named, optional fields. ``TreeNode`` is the
non-lean result type of tree reads.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from treepath.core.database.exceptions import InvalidFilterError
from treepath.core.database.filters import normalize_sort
from treepath.core.exceptions import InvalidArgumentsError


class TreeNode(BaseModel):
    """A node returned by a non-lean read.

    Caller fields (``name`` ...) are kept as extra attributes.

    Example:
        node = TreeNode.model_validate({"id": "se", "parent": "eu", "path": "eu.se", "name": "Sweden"})
        node.name
        'Sweden'
    """

    model_config = ConfigDict(
        extra="allow",
        from_attributes=True,
        populate_by_name=True,
    )

    id: Any = Field(..., description="Node identifier")
    parent: Any = Field(default=None, description="Parent identifier, None for roots")
    path: str | None = Field(default=None, description="Materialized path")
    children: list[TreeNode] | None = Field(
        default=None,
        description="Nested children, only populated by tree assembly",
    )


class QueryArgs(BaseModel):
    """Arguments shared by every node query.

    Attributes:
        filters: Extra filter conditions merged with the derived condition.
        fields: Projection as a space separated string, a sequence of names,
            or a ``{field: 1}`` mapping. None returns every field.
        sort: Mapping, ``(field, direction)`` pairs, or ``"name -created"``.
        populate: Reference fields to expand.
        lean: Return plain dicts (True) or TreeNode models (False).
            None falls back to the tree's settings.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    filters: dict[str, Any] = Field(default_factory=dict)
    fields: list[str] | None = None
    sort: list[tuple[str, int]] = Field(default_factory=list)
    populate: list[str] = Field(default_factory=list)
    lean: bool | None = None

    @field_validator("filters", mode="before")
    @classmethod
    def _none_filters(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("fields", mode="before")
    @classmethod
    def _normalize_fields(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            return value.split()
        if isinstance(value, Mapping):
            included = [name for name, flag in value.items() if flag]
            if not included:
                raise ValueError("fields mapping must include at least one field")
            return included
        return value

    @field_validator("sort", mode="before")
    @classmethod
    def _normalize_sort(cls, value: Any) -> Any:
        try:
            return normalize_sort(value)
        except InvalidFilterError as e:
            raise ValueError(str(e)) from e

    @field_validator("populate", mode="before")
    @classmethod
    def _normalize_populate(cls, value: Any) -> Any:
        if not value:
            return []
        if isinstance(value, str):
            return value.split()
        return value


class TreeQueryArgs(QueryArgs):
    """Arguments of a tree read.

    Attributes:
        min_level: Shallowest level included (1 = roots). Raised to the
            level below the root node for rooted reads.
        max_level: Deepest level included, None for unbounded.
        recursive: Whole subtree (True) or only the first level below the root.
        allow_empty_children: Keep ``children: []`` on leaves.
    """

    min_level: int = Field(default=1, ge=1)
    max_level: int | None = Field(default=None, ge=1)
    recursive: bool = True
    allow_empty_children: bool = True

    @model_validator(mode="after")
    def _check_levels(self) -> TreeQueryArgs:
        if self.max_level is not None and self.max_level < self.min_level:
            raise ValueError("max_level must be greater than or equal to min_level")
        return self


A = TypeVar("A", bound="QueryArgs")


def coerce_args(
    model: type[A],
    args: A | Mapping[str, Any] | None,
    overrides: Mapping[str, Any],
) -> A:
    """Build ``model`` from an instance, a mapping and keyword overrides.

    Raises:
        InvalidArgumentsError: If validation fails.
    """
    if args is not None and not isinstance(args, (model, Mapping)):
        raise InvalidArgumentsError(
            f"Expected {model.__name__} or a mapping, got {type(args).__name__}"
        )
    base: dict[str, Any] = {}
    if isinstance(args, QueryArgs):
        base = args.model_dump(exclude_unset=True)
    elif args is not None:
        base = dict(args)
    try:
        return model.model_validate({**base, **overrides})
    except ValidationError as e:
        raise InvalidArgumentsError(
            f"Invalid {model.__name__}",
            errors=[
                {"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()
            ],
        ) from e


__all__ = ["QueryArgs", "TreeNode", "TreeQueryArgs", "coerce_args"]
