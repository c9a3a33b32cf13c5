"""Materialized path tree settings.

Environment variables use TREE_ prefix.
Example: TREE_PATH_SEPARATOR=".", TREE_ON_DELETE=DELETE, TREE_NUM_WORKERS=8
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from treepath.core.enums import IdType, OnDelete

from ._sanitizers import sanitize_inline_numeric


class TreeSettings(BaseSettings):
    """Tree configuration, fixed per node collection.

    Attributes:
        path_separator: Token joining ids inside a path. Must never appear
            inside an id's string form.
        on_delete: REPARENT moves children up to the deleted node's parent,
            DELETE removes the whole subtree.
        id_type: Storage type of node ids (serialization only).
        num_workers: Concurrent in-flight updates per cascade.
        wrap_children_tree: Return TreeNode models instead of dicts from
            tree reads unless the caller asks for ``lean`` explicitly.

    Example:
        settings = TreeSettings(path_separator=".", on_delete=OnDelete.DELETE)
    """

    path_separator: str = Field(
        default="#",
        min_length=1,
        max_length=8,
        description="Separator between ids in a materialized path",
    )
    on_delete: OnDelete = Field(
        default=OnDelete.REPARENT,
        description="Deletion policy for descendants (REPARENT|DELETE)",
    )
    id_type: IdType = Field(
        default=IdType.STR,
        description="Storage type of node identifiers (str|int|uuid)",
    )
    num_workers: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum concurrent updates issued by one cascade",
    )
    wrap_children_tree: bool = Field(
        default=False,
        description="Default tree reads to TreeNode models instead of plain dicts",
    )

    # ──────────────────────────────────────────────────────────────
    # Validators
    # ──────────────────────────────────────────────────────────────

    @field_validator("path_separator")
    @classmethod
    def _reject_whitespace(cls, value: str) -> str:
        if any(ch.isspace() for ch in value):
            raise ValueError("path_separator must not contain whitespace")
        return value

    @field_validator("on_delete", mode="before")
    @classmethod
    def _normalize_on_delete(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("num_workers", mode="before")
    @classmethod
    def _normalize_numeric(cls, value: Any) -> Any:
        """Allow numeric env vars with inline comments."""
        return sanitize_inline_numeric(value)

    model_config = SettingsConfigDict(
        env_prefix="TREE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
