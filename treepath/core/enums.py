"""Enumerations shared by settings and the hierarchy layer."""

from __future__ import annotations

import uuid
from enum import StrEnum
from typing import Any


class OnDelete(StrEnum):
    """What happens to the descendants of a deleted node."""

    REPARENT = "REPARENT"
    DELETE = "DELETE"


class IdType(StrEnum):
    """Storage type of node identifiers.

    Only affects serialization: ids are written into paths with ``str()``
    and converted back with :meth:`parse` when a path is decomposed.
    """

    STR = "str"
    INT = "int"
    UUID = "uuid"

    def parse(self, segment: str) -> Any:
        """Convert a path segment back into an identifier."""
        if self is IdType.INT:
            return int(segment)
        if self is IdType.UUID:
            return uuid.UUID(segment)
        return segment

    def generate(self) -> Any:
        """Create a fresh identifier, or None when ids must be supplied."""
        if self is IdType.STR:
            return uuid.uuid4().hex
        if self is IdType.UUID:
            return uuid.uuid4()
        return None


__all__ = ["IdType", "OnDelete"]
