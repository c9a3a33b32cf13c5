"""Document store exceptions.

Custom exceptions for store operations that provide better error
messages and typing than raw driver or SQLAlchemy exceptions.
"""
from __future__ import annotations

from typing import Any


class RepositoryError(Exception):
    """Base exception for document store operations.

    Raised when a store operation fails due to programming
    errors, configuration issues, or unexpected states.

    This is distinct from data-related errors (NotFoundError) and
    indicates a problem with the store itself.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        """Initialize repository error.

        Args:
            message: Error description
            details: Additional context about the error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class NotFoundError(RepositoryError):
    """Document not found in the store.

    Raised when updating or deleting a document by id that
    doesn't exist.

    Attributes:
        collection: Name of the collection or model searched
        identifier: The key/value that was searched for
    """

    def __init__(self, collection: str, identifier: dict[str, Any]):
        """Initialize not found error.

        Args:
            collection: Name of the collection (e.g., "locations")
            identifier: Key-value pairs used in the search (e.g., {"id": "eu"})
        """
        self.collection = collection
        self.identifier = identifier

        id_str = ", ".join(f"{k}={v!r}" for k, v in identifier.items())
        message = f"{collection} not found with {id_str}"

        super().__init__(message, details={"collection": collection, **identifier})

    def __repr__(self) -> str:
        """Repr for debugging."""
        return f"NotFoundError(collection={self.collection!r}, identifier={self.identifier!r})"


class InvalidFilterError(RepositoryError):
    """Invalid filter or query parameters.

    Raised when a filter uses an unknown operator, references a
    non-existent field, or carries a malformed value.
    """

    def __init__(self, message: str, filter_name: str | None = None):
        """Initialize invalid filter error.

        Args:
            message: Error description
            filter_name: Name of the problematic filter (if applicable)
        """
        details = {"filter": filter_name} if filter_name else {}
        super().__init__(message, details=details)


__all__ = [
    "InvalidFilterError",
    "NotFoundError",
    "RepositoryError",
]
