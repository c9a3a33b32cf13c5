"""Exceptions raised by tree maintenance and tree queries.

All tree errors carry a human readable message plus a ``details`` dict so
callers can log them with structured context. Store-level failures
(``treepath.core.database.exceptions``) are not wrapped and propagate
unchanged, except inside cascades where they are collected into a
``CascadeRewriteError``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Sequence


class TreeError(Exception):
    """Base exception for materialized path tree operations.

    Attributes:
        message: Error description.
        details: Additional context about the error.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize tree error.

        Args:
            message: Error description.
            details: Additional context about the error.
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


class ParentNotFoundError(TreeError):
    """The referenced parent does not resolve to a stored node.

    Fatal to the triggering write: the node is not persisted and no
    cascade is attempted.
    """

    def __init__(self, parent_id: Any, node_id: Any = None) -> None:
        """Initialize parent not found error.

        Args:
            parent_id: Identifier that failed to resolve.
            node_id: Node being written, if known.
        """
        self.parent_id = parent_id
        self.node_id = node_id
        details: dict[str, Any] = {"parent": parent_id}
        if node_id is not None:
            details["node"] = node_id
        super().__init__("Parent node not found", details=details)


class CascadeRewriteError(TreeError):
    """One or more cascade updates failed.

    Updates applied before the failure are not rolled back, so the tree
    may be partially rewritten. A retried delete also rebuilds descendants
    still stored under the deleted node's path, and
    ``MaterializedPathTree.rebuild_paths`` finishes an interrupted move:
    paths that are already correct are skipped.

    Attributes:
        failures: ``(node_id, exception)`` pairs for every failed update.
    """

    def __init__(
        self,
        operation: str,
        failures: Sequence[tuple[Any, BaseException]],
        *,
        node_id: Any = None,
    ) -> None:
        """Initialize cascade failure.

        Args:
            operation: Cascade kind (``"reparent"`` or ``"delete"``).
            failures: Failed ``(node_id, exception)`` pairs.
            node_id: Node whose write or delete triggered the cascade.
        """
        self.operation = operation
        self.failures = list(failures)
        self.node_id = node_id
        super().__init__(
            f"Cascade {operation} failed for {len(self.failures)} node(s)",
            details={
                "node": node_id,
                "failed": [failed_id for failed_id, _ in self.failures],
            },
        )


class InvalidArgumentsError(TreeError):
    """Malformed arguments rejected before any store interaction."""

    def __init__(self, message: str, errors: list[Any] | None = None) -> None:
        """Initialize invalid arguments error.

        Args:
            message: Error description.
            errors: Validation error entries, if any.
        """
        self.errors = errors or []
        super().__init__(message, details={"errors": self.errors} if self.errors else None)


class CycleDetectedError(TreeError):
    """A node would become its own ancestor."""

    def __init__(self, node_id: Any, parent_id: Any) -> None:
        """Initialize cycle error.

        Args:
            node_id: Node being reparented.
            parent_id: Requested new parent, which is the node or one of its descendants.
        """
        self.node_id = node_id
        self.parent_id = parent_id
        super().__init__(
            "Cannot move a node under itself or one of its descendants",
            details={"node": node_id, "parent": parent_id},
        )


__all__ = [
    "CascadeRewriteError",
    "CycleDetectedError",
    "InvalidArgumentsError",
    "ParentNotFoundError",
    "TreeError",
]
