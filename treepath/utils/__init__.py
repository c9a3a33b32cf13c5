"""Utility helpers."""

from treepath.utils.batch import BatchResult, run_bounded

__all__ = ["BatchResult", "run_bounded"]
