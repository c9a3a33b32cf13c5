"""Logging infrastructure.

Basic usage:
    import logging

    logger = logging.getLogger(__name__)
    logger.info("Node moved", extra={"node_id": "se", "operation": "tree.move"})

    # Lazy evaluation for expensive debug output
    from treepath.infra.logging import get_lazy_logger

    lazy_logger = get_lazy_logger(__name__)
    lazy_logger.debug(lambda: f"Rewrites: {render(rewrites)}")

    # Application startup
    from treepath.infra.logging import setup_logging

    setup_logging()
"""

from treepath.infra.logging.config import configure_logging, setup_logging, shutdown
from treepath.infra.logging.formatters import JSONFormatter
from treepath.infra.logging.lazy import LazyLoggerAdapter, LazyString, get_lazy_logger, lazy

__all__ = [
    "JSONFormatter",
    "LazyLoggerAdapter",
    "LazyString",
    "configure_logging",
    "get_lazy_logger",
    "lazy",
    "setup_logging",
    "shutdown",
]
