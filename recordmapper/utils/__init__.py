"""
Utilities package for the record mapper.

Exports shared helpers for logging and other cross-cutting concerns.
Keep this package lightweight and free of schema-specific logic.
"""

from recordmapper.utils.logging import JsonFormatter, configure_logging, get_logger

__all__ = [
    "JsonFormatter",
    "configure_logging",
    "get_logger",
]
