"""
Field descriptor library: validators, parsers, formatters and pre-save hooks
shared by every schema.
"""

from recordmapper.fields import formatters, parsers, presave, validation

__all__ = [
    "formatters",
    "parsers",
    "presave",
    "validation",
]
