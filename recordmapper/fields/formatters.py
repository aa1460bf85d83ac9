"""
Shared formatters.

A formatter is called as `formatter(value, definition)` and turns a stored
value into its client-facing display form. The model definition is passed so
the attachment formatter can reach the storage collaborator.
"""

from __future__ import annotations

import json as _json
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from recordmapper.domain.values import IncrementOp, JsonPatchOp, Reference
from recordmapper.fields.parsers import to_utc

if TYPE_CHECKING:
    from recordmapper.domain.models import ModelDefinition


def integer(value: Any, definition: Optional["ModelDefinition"] = None) -> Optional[int]:
    if value is None or isinstance(value, IncrementOp):
        return None
    return int(value)


def float_(decimals: int) -> Callable[..., Optional[str]]:
    def render(value: Any, definition: Optional["ModelDefinition"] = None) -> Optional[str]:
        if value is None:
            return None
        return f"{Decimal(str(value)):.{decimals}f}"

    return render


def date(value: Any, definition: Optional["ModelDefinition"] = None) -> Optional[str]:
    """Render a stored timestamp as an ISO-8601 string normalized to UTC."""
    if not value:
        return None
    return to_utc(value).isoformat(timespec="seconds")


def reference(class_name: str) -> Callable[..., Optional[Dict[str, Any]]]:
    """Build the formatter expanding an identifier into a reference display object."""

    def render(value: Any, definition: Optional["ModelDefinition"] = None) -> Optional[Dict[str, Any]]:
        if value is None:
            return None
        return Reference(class_name=class_name, id=value).to_display()

    return render


def attachment(value: Any, definition: Optional["ModelDefinition"] = None) -> Optional[Dict[str, Any]]:
    if not value:
        return None
    storage = definition.storage if definition is not None else None
    url = storage.get_url(value) if storage is not None else None
    return {"kind": "File", "key": value, "url": url}


def object_(value: Any, definition: Optional["ModelDefinition"] = None) -> Any:
    if not value:
        return None
    if isinstance(value, (str, bytes)):
        return _json.loads(value)
    return value


def json(value: Any, definition: Optional["ModelDefinition"] = None) -> Any:
    if value is None or isinstance(value, JsonPatchOp):
        return None
    if isinstance(value, (str, bytes)):
        return _json.loads(value)
    return value


__all__ = [
    "integer",
    "float_",
    "date",
    "reference",
    "attachment",
    "object_",
    "json",
]
