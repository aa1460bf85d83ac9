"""
Per-operation key container and request context.

A `KeyMap` holds the field values of one create/update/destroy call. The four
system keys can never be read or written through it; they live on dedicated
fields of the owning `Request`, which is what `before_save` / `after_save`
hooks receive.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, Mapping, Optional

from recordmapper.domain.models import CREATED_AT, DELETED_AT, ID, SYSTEM_KEYS, UPDATED_AT


class KeyMap:
    """
    Ordered, protected mapping of field name to value.
    """

    def __init__(self, keys: Optional[Mapping[str, Any]] = None) -> None:
        self._keys: Dict[str, Any] = {
            key: value for key, value in (keys or {}).items() if key not in SYSTEM_KEYS
        }

    def set(self, key: str, value: Any) -> "KeyMap":
        if key in SYSTEM_KEYS:
            return self
        self._keys[key] = value
        return self

    def get(self, key: str, default: Any = None) -> Any:
        if key in SYSTEM_KEYS:
            return None
        return self._keys.get(key, default)

    def discard(self, key: str) -> "KeyMap":
        self._keys.pop(key, None)
        return self

    def each(self, iterator: Callable[[Any], Any]) -> None:
        for value in list(self._keys.values()):
            iterator(value)

    def copy(self) -> Dict[str, Any]:
        return dict(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._keys))

    def __len__(self) -> int:
        return len(self._keys)

    def __repr__(self) -> str:
        return f"KeyMap({self._keys!r})"


@dataclass
class Request:
    keys: KeyMap
    is_new: bool = False
    is_destroyed: bool = False
    client: Optional[str] = None
    sdk_version: Optional[str] = None
    app_version: Optional[str] = None
    id: Any = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    def system_values(self) -> Dict[str, Any]:
        """System key values that are set, in declaration order."""
        values = {
            ID: self.id,
            CREATED_AT: self.created_at,
            UPDATED_AT: self.updated_at,
            DELETED_AT: self.deleted_at,
        }
        return {key: value for key, value in values.items() if value is not None}


__all__ = ["KeyMap", "Request"]
