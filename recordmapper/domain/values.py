"""
Tagged field values.

Clients send structured values as JSON objects carrying a `kind` tag
(`Reference`, `File`, `Increment`, `JsonAppend`, `JsonSet`). `coerce` turns
them into the closed union below; anything untagged becomes `Plain`. Each
structured variant names the field kind allowed to receive it, so the type-tag
legality check in the mutation pipeline is a single comparison.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Mapping, Optional, Union

from recordmapper.domain.models import FieldKind


@dataclass(frozen=True)
class Plain:
    value: Any

    accepted_by: ClassVar[Optional[FieldKind]] = None


@dataclass(frozen=True)
class Reference:
    class_name: str
    id: Any

    accepted_by: ClassVar[Optional[FieldKind]] = FieldKind.REFERENCE
    label: ClassVar[str] = "References"
    target: ClassVar[str] = "keys defined as references"

    def to_display(self) -> Dict[str, Any]:
        return {"kind": "Reference", "className": self.class_name, "id": self.id}


@dataclass(frozen=True)
class Attachment:
    key: str

    accepted_by: ClassVar[Optional[FieldKind]] = FieldKind.ATTACHMENT
    label: ClassVar[str] = "Files"
    target: ClassVar[str] = "keys defined as files"


@dataclass(frozen=True)
class Increment:
    amount: Union[int, float]

    accepted_by: ClassVar[Optional[FieldKind]] = FieldKind.INTEGER
    label: ClassVar[str] = "Increments"
    target: ClassVar[str] = "keys with Integer parsers"


@dataclass(frozen=True)
class JsonAppend:
    path: str
    value: Any

    accepted_by: ClassVar[Optional[FieldKind]] = FieldKind.JSON
    label: ClassVar[str] = "JSON operations"
    target: ClassVar[str] = "keys with JSON parsers"


@dataclass(frozen=True)
class JsonSet:
    path: str
    value: Any

    accepted_by: ClassVar[Optional[FieldKind]] = FieldKind.JSON
    label: ClassVar[str] = "JSON operations"
    target: ClassVar[str] = "keys with JSON parsers"


FieldValue = Union[Plain, Reference, Attachment, Increment, JsonAppend, JsonSet]
Structured = (Reference, Attachment, Increment, JsonAppend, JsonSet)


@dataclass(frozen=True)
class IncrementOp:
    """Parsed increment; the resulting value is computed by the datastore."""

    amount: Union[int, float]


@dataclass(frozen=True)
class JsonPatchOp:
    """Parsed JSON patch; `operation` is "append" or "set", `value` is JSON text."""

    operation: str
    path: str
    value: str


def _from_mapping(raw: Mapping[str, Any]) -> FieldValue:
    kind = raw.get("kind")
    if kind == "Reference":
        return Reference(class_name=raw.get("className"), id=raw.get("id"))
    if kind == "File":
        return Attachment(key=raw.get("key"))
    if kind == "Increment":
        return Increment(amount=raw.get("value", raw.get("amount", 0)))
    if kind == "JsonAppend":
        return JsonAppend(path=raw.get("path", ""), value=raw.get("value"))
    if kind == "JsonSet":
        return JsonSet(path=raw.get("path", ""), value=raw.get("value"))
    return Plain(dict(raw))


def coerce(raw: Any) -> FieldValue:
    """
    Map a client-supplied value onto the tagged union.

    Already-tagged values are returned unchanged; mappings with a known `kind`
    become the matching variant; everything else is wrapped as `Plain`.
    """
    if isinstance(raw, (Plain,) + Structured):
        return raw
    if isinstance(raw, Mapping) and "kind" in raw:
        return _from_mapping(raw)
    return Plain(raw)


def unwrap(value: FieldValue) -> Any:
    """Return the payload validators and parsers receive for a tagged value."""
    if isinstance(value, Plain):
        return value.value
    return value


__all__ = [
    "Plain",
    "Reference",
    "Attachment",
    "Increment",
    "JsonAppend",
    "JsonSet",
    "FieldValue",
    "IncrementOp",
    "JsonPatchOp",
    "coerce",
    "unwrap",
]
