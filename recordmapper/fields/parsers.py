"""
Shared parsers.

A parser turns a validated client value into what gets persisted. Reference and
attachment parsers are applied late by the mutation pipeline (after any
`before_save` hook), so they also accept the wire mapping form a hook may have
written back into the key map.
"""

from __future__ import annotations

import json as _json
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Mapping, Optional

from recordmapper.collaborators import SecurityProvider
from recordmapper.config import get_settings
from recordmapper.domain.values import (
    Attachment,
    Increment,
    IncrementOp,
    JsonAppend,
    JsonPatchOp,
    JsonSet,
    Reference,
    coerce,
)


def no_spaces(value: Any) -> Any:
    if value is None:
        return None
    return str(value).replace(" ", "")


def password(security: SecurityProvider, cost: Optional[int] = None) -> Callable[[Any], str]:
    """
    Build a parser that hashes plaintext passwords with the security collaborator.

    Parameters
    ----------
    security : SecurityProvider
        Object exposing `hash(plaintext, cost)`.
    cost : int, optional
        Hashing cost; defaults to `PASSWORD_HASH_COST` from settings.
    """

    def parse(value: Any) -> str:
        return security.hash(value, cost if cost is not None else get_settings().password_hash_cost)

    return parse


def integer(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, Increment):
        return IncrementOp(amount=value.amount)
    if isinstance(value, int):
        return value
    return int(float(value))


def float_(decimals: int) -> Callable[[Any], Optional[Decimal]]:
    quantum = Decimal(1).scaleb(-decimals)

    def parse(value: Any) -> Optional[Decimal]:
        if value is None:
            return None
        return Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)

    return parse


def to_utc(value: Any) -> datetime:
    """Read a datetime or ISO-8601 string, treating naive values as UTC."""
    if isinstance(value, datetime):
        moment = value
    else:
        text = str(value)
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        moment = datetime.fromisoformat(text)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).replace(microsecond=0)


def date(value: Any) -> Optional[datetime]:
    if not value:
        return None
    return to_utc(value)


def reference(value: Any) -> Any:
    """Reduce a reference to the target identifier."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        value = coerce(value)
    if isinstance(value, Reference):
        return value.id
    return value


def attachment(value: Any) -> Any:
    """Reduce an attachment to its storage key."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        value = coerce(value)
    if isinstance(value, Attachment):
        return value.key
    return value


def object_(value: Any) -> Optional[str]:
    if not value:
        return None
    if isinstance(value, str):
        return value
    return _json.dumps(value)


def json(value: Any) -> Any:
    if not value:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, JsonAppend):
        return JsonPatchOp(operation="append", path=value.path, value=_json.dumps(value.value))
    if isinstance(value, JsonSet):
        return JsonPatchOp(operation="set", path=value.path, value=_json.dumps(value.value))
    return _json.dumps(value)


__all__ = [
    "no_spaces",
    "password",
    "integer",
    "float_",
    "to_utc",
    "date",
    "reference",
    "attachment",
    "object_",
    "json",
]
