"""
Shared validators.

A validator is called as `validator(value, key)` and returns a message string
when the value is invalid, or None when it passes. Structured client values
arrive as the tagged variants from `recordmapper.domain.values`.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Optional

from recordmapper.domain.values import Attachment, Increment, Reference

_EMAIL = re.compile(
    r"^[-a-z0-9~!$%^&*_=+}{'?]+(\.[-a-z0-9~!$%^&*_=+}{'?]+)*"
    r"@([a-z0-9_][-a-z0-9_]*(\.[-a-z0-9_]+)*\.([a-z]){2,})?$",
    re.IGNORECASE,
)


def _length_message(key: str, min_length: int, max_length: Optional[int]) -> str:
    message = f"{key} must be greater than or equal to {min_length} characters"
    if max_length:
        message += f", and less than or equal to {max_length} characters"
    return message


def fixed_string(min_length: int, max_length: Optional[int] = None) -> Callable[[Any, str], Optional[str]]:
    def validate(value: Any, key: str) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, str):
            return _length_message(key, min_length, max_length)
        if len(value) < min_length or (max_length and len(value) > max_length):
            return _length_message(key, min_length, max_length)
        return None

    return validate


def password(min_length: int, max_length: Optional[int] = None) -> Callable[[Any, str], Optional[str]]:
    return fixed_string(min_length, max_length)


def email(value: Any, key: str) -> Optional[str]:
    if value is None:
        return None
    if not _EMAIL.match(str(value)):
        return f"{key} is not a valid email address"
    return None


def _is_integral(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, (float, str)):
        try:
            return float(value).is_integer()
        except ValueError:
            return False
    return False


def _is_number(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    try:
        float(value)
    except (TypeError, ValueError):
        return False
    return True


def integer(value: Any, key: str) -> Optional[str]:
    if value is None or isinstance(value, Increment):
        return None
    if not _is_integral(value):
        return f"{key} must be an integer or an increment object"
    return None


def positive_integer(value: Any, key: str) -> Optional[str]:
    if value is None:
        return None
    if not _is_integral(value) or float(value) < 0:
        return f"{key} must be a positive integer"
    return None


def float_(value: Any, key: str) -> Optional[str]:
    if value is None:
        return None
    if not _is_number(value):
        return f"{key} must be a float value"
    return None


def reference(class_name: str) -> Callable[[Any, str], Optional[str]]:
    """Build the validator auto-assigned to reference fields targeting `class_name`."""

    def validate(value: Any, key: str) -> Optional[str]:
        if value is None:
            return None
        if not isinstance(value, Reference) or value.class_name != class_name:
            return f"{key} must be a reference to `{class_name}`"
        return None

    return validate


def attachment(value: Any, key: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, Attachment):
        return f"{key} must be a file"
    return None


__all__ = [
    "fixed_string",
    "password",
    "email",
    "integer",
    "positive_integer",
    "float_",
    "reference",
    "attachment",
]
