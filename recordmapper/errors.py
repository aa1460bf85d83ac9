"""
Error kinds raised by the record mapper.

Compile-time errors (`MissingConfiguration`, `ForbiddenOperation`) abort schema
compilation. `InvalidObjectKey` rejects a single create/update/destroy call and
is recoverable by resubmitting corrected input.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    MISSING_CONFIGURATION = "MissingConfiguration"
    FORBIDDEN_OPERATION = "ForbiddenOperation"
    INVALID_OBJECT_KEY = "InvalidObjectKey"


class MapperError(Exception):
    """Base error carrying a code and a human-readable message."""

    code: ErrorCode

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value!r}, message={self.message!r})"


class MissingConfiguration(MapperError):
    code = ErrorCode.MISSING_CONFIGURATION


class ForbiddenOperation(MapperError):
    code = ErrorCode.FORBIDDEN_OPERATION


class InvalidObjectKey(MapperError):
    code = ErrorCode.INVALID_OBJECT_KEY


__all__ = [
    "ErrorCode",
    "MapperError",
    "MissingConfiguration",
    "ForbiddenOperation",
    "InvalidObjectKey",
]
