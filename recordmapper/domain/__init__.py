"""
Domain package for the record mapper.

Exports the compiled model records, tagged field values, constraint trees and
caller-facing option records. Keep this package focused on data definitions.
"""

from recordmapper.domain.constraints import Where, exclude_deleted, parse_where
from recordmapper.domain.models import (
    SYSTEM_KEYS,
    FieldBehavior,
    FieldKind,
    JoinedField,
    JoinSpec,
    ModelDefinition,
    ReferenceSpec,
)
from recordmapper.domain.options import ClientProps, FindOptions
from recordmapper.domain.values import Attachment, Increment, JsonAppend, JsonSet, Plain, Reference, coerce

__all__ = [
    "SYSTEM_KEYS",
    "FieldBehavior",
    "FieldKind",
    "JoinedField",
    "JoinSpec",
    "ModelDefinition",
    "ReferenceSpec",
    "ClientProps",
    "FindOptions",
    "Where",
    "exclude_deleted",
    "parse_where",
    "Attachment",
    "Increment",
    "JsonAppend",
    "JsonSet",
    "Plain",
    "Reference",
    "coerce",
]
