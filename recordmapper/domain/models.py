"""
Domain models for the record mapper.

Defines the compiled `ModelDefinition` and the small records derived from it
(reference specs, join specs, field behaviors, projection sources). A model
definition is built once at startup by the schema compiler and treated as
read-only shared state afterwards.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Dict, FrozenSet, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from recordmapper.collaborators import StorageProvider
    from recordmapper.domain.constraints import Where

ID = "id"
CREATED_AT = "created_at"
UPDATED_AT = "updated_at"
DELETED_AT = "deleted_at"

SYSTEM_KEYS: Tuple[str, ...] = (ID, CREATED_AT, UPDATED_AT, DELETED_AT)

Validator = Callable[[Any, str], Optional[str]]
Parser = Callable[[Any], Any]
Formatter = Callable[[Any, "ModelDefinition"], Any]


class FieldKind(str, Enum):
    PLAIN = "plain"
    REFERENCE = "reference"
    ATTACHMENT = "attachment"
    INTEGER = "integer"
    JSON = "json"


class ReferenceSpec(BaseModel):
    """
    Declaration of a reference (pointer) field inside `keys.pointers`.
    """

    class_name: str = Field(..., alias="className", description="Target class name.")
    via: Optional[str] = Field(
        None, description="Join column; `alias.column` reaches through another join."
    )
    where: Optional[Dict[str, Any]] = Field(None, description="Extra join filter.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "extra": "forbid",
    }

    @property
    def is_second_level(self) -> bool:
        return bool(self.via and "." in self.via) or bool(self.where)


@dataclass(frozen=True)
class JoinSpec:
    class_name: str
    alias: str
    via: str
    to: str = ID
    where: Optional["Where"] = None


@dataclass(frozen=True)
class JoinedField:
    """Projection source read from a joined alias instead of the base table."""

    alias: str
    field: str


Source = Union[str, JoinedField]


@dataclass(frozen=True)
class FieldBehavior:
    name: str
    kind: FieldKind = FieldKind.PLAIN
    validate: Optional[Validator] = None
    parse: Optional[Parser] = None
    format: Optional[Formatter] = None


@dataclass(frozen=True)
class ModelDefinition:
    """
    Immutable result of compiling a schema config.

    The four key categories are always present; `behaviors` holds the resolved
    validate/parse/format table for every field that declares one.
    """

    class_name: str
    source: str
    viewable: Tuple[str, ...] = ()
    actionable: Tuple[str, ...] = ()
    pointers: Mapping[str, ReferenceSpec] = field(default_factory=lambda: MappingProxyType({}))
    files: FrozenSet[str] = frozenset()
    behaviors: Mapping[str, FieldBehavior] = field(default_factory=lambda: MappingProxyType({}))
    before_save: Optional[Callable[..., Any]] = None
    after_save: Optional[Callable[..., Any]] = None
    storage: Optional["StorageProvider"] = None

    def behavior(self, key: str) -> FieldBehavior:
        return self.behaviors.get(key) or FieldBehavior(name=key)

    def is_reference(self, key: str) -> bool:
        return key in self.pointers

    def is_attachment(self, key: str) -> bool:
        return key in self.files

    def _functions(self, attr: str) -> Mapping[str, Callable[..., Any]]:
        table = {
            name: getattr(behavior, attr)
            for name, behavior in self.behaviors.items()
            if getattr(behavior, attr) is not None
        }
        return MappingProxyType(table)

    @property
    def validate(self) -> Mapping[str, Validator]:
        return self._functions("validate")

    @property
    def parse(self) -> Mapping[str, Parser]:
        return self._functions("parse")

    @property
    def format(self) -> Mapping[str, Formatter]:
        return self._functions("format")


__all__ = [
    "ID",
    "CREATED_AT",
    "UPDATED_AT",
    "DELETED_AT",
    "SYSTEM_KEYS",
    "FieldKind",
    "ReferenceSpec",
    "JoinSpec",
    "JoinedField",
    "Source",
    "FieldBehavior",
    "ModelDefinition",
]
