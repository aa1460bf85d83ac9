"""
Key projection resolver.

Computes which keys a caller may read (view projection) or write (action
projection) for a compiled model, and where each key is sourced from. Reference
fields are read from the joined alias's `id` and written to their join column;
dotted keys such as `author.name` select a sub-field of a joined reference.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from recordmapper.domain.models import DELETED_AT, ID, SYSTEM_KEYS, JoinedField, ModelDefinition, Source

VIEWABLE = "viewable"
ACTIONABLE = "actionable"


@dataclass(frozen=True)
class DefinedKeys:
    available: Tuple[str, ...]
    aliased: Dict[str, Source]


@dataclass(frozen=True)
class ViewProjection:
    viewable: Dict[str, Source] = field(default_factory=dict)
    pointers: Dict[str, Tuple[str, ...]] = field(default_factory=dict)


def join_column(definition: ModelDefinition, key: str) -> str:
    """Column a reference field is stored in; defaults to `<key>_id`."""
    return definition.pointers[key].via or f"{key}_id"


def defined_keys(definition: ModelDefinition, category: str) -> DefinedKeys:
    """
    List the keys of a category with their source aliases.

    Parameters
    ----------
    definition : ModelDefinition
        Compiled model.
    category : str
        Either "viewable" or "actionable".
    """
    aliased: Dict[str, Source] = {}
    for key in getattr(definition, category):
        source: Source = key
        if definition.is_reference(key):
            source = JoinedField(alias=key, field=ID) if category == VIEWABLE else join_column(definition, key)
        aliased[key] = source
    return DefinedKeys(available=tuple(aliased), aliased=aliased)


def resolve_view_projection(
    definition: ModelDefinition,
    requested: Optional[Iterable[str]] = None,
) -> ViewProjection:
    """
    Compute the keys to select for a read.

    Bare keys are intersected with the viewable keys (all of them when none is
    requested); dotted keys select sub-fields of declared references. `id`,
    `created_at` and `updated_at` are always selected and `deleted_at` never is.
    """
    pointers: Dict[str, List[str]] = {}
    selected: List[str] = []
    for key in requested or ():
        if "." in key:
            parts = key.split(".")
            pointer_name, field_name = parts[0], parts[1]
            if not definition.is_reference(pointer_name):
                continue
            fields = pointers.setdefault(pointer_name, [])
            if field_name not in fields:
                fields.append(field_name)
        elif key not in selected:
            selected.append(key)

    defined = defined_keys(definition, VIEWABLE)
    if selected:
        keys_to_view = [key for key in selected if key in defined.aliased]
    else:
        keys_to_view = list(defined.available)
    keys_to_view.extend(key for key in SYSTEM_KEYS if key not in keys_to_view)
    keys_to_view = [key for key in keys_to_view if key != DELETED_AT]

    viewable: Dict[str, Source] = {key: defined.aliased.get(key, key) for key in keys_to_view}
    for pointer_name, fields in pointers.items():
        for field_name in fields:
            viewable[f"{pointer_name}.{field_name}"] = JoinedField(alias=pointer_name, field=field_name)

    return ViewProjection(
        viewable=viewable,
        pointers={name: tuple(fields) for name, fields in pointers.items()},
    )


def resolve_action_projection(
    definition: ModelDefinition,
    supplied: Optional[Mapping[str, object]] = None,
) -> List[str]:
    """Keys of `supplied` the caller may write, in supplied order, never a system key."""
    actionable = set(definition.actionable)
    return [key for key in (supplied or {}) if key in actionable and key not in SYSTEM_KEYS]


def action_sources(definition: ModelDefinition) -> Dict[str, Source]:
    """Persisted column for each actionable key."""
    return defined_keys(definition, ACTIONABLE).aliased


__all__ = [
    "DefinedKeys",
    "ViewProjection",
    "join_column",
    "defined_keys",
    "resolve_view_projection",
    "resolve_action_projection",
    "action_sources",
]
