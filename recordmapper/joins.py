"""
Join planner.

Derives one `JoinSpec` per reference field, in declaration order. The join
column defaults to `<field>_id`; a dotted `via` (`company.owner_id`) joins
through another alias. Join specs are rebuilt on every read, never stored.
"""

from __future__ import annotations

from typing import List

from recordmapper.domain.constraints import parse_where
from recordmapper.domain.models import ID, JoinSpec, ModelDefinition
from recordmapper.projection import join_column


def plan_joins(definition: ModelDefinition) -> List[JoinSpec]:
    joins: List[JoinSpec] = []
    for alias in dict.fromkeys(definition.pointers):
        pointer = definition.pointers[alias]
        joins.append(
            JoinSpec(
                class_name=pointer.class_name,
                alias=alias,
                via=join_column(definition, alias),
                to=ID,
                where=parse_where(pointer.where) if pointer.where else None,
            )
        )
    return joins


__all__ = ["plan_joins"]
