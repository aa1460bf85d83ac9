"""
Query assembler.

Read path: builds a view query with the planned joins, the resolved projection
and a constraint tree that always excludes soft-deleted rows (base table, every
joined alias, every nested subquery), then maps result rows back to client
shape. Write path: hands the pipeline's raw field map to an action query.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from recordmapper.collaborators import ActionQuery, ActionQueryFactory, Row, ViewQuery, ViewQueryFactory
from recordmapper.domain.constraints import Where, exclude_deleted, parse_where
from recordmapper.domain.models import ID, JoinedField, JoinSpec, ModelDefinition, Source
from recordmapper.domain.options import FindOptions
from recordmapper.joins import plan_joins
from recordmapper.projection import ViewProjection, resolve_view_projection


def _guard_join(join: JoinSpec) -> JoinSpec:
    if join.where is None:
        return join
    return replace(join, where=exclude_deleted(join.where, join.alias))


def guarded_where(definition: ModelDefinition, where: Any, joins: Iterable[JoinSpec]) -> Where:
    """Caller constraints plus soft-delete exclusion for the base table and every alias."""
    return exclude_deleted(parse_where(where), definition.source, [join.alias for join in joins])


def build_view_query(
    definition: ModelDefinition,
    factory: ViewQueryFactory,
    options: FindOptions,
) -> Tuple[ViewQuery, ViewProjection]:
    """
    Prepare a view query for `find`/`first`.

    Parameters
    ----------
    definition : ModelDefinition
        Compiled model being read.
    factory : ViewQueryFactory
        Builds the collaborator query for a source name.
    options : FindOptions
        Include list, constraints, sort, limit and skip.

    Returns
    -------
    tuple of (ViewQuery, ViewProjection)
        The configured query and the projection needed to map its rows.
    """
    query = factory(definition.source)

    joins = plan_joins(definition)
    if joins:
        query.joins([_guard_join(join) for join in joins])

    projection = resolve_view_projection(definition, options.include)
    query.select(projection.viewable)
    query.where(guarded_where(definition, options.where, joins))

    if options.limit:
        query.limit(options.limit)
    if options.skip:
        query.skip(options.skip)
    if options.sort:
        query.sort(options.sort)

    return query, projection


def first_options(definition: ModelDefinition, id: Any, include: Optional[Iterable[str]] = None) -> FindOptions:
    return FindOptions(
        include=list(include or []),
        where={f"{definition.source}.{ID}": {"eq": id}},
    )


def format_row(definition: ModelDefinition, viewable: Mapping[str, Source], row: Mapping[str, Any]) -> Row:
    """
    Map one flat result row to its client shape.

    Dotted reference sub-fields are pulled out of the row and attached as
    `attributes` of the reference display object; every other selected key goes
    through its formatter when one is declared.
    """
    item: Row = dict(row)
    attributes: Dict[str, Dict[str, Any]] = {}

    for key, source in viewable.items():
        if isinstance(source, JoinedField) and "." in key:
            pointer_name, field_name = key.split(".")[:2]
            attributes.setdefault(pointer_name, {})[field_name] = item.pop(key, None)
            continue
        formatter = definition.behavior(key).format
        if formatter is not None and key in item:
            item[key] = formatter(item[key], definition)

    for pointer_name, values in attributes.items():
        display = item.get(pointer_name)
        if not values or not isinstance(display, Mapping):
            continue
        item[pointer_name] = {**display, "attributes": values}

    return item


def format_rows(definition: ModelDefinition, viewable: Mapping[str, Source], rows: Iterable[Mapping[str, Any]]) -> List[Row]:
    return [format_row(definition, viewable, row) for row in rows]


def build_action_query(
    definition: ModelDefinition,
    factory: ActionQueryFactory,
    raw: Mapping[str, Any],
    id: Any = None,
) -> ActionQuery:
    """Prepare an action query writing `raw`; targeted at `id` for update/destroy."""
    query = factory(definition.source) if id is None else factory(definition.source, id)
    return query.fields(raw)


__all__ = [
    "guarded_where",
    "build_view_query",
    "first_options",
    "format_row",
    "format_rows",
    "build_action_query",
]
