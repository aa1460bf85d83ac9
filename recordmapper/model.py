"""
Caller-facing CRUD surface for one compiled model.

`Model` binds a `ModelDefinition` to the query collaborators and exposes
`find`, `first`, `create`, `update` and `destroy` as coroutines. Routing layers
call these and serialize what they return.
"""

from __future__ import annotations

import asyncio
import inspect
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Set, Union

from recordmapper.collaborators import ActionQueryFactory, Row, ViewQueryFactory
from recordmapper.domain.models import ID, JoinSpec, ModelDefinition
from recordmapper.domain.options import ClientProps, FindOptions
from recordmapper.joins import plan_joins
from recordmapper.keymap import Request
from recordmapper.pipeline import ActionResult, resolve_action_keys
from recordmapper.projection import ViewProjection, resolve_view_projection
from recordmapper.query import build_action_query, build_view_query, first_options, format_row, format_rows
from recordmapper.utils.logging import get_logger

log = get_logger(__name__)

OptionsLike = Union[FindOptions, Mapping[str, Any], None]
PropsLike = Union[ClientProps, Mapping[str, Any], None]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def _props(props: PropsLike) -> ClientProps:
    if props is None:
        return ClientProps()
    if isinstance(props, ClientProps):
        return props
    return ClientProps.model_validate(dict(props))


class Model:
    """
    CRUD operations for one model definition.

    Parameters
    ----------
    definition : ModelDefinition
        Compiled schema.
    view_query : ViewQueryFactory
        Called with the source name to build a read query.
    action_query : ActionQueryFactory
        Called with the source name (and id for targeted writes) to build a write query.
    clock : callable, optional
        Returns the operation start time; UTC now by default.
    """

    def __init__(
        self,
        definition: ModelDefinition,
        view_query: ViewQueryFactory,
        action_query: ActionQueryFactory,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.definition = definition
        self._view_query = view_query
        self._action_query = action_query
        self._clock = clock
        self._pending: Set["asyncio.Future[Any]"] = set()

    @property
    def class_name(self) -> str:
        return self.definition.class_name

    @property
    def source(self) -> str:
        return self.definition.source

    def get_joins(self) -> List[JoinSpec]:
        return plan_joins(self.definition)

    def get_view_keys(self, include: Optional[Iterable[str]] = None) -> ViewProjection:
        return resolve_view_projection(self.definition, include)

    async def get_action_keys(
        self,
        fields: Optional[Mapping[str, Any]],
        *,
        now: Optional[datetime] = None,
        id: Any = None,
        is_new: bool = False,
        is_destroyed: bool = False,
        props: PropsLike = None,
    ) -> ActionResult:
        return await resolve_action_keys(
            self.definition,
            fields,
            now=now or self._clock(),
            id=id,
            is_new=is_new,
            is_destroyed=is_destroyed,
            props=_props(props),
        )

    async def find(self, options: OptionsLike = None) -> List[Row]:
        opts = options if isinstance(options, FindOptions) else FindOptions.model_validate(dict(options or {}))
        query, projection = build_view_query(self.definition, self._view_query, opts)
        return await query.find(lambda rows: format_rows(self.definition, projection.viewable, rows))

    async def first(self, id: Any, include: Optional[Iterable[str]] = None) -> Optional[Row]:
        query, projection = build_view_query(
            self.definition, self._view_query, first_options(self.definition, id, include)
        )
        return await query.first(lambda row: format_row(self.definition, projection.viewable, row))

    async def create(self, fields: Optional[Mapping[str, Any]], props: PropsLike = None) -> Dict[str, Any]:
        result = await self.get_action_keys(fields, is_new=True, props=props)
        created = await build_action_query(self.definition, self._action_query, result.raw).create()
        result.request.id = created[ID]
        self._fire_after_save(result.request)
        return self._client_payload(result.request)

    async def update(self, id: Any, fields: Optional[Mapping[str, Any]], props: PropsLike = None) -> Dict[str, Any]:
        result = await self.get_action_keys(fields, id=id, props=props)
        await build_action_query(self.definition, self._action_query, result.raw, id=id).update()
        self._fire_after_save(result.request)
        return self._client_payload(result.request)

    async def destroy(
        self,
        id: Any,
        fields: Optional[Mapping[str, Any]] = None,
        props: PropsLike = None,
    ) -> Dict[str, Any]:
        result = await self.get_action_keys(fields, id=id, is_destroyed=True, props=props)
        await build_action_query(self.definition, self._action_query, result.raw, id=id).update()
        self._fire_after_save(result.request)
        return self._client_payload(result.request)

    def _client_payload(self, request: Request) -> Dict[str, Any]:
        """Viewable keys of the request plus every system key that is set."""
        viewable = set(self.definition.viewable)
        payload = {key: value for key, value in request.keys.copy().items() if key in viewable}
        for key, value in request.system_values().items():
            formatter = self.definition.behavior(key).format
            payload[key] = formatter(value, self.definition) if formatter is not None else value
        return payload

    def _fire_after_save(self, request: Request) -> None:
        hook = self.definition.after_save
        if hook is None:
            return
        try:
            outcome = hook(request)
        except Exception:  # noqa: BLE001 - after_save is fire-and-forget
            log.exception(f"[AFTER SAVE FAILED] {self.class_name}", extra={"class_name": self.class_name})
            return
        if inspect.isawaitable(outcome):
            task = asyncio.ensure_future(outcome)
            self._pending.add(task)
            task.add_done_callback(self._after_save_done)

    def _after_save_done(self, task: "asyncio.Future[Any]") -> None:
        self._pending.discard(task)
        if task.cancelled() or task.exception() is None:
            return
        log.error(
            f"[AFTER SAVE FAILED] {self.class_name}",
            exc_info=task.exception(),
            extra={"class_name": self.class_name},
        )

    def __repr__(self) -> str:
        return f"Model(class_name={self.class_name!r}, source={self.source!r})"


__all__ = ["Model", "utcnow"]
