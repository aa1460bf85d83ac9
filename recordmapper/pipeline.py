"""
Mutation pipeline.

Turns the raw fields of a create/update/destroy call into a `Request` (what
hooks and the client payload see) and a raw field map (what gets persisted):

    Init -> KeysResolved -> [HookRunning] -> Resolved | Rejected

1. Keep only supplied keys the model declares actionable, never a system key.
2. Validate each value, check that structured values (references, files,
   increments, JSON patches) go to fields able to take them, then parse.
   Reference and attachment values stay unparsed until after the hook.
3. Stamp `updated_at` (and `created_at` on creation, `deleted_at` on soft
   delete) on the request and wrap the parsed values in a `KeyMap`.
4. Run `before_save(request, response)` if declared; the hook settles the
   pipeline by calling `response.success()` or `response.error(message)`.
5. Finalize: parse deferred references/attachments, map keys to their
   persisted columns, and replace each request value with its formatted form.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional

from recordmapper.domain.models import ID, ModelDefinition
from recordmapper.domain.options import ClientProps
from recordmapper.domain.values import IncrementOp, JsonPatchOp, coerce, unwrap
from recordmapper.errors import InvalidObjectKey, MapperError
from recordmapper.keymap import KeyMap, Request
from recordmapper.projection import action_sources, join_column, resolve_action_projection
from recordmapper.utils.logging import get_logger

log = get_logger(__name__)


@dataclass
class ActionResult:
    request: Request
    raw: Dict[str, Any]


class HookResponse:
    """
    Two-armed completion handed to `before_save`; the first call wins.
    """

    def __init__(self, completion: "asyncio.Future[None]") -> None:
        self._completion = completion

    @property
    def settled(self) -> bool:
        return self._completion.done()

    def success(self) -> None:
        if self._ignore_repeat("success"):
            return
        self._completion.set_result(None)

    def error(self, message: str) -> None:
        if self._ignore_repeat("error"):
            return
        self._completion.set_exception(InvalidObjectKey(message))

    def _ignore_repeat(self, arm: str) -> bool:
        if not self._completion.done():
            return False
        log.warning(f"[HOOK] `{arm}()` called after the hook already completed; ignoring")
        return True


def _defers_parse(definition: ModelDefinition, key: str) -> bool:
    return definition.is_reference(key) or definition.is_attachment(key)


def _parse(parse: Callable[[Any], Any], key: str, value: Any) -> Any:
    try:
        return parse(value)
    except MapperError:
        raise
    except (TypeError, ValueError, ArithmeticError) as err:
        raise InvalidObjectKey(f"{key} could not be parsed: {err}") from err


def parse_fields(definition: ModelDefinition, fields: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Validate and parse the writable subset of `fields`.

    Raises
    ------
    InvalidObjectKey
        If a validator returns a message, a structured value is supplied to a
        field that cannot take it, or a parser rejects the value.
    """
    parsed: Dict[str, Any] = {}
    for key in resolve_action_projection(definition, fields):
        behavior = definition.behavior(key)
        value = coerce(fields[key])
        payload = unwrap(value)

        if behavior.validate is not None:
            message = behavior.validate(payload, key)
            if isinstance(message, str):
                raise InvalidObjectKey(message)

        if value.accepted_by is not None and value.accepted_by is not behavior.kind:
            raise InvalidObjectKey(f"{value.label} can only be used by {value.target}")

        if behavior.parse is not None and not _defers_parse(definition, key):
            payload = _parse(behavior.parse, key, payload)

        parsed[key] = payload
    return parsed


def build_request(
    parsed: Mapping[str, Any],
    *,
    now: datetime,
    id: Any = None,
    is_new: bool = False,
    is_destroyed: bool = False,
    props: Optional[ClientProps] = None,
) -> Request:
    props = props or ClientProps()
    return Request(
        keys=KeyMap(parsed),
        is_new=is_new,
        is_destroyed=is_destroyed,
        client=props.client,
        sdk_version=props.sdk_version,
        app_version=props.app_version,
        id=id,
        created_at=now if is_new else None,
        updated_at=now,
        deleted_at=now if is_destroyed else None,
    )


async def run_before_save(hook: Callable[..., Any], request: Request) -> None:
    """Invoke the hook and wait until it settles its response."""
    completion: "asyncio.Future[None]" = asyncio.get_running_loop().create_future()
    try:
        outcome = hook(request, HookResponse(completion))
        if inspect.isawaitable(outcome):
            await outcome
    finally:
        # Retrieve a settled outcome so a raising hook does not leave it unobserved.
        if completion.done() and not completion.cancelled():
            completion.exception()
    await completion


def finalize(definition: ModelDefinition, request: Request) -> ActionResult:
    """Build the raw field map and swap request values for their formatted form."""
    sources = action_sources(definition)
    raw: Dict[str, Any] = {}

    for key, value in request.keys.copy().items():
        behavior = definition.behavior(key)
        if definition.is_reference(key):
            source = sources.get(key) or join_column(definition, key)
        else:
            source = sources.get(key) or key

        if _defers_parse(definition, key) and behavior.parse is not None:
            value = _parse(behavior.parse, key, value)
        raw[source] = value

        # Increments and JSON patches resolve in the datastore; no client value yet.
        if isinstance(value, (IncrementOp, JsonPatchOp)):
            request.keys.discard(key)
            continue

        formatted = behavior.format(value, definition) if behavior.format is not None else value
        request.keys.set(key, formatted)

    for key, value in request.system_values().items():
        if key != ID:
            raw[key] = value

    return ActionResult(request=request, raw=raw)


async def resolve_action_keys(
    definition: ModelDefinition,
    fields: Optional[Mapping[str, Any]],
    *,
    now: datetime,
    id: Any = None,
    is_new: bool = False,
    is_destroyed: bool = False,
    props: Optional[ClientProps] = None,
) -> ActionResult:
    """
    Run the pipeline for one mutation.

    Parameters
    ----------
    definition : ModelDefinition
        Compiled model being written.
    fields : Mapping[str, Any], optional
        Raw client fields.
    now : datetime
        Operation start time, used for every timestamp it sets.
    id : Any, optional
        Target record for update/destroy.
    is_new, is_destroyed : bool
        Creation / soft-delete flags.
    props : ClientProps, optional
        Client and version metadata exposed to hooks.

    Returns
    -------
    ActionResult
        The request (formatted values) and the raw map to persist.

    Raises
    ------
    InvalidObjectKey
        On validation failure, an illegal structured value, or `response.error()`.
    """
    try:
        parsed = parse_fields(definition, fields)
        request = build_request(
            parsed, now=now, id=id, is_new=is_new, is_destroyed=is_destroyed, props=props
        )
        if definition.before_save is not None:
            await run_before_save(definition.before_save, request)
    except InvalidObjectKey as err:
        log.debug(
            f"[ACTION REJECTED] {definition.class_name}: {err.message}",
            extra={"class_name": definition.class_name, "code": err.code.value},
        )
        raise

    return finalize(definition, request)


__all__ = [
    "ActionResult",
    "HookResponse",
    "parse_fields",
    "build_request",
    "run_before_save",
    "finalize",
    "resolve_action_keys",
]
