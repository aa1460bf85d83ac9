"""
Schema compiler.

Turns a declarative schema config into an immutable `ModelDefinition`:

    compile_schema({
        "className": "Post",
        "keys": {
            "viewable": ["title", "author"],
            "actionable": ["title", "author"],
            "pointers": {"author": {"className": "User"}},
            "files": ["cover"],
        },
        "validate": {"title": validation.fixed_string(1, 120)},
    })

Reference and attachment fields get validate/parse/format functions unless the
author supplied them, every system key except `id` gets the date formatter,
and the field behavior table is resolved once here so the pipeline never looks
functions up by name at request time.
"""

from __future__ import annotations

import functools
import inspect
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError

from recordmapper.collaborators import StorageProvider
from recordmapper.domain.models import (
    ID,
    SYSTEM_KEYS,
    FieldBehavior,
    FieldKind,
    ModelDefinition,
    ReferenceSpec,
)
from recordmapper.errors import ForbiddenOperation, MapperError, MissingConfiguration
from recordmapper.fields import formatters, parsers, validation
from recordmapper.utils.logging import get_logger

log = get_logger(__name__)

_PARSER_KINDS: Dict[Callable[..., Any], FieldKind] = {
    parsers.reference: FieldKind.REFERENCE,
    parsers.attachment: FieldKind.ATTACHMENT,
    parsers.integer: FieldKind.INTEGER,
    parsers.json: FieldKind.JSON,
}


class KeysConfig(BaseModel):
    viewable: List[str] = Field(default_factory=list)
    actionable: List[str] = Field(default_factory=list)
    pointers: Dict[str, ReferenceSpec] = Field(default_factory=dict)
    files: List[str] = Field(default_factory=list)

    model_config = {"extra": "forbid"}


class SchemaConfig(BaseModel):
    """
    Raw schema config as authored; camelCase and snake_case names are both accepted.
    """

    class_name: Optional[str] = Field(None, alias="className")
    source: Optional[str] = None
    keys: Optional[KeysConfig] = None
    validators: Dict[str, Callable[..., Any]] = Field(default_factory=dict, alias="validate")
    parsers: Dict[str, Callable[..., Any]] = Field(default_factory=dict, alias="parse")
    formatters: Dict[str, Callable[..., Any]] = Field(default_factory=dict, alias="format")
    before_save: Optional[Callable[..., Any]] = Field(None, alias="beforeSave")
    after_save: Optional[Callable[..., Any]] = Field(None, alias="afterSave")
    # Only declared so misplaced siblings of `keys` can be rejected.
    pointers: Optional[Any] = None
    files: Optional[Any] = None

    model_config = {
        "populate_by_name": True,
        "arbitrary_types_allowed": True,
        "extra": "ignore",
    }


def _accepts_positional(func: Callable[..., Any], count: int) -> bool:
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return False
    positional = 0
    for parameter in signature.parameters.values():
        if parameter.kind is inspect.Parameter.VAR_POSITIONAL:
            return True
        if parameter.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            positional += 1
    return positional >= count


def _adapt(func: Optional[Callable[..., Any]], arity: int) -> Optional[Callable[..., Any]]:
    """Let single-argument author functions be called with the full argument list."""
    if func is None or _accepts_positional(func, arity):
        return func

    @functools.wraps(func)
    def adapted(value: Any, *_: Any) -> Any:
        return func(value)

    return adapted


def _parse_config(config: Mapping[str, Any]) -> SchemaConfig:
    name = config.get("className") or config.get("class_name")
    try:
        return SchemaConfig.model_validate(dict(config))
    except ValidationError as exc:
        raise ForbiddenOperation(f"Invalid schema definition (Model: `{name}`): {exc}") from exc


def _check_shape(schema: SchemaConfig) -> None:
    if not schema.class_name:
        raise MissingConfiguration("A `className` was not defined for this model")
    if schema.keys is None:
        raise MissingConfiguration(f"`keys` have not been defined (Model: `{schema.class_name}`)")
    if schema.pointers is not None:
        raise ForbiddenOperation(
            f"The `pointers` definition should be inside of the `keys` definition "
            f"(Model: `{schema.class_name}`)"
        )
    if schema.files is not None:
        raise ForbiddenOperation(
            f"The `files` definition should be inside of the `keys` definition "
            f"(Model: `{schema.class_name}`)"
        )
    for name, pointer in schema.keys.pointers.items():
        if name in schema.keys.actionable and pointer.is_second_level:
            raise ForbiddenOperation(
                f"Second-level reference `{name}` cannot be defined as actionable "
                f"(Model: `{schema.class_name}`)"
            )


def _warn_foreign_keys(schema: SchemaConfig) -> None:
    keys = schema.keys
    for key in dict.fromkeys([*keys.viewable, *keys.actionable]):
        if "_id" in key and key not in keys.pointers:
            log.warning(
                f"[SCHEMA WARNING] `{key}` appears to be pointing to another class. "
                "It would be best to make this a reference instead.",
                extra={"class_name": schema.class_name, "key": key},
            )


def _build_behaviors(schema: SchemaConfig) -> Dict[str, FieldBehavior]:
    keys = schema.keys
    validate_table = {name: _adapt(func, 2) for name, func in schema.validators.items()}
    parse_table = dict(schema.parsers)
    format_table = {name: _adapt(func, 2) for name, func in schema.formatters.items()}

    for name, pointer in keys.pointers.items():
        validate_table.setdefault(name, validation.reference(pointer.class_name))
        parse_table.setdefault(name, parsers.reference)
        format_table.setdefault(name, formatters.reference(pointer.class_name))

    for name in keys.files:
        validate_table.setdefault(name, validation.attachment)
        parse_table.setdefault(name, parsers.attachment)
        format_table.setdefault(name, formatters.attachment)

    for name in SYSTEM_KEYS:
        if name != ID:
            format_table[name] = formatters.date

    behaviors: Dict[str, FieldBehavior] = {}
    for name in dict.fromkeys([*validate_table, *parse_table, *format_table]):
        parser = parse_table.get(name)
        behaviors[name] = FieldBehavior(
            name=name,
            kind=_PARSER_KINDS.get(parser, FieldKind.PLAIN) if parser else FieldKind.PLAIN,
            validate=validate_table.get(name),
            parse=parser,
            format=format_table.get(name),
        )
    return behaviors


def compile_schema(
    config: Mapping[str, Any],
    storage: Optional[StorageProvider] = None,
) -> ModelDefinition:
    """
    Compile a schema config into a `ModelDefinition`.

    Parameters
    ----------
    config : Mapping[str, Any]
        Declarative schema (`className`, `source`, `keys`, `validate`, `parse`,
        `format`, `beforeSave`, `afterSave`).
    storage : StorageProvider, optional
        Collaborator used by attachment formatters to resolve URLs.

    Returns
    -------
    ModelDefinition
        The compiled, read-only definition.

    Raises
    ------
    MissingConfiguration
        If the class name or the `keys` declaration is absent.
    ForbiddenOperation
        If `pointers`/`files` sit beside `keys`, if an actionable reference
        reaches through a second level, or if the config is malformed.
    """
    try:
        schema = _parse_config(config)
        _check_shape(schema)
    except MapperError as err:
        log.error(
            f"[SCHEMA ERROR] Error Code: {err.code.value}, {err.message}",
            extra={"code": err.code.value},
        )
        raise

    _warn_foreign_keys(schema)
    keys = schema.keys
    definition = ModelDefinition(
        class_name=schema.class_name,
        source=schema.source or schema.class_name,
        viewable=tuple(keys.viewable),
        actionable=tuple(keys.actionable),
        pointers=MappingProxyType(dict(keys.pointers)),
        files=frozenset(keys.files),
        behaviors=MappingProxyType(_build_behaviors(schema)),
        before_save=schema.before_save,
        after_save=schema.after_save,
        storage=storage,
    )
    log.debug(
        f"[SCHEMA COMPILED] {definition.class_name}",
        extra={"class_name": definition.class_name, "source": definition.source},
    )
    return definition


__all__ = ["KeysConfig", "SchemaConfig", "compile_schema"]
