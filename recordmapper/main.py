from __future__ import annotations

import importlib
import json
import sys
from typing import Any, Dict, List, Optional

import typer

from recordmapper.compiler import compile_schema
from recordmapper.config import get_settings
from recordmapper.domain.models import JoinedField, ModelDefinition
from recordmapper.errors import MapperError
from recordmapper.joins import plan_joins
from recordmapper.projection import resolve_view_projection
from recordmapper.reporter import print_definition
from recordmapper.utils.logging import configure_logging

app = typer.Typer(help="Record mapper CLI.")


def load_config(target: str) -> Any:
    """Import `package.module:attribute` and return the attribute."""
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise typer.BadParameter("expected MODULE:ATTRIBUTE", param_hint="target")
    module = importlib.import_module(module_name)
    try:
        return getattr(module, attribute)
    except AttributeError:
        raise typer.BadParameter(f"`{module_name}` has no attribute `{attribute}`", param_hint="target") from None


def describe_definition(definition: ModelDefinition, include: Optional[List[str]] = None) -> Dict[str, Any]:
    projection = resolve_view_projection(definition, include)
    return {
        "className": definition.class_name,
        "source": definition.source,
        "keys": {
            "viewable": list(definition.viewable),
            "actionable": list(definition.actionable),
            "pointers": {
                name: pointer.model_dump(by_alias=True, exclude_none=True)
                for name, pointer in definition.pointers.items()
            },
            "files": sorted(definition.files),
        },
        "joins": [
            {"className": join.class_name, "alias": join.alias, "via": join.via, "to": join.to}
            for join in plan_joins(definition)
        ],
        "view": {
            key: f"{source.alias}.{source.field}" if isinstance(source, JoinedField) else source
            for key, source in projection.viewable.items()
        },
    }


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} "
        f"schema={settings.db_schema} | env={settings.app_env} log={settings.log_level} "
        f"pool={settings.pool_min_size}..{settings.pool_max_size} "
        f"storage={settings.storage_base_url or '-'}"
    )


@app.command()
def describe(
    target: str = typer.Argument(..., help="Schema config import path, e.g. `myapp.schemas:POST`."),
    include: Optional[List[str]] = typer.Option(
        None,
        "--include",
        "-i",
        help="Keys to view (repeatable); dotted keys select reference sub-fields.",
    ),
    table: bool = typer.Option(False, "--table", help="Render as a table instead of JSON."),
) -> None:
    """
    Compile a schema config and print its keys, join plan and view projection.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)

    try:
        definition = compile_schema(load_config(target))
    except MapperError as err:
        typer.echo(f"{err.code.value}: {err.message}", err=True)
        raise typer.Exit(code=1)

    described = describe_definition(definition, include)
    if table:
        print_definition(described)
    else:
        typer.echo(json.dumps(described, indent=2))


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
