"""
Record Mapper - declarative schema-driven CRUD over a relational datastore.

A schema config declares which keys of a model are viewable, actionable,
references or attachments. This package compiles it once into an immutable
model definition and uses it to:

- Resolve read projections and plan one join per reference
- Assemble read queries that never return soft-deleted rows
- Validate, parse and format client fields through a mutation pipeline
- Run `before_save` / `after_save` hooks around create, update and destroy

The datastore itself is reached only through small collaborator interfaces;
`recordmapper.infrastructure` ships a PostgreSQL implementation.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from recordmapper.collaborators import ActionQuery, SecurityProvider, StorageProvider, ViewQuery
from recordmapper.compiler import compile_schema
from recordmapper.config import Settings, get_settings
from recordmapper.domain.models import ModelDefinition
from recordmapper.domain.options import ClientProps, FindOptions
from recordmapper.errors import ForbiddenOperation, InvalidObjectKey, MapperError, MissingConfiguration
from recordmapper.keymap import KeyMap, Request
from recordmapper.model import Model
from recordmapper.registry import SchemaRegistry
from recordmapper.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Schema
    "compile_schema",
    "ModelDefinition",
    "SchemaRegistry",
    # CRUD surface
    "Model",
    "FindOptions",
    "ClientProps",
    "KeyMap",
    "Request",
    # Collaborators
    "ViewQuery",
    "ActionQuery",
    "StorageProvider",
    "SecurityProvider",
    # Errors
    "MapperError",
    "MissingConfiguration",
    "ForbiddenOperation",
    "InvalidObjectKey",
    # Logging
    "configure_logging",
    "get_logger",
]
