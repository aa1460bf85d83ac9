"""
Reference collaborators: PostgreSQL view/action queries, pool management and
URL-prefix attachment storage.
"""

from recordmapper.infrastructure.db_factory import PoolManager, build_dsn, get_async_pool
from recordmapper.infrastructure.postgres import (
    PostgresActionQuery,
    PostgresViewQuery,
    action_query_factory,
    table_names,
    view_query_factory,
)
from recordmapper.infrastructure.storage import UrlPrefixStorage, storage_from_settings

__all__ = [
    "PoolManager",
    "build_dsn",
    "get_async_pool",
    "PostgresActionQuery",
    "PostgresViewQuery",
    "action_query_factory",
    "view_query_factory",
    "table_names",
    "UrlPrefixStorage",
    "storage_from_settings",
]
