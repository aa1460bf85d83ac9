"""
Pytest configuration for the record mapper.

Provides fixtures for:
- In-memory view/action query collaborators that record what they were asked
- Storage and security collaborators
- Schema configs shared across unit tests
- Database connection management for integration tests
"""

from __future__ import annotations

import itertools
import os
from datetime import datetime, timezone
from typing import Any, Dict, Generator, List, Optional

import psycopg
import pytest

from recordmapper.collaborators import AbstractActionQuery, AbstractViewQuery, CreateResult, Row, RowMapper, RowsMapper
from recordmapper.config import Settings

FIXED_NOW = datetime(2024, 5, 17, 9, 30, 0, tzinfo=timezone.utc)


class FakeViewQuery(AbstractViewQuery):
    """View query returning canned rows; builder state is inspected by tests."""

    def __init__(self, source: str, rows: List[Row]) -> None:
        super().__init__(source)
        self._rows = rows

    async def find(self, mapper: RowsMapper) -> List[Row]:
        return mapper([dict(row) for row in self._rows])

    async def first(self, mapper: RowMapper) -> Optional[Row]:
        if not self._rows:
            return None
        return mapper(dict(self._rows[0]))


class FakeActionQuery(AbstractActionQuery):
    def __init__(self, source: str, id: Any, store: "FakeStore") -> None:
        super().__init__(source, id)
        self._store = store
        self.created = False
        self.updated = False

    async def create(self) -> CreateResult:
        self.created = True
        return {"id": next(self._store.ids)}

    async def update(self) -> int:
        self.updated = True
        return 1


class FakeStore:
    """
    Hands out fake queries and keeps every instance for assertions.
    """

    def __init__(self) -> None:
        self.rows: Dict[str, List[Row]] = {}
        self.views: List[FakeViewQuery] = []
        self.actions: List[FakeActionQuery] = []
        self.ids = itertools.count(11)

    def view_query(self, source: str) -> FakeViewQuery:
        query = FakeViewQuery(source, self.rows.get(source, []))
        self.views.append(query)
        return query

    def action_query(self, source: str, id: Any = None) -> FakeActionQuery:
        query = FakeActionQuery(source, id, self)
        self.actions.append(query)
        return query


class FakeStorage:
    def get_url(self, key: str) -> str:
        return f"https://files.test/{key}"


class FakeSecurity:
    def __init__(self) -> None:
        self.calls: List[tuple] = []

    def hash(self, plaintext: str, cost: int) -> str:
        self.calls.append((plaintext, cost))
        return f"hashed:{cost}:{plaintext}"


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def security() -> FakeSecurity:
    return FakeSecurity()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def user_config() -> Dict[str, Any]:
    return {
        "className": "User",
        "source": "users",
        "keys": {
            "viewable": ["name", "email"],
            "actionable": ["name", "email"],
        },
    }


@pytest.fixture
def post_config() -> Dict[str, Any]:
    return {
        "className": "Post",
        "keys": {
            "viewable": ["title", "author"],
            "actionable": ["title", "author"],
            "pointers": {"author": {"className": "User"}},
        },
    }


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "recordmapper"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def blog_tables(db_connection: psycopg.Connection) -> Generator[None, None, None]:
    """
    Create empty `users` and `posts` tables for one test and drop them afterwards.
    """
    with db_connection.cursor() as cur:
        cur.execute("DROP TABLE IF EXISTS public.posts, public.users;")
        cur.execute("""
            CREATE TABLE public.users (
                id          SERIAL PRIMARY KEY,
                name        TEXT,
                email       TEXT,
                created_at  TIMESTAMPTZ,
                updated_at  TIMESTAMPTZ,
                deleted_at  TIMESTAMPTZ
            );
        """)
        cur.execute("""
            CREATE TABLE public.posts (
                id          SERIAL PRIMARY KEY,
                title       TEXT,
                author_id   INTEGER,
                views       INTEGER,
                meta        JSONB,
                created_at  TIMESTAMPTZ,
                updated_at  TIMESTAMPTZ,
                deleted_at  TIMESTAMPTZ
            );
        """)
    db_connection.commit()
    yield
    with db_connection.cursor() as cur:
        cur.execute("DROP TABLE IF EXISTS public.posts, public.users;")
    db_connection.commit()
