from __future__ import annotations

import pytest

from recordmapper import config
from recordmapper.infrastructure.db_factory import PoolManager, build_dsn, get_async_pool
from recordmapper.infrastructure.storage import UrlPrefixStorage, storage_from_settings

_ENV_VARS = (
    "DB_HOST",
    "DB_PORT",
    "DB_USER",
    "DB_PASSWORD",
    "DB_NAME",
    "DB_SCHEMA",
    "PASSWORD_HASH_COST",
    "SESSION_DURATION_DAYS",
    "STORAGE_BASE_URL",
)


@pytest.fixture
def clean_settings(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    config.get_settings.cache_clear()
    yield monkeypatch
    config.get_settings.cache_clear()


def test_settings_defaults(clean_settings):
    settings = config.Settings(_env_file=None)
    assert settings.db_port == 5432
    assert settings.db_schema == "public"
    assert settings.password_hash_cost == 8
    assert settings.session_duration_days == 30
    assert settings.pool_min_size <= settings.pool_max_size


def test_settings_read_environment_aliases(clean_settings):
    clean_settings.setenv("DB_HOST", "db.internal")
    clean_settings.setenv("DB_PORT", "6543")
    clean_settings.setenv("PASSWORD_HASH_COST", "12")

    settings = config.get_settings()

    assert settings.db_host == "db.internal"
    assert settings.db_port == 6543
    assert settings.password_hash_cost == 12


def test_get_settings_is_cached(clean_settings):
    assert config.get_settings() is config.get_settings()


def test_build_dsn_uses_settings(clean_settings):
    clean_settings.setenv("DB_USER", "mapper")
    clean_settings.setenv("DB_PASSWORD", "pw")
    clean_settings.setenv("DB_HOST", "pg")
    clean_settings.setenv("DB_PORT", "5433")
    clean_settings.setenv("DB_NAME", "blog")

    assert build_dsn() == "postgresql://mapper:pw@pg:5433/blog"


def test_url_prefix_storage():
    storage = UrlPrefixStorage("https://cdn.example.com/files/")

    assert storage.get_url("avatars/a b.png") == "https://cdn.example.com/files/avatars/a%20b.png"


def test_storage_from_settings(clean_settings):
    assert storage_from_settings() is None

    clean_settings.setenv("STORAGE_BASE_URL", "https://cdn.example.com")
    config.get_settings.cache_clear()

    assert storage_from_settings().get_url("a.png") == "https://cdn.example.com/a.png"


@pytest.mark.asyncio
async def test_pool_manager_keeps_one_unopened_pool(clean_settings):
    manager = PoolManager()
    await manager.close()

    pool = get_async_pool(min_size=1, max_size=3)
    try:
        assert PoolManager() is manager
        assert manager.get_async_pool() is pool
        assert (pool.min_size, pool.max_size) == (1, 3)
        assert pool.closed
    finally:
        await manager.close()
