import pytest

from backend import mysql_backend as mysql_mod, postgres_backend as pg_mod
from backend.config import MySQLConfig, PostgresConfig
from backend.mysql_backend import MySQLBackend
from backend.postgres_backend import PostgresBackend
from fakes import FakeDatabase, FakeMySQLPool, FakePGPool


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # config tests build their own env; never let the developer's shell leak in
    for key in ("DB_TYPE", "LOG_LEVEL", "SERVER_NAME", "SERVER_VERSION"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def fake_db():
    return FakeDatabase()


@pytest.fixture()
def mysql_pools(monkeypatch, fake_db):
    """Patch aiomysql.create_pool; the list collects every pool created."""
    pools = []

    async def create_pool(**kwargs):
        pool = FakeMySQLPool(fake_db, **kwargs)
        pools.append(pool)
        return pool

    monkeypatch.setattr(mysql_mod.aiomysql, "create_pool", create_pool)
    return pools


@pytest.fixture()
def pg_pools(monkeypatch, fake_db):
    pools = []

    async def create_pool(**kwargs):
        pool = FakePGPool(fake_db, **kwargs)
        pools.append(pool)
        return pool

    monkeypatch.setattr(pg_mod.asyncpg, "create_pool", create_pool)
    return pools


@pytest.fixture()
def mysql_be(mysql_pools):
    return MySQLBackend(MySQLConfig(host="db.local", database="shop", password="s3cret", pool_size=2))


@pytest.fixture()
def pg_be(pg_pools):
    return PostgresBackend(PostgresConfig(host="db.local", database="shop", pool_size=2))


@pytest.fixture(params=["mysql", "postgres"])
def any_backend(request):
    """Each backend wired to the shared fake_db."""
    if request.param == "mysql":
        return request.getfixturevalue("mysql_be")
    return request.getfixturevalue("pg_be")
