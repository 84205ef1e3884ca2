import pytest

from backend.config import AppConfig
from backend.errors import UnsupportedBackendError
from backend.factory import create_backend, supported_backends
from backend.mysql_backend import MySQLBackend
from backend.postgres_backend import PostgresBackend


def test_supported_backends():
    assert supported_backends() == ["mysql", "postgres"]


def test_mysql_selected_by_default():
    be = create_backend(AppConfig.from_env({"MYSQL_HOST": "m.local"}))
    assert isinstance(be, MySQLBackend)
    assert (be.kind, be.host, be.port) == ("mysql", "m.local", 3306)


def test_postgres_selected():
    be = create_backend(AppConfig.from_env({"DB_TYPE": "postgres", "PG_PORT": "15432"}))
    assert isinstance(be, PostgresBackend)
    assert (be.kind, be.port) == ("postgres", 15432)


def test_construction_does_not_connect(mysql_pools):
    be = create_backend(AppConfig.from_env({}))
    assert be.is_connected is False
    assert mysql_pools == []


@pytest.mark.parametrize("db_type", ["oracle", "", "sqlite"])
def test_unsupported_backend_fails_fast(db_type, capsys):
    with pytest.raises(UnsupportedBackendError) as exc:
        create_backend(AppConfig(db_type=db_type))
    assert exc.value.kind == db_type
    assert "mysql" in str(exc.value) and "postgres" in str(exc.value)
    assert "unsupported_backend" in capsys.readouterr().err
