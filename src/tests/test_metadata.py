import sys
from pathlib import Path
import pytest

# Ensure project src directory is on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

import db.connection as connection
import db.metadata as metadata
from db.connection import ConnectionProfile
from db.errors import DatabaseOperationError, UnsupportedEngineError
from db.metadata import filter_system_databases, list_databases, test_connection as check_connection


def _sqlite_engine(*statements):
    eng = create_engine('sqlite://', poolclass=StaticPool)
    with eng.begin() as conn:
        for stmt in statements:
            conn.execute(text(stmt))
    return eng


def _patch_factory(monkeypatch, engine):
    """Route engine_scope to the given engine and record the database it asked for."""
    seen = {}

    def fake_factory(profile, database=None, **kwargs):
        seen['database'] = database
        seen.update(kwargs)
        return engine

    monkeypatch.setattr(connection, "create_engine_for", fake_factory)
    return seen


@pytest.mark.parametrize("engine", ["MySQL", "MariaDB"])
def test_filter_mysql_family_system_schemas(engine):
    names = ["information_schema", "shop", "mysql", "performance_schema", "sys", "sysadmin", "analytics"]
    assert filter_system_databases(engine, names) == ["shop", "sysadmin", "analytics"]


def test_filter_sqlserver_system_databases():
    names = ["master", "sales", "tempdb", "model", "msdb", "modeling"]
    assert filter_system_databases("SQL Server", names) == ["sales", "modeling"]


def test_filter_postgres_keeps_everything():
    names = ["app", "mysql", "postgres", "sys"]
    assert filter_system_databases("PostgreSQL", names) == names


def test_filter_rejects_unknown_engine():
    with pytest.raises(UnsupportedEngineError):
        filter_system_databases("Oracle", ["a"])


def test_list_databases_postgres_skips_templates(monkeypatch):
    eng = _sqlite_engine(
        "CREATE TABLE pg_database (datname TEXT, datistemplate BOOLEAN)",
        "INSERT INTO pg_database VALUES ('template0', 1), ('template1', 1), ('shop', 0), ('postgres', 0), ('app', 0)",
    )
    seen = _patch_factory(monkeypatch, eng)

    profile = ConnectionProfile("PostgreSQL", "localhost", "5432", "app", "secret", database="shop")
    assert list_databases(profile, connect_timeout=4) == ["app", "postgres", "shop"]
    # bootstrap database, not the selected one
    assert seen['database'] == "postgres"
    assert seen['connect_timeout'] == 4


def test_list_databases_mysql_filters_system_schemas(monkeypatch):
    eng = _sqlite_engine(
        "CREATE TABLE dbs (name TEXT)",
        "INSERT INTO dbs VALUES ('information_schema'), ('inventory'), ('mysql'), ('performance_schema'), ('sys')",
    )
    seen = _patch_factory(monkeypatch, eng)
    monkeypatch.setitem(metadata.LIST_DATABASES_SQL, "MySQL", "SELECT name FROM dbs")

    profile = ConnectionProfile("MySQL", "localhost", "3306", "root")
    assert list_databases(profile) == ["inventory"]
    assert seen['database'] is None


def test_list_databases_failure_carries_driver_message(monkeypatch):
    _patch_factory(monkeypatch, _sqlite_engine())

    profile = ConnectionProfile("PostgreSQL", "localhost", "5432", "app")
    with pytest.raises(DatabaseOperationError) as excinfo:
        list_databases(profile)
    assert "no such table: pg_database" in excinfo.value.error.message


def test_connection_report(monkeypatch):
    seen = _patch_factory(monkeypatch, _sqlite_engine())

    profile = ConnectionProfile("PostgreSQL", "db.local", "5432", "app", "secret", database="shop")
    report = check_connection(profile)
    assert seen['database'] == "shop"
    assert report.product_name == "SQLite"
    assert report.product_version != ""
    assert report.driver_name == "pysqlite"
    assert report.url == "jdbc:postgresql://db.local:5432/shop"
    assert report.username == "app"
    assert report.database == "shop"


def test_connection_requires_database():
    with pytest.raises(ValueError):
        check_connection(ConnectionProfile("MySQL", "localhost", "3306", "root"))


def test_connection_unsupported_engine():
    with pytest.raises(UnsupportedEngineError):
        check_connection(ConnectionProfile("Oracle", "localhost", "1521", "scott", database="xe"))
