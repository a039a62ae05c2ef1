import sys
from pathlib import Path
import pytest

# Ensure project src directory is on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy.exc import OperationalError, NoSuchModuleError

import db.connection as connection
from db.connection import ConnectionProfile, engine_scope
from db.errors import DatabaseOperationError, describe_error


class FakePyMySQLError(Exception):
    """Shaped like pymysql.err.OperationalError: args == (code, message)."""


class FakePsycopgError(Exception):
    """Shaped like psycopg2.OperationalError: SQL state on pgcode."""
    pgcode = "28P01"


class FakePyodbcError(Exception):
    """Shaped like pyodbc.Error: args == (sqlstate, message)."""


def _wrap(orig):
    return OperationalError("SELECT 1", None, orig)


def test_describe_pymysql_error():
    err = describe_error(_wrap(FakePyMySQLError(1045, "Access denied for user 'root'@'10.0.0.5' (using password: YES)")))
    assert err.code == 1045
    assert err.sql_state is None
    assert err.message == "Access denied for user 'root'@'10.0.0.5' (using password: YES)"


def test_describe_psycopg_error():
    err = describe_error(_wrap(FakePsycopgError('FATAL:  password authentication failed for user "app"\n')))
    assert err.code == 0
    assert err.sql_state == "28P01"
    assert err.message == 'FATAL:  password authentication failed for user "app"'


def test_describe_pyodbc_error():
    msg = ("[28000] [Microsoft][ODBC Driver 18 for SQL Server][SQL Server]"
           "Login failed for user 'sa'. (18456) (SQLDriverConnect)")
    err = describe_error(_wrap(FakePyodbcError("28000", msg)))
    assert err.code == 18456
    assert err.sql_state == "28000"
    assert err.message == msg


def test_describe_unwrapped_exception():
    err = describe_error(RuntimeError("boom"))
    assert err.code == 0
    assert err.sql_state is None
    assert err.message == "boom"


def test_describe_missing_driver():
    err = describe_error(ModuleNotFoundError("No module named 'pyodbc'"))
    assert err.message == "Database driver is not installed: No module named 'pyodbc'"


def test_engine_scope_wraps_driver_errors_and_disposes(monkeypatch):
    disposed = []

    class FailingEngine:
        def connect(self):
            raise _wrap(FakePyMySQLError(2003, "Can't connect to MySQL server on 'db.local' ([Errno 111] Connection refused)"))

        def dispose(self):
            disposed.append(True)

    monkeypatch.setattr(connection, "create_engine_for", lambda *a, **k: FailingEngine())

    profile = ConnectionProfile("MySQL", "db.local", "3306", "root")
    with pytest.raises(DatabaseOperationError) as excinfo:
        with engine_scope(profile) as engine:
            engine.connect()
    assert excinfo.value.error.code == 2003
    assert excinfo.value.error.message.startswith("Can't connect to MySQL server")
    assert isinstance(excinfo.value.__cause__, OperationalError)
    assert disposed == [True]


def test_engine_scope_wraps_factory_errors(monkeypatch):
    def broken_factory(*args, **kwargs):
        raise NoSuchModuleError("Can't load plugin: sqlalchemy.dialects:mssql.pyodbc")

    monkeypatch.setattr(connection, "create_engine_for", broken_factory)

    with pytest.raises(DatabaseOperationError) as excinfo:
        with engine_scope(ConnectionProfile("SQL Server", "h", "1433", "sa")):
            pass
    assert "mssql.pyodbc" in excinfo.value.error.message


def test_engine_scope_leaves_other_errors_alone(monkeypatch):
    monkeypatch.setattr(connection, "create_engine_for", lambda *a, **k: _NoopEngine())
    with pytest.raises(KeyError):
        with engine_scope(ConnectionProfile("MySQL", "h", "3306", "root")):
            raise KeyError("not a driver error")


class _NoopEngine:
    def dispose(self):
        pass
