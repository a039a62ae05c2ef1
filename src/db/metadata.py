"""Server-level metadata: enumerate databases and describe a live connection.

Both operations open their own short-lived engine through ``engine_scope`` so the
connection is closed whether they succeed or fail.
"""
from dataclasses import dataclass
from typing import Iterable, List
import logging

from db.connection import (
    ConnectionProfile,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_ODBC_DRIVER,
    MARIADB,
    MYSQL,
    POSTGRESQL,
    SQLSERVER,
    bootstrap_database,
    build_connection_url,
    check_engine,
    engine_scope,
)

logger = logging.getLogger(__name__)

LIST_DATABASES_SQL = {
    POSTGRESQL: "SELECT datname FROM pg_database WHERE datistemplate = false ORDER BY datname",
    MYSQL: "SHOW DATABASES",
    MARIADB: "SHOW DATABASES",
    SQLSERVER: "SELECT name FROM sys.databases "
               "WHERE name NOT IN ('master', 'tempdb', 'model', 'msdb') ORDER BY name",
}

SYSTEM_DATABASES = {
    POSTGRESQL: frozenset(),
    MYSQL: frozenset({"information_schema", "mysql", "performance_schema", "sys"}),
    MARIADB: frozenset({"information_schema", "mysql", "performance_schema", "sys"}),
    SQLSERVER: frozenset({"master", "tempdb", "model", "msdb"}),
}

_PRODUCT_NAMES = {
    "postgresql": "PostgreSQL",
    "mysql": "MySQL",
    "mssql": "Microsoft SQL Server",
    "sqlite": "SQLite",
}


@dataclass
class ConnectionReport:
    product_name: str
    product_version: str
    driver_name: str
    driver_version: str
    url: str
    username: str
    database: str


def filter_system_databases(engine: str, names: Iterable[str]) -> List[str]:
    """Drop the engine's built-in system databases, keeping the order of the rest."""
    hidden = SYSTEM_DATABASES[check_engine(engine)]
    return [n for n in names if n not in hidden]


def list_databases(profile: ConnectionProfile,
                   connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
                   odbc_driver: str = DEFAULT_ODBC_DRIVER) -> List[str]:
    """Return the user databases on the server.

    Connects to the engine's bootstrap database rather than profile.database, which may
    not be chosen yet. Raises DatabaseOperationError on any driver failure.
    """
    query = LIST_DATABASES_SQL[check_engine(profile.engine)]
    with engine_scope(profile, database=bootstrap_database(profile.engine),
                      connect_timeout=connect_timeout, odbc_driver=odbc_driver) as engine:
        with engine.connect() as conn:
            names = [str(n) for n in conn.exec_driver_sql(query).scalars().all()]
    databases = filter_system_databases(profile.engine, names)
    logger.info("Found %d database(s) on %s:%s (%s)", len(databases), profile.host, profile.port, profile.engine)
    return databases


def _product_name(dialect) -> str:
    if getattr(dialect, "is_mariadb", False):
        return "MariaDB"
    return _PRODUCT_NAMES.get(dialect.name, dialect.name)


def _driver_version(dialect) -> str:
    dbapi = getattr(dialect, "loaded_dbapi", None) or dialect.dbapi
    version = getattr(dbapi, "__version__", None) or getattr(dbapi, "version", None)
    return str(version) if version else "unknown"


def test_connection(profile: ConnectionProfile,
                    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
                    odbc_driver: str = DEFAULT_ODBC_DRIVER) -> ConnectionReport:
    """Open a connection to profile.database and report server and driver details.

    Raises DatabaseOperationError carrying the driver's code, SQL state and message.
    """
    database = profile.require_database()
    url = build_connection_url(profile.engine, profile.host, profile.port, database)
    with engine_scope(profile, database=database, connect_timeout=connect_timeout,
                      odbc_driver=odbc_driver) as engine:
        with engine.connect() as conn:
            dialect = conn.dialect
            info = dialect.server_version_info or ()
            report = ConnectionReport(
                product_name=_product_name(dialect),
                product_version=".".join(str(p) for p in info) or "unknown",
                driver_name=dialect.driver,
                driver_version=_driver_version(dialect),
                url=url,
                username=profile.username,
                database=database,
            )
    logger.info("Connection to %s succeeded (%s %s)", url, report.product_name, report.product_version)
    return report
