from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse, parse_qs, unquote
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from db.errors import DatabaseOperationError, UnsupportedEngineError, describe_error

logger = logging.getLogger(__name__)

POSTGRESQL = "PostgreSQL"
MYSQL = "MySQL"
MARIADB = "MariaDB"
SQLSERVER = "SQL Server"

SUPPORTED_ENGINES = (POSTGRESQL, MYSQL, MARIADB, SQLSERVER)

DEFAULT_PORTS = {
    POSTGRESQL: "5432",
    MYSQL: "3306",
    MARIADB: "3306",
    SQLSERVER: "1433",
}

# SQLAlchemy drivername per engine tag
DRIVERNAMES = {
    POSTGRESQL: "postgresql+psycopg2",
    MYSQL: "mysql+pymysql",
    MARIADB: "mariadb+pymysql",
    SQLSERVER: "mssql+pyodbc",
}

# Keyword each DBAPI module accepts for its connect timeout
_TIMEOUT_ARGS = {
    POSTGRESQL: "connect_timeout",
    MYSQL: "connect_timeout",
    MARIADB: "connect_timeout",
    SQLSERVER: "timeout",
}

DEFAULT_CONNECT_TIMEOUT = 10
DEFAULT_ODBC_DRIVER = "ODBC Driver 18 for SQL Server"

DATABASE_PLACEHOLDER = "<select database>"

_JDBC_SCHEMES = {
    "postgresql": POSTGRESQL,
    "mysql": MYSQL,
    "mariadb": MARIADB,
    "sqlserver": SQLSERVER,
}


@dataclass
class ConnectionProfile:
    """Connection inputs for one operation. Never persisted with the password."""

    engine: str
    host: str
    port: str
    username: str
    password: str = ""
    database: Optional[str] = None

    def require_database(self) -> str:
        if not self.database:
            raise ValueError("Please select a database first")
        return self.database


def check_engine(engine: str) -> str:
    if engine not in SUPPORTED_ENGINES:
        raise UnsupportedEngineError(f"Unsupported database type: {engine}")
    return engine


def build_connection_url(engine: str, host: str, port: str, database: str) -> str:
    """Return the JDBC-style connection URL for the engine tag.

    Raises UnsupportedEngineError for any tag outside SUPPORTED_ENGINES.
    """
    if engine == POSTGRESQL:
        return f"jdbc:postgresql://{host}:{port}/{database}"
    if engine == MYSQL:
        return f"jdbc:mysql://{host}:{port}/{database}?useSSL=false&allowPublicKeyRetrieval=true"
    if engine == MARIADB:
        return f"jdbc:mariadb://{host}:{port}/{database}"
    if engine == SQLSERVER:
        return f"jdbc:sqlserver://{host}:{port};databaseName={database};encrypt=false"
    raise UnsupportedEngineError(f"Unsupported database type: {engine}")


def preview_connection_url(engine: str, host: str, port: str, database: Optional[str]) -> str:
    """URL preview for the form: no driver options, placeholders for missing values."""
    host = host or "localhost"
    database = database or DATABASE_PLACEHOLDER
    if engine == POSTGRESQL:
        return f"jdbc:postgresql://{host}:{port}/{database}"
    if engine == MYSQL:
        return f"jdbc:mysql://{host}:{port}/{database}"
    if engine == MARIADB:
        return f"jdbc:mariadb://{host}:{port}/{database}"
    if engine == SQLSERVER:
        return f"jdbc:sqlserver://{host}:{port};databaseName={database}"
    return ""


def parse_jdbc_url(jdbc_url: str) -> dict:
    """Parse a JDBC URL into a dict of connection parameters.

    Supports the four forms produced by build_connection_url, e.g.
    jdbc:postgresql://host:port/db?key=val and jdbc:sqlserver://host:port;databaseName=db;encrypt=false.
    Returns a dict with keys: engine, host, port, database, username, password, params.
    """
    if not jdbc_url.startswith("jdbc:"):
        raise ValueError("Not a JDBC URL")
    raw = jdbc_url[len("jdbc:"):]

    scheme = raw.split(":", 1)[0].lower()
    engine = _JDBC_SCHEMES.get(scheme)
    if engine is None:
        raise UnsupportedEngineError(f"Unsupported JDBC scheme: {scheme}")

    params = {}
    if engine == SQLSERVER:
        # sqlserver keeps its properties after ';' instead of in a query string
        raw, _, props = raw.partition(";")
        for prop in props.split(";"):
            if "=" in prop:
                k, v = prop.split("=", 1)
                params[k.strip()] = v.strip()

    parsed = urlparse(raw)

    username = None
    password = None
    host = None
    port = None
    if parsed.netloc:
        # netloc is [user[:pass]@]host[:port]
        hostinfo = parsed.netloc
        if "@" in hostinfo:
            userinfo, hostinfo = hostinfo.rsplit("@", 1)
            if ":" in userinfo:
                u, p = userinfo.split(":", 1)
                username = unquote(u)
                password = unquote(p)
            else:
                username = unquote(userinfo)
        if ":" in hostinfo:
            host, port = hostinfo.split(":", 1)
        else:
            host = hostinfo

    database = parsed.path[1:] if parsed.path.startswith("/") else parsed.path
    if engine == SQLSERVER:
        database = params.pop("databaseName", None) or params.pop("database", None) or database

    params.update({k: v[0] for k, v in parse_qs(parsed.query).items()})
    # JDBC properties may carry credentials too
    username = params.pop("user", username)
    password = params.pop("password", password)

    return {
        "engine": engine,
        "host": host,
        "port": port or DEFAULT_PORTS[engine],
        "database": database or None,
        "username": username,
        "password": password,
        "params": params,
    }


def bootstrap_database(engine: str) -> Optional[str]:
    """Administrative database used to enumerate the others; None means server level."""
    check_engine(engine)
    return "postgres" if engine == POSTGRESQL else None


def build_engine_url(profile: ConnectionProfile, database: Optional[str] = None,
                     odbc_driver: str = DEFAULT_ODBC_DRIVER) -> URL:
    """Build the SQLAlchemy URL used to connect. URL.create takes care of quoting credentials."""
    check_engine(profile.engine)
    try:
        port = int(profile.port)
    except (TypeError, ValueError):
        raise ValueError(f"Port must be an integer, got: {profile.port}") from None

    query = {}
    if profile.engine == SQLSERVER:
        query = {"driver": odbc_driver, "Encrypt": "no"}
    elif profile.engine in (MYSQL, MARIADB):
        query = {"charset": "utf8mb4"}

    return URL.create(
        drivername=DRIVERNAMES[profile.engine],
        username=profile.username or None,
        password=profile.password or None,
        host=profile.host or None,
        port=port,
        database=database or None,
        query=query,
    )


def create_engine_for(profile: ConnectionProfile, database: Optional[str] = None,
                      connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
                      odbc_driver: str = DEFAULT_ODBC_DRIVER) -> Engine:
    """Create a throwaway engine for a single operation.

    NullPool makes every connect() open a fresh DBAPI connection that is really
    closed on release; nothing is reused between operations.
    """
    url = build_engine_url(profile, database=database, odbc_driver=odbc_driver)
    connect_args = {_TIMEOUT_ARGS[profile.engine]: int(connect_timeout)}
    engine = create_engine(url, poolclass=NullPool, connect_args=connect_args)
    logger.debug("Engine for %s created: %s", profile.engine, url.render_as_string(hide_password=True))
    return engine


@contextmanager
def engine_scope(profile: ConnectionProfile, database: Optional[str] = None,
                 connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
                 odbc_driver: str = DEFAULT_ODBC_DRIVER):
    """Yield an engine for one operation and dispose it on every exit path.

    Driver and SQLAlchemy failures (including a missing driver module) are re-raised
    as DatabaseOperationError carrying the driver's code, SQL state and message.
    """
    engine = None
    try:
        engine = create_engine_for(profile, database=database,
                                   connect_timeout=connect_timeout, odbc_driver=odbc_driver)
        yield engine
    except (SQLAlchemyError, ImportError) as e:
        error = describe_error(e)
        logger.warning("%s operation failed: code=%s state=%s message=%s",
                       profile.engine, error.code, error.sql_state, error.message)
        raise DatabaseOperationError(error) from e
    finally:
        if engine is not None:
            engine.dispose()
