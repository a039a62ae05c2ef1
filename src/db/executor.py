from dataclasses import dataclass, field
from typing import Any, List, Optional
from sqlalchemy import event
from sqlalchemy.engine import Engine
import logging
import threading
import time

from db.connection import ConnectionProfile, DEFAULT_CONNECT_TIMEOUT, DEFAULT_ODBC_DRIVER, engine_scope
from db.errors import OperationCancelled

logger = logging.getLogger(__name__)

ROW_LIMIT = 100
CELL_WIDTH = 20
# long values keep this many characters followed by ELLIPSIS
CELL_KEEP = 17
ELLIPSIS = "..."
NULL_TEXT = "NULL"

_POLL_INTERVAL = 0.1
# an interrupt that lands before the statement reaches the server is lost, so it is repeated
_CANCEL_RETRY = 1.0


@dataclass
class QueryResult:
    """Rows are already rendered to display strings. truncated is set iff row_count hit the cap."""

    columns: List[str]
    rows: List[List[str]] = field(default_factory=list)
    row_count: int = 0
    truncated: bool = False
    elapsed: float = 0.0


def format_cell(value: Any) -> str:
    """Render a value for the text table: None as NULL, long values cut to 17 chars + '...'."""
    text = NULL_TEXT if value is None else str(value)
    if len(text) > CELL_WIDTH:
        return text[:CELL_KEEP] + ELLIPSIS
    return text


def cancel_statement(engine: Engine, dialect_name: str, dbapi_conn, cursor=None) -> None:
    """Ask the server to abort the statement running on dbapi_conn.

    Uses each driver's own interrupt call, which is safe while another thread is blocked
    in execute(); closing the connection under that thread is not.
    """
    if dialect_name == "postgresql":
        dbapi_conn.cancel()
    elif dialect_name in ("mysql", "mariadb"):
        # PyMySQL has no cancel; kill the query from a second connection
        thread_id = int(dbapi_conn.thread_id())
        with engine.connect() as killer:
            killer.exec_driver_sql(f"KILL QUERY {thread_id}")
    elif dialect_name == "mssql":
        if cursor is not None:
            cursor.cancel()
    elif dialect_name == "sqlite":
        dbapi_conn.interrupt()
    else:
        logger.warning("Cannot interrupt a running %s statement; waiting for it to finish", dialect_name)


def run_statement(engine: Engine, sql: str, row_limit: int = ROW_LIMIT,
                  stop_event: Optional[threading.Event] = None) -> QueryResult:
    """Execute one statement on a fresh connection and return at most row_limit rows.

    The statement runs in a helper thread. When stop_event is set while it is in flight,
    the statement is interrupted through the driver (see cancel_statement) and the helper
    thread is joined before the connection is released. Driver errors propagate unchanged.
    """
    if stop_event is not None and stop_event.is_set():
        raise OperationCancelled("Execution canceled")

    with engine.connect() as conn:
        outcome = {"value": None, "error": None, "cursor": None}
        dbapi_conn = conn.connection.dbapi_connection

        def _remember_cursor(conn_, cursor, statement, parameters, context, executemany):
            outcome["cursor"] = cursor

        event.listen(conn, "before_cursor_execute", _remember_cursor)

        def _run():
            try:
                start = time.perf_counter()
                res = conn.exec_driver_sql(sql)
                if res.returns_rows:
                    columns = list(res.keys())
                    fetched = res.fetchmany(row_limit)
                    res.close()
                    rows = [[format_cell(v) for v in r] for r in fetched]
                else:
                    columns = ["Message"]
                    rows = [[f"Affected rows: {res.rowcount}"]]
                conn.commit()
                outcome["value"] = QueryResult(
                    columns=columns,
                    rows=rows,
                    row_count=len(rows) if res.returns_rows else 0,
                    truncated=res.returns_rows and len(rows) >= row_limit,
                    elapsed=time.perf_counter() - start,
                )
            except Exception as e:
                outcome["error"] = e

        thr = threading.Thread(target=_run, daemon=True)
        thr.start()
        cancelled = False
        # the connection must not be released while the helper still uses it
        while thr.is_alive():
            thr.join(_POLL_INTERVAL)
            if thr.is_alive() and stop_event is not None and stop_event.is_set():
                cancelled = True
                try:
                    cancel_statement(engine, conn.dialect.name, dbapi_conn, outcome["cursor"])
                except Exception:
                    logger.warning("Interrupting the running statement failed", exc_info=True)
                thr.join(_CANCEL_RETRY)

        if cancelled and outcome["value"] is None:
            logger.info("Statement canceled")
            raise OperationCancelled("Execution canceled")
        if outcome["error"] is not None:
            raise outcome["error"]
        return outcome["value"]


def execute_query(profile: ConnectionProfile, sql: str, row_limit: int = ROW_LIMIT,
                  stop_event: Optional[threading.Event] = None,
                  connect_timeout: int = DEFAULT_CONNECT_TIMEOUT,
                  odbc_driver: str = DEFAULT_ODBC_DRIVER) -> QueryResult:
    """Run a caller-supplied statement against the profile's database.

    The statement is sent as-is; it is the operator's own query on their own connection.
    Raises DatabaseOperationError on any driver failure.
    """
    database = profile.require_database()
    with engine_scope(profile, database=database, connect_timeout=connect_timeout,
                      odbc_driver=odbc_driver) as engine:
        result = run_statement(engine, sql, row_limit=row_limit, stop_event=stop_event)
    logger.info("Query on %s/%s returned %d row(s)%s in %.3fs", profile.engine, database,
                result.row_count, " (truncated)" if result.truncated else "", result.elapsed)
    return result
