import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import DBAPIError

# pyodbc messages end with the native error number, e.g. "... (18456) (SQLDriverConnect)"
_ODBC_NATIVE_CODE = re.compile(r"\((\d+)\)\s*(?:\(\w+\))?\s*$")
_SQLSTATE = re.compile(r"^[0-9A-Z]{5}$")


@dataclass
class DriverError:
    """Error details reported by a database driver."""

    code: int
    sql_state: Optional[str]
    message: str


class DatabaseOperationError(RuntimeError):
    """Raised when a database operation fails; carries the driver's error details."""

    def __init__(self, error: DriverError):
        super().__init__(error.message)
        self.error = error


class UnsupportedEngineError(ValueError):
    """Raised for an engine tag outside the supported set."""


class OperationCancelled(RuntimeError):
    """Raised when the user cancels a running operation."""


def describe_error(exc: BaseException) -> DriverError:
    """Extract code, SQL state and message from a driver exception.

    SQLAlchemy wraps driver exceptions in DBAPIError; the driver's own exception is on ``orig``.
    Drivers disagree on where they put things:
      - psycopg2: SQL state on ``pgcode``, no numeric code
      - PyMySQL: ``args == (code, message)``
      - pyodbc: ``args == (sqlstate, message)``, native code at the end of the message
    """
    orig = exc.orig if isinstance(exc, DBAPIError) and exc.orig is not None else exc

    code = 0
    sql_state = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    args = getattr(orig, "args", ())

    if len(args) >= 2 and isinstance(args[0], int):
        code = args[0]
        message = str(args[1])
    elif len(args) >= 2 and isinstance(args[0], str) and _SQLSTATE.match(args[0]):
        sql_state = args[0]
        message = str(args[1])
        m = _ODBC_NATIVE_CODE.search(message)
        if m:
            code = int(m.group(1))
    else:
        message = str(orig).strip()

    if isinstance(orig, ImportError):
        message = f"Database driver is not installed: {message}"

    return DriverError(code=code, sql_state=sql_state, message=message)
