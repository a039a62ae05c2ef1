"""Plain-text reports shown in the result area."""
from typing import List

from db.errors import DriverError
from db.executor import CELL_WIDTH, QueryResult
from db.metadata import ConnectionReport

RULE = "═" * 39
COLUMN_SEPARATOR = " | "
# width one column takes up in the header rule: cell plus separator
_RULE_STEP = CELL_WIDTH + len(COLUMN_SEPARATOR)
_RULE_MAX = 80


def _sql_state(error: DriverError) -> str:
    return error.sql_state if error.sql_state else "n/a"


def format_connection_report(report: ConnectionReport) -> str:
    return (
        "✅ CONNECTION SUCCESSFUL!\n\n"
        f"{RULE}\n\n"
        f"Database Product: {report.product_name}\n"
        f"Database Version: {report.product_version}\n"
        f"Driver Name: {report.driver_name}\n"
        f"Driver Version: {report.driver_version}\n"
        f"Connection URL: {report.url}\n"
        f"Username: {report.username}\n"
        f"Current Database: {report.database}\n\n"
        f"{RULE}\n"
    )


def format_connection_failure(error: DriverError) -> str:
    return (
        "❌ CONNECTION FAILED!\n\n"
        f"{RULE}\n\n"
        f"Error Code: {error.code}\n"
        f"SQL State: {_sql_state(error)}\n"
        f"Message: {error.message}\n\n"
        f"{RULE}\n"
    )


def format_query_result(result: QueryResult) -> str:
    """Render a QueryResult as a fixed-width table; cells are padded to 20 characters."""
    lines = ["QUERY RESULTS", RULE, ""]
    lines.append(COLUMN_SEPARATOR.join(f"{c:<{CELL_WIDTH}}" for c in result.columns))
    lines.append("─" * min(_RULE_MAX, len(result.columns) * _RULE_STEP))
    for row in result.rows:
        lines.append(COLUMN_SEPARATOR.join(f"{v:<{CELL_WIDTH}}" for v in row))
    lines.append("")
    lines.append(RULE)
    footer = f"Total rows: {result.row_count}"
    if result.truncated:
        footer += f" (limited to {result.row_count} rows)"
    lines.append(footer)
    return "\n".join(lines)


def format_query_failure(error: DriverError) -> str:
    return (
        "❌ QUERY EXECUTION FAILED!\n\n"
        f"Error: {error.message}\n"
        f"SQL State: {_sql_state(error)}\n"
    )


def format_database_list(names: List[str]) -> str:
    if not names:
        return (
            "No user databases found on the server.\n"
            "The user may lack permission to see them, or only system databases exist.\n"
        )
    return f"Successfully loaded {len(names)} databases:\n\n" + "\n".join(names)


def format_database_list_failure(error: DriverError) -> str:
    return (
        "Failed to connect or retrieve databases. Please check:\n"
        "- Host and port are correct\n"
        "- Username and password are valid\n"
        "- Database server is running\n"
        "- User has permission to list databases\n\n"
        f"Error Code: {error.code}\n"
        f"SQL State: {_sql_state(error)}\n"
        f"Message: {error.message}\n"
    )


def format_unsupported_engine() -> str:
    return "❌ Unsupported database type!"
