import sys
from pathlib import Path

# Ensure project src directory is on sys.path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db.errors import DriverError
from db.executor import QueryResult
from db.metadata import ConnectionReport
from utils.formatting import (
    RULE,
    format_connection_failure,
    format_connection_report,
    format_database_list,
    format_database_list_failure,
    format_query_failure,
    format_query_result,
    format_unsupported_engine,
)


def test_query_result_table_layout():
    result = QueryResult(columns=["id", "name"], rows=[["1", "alice"], ["2", "NULL"]], row_count=2)
    lines = format_query_result(result).split("\n")
    assert lines[0] == "QUERY RESULTS"
    assert lines[1] == RULE
    assert lines[2] == ""
    assert lines[3] == "id                   | name                "
    assert lines[4] == "─" * 46
    assert lines[5] == "1                    | alice               "
    assert lines[6] == "2                    | NULL                "
    assert lines[7] == ""
    assert lines[8] == RULE
    assert lines[9] == "Total rows: 2"


def test_query_result_rule_is_capped_at_80():
    result = QueryResult(columns=["a", "b", "c", "d", "e"])
    assert format_query_result(result).split("\n")[4] == "─" * 80


def test_query_result_truncation_footer():
    result = QueryResult(columns=["i"], rows=[[str(i)] for i in range(100)], row_count=100, truncated=True)
    assert format_query_result(result).endswith("Total rows: 100 (limited to 100 rows)")


def test_connection_failure_keeps_driver_details_verbatim():
    text = format_connection_failure(DriverError(1045, "28000", "Access denied for user 'root'@'localhost'"))
    assert text.startswith("❌ CONNECTION FAILED!")
    assert "Error Code: 1045\n" in text
    assert "SQL State: 28000\n" in text
    assert "Message: Access denied for user 'root'@'localhost'\n" in text


def test_missing_sql_state_is_marked():
    assert "SQL State: n/a\n" in format_query_failure(DriverError(0, None, "syntax error"))


def test_query_failure():
    text = format_query_failure(DriverError(0, "42601", 'syntax error at or near "SELEC"'))
    assert text == ('❌ QUERY EXECUTION FAILED!\n\n'
                    'Error: syntax error at or near "SELEC"\n'
                    'SQL State: 42601\n')


def test_connection_report():
    report = ConnectionReport("PostgreSQL", "16.2", "psycopg2", "2.9.9", "jdbc:postgresql://h:5432/shop", "app", "shop")
    text = format_connection_report(report)
    assert text.startswith("✅ CONNECTION SUCCESSFUL!")
    for line in ("Database Product: PostgreSQL", "Database Version: 16.2", "Driver Name: psycopg2",
                 "Driver Version: 2.9.9", "Connection URL: jdbc:postgresql://h:5432/shop",
                 "Username: app", "Current Database: shop"):
        assert line + "\n" in text


def test_database_list():
    assert format_database_list(["app", "shop"]) == "Successfully loaded 2 databases:\n\napp\nshop"
    assert format_database_list([]).startswith("No user databases found on the server.")
    assert "Successfully loaded" not in format_database_list([])
    failure = format_database_list_failure(DriverError(0, "08001", "connection refused"))
    assert "- User has permission to list databases" in failure
    assert "Message: connection refused" in failure


def test_unsupported_engine():
    assert format_unsupported_engine() == "❌ Unsupported database type!"
