"""Unit tests for error handling — MySQL error codes to actionable messages."""
import pytest
import pymysql
from mysql_mcp.utils.errors import handle_error


class TestErrorHandling:
    def test_timeout_error(self):
        result = handle_error(TimeoutError("connection timed out"))
        assert "timed out" in result.lower()

    def test_generic_error(self):
        result = handle_error(ValueError("test error"))
        assert "ValueError" in result
        assert "test error" in result

    def test_connection_error_after_retries(self):
        result = handle_error(
            ConnectionError("Failed to connect after 3 attempts. Last error: refused")
        )
        assert result.startswith("Error: Cannot connect to MySQL")
        assert "Failed to connect after 3 attempts" in result

    @pytest.mark.parametrize("code", [2002, 2003, 2005])
    def test_server_unreachable(self, code):
        result = handle_error(pymysql.err.OperationalError(code, "Can't connect"))
        assert "MYSQL_HOST" in result

    @pytest.mark.parametrize("code", [2006, 2013])
    def test_connection_lost(self, code):
        result = handle_error(pymysql.err.OperationalError(code, "Lost connection"))
        assert "Retry" in result

    def test_access_denied(self):
        result = handle_error(
            pymysql.err.OperationalError(1142, "DROP command denied to user 'app'")
        )
        assert "Permission denied" in result
        assert "DROP command denied" in result

    def test_unknown_table(self):
        result = handle_error(
            pymysql.err.ProgrammingError(1146, "Table 'shop.nope' doesn't exist")
        )
        assert "shop.nope" in result
        assert "schema qualification" in result

    def test_syntax_error(self):
        result = handle_error(pymysql.err.ProgrammingError(1064, "near 'FORM'"))
        assert "syntax error" in result

    def test_write_in_read_only_transaction(self):
        result = handle_error(
            pymysql.err.InternalError(1792, "Cannot execute statement in a READ ONLY transaction.")
        )
        assert "read-only transaction" in result

    def test_duplicate_entry(self):
        result = handle_error(
            pymysql.err.IntegrityError(1062, "Duplicate entry '1' for key 'PRIMARY'")
        )
        assert "Duplicate entry" in result

    def test_unmapped_code_keeps_code_and_text(self):
        result = handle_error(pymysql.err.OperationalError(1290, "--read-only option"))
        assert "1290" in result
        assert "--read-only option" in result

    def test_all_messages_are_prefixed(self):
        for e in (
            TimeoutError(),
            pymysql.err.OperationalError(1205, "Lock wait timeout"),
            pymysql.err.IntegrityError(1452, "fk"),
            RuntimeError("x"),
        ):
            assert handle_error(e).startswith("Error: ")
