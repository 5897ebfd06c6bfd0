"""
Security Service Tests
"""

import pytest

from dbchat.exceptions import QueryErrorKind, QueryExecutionError
from dbchat.services.security_service import SecurityService, is_select_query, strip_code_fences


@pytest.mark.unit
class TestHelpers:

    def test_strip_code_fences(self):
        assert strip_code_fences("```sql\nSELECT 1;\n```") == "SELECT 1"
        assert strip_code_fences("  SELECT 1;;  ") == "SELECT 1"
        assert strip_code_fences("```\nSELECT 2\n```") == "SELECT 2"

    def test_is_select_query(self):
        assert is_select_query("  select * from users")
        assert is_select_query("WITH t AS (SELECT 1) SELECT * FROM t")
        assert not is_select_query("DELETE FROM users")


@pytest.mark.unit
class TestSecurityService:
    """Test check_query() and enforce()."""

    def test_select_passes(self):
        result = SecurityService().check_query("SELECT * FROM users")
        assert result.passed is True
        assert result.issues == []

    def test_empty_rejected(self):
        result = SecurityService().check_query("   ")
        assert result.passed is False
        assert result.issues == ["SQL query is empty"]
        assert result.kind == QueryErrorKind.INVALID_SQL

    def test_read_only_rejects_delete(self):
        result = SecurityService(read_only=True).check_query("DELETE FROM users")
        assert result.passed is False
        assert result.kind == QueryErrorKind.READ_ONLY_VIOLATION

    def test_fenced_select_passes_read_only(self):
        assert SecurityService().check_query("```sql\nSELECT 1\n```").passed is True

    def test_delete_allowed_when_not_read_only(self):
        assert SecurityService(read_only=False).check_query("DELETE FROM users").passed is True

    @pytest.mark.parametrize("read_only", [True, False])
    def test_stacked_statement_rejected(self, read_only):
        result = SecurityService(read_only=read_only).check_query("SELECT * FROM users; DROP TABLE users")
        assert result.passed is False
        assert result.issues == ["Multiple statements with DDL/DML detected"]

    @pytest.mark.parametrize("sql,message", [
        ("SELECT * FROM users INTO OUTFILE '/tmp/x'", "INTO OUTFILE not allowed"),
        ("SELECT LOAD_FILE('/etc/passwd')", "LOAD_FILE not allowed"),
        ("SELECT SLEEP(5)", "SLEEP not allowed"),
        ("SELECT BENCHMARK(1000000, MD5('x'))", "BENCHMARK not allowed"),
        ("SELECT @@version", "System variables access not allowed"),
    ])
    def test_dangerous_patterns(self, sql, message):
        assert message in SecurityService().detect_dangerous_patterns(sql)

    def test_custom_pattern(self):
        service = SecurityService(custom_blocked_patterns=[(r"\bsalary\b", "Salary data is restricted")])
        result = service.check_query("SELECT salary FROM employees")
        assert result.issues == ["Salary data is restricted"]

    def test_enforce_raises_read_only_violation(self):
        with pytest.raises(QueryExecutionError) as exc_info:
            SecurityService().enforce("UPDATE users SET name = 'x'")
        assert exc_info.value.kind == QueryErrorKind.READ_ONLY_VIOLATION
        assert exc_info.value.status_code == 403

    def test_enforce_raises_invalid_sql(self):
        with pytest.raises(QueryExecutionError) as exc_info:
            SecurityService().enforce("SELECT SLEEP(10)")
        assert exc_info.value.kind == QueryErrorKind.INVALID_SQL
        assert str(exc_info.value) == "Invalid SQL query: SLEEP not allowed"
