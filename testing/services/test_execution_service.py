"""
Query Executor Tests

Statements run against the seeded in-memory SQLite database; SQL Server
row limiting is checked with a mocked engine dialect.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import DBAPIError

from dbchat.exceptions import QueryErrorKind, QueryExecutionError
from dbchat.services.execution_service import QueryExecutor

from fixtures.database_fixtures import SEED_USERS, count_rows


def _executor_for(dialect_name: str, **kwargs) -> QueryExecutor:
    engine = MagicMock()
    engine.dialect.name = dialect_name
    return QueryExecutor(engine, **kwargs)


@pytest.mark.unit
class TestRowLimit:
    """Test add_limit() per dialect."""

    def test_limit_appended(self, target_engine):
        executor = QueryExecutor(target_engine, max_results=100)
        assert executor.add_limit("SELECT * FROM users") == "SELECT * FROM users LIMIT 100"

    def test_existing_limit_kept(self, target_engine):
        executor = QueryExecutor(target_engine)
        assert executor.add_limit("SELECT * FROM users LIMIT 10") == "SELECT * FROM users LIMIT 10"

    def test_non_select_untouched(self, target_engine):
        executor = QueryExecutor(target_engine, read_only=False)
        assert executor.add_limit("DELETE FROM users") == "DELETE FROM users"

    def test_sqlsrv_offset_fetch(self):
        executor = _executor_for("mssql", max_results=50)
        assert executor.dialect == "sqlsrv"
        assert executor.add_limit("SELECT * FROM users") == (
            "SELECT * FROM users ORDER BY (SELECT NULL) OFFSET 0 ROWS FETCH NEXT 50 ROWS ONLY"
        )

    def test_sqlsrv_keeps_existing_order_by(self):
        executor = _executor_for("mssql", max_results=50)
        assert executor.add_limit("SELECT * FROM users ORDER BY name") == (
            "SELECT * FROM users ORDER BY name OFFSET 0 ROWS FETCH NEXT 50 ROWS ONLY"
        )

    def test_sqlsrv_top_kept(self):
        executor = _executor_for("mssql")
        assert executor.add_limit("SELECT TOP 5 * FROM users") == "SELECT TOP 5 * FROM users"

    def test_postgres_uses_limit(self):
        assert _executor_for("postgresql").add_limit("SELECT 1") == "SELECT 1 LIMIT 100"


@pytest.mark.integration
class TestExecute:
    """Test execute() against SQLite."""

    def test_select_returns_rows(self, target_engine):
        result = QueryExecutor(target_engine).execute("SELECT id, name FROM users ORDER BY id")

        assert result.success is True
        assert result.count == len(SEED_USERS)
        assert result.data[0] == {"id": 1, "name": "Ada Lovelace"}
        assert result.sql == "SELECT id, name FROM users ORDER BY id LIMIT 100"
        assert result.execution_time >= 0

    def test_fenced_sql_cleaned(self, target_engine):
        result = QueryExecutor(target_engine).execute("```sql\nSELECT COUNT(*) AS total FROM users;\n```")
        assert result.data == [{"total": len(SEED_USERS)}]

    def test_rows_capped_by_injected_limit(self, target_engine):
        result = QueryExecutor(target_engine, max_results=2).execute("SELECT * FROM users")

        assert result.sql == "SELECT * FROM users LIMIT 2"
        assert result.count == 2

    def test_own_limit_returns_every_row(self, target_engine):
        result = QueryExecutor(target_engine, max_results=2).execute("SELECT * FROM users LIMIT 3")

        assert result.sql == "SELECT * FROM users LIMIT 3"
        assert result.count == len(SEED_USERS)
        assert len(result.data) == len(SEED_USERS)

    def test_read_only_rejects_delete_without_executing(self, target_engine):
        executor = QueryExecutor(target_engine, read_only=True)

        with pytest.raises(QueryExecutionError) as exc_info:
            executor.execute("DELETE FROM users")

        assert exc_info.value.kind == QueryErrorKind.READ_ONLY_VIOLATION
        assert count_rows(target_engine, "users") == len(SEED_USERS)

    def test_stacked_drop_rejected_when_writes_allowed(self, target_engine):
        executor = QueryExecutor(target_engine, read_only=False)

        with pytest.raises(QueryExecutionError) as exc_info:
            executor.execute("SELECT * FROM users; DROP TABLE users")

        assert exc_info.value.kind == QueryErrorKind.INVALID_SQL
        assert count_rows(target_engine, "users") == len(SEED_USERS)

    def test_writes_committed_when_read_only_off(self, target_engine):
        executor = QueryExecutor(target_engine, read_only=False)

        result = executor.execute("DELETE FROM users WHERE id = 1")

        assert result.success is True
        assert result.data == []
        assert result.count == 1
        assert count_rows(target_engine, "users") == len(SEED_USERS) - 1

    def test_failed_write_leaves_data_untouched(self, target_engine):
        executor = QueryExecutor(target_engine, read_only=False)

        with pytest.raises(QueryExecutionError) as exc_info:
            executor.execute("INSERT INTO users (id, name, email) VALUES (1, 'Dup', 'dup@example.com')")

        assert exc_info.value.kind == QueryErrorKind.EXECUTION_FAILED
        assert count_rows(target_engine, "users") == len(SEED_USERS)

    def test_execution_error(self, target_engine):
        with pytest.raises(QueryExecutionError) as exc_info:
            QueryExecutor(target_engine).execute("SELECT * FROM missing_table")

        error = exc_info.value
        assert error.kind == QueryErrorKind.EXECUTION_FAILED
        assert str(error).startswith("Query execution failed:")
        assert "missing_table" in str(error)
        assert error.sql == "SELECT * FROM missing_table LIMIT 100"

    def test_timeout(self, target_engine):
        executor = QueryExecutor(target_engine, timeout=0)
        sql = (
            "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c WHERE x < 50000000) "
            "SELECT COUNT(*) AS n FROM c"
        )

        with pytest.raises(QueryExecutionError) as exc_info:
            executor.execute(sql)

        assert exc_info.value.kind == QueryErrorKind.TIMEOUT
        assert exc_info.value.status_code == 408

    def test_connection_usable_after_timeout(self, target_engine):
        with pytest.raises(QueryExecutionError):
            QueryExecutor(target_engine, timeout=0).execute(
                "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL SELECT x + 1 FROM c WHERE x < 50000000) "
                "SELECT COUNT(*) FROM c"
            )

        assert QueryExecutor(target_engine).execute("SELECT COUNT(*) AS n FROM users").data == [{"n": 3}]

    def test_disabled(self, target_engine):
        with pytest.raises(QueryExecutionError) as exc_info:
            QueryExecutor(target_engine, enabled=False).execute("SELECT 1")
        assert "disabled" in str(exc_info.value)

    def test_validate(self, target_engine):
        executor = QueryExecutor(target_engine)
        executor.validate("SELECT 1")
        with pytest.raises(QueryExecutionError):
            executor.validate("")

    def test_explain(self, target_engine):
        plan = QueryExecutor(target_engine).explain("SELECT * FROM users WHERE id = 1")
        assert plan["success"] is True
        assert plan["plan"]

    def test_explain_failure(self, target_engine):
        plan = QueryExecutor(target_engine).explain("SELECT * FROM missing_table")
        assert plan["success"] is False
        assert "missing_table" in plan["error"]


@pytest.mark.unit
class TestStatementTimeout:
    """Test _apply_timeout() against mocked connections."""

    @staticmethod
    def _statements(conn) -> list:
        return [str(call.args[0]) for call in conn.execute.call_args_list]

    def test_postgres_failure_rolls_back(self):
        executor = _executor_for("postgresql", timeout=5)
        conn = MagicMock()
        conn.execute.side_effect = DBAPIError("SET LOCAL statement_timeout", {}, Exception("denied"))

        restore = executor._apply_timeout(conn, 0.0)
        restore()

        conn.rollback.assert_called_once()

    def test_mysql_setting_restored(self):
        executor = _executor_for("mysql", timeout=5)
        conn = MagicMock()
        conn.execute.return_value.scalar.return_value = 0

        restore = executor._apply_timeout(conn, 0.0)
        assert self._statements(conn)[-1] == "SET SESSION MAX_EXECUTION_TIME = 5000"

        restore()
        assert self._statements(conn)[-1] == "SET SESSION MAX_EXECUTION_TIME = 0"

    def test_sqlsrv_lock_timeout_reset(self):
        executor = _executor_for("mssql", timeout=2)
        conn = MagicMock()

        restore = executor._apply_timeout(conn, 0.0)
        restore()

        assert self._statements(conn) == ["SET LOCK_TIMEOUT 2000", "SET LOCK_TIMEOUT -1"]
