"""
Execution Service Module

The only place model-generated SQL touches the target database.

Every statement goes through the same gate:
1. Security checks (empty, read-only, dangerous patterns)
2. Normalization (whitespace, trailing semicolon, code fences)
3. Row-limit injection for SELECT/WITH
4. Execution under a timeout; read-only connections are never committed
"""

import logging
import re
import time
from datetime import date, datetime, time as dt_time
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from dbchat.core.log_utils import log_debug
from dbchat.exceptions import QueryExecutionError
from dbchat.extraction.schema_extractor import DIALECT_TAGS
from dbchat.models.query_models import ExecutionResult
from dbchat.services.security_service import (
    SecurityService,
    is_select_query,
    strip_code_fences,
)

logger = logging.getLogger(__name__)

TAG = "Query Executor"

_HAS_LIMIT = re.compile(r"\bLIMIT\b|\bTOP\b", re.IGNORECASE)
_HAS_ORDER_BY = re.compile(r"\bORDER\s+BY\b", re.IGNORECASE)

# Driver messages that indicate the statement was cut off by our timeout
_TIMEOUT_MARKERS = (
    "interrupted",
    "statement timeout",
    "canceling statement",
    "maximum statement execution time exceeded",
    "lock request time out",
    "timed out",
    "timeout expired",
)


def _serialize_value(value: Any) -> Any:
    """Convert driver values into JSON-serializable ones."""
    if isinstance(value, (datetime, date, dt_time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


class QueryExecutor:
    """
    Validates, row-limits and executes generated SQL.

    Attributes:
        engine: Target database engine
        enabled: Whether execution is allowed at all
        max_results: Row cap appended to SELECT/WITH statements
        timeout: Per-statement timeout in seconds
        security: SecurityService applying the read-only policy and patterns
    """

    def __init__(
        self,
        engine: Engine,
        enabled: bool = True,
        read_only: bool = True,
        max_results: int = 100,
        timeout: int = 30,
        security_service: Optional[SecurityService] = None,
    ):
        self.engine = engine
        self.enabled = enabled
        self.max_results = max_results
        self.timeout = timeout
        self.security = security_service or SecurityService(read_only=read_only)

    @property
    def read_only(self) -> bool:
        return self.security.read_only

    @property
    def dialect(self) -> str:
        return DIALECT_TAGS.get(self.engine.dialect.name, "other")

    # ========================================================================
    # Validation and rewriting
    # ========================================================================

    def validate(self, sql: str) -> None:
        """
        Check SQL without executing it.

        Raises:
            QueryExecutionError: invalid_sql or read_only_violation
        """
        self.security.enforce(sql)

    @staticmethod
    def clean_sql(sql: str) -> str:
        """Trim, strip trailing semicolons and wrapping markdown fences."""
        return strip_code_fences(sql)

    def add_limit(self, sql: str) -> str:
        """
        Append a row cap to SELECT/WITH statements that have none.

        SQL Server needs OFFSET/FETCH, which in turn needs an ORDER BY.
        """
        if not is_select_query(sql) or _HAS_LIMIT.search(sql):
            return sql

        if self.dialect == "sqlsrv":
            if not _HAS_ORDER_BY.search(sql):
                sql += " ORDER BY (SELECT NULL)"
            return f"{sql} OFFSET 0 ROWS FETCH NEXT {self.max_results} ROWS ONLY"

        return f"{sql} LIMIT {self.max_results}"

    # ========================================================================
    # Execution
    # ========================================================================

    def execute(self, sql: str) -> ExecutionResult:
        """
        Execute a SQL query and return its rows.

        In read-only mode the connection is always rolled back. With read_only
        off the statement is committed, and count reports the affected rows
        for statements that return none.

        Args:
            sql: SQL text as produced by the model

        Returns:
            ExecutionResult with data, count, execution_time and the final SQL

        Raises:
            QueryExecutionError: When the SQL is rejected, fails or times out
        """
        if not self.enabled:
            raise QueryExecutionError.execution_failed(sql, "Query execution is disabled")

        self.validate(sql)
        sql = self.add_limit(self.clean_sql(sql))

        start_time = time.time()
        try:
            with self.engine.connect() as conn:
                restore = self._apply_timeout(conn, start_time)
                try:
                    result = conn.execute(text(sql))
                    if result.returns_rows:
                        columns = list(result.keys())
                        rows = result.fetchall()
                        affected = None
                    else:
                        columns, rows = [], []
                        affected = max(result.rowcount, 0)
                except SQLAlchemyError:
                    conn.rollback()
                    raise
                else:
                    if self.read_only:
                        conn.rollback()
                    else:
                        conn.commit()
                finally:
                    restore()

        except SQLAlchemyError as e:
            elapsed = time.time() - start_time
            message = str(getattr(e, "orig", None) or e)
            if self._is_timeout(message, elapsed):
                logger.warning(f"Query timed out after {elapsed:.2f}s: {sql[:200]}")
                raise QueryExecutionError.timeout(sql, self.timeout) from e
            logger.error(f"SQL execution error: {message}")
            raise QueryExecutionError.execution_failed(sql, message) from e

        execution_time = time.time() - start_time

        data: List[Dict[str, Any]] = [
            {col: _serialize_value(value) for col, value in zip(columns, row)}
            for row in rows
        ]
        count = len(data) if affected is None else affected

        log_debug(TAG, f"{count} rows in {execution_time:.4f}s")

        return ExecutionResult(
            success=True,
            data=data,
            count=count,
            execution_time=round(execution_time, 4),
            sql=sql,
        )

    def explain(self, sql: str) -> Dict[str, Any]:
        """
        Run the dialect's EXPLAIN for a query.

        Returns:
            {"success": True, "plan": rows} or {"success": False, "error": message}
        """
        self.validate(sql)
        sql = self.clean_sql(sql)

        prefix = {
            "pgsql": "EXPLAIN (FORMAT JSON) ",
            "sqlite": "EXPLAIN QUERY PLAN ",
        }.get(self.dialect, "EXPLAIN ")

        try:
            with self.engine.connect() as conn:
                result = conn.execute(text(prefix + sql))
                columns = list(result.keys())
                plan = [
                    {col: _serialize_value(value) for col, value in zip(columns, row)}
                    for row in result.fetchall()
                ]
                conn.rollback()
            return {"success": True, "plan": plan}
        except SQLAlchemyError as e:
            return {"success": False, "error": str(getattr(e, "orig", None) or e)}

    def _apply_timeout(self, conn: Connection, start_time: float):
        """
        Apply the statement timeout for this dialect.

        - sqlite: progress handler that aborts once the deadline passes
        - pgsql: SET LOCAL statement_timeout, scoped to the transaction
        - mysql: session MAX_EXECUTION_TIME, put back to its previous value
        - sqlsrv: SET LOCK_TIMEOUT, which bounds lock waits only and not
          the statement's own runtime

        Returns:
            Callable that undoes any per-connection change again
        """
        timeout_ms = int(self.timeout * 1000)
        dialect = self.dialect

        if dialect == "sqlite":
            dbapi_conn = conn.connection.driver_connection
            deadline = start_time + self.timeout

            def _abort_when_late():
                return 1 if time.time() > deadline else 0

            dbapi_conn.set_progress_handler(_abort_when_late, 10000)
            return lambda: dbapi_conn.set_progress_handler(None, 0)

        try:
            if dialect == "pgsql":
                conn.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
            elif dialect == "mysql":
                previous = conn.execute(text("SELECT @@SESSION.max_execution_time")).scalar()
                conn.execute(text(f"SET SESSION MAX_EXECUTION_TIME = {timeout_ms}"))
                return lambda: self._reset_setting(
                    conn, f"SET SESSION MAX_EXECUTION_TIME = {int(previous or 0)}"
                )
            elif dialect == "sqlsrv":
                conn.execute(text(f"SET LOCK_TIMEOUT {timeout_ms}"))
                return lambda: self._reset_setting(conn, "SET LOCK_TIMEOUT -1")
        except DBAPIError as e:
            # A failed statement aborts the open transaction on PostgreSQL
            conn.rollback()
            logger.warning(f"Could not set statement timeout on {dialect}: {e}")

        return lambda: None

    @staticmethod
    def _reset_setting(conn: Connection, statement: str) -> None:
        try:
            conn.execute(text(statement))
        except DBAPIError as e:
            logger.warning(f"Could not reset session setting ({statement}): {e}")

    def _is_timeout(self, message: str, elapsed: float) -> bool:
        lowered = message.lower()
        if any(marker in lowered for marker in _TIMEOUT_MARKERS):
            return True
        return elapsed >= self.timeout
