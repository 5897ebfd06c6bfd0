"""
Exception types raised by the dbchat pipeline.

Two families reach callers:
- LLMConnectionError: the completion/embedding backend could not be used
- QueryExecutionError: generated SQL was rejected or failed to run
"""
from enum import Enum
from typing import Any, Dict, Optional


class DBChatError(Exception):
    """Base class for all dbchat errors."""
    pass


class LLMErrorKind(str, Enum):
    """Failure classes at the language-model boundary."""
    CONNECTION_FAILED = "connection_failed"
    AUTHENTICATION_FAILED = "authentication_failed"
    RATE_LIMITED = "rate_limited"
    TIMEOUT = "timeout"
    REQUEST_FAILED = "request_failed"


class QueryErrorKind(str, Enum):
    """Failure classes at the SQL safety/execution gate."""
    INVALID_SQL = "invalid_sql"
    READ_ONLY_VIOLATION = "read_only_violation"
    EXECUTION_FAILED = "execution_failed"
    TIMEOUT = "timeout"


class LLMConnectionError(DBChatError):
    """Raised when an LLM provider is unreachable, rejects us, or times out."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        kind: LLMErrorKind = LLMErrorKind.REQUEST_FAILED,
        status_code: int = 0,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.kind = kind
        self.status_code = status_code
        self.context = context or {}

    @classmethod
    def connection_failed(cls, provider: str, host: str) -> "LLMConnectionError":
        return cls(
            f"Failed to connect to {provider} at {host}",
            provider=provider.lower(),
            kind=LLMErrorKind.CONNECTION_FAILED,
            context={"host": host},
        )

    @classmethod
    def authentication_failed(cls, provider: str) -> "LLMConnectionError":
        return cls(
            f"Authentication failed for {provider}. Please check your API key.",
            provider=provider.lower(),
            kind=LLMErrorKind.AUTHENTICATION_FAILED,
            status_code=401,
        )

    @classmethod
    def rate_limited(cls, provider: str) -> "LLMConnectionError":
        return cls(
            f"Rate limit exceeded for {provider}. Please try again later.",
            provider=provider.lower(),
            kind=LLMErrorKind.RATE_LIMITED,
            status_code=429,
        )

    @classmethod
    def timeout(cls, provider: str, timeout: float) -> "LLMConnectionError":
        return cls(
            f"Request to {provider} timed out after {timeout} seconds",
            provider=provider.lower(),
            kind=LLMErrorKind.TIMEOUT,
            status_code=408,
            context={"timeout": timeout},
        )


class QueryExecutionError(DBChatError):
    """
    Raised by the query executor.

    Carries the SQL that was rejected or failed so callers can log it
    alongside the error message.
    """

    def __init__(
        self,
        message: str,
        sql: str = "",
        kind: QueryErrorKind = QueryErrorKind.EXECUTION_FAILED,
        status_code: int = 500,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.sql = sql
        self.kind = kind
        self.status_code = status_code
        self.context = context or {}

    @classmethod
    def invalid_sql(cls, sql: str, reason: str) -> "QueryExecutionError":
        return cls(
            f"Invalid SQL query: {reason}",
            sql=sql,
            kind=QueryErrorKind.INVALID_SQL,
            status_code=400,
            context={"reason": reason},
        )

    @classmethod
    def read_only_violation(cls, sql: str) -> "QueryExecutionError":
        return cls(
            "Only SELECT queries are allowed in read-only mode",
            sql=sql,
            kind=QueryErrorKind.READ_ONLY_VIOLATION,
            status_code=403,
        )

    @classmethod
    def execution_failed(cls, sql: str, reason: str) -> "QueryExecutionError":
        return cls(
            f"Query execution failed: {reason}",
            sql=sql,
            kind=QueryErrorKind.EXECUTION_FAILED,
            status_code=500,
            context={"reason": reason},
        )

    @classmethod
    def timeout(cls, sql: str, timeout: float) -> "QueryExecutionError":
        return cls(
            f"Query execution timed out after {timeout} seconds",
            sql=sql,
            kind=QueryErrorKind.TIMEOUT,
            status_code=408,
            context={"timeout": timeout},
        )
