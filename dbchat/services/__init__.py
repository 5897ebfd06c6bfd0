"""
Services used by the query pipeline.

- prompt_builder: prompt assembly from retrieved context
- security_service: read-only policy and dangerous-pattern checks
- execution_service: safe SQL execution
- query_logger: query log backends
- storage_service: engine/session management for the dbchat store
"""
from .execution_service import QueryExecutor
from .prompt_builder import PromptBuilder
from .query_logger import (
    DatabaseQueryLogger,
    FileQueryLogger,
    NullQueryLogger,
    QueryLogger,
    create_query_logger,
)
from .security_service import SecurityCheckResult, SecurityService
from .storage_service import StorageService, create_database_engine

__all__ = [
    "QueryExecutor",
    "PromptBuilder",
    "QueryLogger",
    "DatabaseQueryLogger",
    "FileQueryLogger",
    "NullQueryLogger",
    "create_query_logger",
    "SecurityCheckResult",
    "SecurityService",
    "StorageService",
    "create_database_engine",
]
