"""
Data models for dbchat: ORM tables and pydantic result shapes.
"""
from .database import Base, QueryLog, SchemaEmbedding
from .query_models import (
    AskResult,
    EmbeddingRecord,
    ExecutionResult,
    QueryLogEntry,
    SimilarityResult,
    TrainingResult,
    TrainingStatus,
    ValidationResult,
)

__all__ = [
    "Base",
    "QueryLog",
    "SchemaEmbedding",
    "AskResult",
    "EmbeddingRecord",
    "ExecutionResult",
    "QueryLogEntry",
    "SimilarityResult",
    "TrainingResult",
    "TrainingStatus",
    "ValidationResult",
]
