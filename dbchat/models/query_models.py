"""
Pydantic models for pipeline results.

These are the shapes returned to the API and CLI layers. Dict views via
``model_dump()`` match the JSON envelopes served over HTTP.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class EmbeddingRecord(BaseModel):
    """A stored retrieval entry."""
    type: str
    identifier: str
    content: str
    vector: List[float] = Field(default_factory=list, repr=False)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SimilarityResult(BaseModel):
    """An embedding record ranked against a query."""
    type: str
    identifier: str
    content: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    similarity: float


class ExecutionResult(BaseModel):
    """Successful query execution."""
    success: bool = True
    data: List[Dict[str, Any]] = Field(default_factory=list)
    count: int = 0
    execution_time: float = 0.0
    sql: str


class ValidationResult(BaseModel):
    """Dry-run validation of a SQL string."""
    valid: bool
    sql: str
    error: Optional[str] = None


class AskResult(BaseModel):
    """Uniform envelope returned by QueryPipeline.ask()."""
    question: str
    sql: str = ""
    success: bool = False
    data: Optional[List[Dict[str, Any]]] = None
    count: Optional[int] = None
    execution_time: Optional[float] = None
    total_time: float = 0.0
    error: Optional[str] = None
    provider: str
    message: Optional[str] = None


class TrainingResult(BaseModel):
    """Outcome of a training run; partial success is reported, not raised."""
    success: bool
    tables_trained: int = 0
    total_tables: int = 0
    errors: Dict[str, str] = Field(default_factory=dict)


class TrainingStatus(BaseModel):
    """Counts of stored training data per type."""
    tables: int = 0
    descriptions: int = 0
    samples: int = 0
    documentation: int = 0
    total: int = 0


class QueryLogEntry(BaseModel):
    """A query log entry as returned by get_history()."""
    id: Optional[int] = None
    question: str
    sql: str = ""
    result_count: Optional[int] = None
    execution_time: Optional[float] = None
    status: str = "success"
    error: Optional[str] = None
    provider: Optional[str] = None
    timestamp: Optional[str] = None
