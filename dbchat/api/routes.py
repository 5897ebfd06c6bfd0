"""
dbchat API Routes
=================

FastAPI endpoints over the query pipeline: asking questions, training,
history, status, schema, validation and adding samples/documentation.
"""

import logging
from typing import Any, Dict, List, Union

from fastapi import APIRouter, Query as QueryParam
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from dbchat.models.query_models import AskResult, QueryLogEntry, ValidationResult
from dbchat.query_pipeline import QueryPipeline, get_query_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dbchat", tags=["dbchat"])


def get_pipeline() -> QueryPipeline:
    """Pipeline used by the routes (overridable in tests)."""
    return get_query_pipeline()


def _failure(e: Exception, action: str) -> JSONResponse:
    logger.error(f"{action} failed: {e}", exc_info=True)
    return JSONResponse(status_code=500, content={"success": False, "error": str(e)})


# ============================================================================
# Request/Response Models
# ============================================================================

class AskRequest(BaseModel):
    """Request model for asking a question."""
    question: str = Field(..., min_length=1, max_length=1000, description="Natural language question")
    execute: bool = Field(default=True, description="Execute the generated SQL")


class GeneratedSQLResponse(BaseModel):
    """Response when SQL is generated but not executed."""
    success: bool = True
    question: str
    sql: str
    executed: bool = False


class TrainRequest(BaseModel):
    """Request model for training."""
    fresh: bool = Field(default=False, description="Clear existing training data first")


class TrainResponse(BaseModel):
    success: bool
    tables_trained: int
    total_tables: int
    errors: Dict[str, str] = Field(default_factory=dict)
    message: str


class HistoryResponse(BaseModel):
    success: bool = True
    history: List[QueryLogEntry]
    count: int


class StatusResponse(BaseModel):
    success: bool = True
    provider: str
    training: Dict[str, int]
    queries: Dict[str, Any] = Field(default_factory=dict)


class SchemaResponse(BaseModel):
    success: bool = True
    tables: List[str]
    definitions: Dict[str, Any] = Field(default_factory=dict)


class ValidateRequest(BaseModel):
    sql: str = Field(..., min_length=1, description="SQL query to validate")


class SampleRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=500)
    sql: str = Field(..., min_length=1, max_length=2000)


class DocumentationRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)


class MessageResponse(BaseModel):
    success: bool = True
    message: str


# ============================================================================
# Endpoints
# ============================================================================

@router.post("/ask", response_model=Union[AskResult, GeneratedSQLResponse])
def ask(request: AskRequest):
    """
    Ask a natural language question.

    With ``execute=false`` only the SQL is generated. Failures during
    generation or execution come back in the envelope with ``success=false``.
    """
    pipeline = get_pipeline()

    if not request.execute:
        try:
            sql = pipeline.generate_sql(request.question)
        except Exception as e:
            return _failure(e, "SQL generation")
        return GeneratedSQLResponse(question=request.question, sql=sql)

    return pipeline.ask(request.question)


@router.post("/train", response_model=TrainResponse)
def train(request: TrainRequest = TrainRequest()):
    """Train on the current database schema."""
    try:
        result = get_pipeline().train(fresh=request.fresh)
    except Exception as e:
        return _failure(e, "Training")

    message = (
        f"Trained {result.tables_trained} of {result.total_tables} tables"
        if result.success
        else f"Training finished with {len(result.errors)} errors"
    )
    return TrainResponse(**result.model_dump(), message=message)


@router.get("/history", response_model=HistoryResponse)
def history(
    limit: int = QueryParam(default=50, ge=1, le=100),
    offset: int = QueryParam(default=0, ge=0),
):
    """Recent questions, newest first."""
    try:
        entries = get_pipeline().get_history(limit, offset)
    except Exception as e:
        return _failure(e, "History lookup")
    return HistoryResponse(history=entries, count=len(entries))


@router.get("/status", response_model=StatusResponse)
def status():
    """Training counts, query stats and the active provider."""
    try:
        pipeline = get_pipeline()
        return StatusResponse(
            provider=pipeline.get_provider(),
            training=pipeline.get_training_status().model_dump(),
            queries=pipeline.get_query_stats(),
        )
    except Exception as e:
        return _failure(e, "Status lookup")


@router.get("/schema", response_model=SchemaResponse)
def schema():
    """Current schema of the target database."""
    try:
        tables = get_pipeline().get_schema()
    except Exception as e:
        return _failure(e, "Schema extraction")
    return SchemaResponse(tables=list(tables), definitions=tables)


@router.post("/validate", response_model=ValidationResult)
def validate(request: ValidateRequest):
    """Check SQL against the read-only policy and blocked patterns."""
    return get_pipeline().validate_sql(request.sql)


@router.post("/samples", response_model=MessageResponse)
def add_sample(request: SampleRequest):
    """Add a question/SQL example."""
    try:
        get_pipeline().add_sample_query(request.question, request.sql)
    except Exception as e:
        return _failure(e, "Adding sample")
    return MessageResponse(message="Sample query added")


@router.post("/documentation", response_model=MessageResponse)
def add_documentation(request: DocumentationRequest):
    """Add business documentation for retrieval."""
    try:
        chunks = get_pipeline().add_documentation(request.title, request.content)
    except Exception as e:
        return _failure(e, "Adding documentation")
    return MessageResponse(message=f"Documentation added ({chunks} chunks)")
