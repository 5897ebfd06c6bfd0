"""
Query Pipeline Module

Ties retrieval, prompt building, SQL generation and safe execution into
the two operations everything else is built on:

- ask(question): retrieve context -> prompt -> LLM -> validate/execute -> log
- train(): extract schema -> embed DDL and descriptions per table
"""

import hashlib
import logging
import threading
import time
from typing import Any, Dict, List, Optional

from dbchat.config import Settings, get_settings
from dbchat.core.log_utils import configure_log_dir, log_error, log_info, log_success, log_warning
from dbchat.exceptions import DBChatError, QueryExecutionError
from dbchat.extraction.schema_extractor import SchemaExtractor
from dbchat.llm.manager import get_llm_provider
from dbchat.llm.provider import LLMProvider
from dbchat.models.query_models import (
    AskResult,
    QueryLogEntry,
    TrainingResult,
    TrainingStatus,
    ValidationResult,
)
from dbchat.rag.embedding_store import EmbeddingStore
from dbchat.services.execution_service import QueryExecutor
from dbchat.services.prompt_builder import PromptBuilder
from dbchat.services.query_logger import QueryLogger, create_query_logger
from dbchat.services.storage_service import StorageService, create_database_engine

logger = logging.getLogger(__name__)

TAG = "Query Pipeline"

# Unranked tables used when similarity search finds nothing
FALLBACK_TABLE_LIMIT = 10
DOCUMENTATION_LIMIT = 3
SAMPLE_LIMIT = 5

EXECUTION_DISABLED_MESSAGE = "Query execution is disabled. SQL generated only."


def _md5(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest()


class QueryPipeline:
    """
    Main pipeline for natural language to SQL.

    Attributes:
        llm: Provider used for SQL completion
        schema_extractor: Introspects the target database
        embedding_store: Retrieval index for tables, docs and samples
        prompt_builder: Prompt assembly
        query_executor: Validation and execution gate
        query_logger: Records every ask() call
    """

    def __init__(
        self,
        llm: LLMProvider,
        schema_extractor: SchemaExtractor,
        embedding_store: EmbeddingStore,
        prompt_builder: PromptBuilder,
        query_executor: QueryExecutor,
        query_logger: QueryLogger,
        documentation: Optional[List[Dict[str, str]]] = None,
    ):
        """
        Args:
            documentation: {title, content} entries added on every train()
        """
        self.llm = llm
        self.schema_extractor = schema_extractor
        self.embedding_store = embedding_store
        self.prompt_builder = prompt_builder
        self.query_executor = query_executor
        self.query_logger = query_logger
        self.documentation = list(documentation or [])

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "QueryPipeline":
        """Wire up a pipeline from configuration."""
        settings = settings or get_settings()
        configure_log_dir(settings.log_dir)

        llm = get_llm_provider(settings.llm_provider, settings)

        target_engine = create_database_engine(settings.database_url)
        if settings.storage_url and settings.storage_url != settings.database_url:
            storage = StorageService(settings.storage_url)
        else:
            storage = StorageService(engine=target_engine)

        pipeline = cls(
            llm=llm,
            schema_extractor=SchemaExtractor(
                target_engine,
                include_indexes=settings.include_indexes,
                include_foreign_keys=settings.include_foreign_keys,
                table_mode=settings.table_mode,
                exclude_tables=settings.exclude_tables,
                include_tables=settings.include_tables,
            ),
            embedding_store=EmbeddingStore(
                storage,
                llm,
                top_k=settings.top_k,
                similarity_threshold=settings.similarity_threshold,
                chunk_max_size=settings.chunk_max_size,
                chunk_overlap=settings.chunk_overlap,
                chunk_min_remainder=settings.chunk_min_remainder,
            ),
            prompt_builder=PromptBuilder([s.model_dump() for s in settings.sample_queries]),
            query_executor=QueryExecutor(
                target_engine,
                enabled=settings.execution_enabled,
                read_only=settings.read_only,
                max_results=settings.max_results,
                timeout=settings.query_timeout,
            ),
            query_logger=create_query_logger(settings, storage),
            documentation=[d.model_dump() for d in settings.documentation],
        )

        log_info(TAG, f"Initialized ({settings.llm_provider}, {pipeline.schema_extractor.get_dialect()})")
        return pipeline

    # ========================================================================
    # Ask
    # ========================================================================

    def ask(self, question: str) -> AskResult:
        """
        Answer a natural language question.

        Never raises for generation, validation or execution failures; they
        are reported in the envelope and logged like any other call.
        """
        start_time = time.time()
        sql = ""
        error: Optional[str] = None
        result: Dict[str, Any] = {}

        try:
            sql = self.generate_sql(question)

            if self.query_executor.enabled:
                execution = self.query_executor.execute(sql)
                result = execution.model_dump()
            else:
                result = {
                    "success": True,
                    "data": None,
                    "count": None,
                    "execution_time": 0,
                    "message": EXECUTION_DISABLED_MESSAGE,
                }

        except DBChatError as e:
            error = str(e)
            log_warning(TAG, f"Question failed: {error}")
            result = {"success": False}

        except Exception as e:
            error = str(e) or type(e).__name__
            log_error(TAG, f"Unexpected failure: {error}")
            logger.exception("ask() failed")
            result = {"success": False}

        finally:
            total_time = time.time() - start_time
            try:
                self.query_logger.log(
                    question,
                    sql,
                    result.get("data"),
                    total_time,
                    error,
                    provider=self.llm.get_name(),
                )
            except Exception as log_exc:
                log_error(TAG, f"Could not write query log: {log_exc}")

        return AskResult(
            question=question,
            sql=sql,
            success=result.get("success", False),
            data=result.get("data"),
            count=result.get("count"),
            execution_time=result.get("execution_time"),
            total_time=round(total_time, 4),
            error=error,
            provider=self.llm.get_name(),
            message=result.get("message"),
        )

    def generate_sql(self, question: str) -> str:
        """
        Generate SQL for a question without executing it.

        Raises:
            LLMConnectionError: If embedding or completion fails
        """
        schema_context = self.embedding_store.find_similar(question, "table")
        if not schema_context:
            schema_context = self.embedding_store.get_by_type("table", limit=FALLBACK_TABLE_LIMIT)

        documentation = self.embedding_store.find_similar(question, "documentation", DOCUMENTATION_LIMIT)
        samples = self.embedding_store.find_similar(question, "sample", SAMPLE_LIMIT)

        prompt = self.prompt_builder.build_with_context(
            question,
            schema_context,
            documentation,
            samples,
            self.schema_extractor.get_dialect(),
        )

        return self.llm.generate_sql(prompt)

    # ========================================================================
    # Training
    # ========================================================================

    def train(self, fresh: bool = False) -> TrainingResult:
        """
        Embed the current schema, one table at a time.

        A failing table is recorded in ``errors`` and the run continues.

        Args:
            fresh: Clear all stored training data first
        """
        if fresh:
            removed = self.clear_training()
            log_info(TAG, f"Cleared {removed} training records")

        tables = self.schema_extractor.get_filtered_tables()
        log_info(TAG, f"Training on {len(tables)} tables")

        trained = 0
        errors: Dict[str, str] = {}

        for table_name in tables:
            try:
                table = self.schema_extractor.get_table_schema(table_name)

                self.embedding_store.store(
                    "table",
                    table_name,
                    table.ddl,
                    {
                        "columns": [c.name for c in table.columns],
                        "has_foreign_keys": bool(table.foreign_keys),
                    },
                )
                self.embedding_store.store(
                    "description",
                    table_name,
                    table.description,
                    {"table": table_name},
                )
                trained += 1
            except Exception as e:
                errors[table_name] = str(e) or type(e).__name__
                log_warning(TAG, f"Failed to train {table_name}: {errors[table_name]}")

        for doc in self.documentation:
            try:
                self.add_documentation(doc["title"], doc["content"])
            except Exception as e:
                errors[f"documentation:{doc['title']}"] = str(e)
                log_warning(TAG, f"Failed to add documentation '{doc['title']}': {e}")

        result = TrainingResult(
            success=not errors,
            tables_trained=trained,
            total_tables=len(tables),
            errors=errors,
        )

        if result.success:
            log_success(TAG, f"Trained {trained}/{len(tables)} tables")
        else:
            log_warning(TAG, f"Trained {trained}/{len(tables)} tables with {len(errors)} errors")
        return result

    def add_training_data(
        self,
        type: str,
        identifier: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Store arbitrary training content."""
        self.embedding_store.store(type, identifier, content, metadata or {})

    def add_documentation(self, title: str, content: str) -> int:
        """
        Add business documentation, chunked when large.

        Re-adding the same title replaces earlier content for it.

        Returns:
            Number of records written
        """
        full_content = f"## {title}\n\n{content}"
        return self.embedding_store.store_chunked(
            "documentation",
            _md5(title),
            full_content,
            {"title": title},
        )

    def add_sample_query(self, question: str, sql: str) -> None:
        """Add a question/SQL pair for retrieval and to the example pool."""
        self.prompt_builder.add_sample_query(question, sql)
        self.embedding_store.store(
            "sample",
            _md5(question),
            f"Question: {question}\nSQL: {sql}",
            {"question": question, "sql": sql},
        )

    def clear_training(self) -> int:
        """Remove all training data. Returns the number of records removed."""
        return self.embedding_store.clear()

    def get_training_status(self) -> TrainingStatus:
        store = self.embedding_store
        return TrainingStatus(
            tables=store.count("table"),
            descriptions=store.count("description"),
            samples=store.count("sample"),
            documentation=store.count("documentation"),
            total=store.count(),
        )

    # ========================================================================
    # Inspection
    # ========================================================================

    def get_history(self, limit: int = 50, offset: int = 0) -> List[QueryLogEntry]:
        return self.query_logger.get_history(limit, offset)

    def get_query_stats(self) -> Dict[str, Any]:
        return self.query_logger.get_stats()

    def prune_history(self, days: int = 30) -> int:
        return self.query_logger.clear_older_than(days)

    def get_schema(self) -> Dict[str, Any]:
        """Fresh schema snapshot as plain dicts."""
        return {name: table.to_dict() for name, table in self.schema_extractor.extract().items()}

    def validate_sql(self, sql: str) -> ValidationResult:
        """Dry-run the executor's checks without touching the database."""
        try:
            self.query_executor.validate(sql)
            return ValidationResult(valid=True, sql=sql)
        except QueryExecutionError as e:
            return ValidationResult(valid=False, sql=sql, error=str(e))

    def explain(self, sql: str) -> Dict[str, Any]:
        return self.query_executor.explain(sql)

    def get_provider(self) -> str:
        return self.llm.get_name()


# Singleton accessor
_query_pipeline: Optional[QueryPipeline] = None
_pipeline_lock = threading.Lock()


def get_query_pipeline(settings: Optional[Settings] = None) -> QueryPipeline:
    """Get or create the global QueryPipeline instance."""
    global _query_pipeline
    with _pipeline_lock:
        if _query_pipeline is None:
            _query_pipeline = QueryPipeline.from_settings(settings)
        return _query_pipeline


def set_query_pipeline(pipeline: Optional[QueryPipeline]) -> None:
    """Replace (or reset) the global pipeline."""
    global _query_pipeline
    with _pipeline_lock:
        _query_pipeline = pipeline
