"""
Configuration settings for dbchat

Values are read from environment variables prefixed with ``DBCHAT_``.
A ``.env`` file in the working directory (or project root) is loaded first,
so provider keys such as ``OPENAI_API_KEY`` can live alongside the rest.
"""
from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_project_root = Path(__file__).parent.parent
load_dotenv(_project_root / ".env")
load_dotenv(Path.cwd() / ".env")

# Store tables for embeddings and query logs
EMBEDDINGS_TABLE = "dbchat_embeddings"
QUERY_LOGS_TABLE = "dbchat_query_logs"

# Framework bookkeeping tables that carry no business meaning
DEFAULT_EXCLUDE_TABLES = [
    "migrations",
    "password_resets",
    "password_reset_tokens",
    "failed_jobs",
    "personal_access_tokens",
    EMBEDDINGS_TABLE,
    QUERY_LOGS_TABLE,
    "cache",
    "cache_locks",
    "sessions",
    "jobs",
    "job_batches",
    "alembic_version",
]


class DocumentationEntry(BaseModel):
    """Business documentation added on every training run."""
    title: str
    content: str


class SampleQuery(BaseModel):
    """Question/SQL pair used for few-shot prompting."""
    question: str
    sql: str


class Settings(BaseSettings):
    """
    Runtime configuration for the pipeline, API and CLI.

    Only ``database_url`` usually needs to be set; the embedding store and
    query logs share the target database unless ``storage_url`` points
    somewhere else.
    """

    model_config = SettingsConfigDict(
        env_prefix="DBCHAT_",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Databases
    database_url: str = Field(default="sqlite:///database.sqlite")
    storage_url: Optional[str] = Field(default=None)

    # LLM provider selection
    llm_provider: Literal["ollama", "openai", "claude"] = Field(default="ollama")

    ollama_host: str = Field(
        default="http://localhost:11434",
        validation_alias=AliasChoices("DBCHAT_OLLAMA_HOST", "OLLAMA_HOST"),
    )
    ollama_model: str = Field(
        default="qwen2.5-coder:3b",
        validation_alias=AliasChoices("DBCHAT_OLLAMA_MODEL", "OLLAMA_MODEL"),
    )
    ollama_embedding_model: str = Field(
        default="nomic-embed-text",
        validation_alias=AliasChoices("DBCHAT_OLLAMA_EMBEDDING_MODEL", "OLLAMA_EMBEDDING_MODEL"),
    )
    ollama_timeout: int = Field(default=120)

    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DBCHAT_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_model: str = Field(default="gpt-4o")
    openai_embedding_model: str = Field(default="text-embedding-3-small")
    openai_timeout: int = Field(default=60)

    anthropic_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DBCHAT_ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY"),
    )
    claude_model: str = Field(default="claude-sonnet-4-20250514")
    claude_timeout: int = Field(default=60)

    # Query execution
    execution_enabled: bool = Field(default=True)
    read_only: bool = Field(default=True)
    max_results: int = Field(default=100, ge=1)
    query_timeout: int = Field(default=30, ge=1)

    # Query logging
    logging_enabled: bool = Field(default=True)
    log_driver: Literal["file", "database"] = Field(default="file")
    log_path: str = Field(default="logs/dbchat.log")
    # Console log mirror (pipeline.log); unset disables file output
    log_dir: Optional[str] = Field(default=None)

    # Training
    include_indexes: bool = Field(default=True)
    include_foreign_keys: bool = Field(default=True)
    table_mode: Literal["all", "exclude", "include"] = Field(default="exclude")
    exclude_tables: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_TABLES))
    include_tables: List[str] = Field(default_factory=list)
    documentation: List[DocumentationEntry] = Field(default_factory=list)
    sample_queries: List[SampleQuery] = Field(default_factory=list)

    # Retrieval
    top_k: int = Field(default=5, ge=1)
    similarity_threshold: float = Field(default=0.3, ge=-1.0, le=1.0)
    chunk_max_size: int = Field(default=6000, gt=0)
    chunk_overlap: int = Field(default=200, ge=0)
    chunk_min_remainder: int = Field(default=50, ge=0)

    # HTTP API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8010)

    @field_validator("exclude_tables", "include_tables", mode="before")
    @classmethod
    def split_table_list(cls, value):
        """Accept comma separated table lists from plain env values."""
        if isinstance(value, str) and not value.strip().startswith("["):
            return [name.strip() for name in value.split(",") if name.strip()]
        return value

    @property
    def resolved_storage_url(self) -> str:
        return self.storage_url or self.database_url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return Settings()
