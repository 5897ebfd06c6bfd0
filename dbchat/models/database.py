"""
SQLAlchemy ORM models for the dbchat store.

Two tables live next to (or apart from) the target database:
- dbchat_embeddings: retrieval index keyed by (type, identifier)
- dbchat_query_logs: append-only record of every ask() call
"""
from datetime import datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

from dbchat.config import EMBEDDINGS_TABLE, QUERY_LOGS_TABLE

Base = declarative_base()


class SchemaEmbedding(Base):
    __tablename__ = EMBEDDINGS_TABLE
    __table_args__ = (
        UniqueConstraint("type", "identifier", name="uq_dbchat_embeddings_type_identifier"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(50), nullable=False, index=True)
    identifier = Column(String(255), nullable=False)
    content = Column(Text, nullable=False)
    embedding = Column(JSON, nullable=False)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<SchemaEmbedding {self.type}:{self.identifier}>"


class QueryLog(Base):
    __tablename__ = QUERY_LOGS_TABLE

    id = Column(Integer, primary_key=True, autoincrement=True)
    question = Column(Text, nullable=False)
    generated_sql = Column(Text, nullable=True)
    results = Column(JSON, nullable=True)
    result_count = Column(Integer, nullable=True)
    execution_time = Column(Float, nullable=True)
    error = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="success", index=True)
    llm_provider = Column(String(50), nullable=True)
    meta = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<QueryLog {self.id} {self.status}>"
