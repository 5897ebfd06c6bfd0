"""
dbchat - natural language questions over a relational database.

Usage:
    from dbchat import get_query_pipeline

    pipeline = get_query_pipeline()
    pipeline.train()
    result = pipeline.ask("How many orders were placed today?")
"""

__version__ = "0.1.0"

from dbchat.config import Settings, get_settings
from dbchat.exceptions import DBChatError, LLMConnectionError, QueryExecutionError
from dbchat.query_pipeline import QueryPipeline, get_query_pipeline, set_query_pipeline

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "DBChatError",
    "LLMConnectionError",
    "QueryExecutionError",
    "QueryPipeline",
    "get_query_pipeline",
    "set_query_pipeline",
]
