"""
Schema extraction for the target database.
"""
from .schema_extractor import (
    ColumnInfo,
    ForeignKeyInfo,
    IndexInfo,
    SchemaExtractor,
    TableSchema,
)

__all__ = [
    "ColumnInfo",
    "ForeignKeyInfo",
    "IndexInfo",
    "SchemaExtractor",
    "TableSchema",
]
