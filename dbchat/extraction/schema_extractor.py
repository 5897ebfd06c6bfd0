"""
Schema Extractor

Introspects the target database into plain table/column/index/foreign-key
records and renders the text that gets embedded during training.

Driver-specific row shapes stop here: everything past this module sees
ColumnInfo, IndexInfo, ForeignKeyInfo and TableSchema only.

Usage:
    from dbchat.extraction import SchemaExtractor

    extractor = SchemaExtractor(engine, exclude_tables=["migrations"])
    schema = extractor.extract()
    print(schema["users"].ddl)
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from dbchat.config import DEFAULT_EXCLUDE_TABLES
from dbchat.core.log_utils import log_warning

logger = logging.getLogger(__name__)

TAG = "Schema Extractor"

# SQLAlchemy dialect name -> dialect tag used by prompts and the executor
DIALECT_TAGS = {
    "mysql": "mysql",
    "mariadb": "mysql",
    "postgresql": "pgsql",
    "sqlite": "sqlite",
    "mssql": "sqlsrv",
}

TABLE_MODES = ("all", "exclude", "include")


@dataclass
class ColumnInfo:
    """Column metadata"""
    name: str
    type: str
    nullable: bool = True
    default: Optional[str] = None
    auto_increment: bool = False
    comment: Optional[str] = None


@dataclass
class IndexInfo:
    """Index metadata"""
    name: str
    columns: List[str] = field(default_factory=list)
    unique: bool = False
    primary: bool = False


@dataclass
class ForeignKeyInfo:
    """Foreign key metadata"""
    name: Optional[str]
    columns: List[str] = field(default_factory=list)
    foreign_table: str = ""
    foreign_columns: List[str] = field(default_factory=list)
    on_update: Optional[str] = None
    on_delete: Optional[str] = None


@dataclass
class TableSchema:
    """Snapshot of one table plus its rendered texts"""
    name: str
    columns: List[ColumnInfo] = field(default_factory=list)
    indexes: List[IndexInfo] = field(default_factory=list)
    foreign_keys: List[ForeignKeyInfo] = field(default_factory=list)
    ddl: str = ""
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "columns": [vars(c) for c in self.columns],
            "indexes": [vars(i) for i in self.indexes],
            "foreign_keys": [vars(fk) for fk in self.foreign_keys],
            "ddl": self.ddl,
            "description": self.description,
        }


class SchemaExtractor:
    """
    Dialect-aware schema introspection for the target database.

    Nothing is cached: every call reflects the database as it is now.
    """

    def __init__(
        self,
        engine: Engine,
        include_indexes: bool = True,
        include_foreign_keys: bool = True,
        table_mode: str = "exclude",
        exclude_tables: Optional[List[str]] = None,
        include_tables: Optional[List[str]] = None,
    ):
        if table_mode not in TABLE_MODES:
            raise ValueError(f"Unknown table mode '{table_mode}', expected one of {TABLE_MODES}")

        self.engine = engine
        self.include_indexes = include_indexes
        self.include_foreign_keys = include_foreign_keys
        self.table_mode = table_mode
        self.exclude_tables = list(DEFAULT_EXCLUDE_TABLES if exclude_tables is None else exclude_tables)
        self.include_tables = list(include_tables or [])

    # ========================================================================
    # Whole-schema extraction
    # ========================================================================

    def extract(self) -> Dict[str, TableSchema]:
        """
        Extract every table that passes the table mode filter.

        Returns:
            Mapping of table name to TableSchema
        """
        return {name: self.get_table_schema(name) for name in self.get_filtered_tables()}

    def get_filtered_tables(self) -> List[str]:
        """Table names after applying the all/exclude/include mode."""
        return [name for name in self.get_tables() if not self._should_skip(name)]

    def _should_skip(self, table: str) -> bool:
        if self.table_mode == "include":
            return table not in self.include_tables
        if self.table_mode == "exclude":
            return table in self.exclude_tables
        return False

    def get_table_schema(self, table: str) -> TableSchema:
        """Introspect one table and render its DDL and description."""
        columns = self.get_columns(table)
        indexes = self.get_indexes(table) if self.include_indexes else []
        foreign_keys = self.get_foreign_keys(table) if self.include_foreign_keys else []

        return TableSchema(
            name=table,
            columns=columns,
            indexes=indexes,
            foreign_keys=foreign_keys,
            ddl=self.generate_ddl(table, columns, foreign_keys),
            description=self.generate_table_description(table, columns, foreign_keys),
        )

    # ========================================================================
    # Catalog queries
    # ========================================================================

    def get_tables(self) -> List[str]:
        """List base tables using the dialect's own catalog."""
        dialect = self.get_dialect()

        if dialect == "mysql":
            sql = "SHOW TABLES"
        elif dialect == "pgsql":
            sql = "SELECT tablename FROM pg_tables WHERE schemaname = 'public'"
        elif dialect == "sqlite":
            sql = "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%'"
        elif dialect == "sqlsrv":
            sql = "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES WHERE TABLE_TYPE = 'BASE TABLE'"
        else:
            return list(inspect(self.engine).get_table_names())

        with self.engine.connect() as conn:
            # SHOW TABLES names its column after the database, so go by position
            return [row[0] for row in conn.execute(text(sql)) if row[0]]

    def get_columns(self, table: str) -> List[ColumnInfo]:
        """Column metadata for a table."""
        columns = []
        for col in inspect(self.engine).get_columns(table):
            default = col.get("default")
            columns.append(ColumnInfo(
                name=col["name"],
                type=self._type_name(col.get("type")),
                nullable=bool(col.get("nullable", True)),
                default=str(default) if default is not None else None,
                auto_increment=col.get("autoincrement") is True,
                comment=col.get("comment") or None,
            ))
        return columns

    @staticmethod
    def _type_name(column_type) -> str:
        if column_type is None:
            return "UNKNOWN"
        try:
            return str(column_type)
        except Exception:
            # Some reflected types cannot compile without their dialect
            return type(column_type).__name__.upper()

    def get_indexes(self, table: str) -> List[IndexInfo]:
        """
        Index metadata for a table, primary key first.

        Failures are logged and yield an empty list so one table's missing
        index metadata cannot block the rest of the extraction.
        """
        try:
            inspector = inspect(self.engine)
            indexes = []

            pk = inspector.get_pk_constraint(table) or {}
            if pk.get("constrained_columns"):
                indexes.append(IndexInfo(
                    name=pk.get("name") or "PRIMARY",
                    columns=list(pk["constrained_columns"]),
                    unique=True,
                    primary=True,
                ))

            for idx in inspector.get_indexes(table):
                indexes.append(IndexInfo(
                    name=idx.get("name") or "",
                    columns=[c for c in idx.get("column_names", []) if c],
                    unique=bool(idx.get("unique", False)),
                ))
            return indexes
        except Exception as e:
            log_warning(TAG, f"Could not read indexes for {table}: {e}")
            return []

    def get_foreign_keys(self, table: str) -> List[ForeignKeyInfo]:
        """Foreign key metadata for a table; failures yield an empty list."""
        try:
            foreign_keys = []
            for fk in inspect(self.engine).get_foreign_keys(table):
                options = fk.get("options") or {}
                foreign_keys.append(ForeignKeyInfo(
                    name=fk.get("name"),
                    columns=list(fk.get("constrained_columns", [])),
                    foreign_table=fk.get("referred_table", ""),
                    foreign_columns=list(fk.get("referred_columns", [])),
                    on_update=options.get("onupdate"),
                    on_delete=options.get("ondelete"),
                ))
            return foreign_keys
        except Exception as e:
            log_warning(TAG, f"Could not read foreign keys for {table}: {e}")
            return []

    # ========================================================================
    # Text rendering
    # ========================================================================

    def generate_ddl(
        self,
        table: str,
        columns: Optional[List[ColumnInfo]] = None,
        foreign_keys: Optional[List[ForeignKeyInfo]] = None,
    ) -> str:
        """
        Render a CREATE TABLE-like statement for embedding.

        Example:
            CREATE TABLE orders (
              id INTEGER NOT NULL,
              user_id INTEGER NOT NULL COMMENT 'Buyer',
              FOREIGN KEY (user_id) REFERENCES users (id)
            );
        """
        if columns is None:
            columns = self.get_columns(table)
        if foreign_keys is None:
            foreign_keys = self.get_foreign_keys(table) if self.include_foreign_keys else []

        definitions = []
        for column in columns:
            definition = f"  {column.name} {column.type}"
            if not column.nullable:
                definition += " NOT NULL"
            if column.default is not None:
                definition += f" DEFAULT {column.default}"
            if column.auto_increment:
                definition += " AUTO_INCREMENT"
            if column.comment:
                definition += f" COMMENT '{column.comment}'"
            definitions.append(definition)

        for fk in foreign_keys:
            cols = ", ".join(fk.columns)
            foreign_cols = ", ".join(fk.foreign_columns)
            definitions.append(f"  FOREIGN KEY ({cols}) REFERENCES {fk.foreign_table} ({foreign_cols})")

        return f"CREATE TABLE {table} (\n" + ",\n".join(definitions) + "\n);"

    def generate_table_description(
        self,
        table: str,
        columns: Optional[List[ColumnInfo]] = None,
        foreign_keys: Optional[List[ForeignKeyInfo]] = None,
    ) -> str:
        """Render a human-readable table description for embedding."""
        if columns is None:
            columns = self.get_columns(table)
        if foreign_keys is None:
            foreign_keys = self.get_foreign_keys(table) if self.include_foreign_keys else []

        lines = [f"Table: {table}", "Columns:"]
        for column in columns:
            line = f"- {column.name} ({column.type})"
            if not column.nullable:
                line += " NOT NULL"
            if column.default is not None:
                line += f" DEFAULT {column.default}"
            if column.comment:
                line += f" - {column.comment}"
            lines.append(line)

        if foreign_keys:
            lines.append("Relationships:")
            for fk in foreign_keys:
                cols = ", ".join(fk.columns)
                foreign_cols = ", ".join(fk.foreign_columns)
                lines.append(f"- {cols} -> {fk.foreign_table}.{foreign_cols}")

        return "\n".join(lines) + "\n"

    # ========================================================================
    # Connection facts
    # ========================================================================

    def get_dialect(self) -> str:
        """Dialect tag: mysql, pgsql, sqlite, sqlsrv or other."""
        return DIALECT_TAGS.get(self.engine.dialect.name, "other")

    def get_database_name(self) -> str:
        return self.engine.url.database or ""
