"""
Schema Extractor Tests

Runs introspection against the seeded in-memory SQLite target database.
"""

from unittest.mock import MagicMock

import pytest

from dbchat.extraction import schema_extractor as extractor_module
from dbchat.extraction.schema_extractor import ColumnInfo, ForeignKeyInfo, SchemaExtractor

from fixtures.database_fixtures import TARGET_TABLES


@pytest.mark.integration
class TestTableListing:
    """Test table listing and the all/exclude/include modes."""

    def test_lists_all_tables(self, target_engine):
        extractor = SchemaExtractor(target_engine)
        assert sorted(extractor.get_tables()) == sorted(TARGET_TABLES)

    def test_store_tables_excluded_by_default(self, target_engine, pipeline):
        pipeline.embedding_store.count()  # creates the store tables

        extractor = SchemaExtractor(target_engine)
        assert "dbchat_embeddings" in extractor.get_tables()
        assert "dbchat_embeddings" not in extractor.get_filtered_tables()
        assert "dbchat_query_logs" not in extractor.get_filtered_tables()

    def test_exclude_mode(self, target_engine):
        extractor = SchemaExtractor(target_engine, table_mode="exclude", exclude_tables=["orders"])
        tables = extractor.get_filtered_tables()
        assert "orders" not in tables
        assert "users" in tables

    def test_include_mode(self, target_engine):
        extractor = SchemaExtractor(target_engine, table_mode="include", include_tables=["users", "orders"])
        assert sorted(extractor.get_filtered_tables()) == ["orders", "users"]

    def test_all_mode_ignores_exclusions(self, target_engine):
        extractor = SchemaExtractor(target_engine, table_mode="all", exclude_tables=["orders"])
        assert "orders" in extractor.get_filtered_tables()

    def test_unknown_mode_rejected(self, target_engine):
        with pytest.raises(ValueError):
            SchemaExtractor(target_engine, table_mode="some")

    def test_dialect_and_database(self, target_engine):
        extractor = SchemaExtractor(target_engine)
        assert extractor.get_dialect() == "sqlite"
        assert extractor.get_database_name() == ""


@pytest.mark.integration
class TestTableIntrospection:
    """Test columns, indexes and foreign keys."""

    def test_columns(self, target_engine):
        columns = SchemaExtractor(target_engine).get_columns("users")

        assert [c.name for c in columns] == ["id", "name", "email", "status"]
        by_name = {c.name: c for c in columns}
        assert by_name["name"].nullable is False
        assert by_name["email"].type == "VARCHAR(255)"
        assert by_name["status"].nullable is True
        assert by_name["status"].default is not None

    def test_indexes_primary_first(self, target_engine):
        indexes = SchemaExtractor(target_engine).get_indexes("users")

        assert indexes[0].primary is True
        assert indexes[0].columns == ["id"]
        unique = [i for i in indexes if i.name == "users_email_unique"]
        assert unique and unique[0].unique is True
        assert unique[0].columns == ["email"]

    def test_index_failure_yields_empty_list(self, target_engine, monkeypatch):
        broken = MagicMock()
        broken.get_pk_constraint.side_effect = RuntimeError("catalog unavailable")
        monkeypatch.setattr(extractor_module, "inspect", lambda engine: broken)

        assert SchemaExtractor(target_engine).get_indexes("users") == []

    def test_foreign_keys(self, target_engine):
        foreign_keys = SchemaExtractor(target_engine).get_foreign_keys("orders")

        assert len(foreign_keys) == 1
        assert foreign_keys[0].columns == ["user_id"]
        assert foreign_keys[0].foreign_table == "users"
        assert foreign_keys[0].foreign_columns == ["id"]

    def test_table_schema(self, target_engine):
        table = SchemaExtractor(target_engine).get_table_schema("order_items")

        assert table.name == "order_items"
        assert {fk.foreign_table for fk in table.foreign_keys} == {"orders", "products"}
        assert table.ddl.startswith("CREATE TABLE order_items (")
        assert table.description.startswith("Table: order_items\n")

    def test_indexes_and_foreign_keys_can_be_skipped(self, target_engine):
        extractor = SchemaExtractor(target_engine, include_indexes=False, include_foreign_keys=False)
        table = extractor.get_table_schema("orders")

        assert table.indexes == []
        assert table.foreign_keys == []
        assert "FOREIGN KEY" not in table.ddl

    def test_extract(self, target_engine):
        schema = SchemaExtractor(target_engine).extract()

        assert sorted(schema) == sorted(TARGET_TABLES)
        assert schema["users"].to_dict()["name"] == "users"


@pytest.mark.unit
class TestRendering:
    """Test DDL and description rendering from plain records."""

    columns = [
        ColumnInfo(name="id", type="INTEGER", nullable=False, auto_increment=True),
        ColumnInfo(name="user_id", type="INTEGER", nullable=False, comment="Buyer"),
        ColumnInfo(name="status", type="VARCHAR(20)", default="'new'"),
    ]
    foreign_keys = [
        ForeignKeyInfo(name="fk_orders_user", columns=["user_id"], foreign_table="users", foreign_columns=["id"]),
    ]

    def test_generate_ddl(self):
        extractor = SchemaExtractor(MagicMock())
        ddl = extractor.generate_ddl("orders", self.columns, self.foreign_keys)

        assert ddl == (
            "CREATE TABLE orders (\n"
            "  id INTEGER NOT NULL AUTO_INCREMENT,\n"
            "  user_id INTEGER NOT NULL COMMENT 'Buyer',\n"
            "  status VARCHAR(20) DEFAULT 'new',\n"
            "  FOREIGN KEY (user_id) REFERENCES users (id)\n"
            ");"
        )

    def test_generate_table_description(self):
        extractor = SchemaExtractor(MagicMock())
        description = extractor.generate_table_description("orders", self.columns, self.foreign_keys)

        assert description == (
            "Table: orders\n"
            "Columns:\n"
            "- id (INTEGER) NOT NULL\n"
            "- user_id (INTEGER) NOT NULL - Buyer\n"
            "- status (VARCHAR(20)) DEFAULT 'new'\n"
            "Relationships:\n"
            "- user_id -> users.id\n"
        )

    def test_description_without_relationships(self):
        extractor = SchemaExtractor(MagicMock())
        description = extractor.generate_table_description("orders", self.columns[:1], [])

        assert "Relationships:" not in description
