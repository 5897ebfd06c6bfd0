"""
Prompt Builder Tests
"""

import pytest

from dbchat.models.query_models import SimilarityResult
from dbchat.services.prompt_builder import DEFAULT_EXAMPLES, PromptBuilder


def _result(type, content, metadata=None):
    return SimilarityResult(type=type, identifier="x", content=content, metadata=metadata or {}, similarity=0.9)


@pytest.mark.unit
class TestPromptBuilder:
    """Test section content and ordering."""

    def test_build_sections_in_order(self):
        prompt = PromptBuilder().build("How many users?", [_result("table", "CREATE TABLE users (id INTEGER);")], "sqlite")

        system = prompt.index("You are an expert SQL query generator.")
        schema = prompt.index("### Database Schema")
        examples = prompt.index("### Examples")
        question = prompt.index("### Question")
        assert system < schema < examples < question
        assert "CREATE TABLE users (id INTEGER);" in prompt
        assert prompt.endswith("\n### Question\n\nHow many users?\n\n### SQL Query\n")

    def test_dialect_in_rules_and_notes(self):
        prompt = PromptBuilder().build("q", [], "pgsql")

        assert "2. Use proper SQL syntax for pgsql" in prompt
        assert "PostgreSQL-specific notes:" in prompt
        assert "MySQL-specific notes:" not in prompt

    @pytest.mark.parametrize("dialect,heading", [
        ("mysql", "MySQL-specific notes:"),
        ("pgsql", "PostgreSQL-specific notes:"),
        ("sqlite", "SQLite-specific notes:"),
        ("sqlsrv", "SQL Server-specific notes:"),
    ])
    def test_dialect_notes(self, dialect, heading):
        assert PromptBuilder.get_dialect_notes(dialect).startswith(heading)

    def test_unknown_dialect_has_no_notes(self):
        assert PromptBuilder.get_dialect_notes("oracle") == ""

    def test_empty_schema_section_omitted(self):
        assert "### Database Schema" not in PromptBuilder().build("q", [], "mysql")

    def test_default_examples_always_present(self):
        prompt = PromptBuilder().build("q", [], "mysql")
        for example in DEFAULT_EXAMPLES:
            assert f"Question: {example['question']}\nSQL: {example['sql']}\n\n" in prompt

    def test_build_with_context(self):
        prompt = PromptBuilder().build_with_context(
            "Which users ordered?",
            [_result("table", "CREATE TABLE orders (id INTEGER);")],
            [_result("documentation", "## Orders\n\nOrders belong to users.")],
            [_result("sample", "Question: ...", {"question": "Count orders", "sql": "SELECT COUNT(*) FROM orders"})],
            "sqlite",
        )

        docs = prompt.index("### Business Context & Documentation")
        schema = prompt.index("### Database Schema")
        similar = prompt.index("### Similar Query Examples")
        examples = prompt.index("### Examples")
        assert docs < schema < similar < examples
        assert "IMPORTANT: Use this information to understand the database structure:" in prompt
        assert "Orders belong to users." in prompt
        assert "Question: Count orders\nSQL: SELECT COUNT(*) FROM orders\n\n" in prompt

    def test_samples_without_sql_skipped(self):
        prompt = PromptBuilder().build_with_context("q", [], [], [_result("sample", "text", {"question": "only"})])
        assert "### Similar Query Examples" not in prompt

    def test_plain_dict_context(self):
        prompt = PromptBuilder().build_with_context(
            "q",
            [{"content": "CREATE TABLE t (id INTEGER);"}],
            [{"content": "Doc text"}],
            [{"content": "", "metadata": {"question": "Q1", "sql": "SELECT 1"}}],
        )
        assert "CREATE TABLE t (id INTEGER);" in prompt
        assert "Doc text" in prompt
        assert "Question: Q1\nSQL: SELECT 1" in prompt

    def test_sample_queries_appended_after_defaults(self):
        builder = PromptBuilder([{"question": "Active users", "sql": "SELECT * FROM users WHERE status = 'active'"}])
        builder.add_sample_query("All orders", "SELECT * FROM orders")
        prompt = builder.build("q", [])

        last_default = prompt.index(DEFAULT_EXAMPLES[-1]["question"])
        assert last_default < prompt.index("Question: Active users")
        assert prompt.index("Question: Active users") < prompt.index("Question: All orders")

    def test_set_sample_queries_replaces_pool(self):
        builder = PromptBuilder([{"question": "Old", "sql": "SELECT 0"}])
        result = builder.set_sample_queries([{"question": "New", "sql": "SELECT 1"}])

        assert result is builder
        assert builder.sample_queries == [{"question": "New", "sql": "SELECT 1"}]
