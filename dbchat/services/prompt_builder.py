"""
Prompt Builder

Assembles the text-to-SQL prompt from retrieved context. Sections are
ordered from most to least authoritative:

1. System instructions and dialect notes
2. Business documentation
3. Schema snippets
4. Retrieved similar question/SQL pairs
5. Default and configured examples (always present)
6. The question, followed by the "SQL Query" cue
"""
from typing import Any, Dict, List, Optional, Sequence

DIALECT_NOTES = {
    "mysql": (
        "MySQL-specific notes:\n"
        "- Use backticks for identifiers with special characters\n"
        "- Use DATE_SUB/DATE_ADD for date arithmetic\n"
        "- Use IFNULL() for null handling\n"
        "- Use LIMIT for row limiting"
    ),
    "pgsql": (
        "PostgreSQL-specific notes:\n"
        "- Use double quotes for identifiers with special characters\n"
        "- Use INTERVAL for date arithmetic\n"
        "- Use COALESCE() for null handling\n"
        "- Use LIMIT/OFFSET for pagination"
    ),
    "sqlite": (
        "SQLite-specific notes:\n"
        "- Use date() and datetime() functions for date handling\n"
        "- Use IFNULL() or COALESCE() for null handling\n"
        "- Use LIMIT for row limiting"
    ),
    "sqlsrv": (
        "SQL Server-specific notes:\n"
        "- Use square brackets for identifiers with special characters\n"
        "- Use DATEADD/DATEDIFF for date arithmetic\n"
        "- Use ISNULL() or COALESCE() for null handling\n"
        "- Use TOP or OFFSET-FETCH for row limiting"
    ),
}

DEFAULT_EXAMPLES = [
    {
        "question": "Show all users",
        "sql": "SELECT * FROM users",
    },
    {
        "question": "How many orders were placed this month?",
        "sql": "SELECT COUNT(*) as order_count FROM orders WHERE created_at >= DATE_FORMAT(NOW(), '%Y-%m-01')",
    },
    {
        "question": "Get the top 10 products by sales",
        "sql": (
            "SELECT p.name, SUM(oi.quantity) as total_sold FROM products p "
            "JOIN order_items oi ON p.id = oi.product_id GROUP BY p.id, p.name "
            "ORDER BY total_sold DESC LIMIT 10"
        ),
    },
    {
        "question": "List users who signed up in the last 7 days",
        "sql": "SELECT * FROM users WHERE created_at >= DATE_SUB(NOW(), INTERVAL 7 DAY)",
    },
]


def _content_of(item: Any) -> str:
    if isinstance(item, dict):
        return item.get("content", "")
    return getattr(item, "content", "")


def _metadata_of(item: Any) -> Dict[str, Any]:
    if isinstance(item, dict):
        return item.get("metadata") or {}
    return getattr(item, "metadata", None) or {}


class PromptBuilder:
    """
    Builds prompts for SQL generation. Holds no I/O; the only state is the
    in-memory pool of sample queries appended to the default examples.
    """

    def __init__(self, sample_queries: Optional[List[Dict[str, str]]] = None):
        self.sample_queries: List[Dict[str, str]] = list(sample_queries or [])

    def build(self, question: str, schema_context: Sequence[Any], dialect: str = "mysql") -> str:
        """Build a prompt from schema context only."""
        parts = [
            self._build_system_context(dialect),
            self._build_schema_section(schema_context),
            self._build_examples_section(),
            self._build_question_section(question),
        ]
        return "".join(parts)

    def build_with_context(
        self,
        question: str,
        schema_context: Sequence[Any],
        documentation: Sequence[Any],
        samples: Sequence[Any],
        dialect: str = "mysql",
    ) -> str:
        """
        Build a prompt with documentation and retrieved samples.

        Context items may be records (with ``content``/``metadata``
        attributes) or plain dicts with the same keys.
        """
        parts = [self._build_system_context(dialect)]

        if documentation:
            parts.append("\n### Business Context & Documentation\n\n")
            parts.append("IMPORTANT: Use this information to understand the database structure:\n\n")
            for doc in documentation:
                parts.append(f"{_content_of(doc)}\n\n")

        parts.append(self._build_schema_section(schema_context))

        similar = []
        for sample in samples or []:
            metadata = _metadata_of(sample)
            if metadata.get("question") and metadata.get("sql"):
                similar.append(f"Question: {metadata['question']}\nSQL: {metadata['sql']}\n\n")
        if similar:
            parts.append("\n### Similar Query Examples\n\n")
            parts.extend(similar)

        parts.append(self._build_examples_section())
        parts.append(self._build_question_section(question))
        return "".join(parts)

    def _build_system_context(self, dialect: str) -> str:
        lines = [
            "You are an expert SQL query generator. Your task is to convert natural language "
            "questions into valid SQL queries.",
            "",
            "Rules:",
            "1. Generate ONLY the SQL query, no explanations or markdown",
            f"2. Use proper SQL syntax for {dialect}",
            "3. Always use table aliases for clarity",
            "4. Use appropriate JOIN types based on relationships",
            "5. Include WHERE clauses for filtering",
            "6. Use aggregate functions (COUNT, SUM, AVG, etc.) when asked about totals or averages",
            "7. Add ORDER BY for sorted results",
            "8. Add LIMIT for \"top N\" queries",
            "9. Handle date/time functions appropriately",
            "",
            self.get_dialect_notes(dialect),
            "",
        ]
        return "\n".join(lines)

    @staticmethod
    def get_dialect_notes(dialect: str) -> str:
        """Dialect-specific notes, or an empty string for unknown dialects."""
        return DIALECT_NOTES.get(dialect, "")

    @staticmethod
    def _build_schema_section(schema_context: Sequence[Any]) -> str:
        if not schema_context:
            return ""
        section = ["\n### Database Schema\n\n"]
        for item in schema_context:
            section.append(f"{_content_of(item)}\n\n")
        return "".join(section)

    def _build_examples_section(self) -> str:
        examples = DEFAULT_EXAMPLES + self.sample_queries
        section = ["\n### Examples\n\n"]
        for example in examples:
            section.append(f"Question: {example['question']}\nSQL: {example['sql']}\n\n")
        return "".join(section)

    @staticmethod
    def _build_question_section(question: str) -> str:
        return f"\n### Question\n\n{question}\n\n### SQL Query\n"

    def add_sample_query(self, question: str, sql: str) -> "PromptBuilder":
        """Append a question/SQL pair to the example pool."""
        self.sample_queries.append({"question": question, "sql": sql})
        return self

    def set_sample_queries(self, queries: List[Dict[str, str]]) -> "PromptBuilder":
        """Replace the example pool."""
        self.sample_queries = [{"question": q["question"], "sql": q["sql"]} for q in queries]
        return self
