"""
Security Service Module

Checks generated SQL before it is allowed anywhere near the database:
empty statements, the read-only policy and a list of dangerous patterns
(stacked DDL/DML, file exfiltration, timing attacks, system variables).

The pattern list is a heuristic defense layer on top of the read-only
check. It does not parse SQL.
"""

import logging
import re
from typing import List, Optional, Tuple

from dbchat.exceptions import QueryErrorKind, QueryExecutionError

logger = logging.getLogger(__name__)

# (pattern, message); checked regardless of the read-only setting
DANGEROUS_PATTERNS: List[Tuple[str, str]] = [
    (r";\s*(DROP|DELETE|TRUNCATE|ALTER|UPDATE|INSERT)", "Multiple statements with DDL/DML detected"),
    (r"INTO\s+OUTFILE", "INTO OUTFILE not allowed"),
    (r"INTO\s+DUMPFILE", "INTO DUMPFILE not allowed"),
    (r"LOAD_FILE", "LOAD_FILE not allowed"),
    (r"BENCHMARK\s*\(", "BENCHMARK not allowed"),
    (r"SLEEP\s*\(", "SLEEP not allowed"),
    (r"@@", "System variables access not allowed"),
]

_LEADING_FENCE = re.compile(r"^```(?:sql)?\s*", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"\s*```$")


def strip_code_fences(sql: str) -> str:
    """Trim, drop trailing semicolons and remove wrapping markdown fences."""
    sql = sql.strip()
    sql = _LEADING_FENCE.sub("", sql)
    sql = _TRAILING_FENCE.sub("", sql)
    return sql.strip().rstrip(";").strip()


def is_select_query(sql: str) -> bool:
    """True for statements starting with SELECT or WITH (CTEs)."""
    upper_sql = sql.strip().upper()
    return upper_sql.startswith("SELECT") or upper_sql.startswith("WITH")


class SecurityCheckResult:
    """Result of a security check."""

    def __init__(
        self,
        passed: bool,
        issues: List[str],
        kind: Optional[QueryErrorKind] = None,
    ):
        self.passed = passed
        self.issues = issues
        self.kind = kind


class SecurityService:
    """
    Service for SQL security validation.

    Attributes:
        read_only: Only allow SELECT/WITH statements
        blocked_patterns: (regex, message) pairs that always reject
    """

    def __init__(
        self,
        read_only: bool = True,
        custom_blocked_patterns: Optional[List[Tuple[str, str]]] = None,
    ):
        """
        Initialize the security service.

        Args:
            read_only: Whether to reject anything but SELECT/WITH
            custom_blocked_patterns: Additional (regex, message) pairs to block
        """
        self.read_only = read_only
        self.blocked_patterns = list(DANGEROUS_PATTERNS)
        if custom_blocked_patterns:
            self.blocked_patterns.extend(custom_blocked_patterns)

        self._compiled = [
            (re.compile(pattern, re.IGNORECASE), message)
            for pattern, message in self.blocked_patterns
        ]

    def check_query(self, sql: str) -> SecurityCheckResult:
        """
        Run all checks and report the first failure.

        Args:
            sql: The SQL to check

        Returns:
            SecurityCheckResult with check status
        """
        if not sql or not sql.strip():
            return SecurityCheckResult(False, ["SQL query is empty"], QueryErrorKind.INVALID_SQL)

        if self.read_only and not is_select_query(strip_code_fences(sql)):
            return SecurityCheckResult(
                False,
                ["Only SELECT queries are allowed in read-only mode"],
                QueryErrorKind.READ_ONLY_VIOLATION,
            )

        issues = self.detect_dangerous_patterns(sql)
        if issues:
            logger.warning(f"Dangerous SQL pattern detected: {issues}")
            return SecurityCheckResult(False, issues, QueryErrorKind.INVALID_SQL)

        return SecurityCheckResult(True, [])

    def detect_dangerous_patterns(self, sql: str) -> List[str]:
        """Messages for every blocked pattern found in the SQL."""
        return [message for regex, message in self._compiled if regex.search(sql)]

    def enforce(self, sql: str) -> None:
        """
        Raise if the SQL fails any check.

        Raises:
            QueryExecutionError: invalid_sql or read_only_violation
        """
        result = self.check_query(sql)
        if result.passed:
            return

        if result.kind == QueryErrorKind.READ_ONLY_VIOLATION:
            raise QueryExecutionError.read_only_violation(sql)
        raise QueryExecutionError.invalid_sql(sql, result.issues[0])
