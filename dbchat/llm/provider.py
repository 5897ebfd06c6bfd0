"""
LLM provider interface.

Every backend exposes the same two capabilities: SQL completion from a
prompt and text embedding. HTTP failures are translated into
LLMConnectionError here so callers never see transport exceptions.
"""
import logging
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from dbchat.exceptions import LLMConnectionError, LLMErrorKind

logger = logging.getLogger(__name__)

SQL_SYSTEM_PROMPT = (
    "You are a SQL expert. Generate only valid SQL queries based on the given schema "
    "and question. Return only the SQL query without any explanation."
)

_SQL_FENCE = re.compile(r"```sql\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_ANY_FENCE = re.compile(r"```\s*(.*?)\s*```", re.DOTALL)
_SQL_STATEMENT = re.compile(r"(SELECT|INSERT|UPDATE|DELETE|WITH)\s+.+?(?:;|$)", re.DOTALL | re.IGNORECASE)


def extract_sql_from_response(response: str) -> str:
    """
    Extract SQL from a raw model completion.

    Precedence:
    1. A ```sql fenced block
    2. Any fenced block
    3. The first SELECT/INSERT/UPDATE/DELETE/WITH clause, up to ';' or the end
    4. The trimmed response as-is

    Args:
        response: Raw LLM response

    Returns:
        SQL text
    """
    if not response:
        return ""

    match = _SQL_FENCE.search(response)
    if match:
        return match.group(1).strip()

    match = _ANY_FENCE.search(response)
    if match:
        return match.group(1).strip()

    match = _SQL_STATEMENT.search(response)
    if match:
        return match.group(0).strip()

    return response.strip()


class LLMProvider(ABC):
    """
    Base class for completion/embedding backends.

    Attributes:
        name: Provider tag ("ollama", "openai", "claude")
        display_name: Name used in error messages
        supports_embeddings: Provider can embed text
        approximate_embeddings: Embeddings are a lexical fallback, not semantic
    """

    name: str = ""
    display_name: str = ""
    supports_embeddings: bool = True
    approximate_embeddings: bool = False

    def __init__(
        self,
        base_url: str,
        timeout: float,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Args:
            base_url: API root
            timeout: Request timeout in seconds
            headers: Headers sent with every request
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = headers or {}
        self._transport = transport

    @abstractmethod
    def generate_sql(self, prompt: str) -> str:
        """Generate SQL text for a prompt."""

    @abstractmethod
    def generate_embedding(self, text: str) -> List[float]:
        """Embed text into a vector."""

    def get_name(self) -> str:
        return self.name

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST JSON and return the decoded body.

        Raises:
            LLMConnectionError: On connection failure, timeout, 401, 429 or
                any other error status
        """
        url = f"{self.base_url}/{path.lstrip('/')}"

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(url, json=payload, headers=self.headers)
        except httpx.TimeoutException as e:
            raise LLMConnectionError.timeout(self.display_name, self.timeout) from e
        except httpx.TransportError as e:
            raise LLMConnectionError.connection_failed(self.display_name, self.base_url) from e

        if response.status_code == 401:
            raise LLMConnectionError.authentication_failed(self.display_name)
        if response.status_code == 429:
            raise LLMConnectionError.rate_limited(self.display_name)
        if response.status_code == 408:
            raise LLMConnectionError.timeout(self.display_name, self.timeout)
        if response.status_code >= 400:
            raise LLMConnectionError(
                f"{self.display_name} request failed ({response.status_code}): {response.text[:500]}",
                provider=self.name,
                kind=LLMErrorKind.REQUEST_FAILED,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise LLMConnectionError(
                f"{self.display_name} returned invalid JSON",
                provider=self.name,
                kind=LLMErrorKind.REQUEST_FAILED,
                status_code=response.status_code,
            ) from e

    def _require_api_key(self, api_key: Optional[str], label: str) -> None:
        if not api_key:
            raise LLMConnectionError(
                f"{label} API key is not configured",
                provider=self.name,
                kind=LLMErrorKind.AUTHENTICATION_FAILED,
                status_code=401,
            )
