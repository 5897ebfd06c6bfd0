"""
Claude provider.

Anthropic has no embeddings endpoint, so this provider falls back to a
hashed bag-of-words vector. Those vectors only capture word overlap; the
provider is flagged with approximate_embeddings so the store can tag what
it writes.
"""
import math
import re
import zlib
from typing import List, Optional

import httpx

from dbchat.llm.provider import SQL_SYSTEM_PROMPT, LLMProvider, extract_sql_from_response

ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"

HASHED_EMBEDDING_DIMENSIONS = 384

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def hashed_embedding(text: str, dimensions: int = HASHED_EMBEDDING_DIMENSIONS) -> List[float]:
    """
    Bag-of-words vector with words bucketed by CRC32, L2-normalized.

    Deterministic across processes, unlike hash().
    """
    words = _NON_ALNUM.sub(" ", text.lower()).split()

    vector = [0.0] * dimensions
    for word in words:
        index = zlib.crc32(word.encode("utf-8")) % dimensions
        vector[index] += 1.0

    magnitude = math.sqrt(sum(x * x for x in vector))
    if magnitude > 0:
        vector = [x / magnitude for x in vector]
    return vector


class ClaudeProvider(LLMProvider):
    """Anthropic Messages API for completion, hashed vectors for embedding."""

    name = "claude"
    display_name = "Claude"
    approximate_embeddings = True

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "claude-sonnet-4-20250514",
        timeout: float = 60,
        base_url: str = ANTHROPIC_BASE_URL,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(
            base_url,
            timeout,
            headers={
                "x-api-key": api_key or "",
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            },
            transport=transport,
        )
        self.api_key = api_key
        self.model = model

    @classmethod
    def from_settings(cls, settings) -> "ClaudeProvider":
        return cls(
            api_key=settings.anthropic_api_key,
            model=settings.claude_model,
            timeout=settings.claude_timeout,
        )

    def generate_sql(self, prompt: str) -> str:
        self._require_api_key(self.api_key, "Anthropic")

        data = self._post("messages", {
            "model": self.model,
            "max_tokens": 2048,
            "system": SQL_SYSTEM_PROMPT,
            "messages": [
                {"role": "user", "content": prompt},
            ],
        })

        blocks = data.get("content") or [{}]
        return extract_sql_from_response(blocks[0].get("text", ""))

    def generate_embedding(self, text: str) -> List[float]:
        return hashed_embedding(text)
