"""
OpenAI provider: chat completions and the embeddings endpoint.
"""
from typing import List, Optional

import httpx

from dbchat.llm.provider import SQL_SYSTEM_PROMPT, LLMProvider, extract_sql_from_response

OPENAI_BASE_URL = "https://api.openai.com/v1"


class OpenAIProvider(LLMProvider):
    """Hosted OpenAI models."""

    name = "openai"
    display_name = "OpenAI"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o",
        embedding_model: str = "text-embedding-3-small",
        timeout: float = 60,
        base_url: str = OPENAI_BASE_URL,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(
            base_url,
            timeout,
            headers={"Authorization": f"Bearer {api_key or ''}"},
            transport=transport,
        )
        self.api_key = api_key
        self.model = model
        self.embedding_model = embedding_model

    @classmethod
    def from_settings(cls, settings) -> "OpenAIProvider":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            embedding_model=settings.openai_embedding_model,
            timeout=settings.openai_timeout,
        )

    def generate_sql(self, prompt: str) -> str:
        self._require_api_key(self.api_key, "OpenAI")

        data = self._post("chat/completions", {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SQL_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": 0.1,
            "max_tokens": 2048,
        })

        choices = data.get("choices") or [{}]
        content = (choices[0].get("message") or {}).get("content") or ""
        return extract_sql_from_response(content)

    def generate_embedding(self, text: str) -> List[float]:
        self._require_api_key(self.api_key, "OpenAI")

        data = self._post("embeddings", {
            "model": self.embedding_model,
            "input": text,
        })

        items = data.get("data") or [{}]
        return items[0].get("embedding", [])
