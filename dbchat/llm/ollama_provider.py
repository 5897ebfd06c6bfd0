"""
Ollama provider: local completion and embedding models.
"""
from typing import List, Optional

import httpx

from dbchat.llm.provider import LLMProvider, extract_sql_from_response


class OllamaProvider(LLMProvider):
    """Talks to a local Ollama server via /api/generate and /api/embeddings."""

    name = "ollama"
    display_name = "Ollama"

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "qwen2.5-coder:3b",
        embedding_model: str = "nomic-embed-text",
        timeout: float = 120,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(host, timeout, transport=transport)
        self.host = host
        self.model = model
        self.embedding_model = embedding_model

    @classmethod
    def from_settings(cls, settings) -> "OllamaProvider":
        return cls(
            host=settings.ollama_host,
            model=settings.ollama_model,
            embedding_model=settings.ollama_embedding_model,
            timeout=settings.ollama_timeout,
        )

    def generate_sql(self, prompt: str) -> str:
        data = self._post("api/generate", {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": 0.1,
                "num_predict": 2048,
            },
        })
        return extract_sql_from_response(data.get("response", ""))

    def generate_embedding(self, text: str) -> List[float]:
        data = self._post("api/embeddings", {
            "model": self.embedding_model,
            "prompt": text,
        })
        return data.get("embedding", [])
