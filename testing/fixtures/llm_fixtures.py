"""
LLM Fixtures
============

Deterministic stand-ins for LLM providers and embedders, so tests never
need a running model.
"""

from typing import Dict, List, Optional, Sequence

from dbchat.llm.claude_provider import hashed_embedding
from dbchat.llm.provider import LLMProvider


class StubLLMProvider(LLMProvider):
    """
    Provider returning a fixed SQL statement.

    Embeddings use the hashed bag-of-words vector so similar wording gives
    similar vectors. Every prompt is recorded in ``prompts``.
    """

    name = "stub"
    display_name = "Stub"

    def __init__(self, sql: str = "SELECT * FROM users", error: Optional[Exception] = None):
        super().__init__("http://stub.local", timeout=1)
        self.sql = sql
        self.error = error
        self.prompts: List[str] = []

    def generate_sql(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.sql

    def generate_embedding(self, text: str) -> List[float]:
        return hashed_embedding(text)


class HashEmbedder:
    """Embedder only; optionally flagged as approximate."""

    name = "hash"

    def __init__(self, approximate: bool = False):
        self.approximate_embeddings = approximate
        self.calls = 0

    def generate_embedding(self, text: str) -> List[float]:
        self.calls += 1
        return hashed_embedding(text)


class VectorEmbedder:
    """Embedder returning hand-picked vectors for known texts."""

    name = "vector"
    approximate_embeddings = False

    def __init__(self, vectors: Dict[str, Sequence[float]]):
        self.vectors = vectors

    def generate_embedding(self, text: str) -> List[float]:
        return list(self.vectors[text])
