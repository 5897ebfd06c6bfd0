"""
LLM providers for SQL generation and embeddings.

Usage:
    from dbchat.llm import get_llm_provider

    provider = get_llm_provider("ollama")
    sql = provider.generate_sql(prompt)
"""
from .claude_provider import ClaudeProvider, hashed_embedding
from .manager import PROVIDERS, clear_provider_cache, create_provider, get_llm_provider
from .ollama_provider import OllamaProvider
from .openai_provider import OpenAIProvider
from .provider import LLMProvider, extract_sql_from_response

__all__ = [
    "LLMProvider",
    "OllamaProvider",
    "OpenAIProvider",
    "ClaudeProvider",
    "PROVIDERS",
    "create_provider",
    "get_llm_provider",
    "clear_provider_cache",
    "extract_sql_from_response",
    "hashed_embedding",
]
