"""
Provider selection.

The configured tag maps to exactly one provider class; instances are built
once per process and reused.
"""
import threading
from typing import Dict, Optional, Type

from dbchat.config import Settings, get_settings
from dbchat.core.log_utils import log_info
from dbchat.llm.claude_provider import ClaudeProvider
from dbchat.llm.ollama_provider import OllamaProvider
from dbchat.llm.openai_provider import OpenAIProvider
from dbchat.llm.provider import LLMProvider

PROVIDERS: Dict[str, Type[LLMProvider]] = {
    "ollama": OllamaProvider,
    "openai": OpenAIProvider,
    "claude": ClaudeProvider,
}

_providers: Dict[str, LLMProvider] = {}
_providers_lock = threading.Lock()


def create_provider(name: str, settings: Settings) -> LLMProvider:
    """
    Build a provider from settings without caching.

    Raises:
        ValueError: If the provider tag is unknown
    """
    provider_cls = PROVIDERS.get(name)
    if provider_cls is None:
        raise ValueError(f"Unsupported LLM provider: {name}. Supported: {', '.join(PROVIDERS)}")
    return provider_cls.from_settings(settings)


def get_llm_provider(name: Optional[str] = None, settings: Optional[Settings] = None) -> LLMProvider:
    """Get or create the cached provider for a tag (defaults to the configured one)."""
    settings = settings or get_settings()
    name = name or settings.llm_provider

    with _providers_lock:
        if name not in _providers:
            _providers[name] = create_provider(name, settings)
            log_info("LLM Manager", f"Using {name} provider")
        return _providers[name]


def clear_provider_cache() -> None:
    with _providers_lock:
        _providers.clear()
