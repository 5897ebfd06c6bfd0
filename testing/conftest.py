"""
Pytest Configuration
====================

- Adds the testing root and project root to sys.path
- Provides seeded target databases, an in-memory store and stub providers
- Resets process-wide singletons between tests

Usage in tests:
    from fixtures.llm_fixtures import StubLLMProvider

    def test_something(pipeline, target_engine):
        result = pipeline.ask("show all users")
"""

import sys
from pathlib import Path

import pytest

TESTING_ROOT = Path(__file__).parent
sys.path.insert(0, str(TESTING_ROOT))

PROJECT_ROOT = TESTING_ROOT.parent
sys.path.insert(0, str(PROJECT_ROOT))

from dbchat.core import log_utils
from dbchat.extraction.schema_extractor import SchemaExtractor
from dbchat.llm.manager import clear_provider_cache
from dbchat.query_pipeline import QueryPipeline, set_query_pipeline
from dbchat.rag.embedding_store import EmbeddingStore
from dbchat.services.execution_service import QueryExecutor
from dbchat.services.prompt_builder import PromptBuilder
from dbchat.services.query_logger import DatabaseQueryLogger
from dbchat.services.storage_service import StorageService, create_database_engine

from fixtures.database_fixtures import create_seeded_engine
from fixtures.llm_fixtures import HashEmbedder, StubLLMProvider


@pytest.fixture(autouse=True)
def reset_singletons():
    """Keep the pipeline/provider caches and log mirror from leaking between tests."""
    log_utils.configure_log_dir(None)
    yield
    set_query_pipeline(None)
    clear_provider_cache()
    log_utils.configure_log_dir(None)


# =============================================================================
# Databases
# =============================================================================

@pytest.fixture
def target_engine():
    """Seeded in-memory target database."""
    engine = create_seeded_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def storage():
    """Empty in-memory dbchat store."""
    service = StorageService(engine=create_database_engine("sqlite://"))
    yield service
    service.close()


# =============================================================================
# Providers and components
# =============================================================================

@pytest.fixture
def stub_llm() -> StubLLMProvider:
    return StubLLMProvider()


@pytest.fixture
def hash_embedder() -> HashEmbedder:
    return HashEmbedder()


@pytest.fixture
def embedding_store(storage, hash_embedder) -> EmbeddingStore:
    return EmbeddingStore(storage, hash_embedder, top_k=5, similarity_threshold=0.3)


@pytest.fixture
def pipeline(target_engine, stub_llm) -> QueryPipeline:
    """
    Pipeline over the seeded target database.

    The store shares the target engine, as it does when no separate
    storage URL is configured.
    """
    store = StorageService(engine=target_engine)
    return QueryPipeline(
        llm=stub_llm,
        schema_extractor=SchemaExtractor(target_engine),
        embedding_store=EmbeddingStore(store, stub_llm),
        prompt_builder=PromptBuilder(),
        query_executor=QueryExecutor(target_engine),
        query_logger=DatabaseQueryLogger(store, provider=stub_llm.name),
    )
