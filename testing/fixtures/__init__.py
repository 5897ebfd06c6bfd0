"""
Test Fixtures Package
=====================

Stub providers and seeded databases shared by the dbchat tests.
"""

from . import database_fixtures
from . import llm_fixtures

from .database_fixtures import (
    SEED_USERS,
    TARGET_TABLES,
    count_rows,
    create_seeded_engine,
)

from .llm_fixtures import (
    HashEmbedder,
    StubLLMProvider,
    VectorEmbedder,
)

__all__ = [
    "database_fixtures",
    "llm_fixtures",
    "SEED_USERS",
    "TARGET_TABLES",
    "count_rows",
    "create_seeded_engine",
    "HashEmbedder",
    "StubLLMProvider",
    "VectorEmbedder",
]
