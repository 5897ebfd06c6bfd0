"""
Retrieval components: chunking, similarity and the embedding store.
"""
from .chunker import chunk_content
from .embedding_store import EmbeddingStore
from .similarity import cosine_similarity, rank_by_similarity

__all__ = [
    "chunk_content",
    "cosine_similarity",
    "rank_by_similarity",
    "EmbeddingStore",
]
