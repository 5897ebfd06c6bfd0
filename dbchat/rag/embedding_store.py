"""
Embedding Store

Persists training content as (type, identifier) -> (content, vector, metadata)
rows and serves similarity-ranked lookups for prompt building.

Record types used by the pipeline:
- table: DDL rendering of a table
- description: human-readable table description
- sample: question/SQL pairs
- documentation: business documentation (chunked when large)
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError

from dbchat.core.log_utils import log_debug, log_warning
from dbchat.models.database import SchemaEmbedding
from dbchat.models.query_models import EmbeddingRecord, SimilarityResult
from dbchat.rag.chunker import (
    DEFAULT_MAX_SIZE,
    DEFAULT_MIN_REMAINDER,
    DEFAULT_OVERLAP,
    chunk_content,
)
from dbchat.rag.similarity import rank_by_similarity
from dbchat.services.storage_service import StorageService

logger = logging.getLogger(__name__)

TAG = "Embedding Store"


class EmbeddingStore:
    """
    Retrieval index backed by the dbchat_embeddings table.

    Attributes:
        storage: Store session provider
        embedder: Anything exposing generate_embedding(text) and name
        top_k: Default number of results from find_similar()
        similarity_threshold: Minimum similarity for find_similar() results
    """

    def __init__(
        self,
        storage: StorageService,
        embedder,
        top_k: int = 5,
        similarity_threshold: float = 0.3,
        chunk_max_size: int = DEFAULT_MAX_SIZE,
        chunk_overlap: int = DEFAULT_OVERLAP,
        chunk_min_remainder: int = DEFAULT_MIN_REMAINDER,
    ):
        self.storage = storage
        self.embedder = embedder
        self.top_k = top_k
        self.similarity_threshold = similarity_threshold
        self.chunk_max_size = chunk_max_size
        self.chunk_overlap = chunk_overlap
        self.chunk_min_remainder = chunk_min_remainder

        if getattr(embedder, "approximate_embeddings", False):
            log_warning(
                TAG,
                f"{embedder.name} has no native embeddings; using approximate "
                "hashed vectors, retrieval quality will be reduced",
            )

    def _embed(self, text: str) -> List[float]:
        return [float(x) for x in self.embedder.generate_embedding(text)]

    def _tag_metadata(self, metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        tagged = dict(metadata or {})
        tagged["embedding_provider"] = getattr(self.embedder, "name", None)
        if getattr(self.embedder, "approximate_embeddings", False):
            tagged["approximate"] = True
        return tagged

    # ========================================================================
    # Write path
    # ========================================================================

    def store(
        self,
        type: str,
        identifier: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Embed content and upsert it under (type, identifier).

        A concurrent writer inserting the same key first is resolved by
        retrying as an update; the last write wins.

        Raises:
            LLMConnectionError: If the embedding call fails
        """
        vector = self._embed(content)
        metadata = self._tag_metadata(metadata)

        try:
            self._upsert(type, identifier, content, vector, metadata)
        except IntegrityError:
            logger.debug(f"Concurrent insert for {type}:{identifier}, retrying as update")
            self._upsert(type, identifier, content, vector, metadata)

        log_debug(TAG, f"Stored {type}:{identifier} ({len(content)} chars)")

    def _upsert(
        self,
        type: str,
        identifier: str,
        content: str,
        vector: List[float],
        metadata: Dict[str, Any],
    ) -> None:
        with self.storage.get_session() as session:
            stmt = select(SchemaEmbedding).where(
                SchemaEmbedding.type == type,
                SchemaEmbedding.identifier == identifier,
            )
            record = session.execute(stmt).scalar_one_or_none()

            if record is None:
                session.add(SchemaEmbedding(
                    type=type,
                    identifier=identifier,
                    content=content,
                    embedding=vector,
                    meta=metadata,
                ))
            else:
                record.content = content
                record.embedding = vector
                record.meta = metadata
                record.updated_at = datetime.utcnow()

    def store_chunked(
        self,
        type: str,
        identifier: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Store content, splitting it into chunks when it is too large.

        A single chunk keeps the original identifier. Multiple chunks are
        stored as ``<identifier>_chunk_<i>`` with chunk_index, total_chunks
        and parent_identifier added to their metadata. Records left over
        from an earlier, differently chunked write of the same identifier
        are removed.

        Returns:
            Number of records written
        """
        chunks = chunk_content(
            content,
            max_size=self.chunk_max_size,
            overlap=self.chunk_overlap,
            min_remainder=self.chunk_min_remainder,
        )

        if len(chunks) == 1:
            self.store(type, identifier, chunks[0], metadata)
            self._delete_stale_chunks(type, identifier, [identifier])
            return 1

        total = len(chunks)
        written = []
        for index, chunk in enumerate(chunks):
            chunk_metadata = dict(metadata or {})
            chunk_metadata.update({
                "chunk_index": index,
                "total_chunks": total,
                "parent_identifier": identifier,
            })
            chunk_identifier = f"{identifier}_chunk_{index}"
            self.store(type, chunk_identifier, chunk, chunk_metadata)
            written.append(chunk_identifier)

        self._delete_stale_chunks(type, identifier, written)
        log_debug(TAG, f"Stored {type}:{identifier} as {total} chunks")
        return total

    def _delete_stale_chunks(self, type: str, identifier: str, keep: List[str]) -> int:
        """Delete the parent record and its chunks except the identifiers in keep."""
        with self.storage.get_session() as session:
            result = session.execute(
                delete(SchemaEmbedding)
                .where(
                    SchemaEmbedding.type == type,
                    or_(
                        SchemaEmbedding.identifier == identifier,
                        SchemaEmbedding.identifier.startswith(f"{identifier}_chunk_", autoescape=True),
                    ),
                    SchemaEmbedding.identifier.notin_(keep),
                )
                .execution_options(synchronize_session=False)
            )
            removed = result.rowcount or 0

        if removed:
            log_debug(TAG, f"Removed {removed} stale records for {type}:{identifier}")
        return removed

    # ========================================================================
    # Read path
    # ========================================================================

    def find_similar(
        self,
        query: str,
        type: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[SimilarityResult]:
        """
        Rank stored records by cosine similarity to the query.

        Args:
            query: Natural language text to embed
            type: Restrict the scan to one record type
            limit: Maximum results (defaults to top_k)

        Returns:
            Results at or above similarity_threshold, best first
        """
        limit = self.top_k if limit is None else limit
        query_vector = self._embed(query)

        with self.storage.get_session() as session:
            stmt = select(SchemaEmbedding).order_by(SchemaEmbedding.id)
            if type is not None:
                stmt = stmt.where(SchemaEmbedding.type == type)
            rows = session.execute(stmt).scalars().all()
            candidates = [(row, row.embedding or []) for row in rows]

            ranked = rank_by_similarity(
                query_vector,
                candidates,
                threshold=self.similarity_threshold,
                limit=limit,
            )

            return [
                SimilarityResult(
                    type=row.type,
                    identifier=row.identifier,
                    content=row.content,
                    metadata=row.meta or {},
                    similarity=score,
                )
                for row, score in ranked
            ]

    def get_by_type(self, type: str, limit: Optional[int] = None) -> List[EmbeddingRecord]:
        """Get records of one type in storage order, unranked."""
        with self.storage.get_session() as session:
            stmt = (
                select(SchemaEmbedding)
                .where(SchemaEmbedding.type == type)
                .order_by(SchemaEmbedding.id)
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            rows = session.execute(stmt).scalars().all()
            return [self._to_record(row) for row in rows]

    @staticmethod
    def _to_record(row: SchemaEmbedding) -> EmbeddingRecord:
        return EmbeddingRecord(
            type=row.type,
            identifier=row.identifier,
            content=row.content,
            vector=row.embedding or [],
            metadata=row.meta or {},
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    # ========================================================================
    # Bookkeeping
    # ========================================================================

    def count(self, type: Optional[str] = None) -> int:
        """Count records, optionally of one type."""
        with self.storage.get_session() as session:
            stmt = select(func.count(SchemaEmbedding.id))
            if type is not None:
                stmt = stmt.where(SchemaEmbedding.type == type)
            return session.execute(stmt).scalar_one()

    def clear(self) -> int:
        """Delete every record. Returns the number removed."""
        with self.storage.get_session() as session:
            result = session.execute(delete(SchemaEmbedding))
            return result.rowcount or 0

    def delete_by_type(self, type: str) -> int:
        """Delete all records of one type. Returns the number removed."""
        with self.storage.get_session() as session:
            result = session.execute(delete(SchemaEmbedding).where(SchemaEmbedding.type == type))
            return result.rowcount or 0

    def delete(self, type: str, identifier: str) -> bool:
        """Delete one record. Returns True if it existed."""
        with self.storage.get_session() as session:
            result = session.execute(
                delete(SchemaEmbedding).where(
                    SchemaEmbedding.type == type,
                    SchemaEmbedding.identifier == identifier,
                )
            )
            return (result.rowcount or 0) > 0
