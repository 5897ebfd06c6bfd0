"""
Query logging.

Every ask() call is recorded, successful or not. Two backends:
- DatabaseQueryLogger: rows in dbchat_query_logs, with stats and pruning
- FileQueryLogger: JSON lines in a log file plus an in-memory recent list
"""
import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select

from dbchat.models.database import QueryLog
from dbchat.models.query_models import QueryLogEntry
from dbchat.services.storage_service import StorageService

logger = logging.getLogger(__name__)

# Rows kept with a log entry; counts always reflect the full result
MAX_LOGGED_ROWS = 100

# Entries read back from the log file
MAX_FILE_HISTORY = 1000


def _status_for(error: Optional[str]) -> str:
    return "error" if error else "success"


class QueryLogger(ABC):
    """Interface for query log backends."""

    @abstractmethod
    def log(
        self,
        question: str,
        sql: str,
        results: Optional[List[Dict[str, Any]]] = None,
        execution_time: Optional[float] = None,
        error: Optional[str] = None,
        provider: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record one interaction."""

    @abstractmethod
    def get_history(self, limit: int = 50, offset: int = 0) -> List[QueryLogEntry]:
        """Most recent entries first."""

    def get_stats(self) -> Dict[str, Any]:
        """Aggregate counts over the log."""
        entries = self.get_history(limit=MAX_FILE_HISTORY)
        times = [e.execution_time for e in entries if e.execution_time is not None]
        today = datetime.now(timezone.utc).date().isoformat()
        return {
            "total_queries": len(entries),
            "successful_queries": sum(1 for e in entries if e.status == "success"),
            "failed_queries": sum(1 for e in entries if e.status == "error"),
            "avg_execution_time": (sum(times) / len(times)) if times else None,
            "queries_today": sum(1 for e in entries if (e.timestamp or "").startswith(today)),
        }

    def clear_older_than(self, days: int = 30) -> int:
        """Remove entries older than ``days``. Returns the number removed."""
        return 0


class NullQueryLogger(QueryLogger):
    """Used when query logging is disabled."""

    def log(self, question, sql, results=None, execution_time=None, error=None,
            provider=None, metadata=None) -> None:
        return None

    def get_history(self, limit: int = 50, offset: int = 0) -> List[QueryLogEntry]:
        return []


class DatabaseQueryLogger(QueryLogger):
    """Query log stored in the dbchat_query_logs table."""

    def __init__(self, storage: StorageService, provider: Optional[str] = None):
        self.storage = storage
        self.provider = provider

    def log(
        self,
        question: str,
        sql: str,
        results: Optional[List[Dict[str, Any]]] = None,
        execution_time: Optional[float] = None,
        error: Optional[str] = None,
        provider: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        with self.storage.get_session() as session:
            session.add(QueryLog(
                question=question,
                generated_sql=sql,
                results=results[:MAX_LOGGED_ROWS] if results is not None else None,
                result_count=len(results) if results is not None else None,
                execution_time=execution_time,
                error=error,
                status=_status_for(error),
                llm_provider=provider or self.provider,
                meta=metadata or {},
                created_at=datetime.utcnow(),
            ))

    def get_history(self, limit: int = 50, offset: int = 0) -> List[QueryLogEntry]:
        with self.storage.get_session() as session:
            stmt = (
                select(QueryLog)
                .order_by(QueryLog.created_at.desc(), QueryLog.id.desc())
                .offset(offset)
                .limit(limit)
            )
            return [
                QueryLogEntry(
                    id=row.id,
                    question=row.question,
                    sql=row.generated_sql or "",
                    result_count=row.result_count,
                    execution_time=row.execution_time,
                    status=row.status,
                    error=row.error,
                    provider=row.llm_provider,
                    timestamp=row.created_at.isoformat() if row.created_at else None,
                )
                for row in session.execute(stmt).scalars()
            ]

    def get_stats(self) -> Dict[str, Any]:
        start_of_day = datetime.utcnow().replace(hour=0, minute=0, second=0, microsecond=0)

        with self.storage.get_session() as session:
            def count(*conditions) -> int:
                stmt = select(func.count(QueryLog.id))
                for condition in conditions:
                    stmt = stmt.where(condition)
                return session.execute(stmt).scalar_one()

            avg_time = session.execute(
                select(func.avg(QueryLog.execution_time)).where(QueryLog.execution_time.is_not(None))
            ).scalar_one()

            return {
                "total_queries": count(),
                "successful_queries": count(QueryLog.status == "success"),
                "failed_queries": count(QueryLog.status == "error"),
                "avg_execution_time": float(avg_time) if avg_time is not None else None,
                "queries_today": count(QueryLog.created_at >= start_of_day),
            }

    def clear_older_than(self, days: int = 30) -> int:
        cutoff = datetime.utcnow() - timedelta(days=days)
        with self.storage.get_session() as session:
            result = session.execute(delete(QueryLog).where(QueryLog.created_at < cutoff))
            removed = result.rowcount or 0
        logger.info(f"Pruned {removed} query log entries older than {days} days")
        return removed


class FileQueryLogger(QueryLogger):
    """
    Query log written as JSON lines.

    Recent entries are also kept in memory; get_history() merges them with
    the file, de-duplicates by timestamp and question and sorts newest first.
    """

    def __init__(self, path: str, provider: Optional[str] = None):
        self.path = path
        self.provider = provider
        self._recent: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def log(
        self,
        question: str,
        sql: str,
        results: Optional[List[Dict[str, Any]]] = None,
        execution_time: Optional[float] = None,
        error: Optional[str] = None,
        provider: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "question": question,
            "sql": sql,
            "result_count": len(results) if results is not None else None,
            "execution_time": execution_time,
            "status": _status_for(error),
            "error": error,
            "provider": provider or self.provider,
        }
        if metadata:
            entry["metadata"] = metadata

        with self._lock:
            self._recent.insert(0, entry)
            del self._recent[MAX_FILE_HISTORY:]
            try:
                directory = os.path.dirname(os.path.abspath(self.path))
                os.makedirs(directory, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(json.dumps(entry, default=str) + "\n")
            except OSError as e:
                logger.error(f"Could not write query log {self.path}: {e}")

    def _read_file(self, max_entries: Optional[int] = MAX_FILE_HISTORY) -> List[Dict[str, Any]]:
        if not os.path.exists(self.path):
            return []

        # Only the newest lines are kept in memory
        with open(self.path, "r", encoding="utf-8") as f:
            lines = deque(f, maxlen=max_entries)

        entries = []
        for line in reversed(lines):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict) and "question" in data:
                entries.append(data)
            if max_entries is not None and len(entries) >= max_entries:
                break
        return entries

    def get_history(self, limit: int = 50, offset: int = 0) -> List[QueryLogEntry]:
        with self._lock:
            merged = list(self._recent) + self._read_file()

        seen = set()
        unique = []
        for entry in merged:
            key = (entry.get("timestamp"), entry.get("question"))
            if key in seen:
                continue
            seen.add(key)
            unique.append(entry)

        unique.sort(key=lambda e: e.get("timestamp") or "", reverse=True)

        return [
            QueryLogEntry(
                question=entry.get("question", ""),
                sql=entry.get("sql") or "",
                result_count=entry.get("result_count"),
                execution_time=entry.get("execution_time"),
                status=entry.get("status", "success"),
                error=entry.get("error"),
                provider=entry.get("provider"),
                timestamp=entry.get("timestamp"),
            )
            for entry in unique[offset:offset + limit]
        ]

    def clear_older_than(self, days: int = 30) -> int:
        cutoff = (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()

        with self._lock:
            kept_recent = [e for e in self._recent if (e.get("timestamp") or "") >= cutoff]
            self._recent = kept_recent

            if not os.path.exists(self.path):
                return 0

            entries = list(reversed(self._read_file(max_entries=None)))
            kept = [e for e in entries if (e.get("timestamp") or "") >= cutoff]
            with open(self.path, "w", encoding="utf-8") as f:
                for entry in kept:
                    f.write(json.dumps(entry, default=str) + "\n")

        return len(entries) - len(kept)


def create_query_logger(settings, storage: Optional[StorageService] = None) -> QueryLogger:
    """Build the configured query logger."""
    if not settings.logging_enabled:
        return NullQueryLogger()

    if settings.log_driver == "database":
        if storage is None:
            storage = StorageService(settings.resolved_storage_url)
        return DatabaseQueryLogger(storage, provider=settings.llm_provider)

    return FileQueryLogger(settings.log_path, provider=settings.llm_provider)
