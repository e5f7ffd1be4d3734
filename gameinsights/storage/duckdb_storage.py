"""
DuckDB key-value store for persisted model snapshots.

Keeps one row per snapshot key in a single `model_state` table. Writes are
upserts, so a save replaces the previous snapshot in one statement and a
reader never observes half of a model.

Key features:
- Thread-local connections
- Idempotent schema creation
- Failures wrapped in StorageError with structured logging
"""

import os
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional

import duckdb
import structlog

from .base import KeyValueStore, StorageError

logger = structlog.get_logger(__name__)


class DuckDBKeyValueStore(KeyValueStore):
    """
    DuckDB implementation of the key-value store.

    Attributes:
        db_path: Path to the DuckDB database file
        _local: Thread-local storage for per-thread connections
        _lock: Thread lock for schema operations
        _initialized: Flag tracking whether schema is initialized
    """

    def __init__(self, db_path: str = "./data/gameinsights.duckdb"):
        """
        Initialize DuckDB store.

        Args:
            db_path: Path to DuckDB database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._lock = threading.Lock()
        self._initialized = False

        logger.info("duckdb_store_initialized", db_path=str(self.db_path))

        self._initialize_schema()

    @contextmanager
    def _get_connection(self):
        """
        Get a thread-local DuckDB connection.

        Yields:
            DuckDB connection instance

        Raises:
            StorageError: If connection cannot be established
        """
        if not hasattr(self._local, "connection"):
            try:
                self._local.connection = duckdb.connect(str(self.db_path))
                logger.debug("duckdb_connection_created", thread_id=threading.get_ident())
            except Exception as e:
                logger.error("duckdb_connection_failed", error=str(e))
                raise StorageError(f"Failed to connect to DuckDB: {e}") from e

        yield self._local.connection

    def _initialize_schema(self) -> None:
        """
        Create the snapshot table. Idempotent.

        Raises:
            StorageError: If schema creation fails
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                with self._get_connection() as conn:
                    conn.execute(
                        """
                        CREATE TABLE IF NOT EXISTS model_state (
                            key VARCHAR PRIMARY KEY,
                            payload VARCHAR NOT NULL,
                            updated_at TIMESTAMP NOT NULL
                        )
                        """
                    )
                self._initialized = True
                logger.info("duckdb_schema_initialized", tables=["model_state"])
            except duckdb.Error as e:
                logger.error("duckdb_schema_initialization_failed", error=str(e))
                raise StorageError(f"Failed to initialize schema: {e}") from e

    def get(self, key: str) -> Optional[str]:
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT payload FROM model_state WHERE key = ? LIMIT 1",
                    [key],
                ).fetchone()
        except duckdb.Error as e:
            logger.error("model_state_read_failed", key=key, error=str(e))
            raise StorageError(f"Failed to read key '{key}': {e}") from e

        if row is None:
            return None
        logger.debug("model_state_read", key=key)
        return row[0]

    def set(self, key: str, value: str) -> None:
        try:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO model_state (key, payload, updated_at)
                    VALUES (?, ?, ?)
                    """,
                    [key, value, datetime.utcnow()],
                )
        except duckdb.Error as e:
            logger.error("model_state_write_failed", key=key, error=str(e))
            raise StorageError(f"Failed to write key '{key}': {e}") from e

        logger.info("model_state_written", key=key, size=len(value))

    def delete(self, key: str) -> bool:
        try:
            with self._get_connection() as conn:
                existed = conn.execute(
                    "SELECT COUNT(*) FROM model_state WHERE key = ?", [key]
                ).fetchone()[0]
                conn.execute("DELETE FROM model_state WHERE key = ?", [key])
        except duckdb.Error as e:
            logger.error("model_state_delete_failed", key=key, error=str(e))
            raise StorageError(f"Failed to delete key '{key}': {e}") from e

        return existed > 0

    def keys(self) -> list[str]:
        try:
            with self._get_connection() as conn:
                rows = conn.execute("SELECT key FROM model_state ORDER BY key").fetchall()
        except duckdb.Error as e:
            logger.error("model_state_keys_failed", error=str(e))
            raise StorageError(f"Failed to list keys: {e}") from e

        return [r[0] for r in rows]

    def clear_for_testing(self) -> None:
        """
        Delete every snapshot. For testing only; use when TESTING=true.
        """
        if not os.environ.get("TESTING"):
            return
        with self._get_connection() as conn:
            conn.execute("DELETE FROM model_state")

    def close(self) -> None:
        """Close this thread's connection, if one is open."""
        conn = getattr(self._local, "connection", None)
        if conn is not None:
            conn.close()
            del self._local.connection
