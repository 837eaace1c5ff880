"""SQLite-based chunk processing state tracker.

Tracks chunks through pipeline stages (emitted, published). Records
progress and failures so an interrupted or partially failed run can be
inspected and resumed.
"""

import sqlite3
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Dict, List
import threading

logger = logging.getLogger(__name__)


class ChunkProcessingTracker:
    """Tracks chunk processing state and progress through pipeline stages.

    **Pipeline Stages:**

    1. **Emitted**: Draws were produced by the model for the chunk
    2. **Published**: The chunk's Parquet file was atomically published

    **Database Schema:**

    SQLite table `chunk_processing`:

    - chunk_key: ``{model_id}:{chunk_index}``
    - model_id, chunk_index, row_start, row_stop (half-open range)
    - Status: pending, processing, completed, failed
    - Timestamps: emitted_at, published_at (ISO format)
    - chunk_path, n_records, n_missing, error_message

    **Source of truth:**

    The published chunk file on disk decides whether a chunk is done; the
    tracker records how it got there. On resume the orchestrator re-marks
    chunks it finds already published.

    **Thread Safety:**

    All methods are thread-safe via internal locking.

    **Typical Usage:**

        tracker = ChunkProcessingTracker(db_path)

        if tracker.should_process(model_id, chunk.index):
            ...
            tracker.mark_stage_complete(model_id, chunk.index, "published", n_records=n)

        stats = tracker.get_statistics(model_id)
        tracker.close()
    """

    STAGES = ('emitted', 'published')

    def __init__(self, db_path: Path | str):
        """Initialize tracker.

        Parameters
        ----------
        db_path : Path or str
            Path to SQLite database file. Created if doesn't exist.
            Typically: output_dirs/analysis/{model_id}_chunk_tracker.db
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = None
        self._lock = threading.Lock()

        self._init_database()
        logger.info("Chunk tracker initialized: %s", self.db_path)

    def _get_connection(self) -> sqlite3.Connection:
        """Get the shared database connection."""
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_database(self):
        """Create database schema if it doesn't exist."""
        conn = self._get_connection()

        with self._lock:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS chunk_processing (
                    chunk_key TEXT PRIMARY KEY,
                    model_id TEXT NOT NULL,
                    chunk_index INTEGER NOT NULL,
                    row_start INTEGER NOT NULL,
                    row_stop INTEGER NOT NULL,

                    chunk_path TEXT,

                    emitted_at TEXT,
                    published_at TEXT,

                    status TEXT DEFAULT 'pending',
                    error_message TEXT,

                    n_records INTEGER,
                    n_missing INTEGER,

                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)

            conn.execute("CREATE INDEX IF NOT EXISTS idx_model_id ON chunk_processing(model_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_status ON chunk_processing(status)")

            conn.commit()

    @staticmethod
    def _key(model_id: str, chunk_index: int) -> str:
        return f"{model_id}:{chunk_index}"

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def register_chunk(self, model_id: str, chunk_index: int,
                       row_start: int, row_stop: int) -> bool:
        """Register a planned chunk for tracking.

        Returns
        -------
        bool
            True if newly registered, False if already in the database.
            Safe to call repeatedly (every run registers its whole plan).
        """
        conn = self._get_connection()

        with self._lock:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO chunk_processing "
                "(chunk_key, model_id, chunk_index, row_start, row_stop, status) "
                "VALUES (?, ?, ?, ?, ?, 'pending')",
                (self._key(model_id, chunk_index), model_id, chunk_index, row_start, row_stop),
            )
            conn.commit()
            created = cursor.rowcount == 1

        if created:
            logger.debug("Registered chunk: %s", self._key(model_id, chunk_index))
        return created

    def mark_stage_complete(self, model_id: str, chunk_index: int, stage: str,
                            path: Optional[Path] = None,
                            n_records: Optional[int] = None,
                            n_missing: Optional[int] = None,
                            error: Optional[str] = None):
        """Mark a pipeline stage as complete or failed for a chunk.

        Parameters
        ----------
        model_id : str
            Model identifier.
        chunk_index : int
            Chunk index (must be registered).
        stage : str
            'emitted' or 'published'.
        path : Path, optional
            Published chunk file ('published' stage).
        n_records, n_missing : int, optional
            Record counts for the chunk.
        error : str, optional
            If provided, status set to 'failed' and the stage timestamp is
            left unset, so the chunk is retried.

        Raises
        ------
        ValueError
            If stage is not a valid pipeline stage.
        """
        if stage not in self.STAGES:
            raise ValueError(f"Invalid stage: {stage}. Must be one of {list(self.STAGES)}")

        conn = self._get_connection()
        timestamp_col = f"{stage}_at"
        now = self._now()

        if error:
            new_status = 'failed'
        elif stage == 'published':
            new_status = 'completed'
        else:
            new_status = 'processing'

        assignments = ["status = ?", "error_message = ?", "updated_at = ?"]
        params: list = [new_status, error, now]
        if not error:
            assignments.append(f"{timestamp_col} = ?")
            params.append(now)
        if path is not None:
            assignments.append("chunk_path = ?")
            params.append(str(path))
        if n_records is not None:
            assignments.append("n_records = ?")
            params.append(n_records)
        if n_missing is not None:
            assignments.append("n_missing = ?")
            params.append(n_missing)
        params.append(self._key(model_id, chunk_index))

        with self._lock:
            conn.execute(
                f"UPDATE chunk_processing SET {', '.join(assignments)} WHERE chunk_key = ?",
                params,
            )
            conn.commit()

        logger.debug("Marked %s %s: %s", stage, "failed" if error else "complete",
                     self._key(model_id, chunk_index))

    def get_chunk_status(self, model_id: str, chunk_index: int) -> Optional[Dict]:
        """Get processing status for a chunk, or None if not registered."""
        conn = self._get_connection()

        with self._lock:
            cursor = conn.execute(
                "SELECT * FROM chunk_processing WHERE chunk_key = ?",
                (self._key(model_id, chunk_index),),
            )
            row = cursor.fetchone()

        return dict(row) if row else None

    def get_pending_chunks(self, model_id: Optional[str] = None,
                           limit: Optional[int] = None) -> List[Dict]:
        """Chunks not yet published (pending, processing, or failed), by index."""
        conn = self._get_connection()

        query = "SELECT * FROM chunk_processing WHERE published_at IS NULL"
        params: list = []

        if model_id:
            query += " AND model_id = ?"
            params.append(model_id)

        query += " ORDER BY model_id, chunk_index"

        if limit:
            query += " LIMIT ?"
            params.append(limit)

        with self._lock:
            cursor = conn.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    def get_statistics(self, model_id: Optional[str] = None) -> Dict:
        """Summary statistics for processing progress.

        Returns
        -------
        dict
            `total`, `emitted`, `published`, `completed`, `failed`,
            `processing`, `pending`, `total_records`, `total_missing`.
        """
        conn = self._get_connection()

        where_clause = "WHERE model_id = ?" if model_id else ""
        params = (model_id,) if model_id else ()

        with self._lock:
            cursor = conn.execute(f"""
                SELECT
                    COUNT(*) as total,
                    COUNT(emitted_at) as emitted,
                    COUNT(published_at) as published,
                    SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END) as completed,
                    SUM(CASE WHEN status = 'failed' THEN 1 ELSE 0 END) as failed,
                    SUM(CASE WHEN status = 'processing' THEN 1 ELSE 0 END) as processing,
                    SUM(CASE WHEN status = 'pending' THEN 1 ELSE 0 END) as pending,
                    SUM(n_records) as total_records,
                    SUM(n_missing) as total_missing
                FROM chunk_processing
                {where_clause}
            """, params)
            row = cursor.fetchone()
            return dict(row) if row else {}

    def should_process(self, model_id: str, chunk_index: int) -> bool:
        """True unless the chunk is recorded as published."""
        status = self.get_chunk_status(model_id, chunk_index)
        if not status:
            return True
        return status.get("published_at") is None

    def reset_failed(self, model_id: Optional[str] = None):
        """Reset failed chunks to pending so the next run retries them."""
        conn = self._get_connection()

        with self._lock:
            if model_id:
                conn.execute("""
                    UPDATE chunk_processing
                    SET status = 'pending', error_message = NULL, updated_at = ?
                    WHERE status = 'failed' AND model_id = ?
                """, (self._now(), model_id))
            else:
                conn.execute("""
                    UPDATE chunk_processing
                    SET status = 'pending', error_message = NULL, updated_at = ?
                    WHERE status = 'failed'
                """, (self._now(),))
            conn.commit()

        logger.info("Reset failed chunks to pending")

    def forget_model(self, model_id: str):
        """Delete every record for ``model_id`` (used for fresh runs)."""
        conn = self._get_connection()

        with self._lock:
            conn.execute("DELETE FROM chunk_processing WHERE model_id = ?", (model_id,))
            conn.commit()

        logger.info("Forgot chunk records for model %s", model_id)

    def close(self):
        """Close database connection. Safe to call multiple times."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
