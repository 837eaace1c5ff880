"""Columnar on-disk store for long-form draws.

One directory per model_id holds one Parquet file per chunk, a copy of the
design matrix keyed by row_id, and a small JSON manifest of the run
parameters. Every file is written to a temporary name first and published
with ``os.replace``, so a reader never sees a half-written chunk.

Layout::

    <draws_root>/<model_id>/
        manifest.json
        design.parquet
        chunk-000000.parquet
        chunk-000001.parquet
        ...
"""

import hashlib
import json
import logging
import os
import re
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Set

import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from drawsum.contracts import ConfigurationError, PersistenceError
from drawsum.engine.indexer import Chunk

__all__ = ['ColumnarSink', 'DRAW_SCHEMA', 'design_fingerprint']

logger = logging.getLogger(__name__)

DRAW_SCHEMA = pa.schema([
    ("draw_id", pa.int32()),
    ("row_id", pa.int64()),
    ("value", pa.float64()),
    ("model_id", pa.string()),
])

_MODEL_ID_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")
_CHUNK_RE = re.compile(r"^chunk-(\d+)\.parquet$")

# Parameters that must match for a resumed run to reuse published chunks
MANIFEST_KEYS = ("model_id", "n_rows", "chunk_size", "draw_count", "design_hash")


def design_fingerprint(design: pd.DataFrame) -> str:
    """SHA-256 digest of a design matrix's column names and cell values."""
    digest = hashlib.sha256()
    digest.update("\x1f".join(map(str, design.columns)).encode("utf-8"))
    row_hashes = pd.util.hash_pandas_object(design, index=False)
    digest.update(row_hashes.to_numpy(dtype="uint64").tobytes())
    return digest.hexdigest()


class ColumnarSink:
    """Append-only, chunk-scoped Parquet store for one model_id.

    Parameters
    ----------
    draws_root : Path or str
        Directory holding one subdirectory per model_id.
    model_id : str
        Model identifier. Must be a safe directory name
        (letters, digits, ``_``, ``.``, ``-``).
    compression : str, optional
        Parquet compression codec ("snappy", "gzip", "zstd" or "none").

    Raises
    ------
    ConfigurationError
        If model_id is empty or not a safe directory name.
    """

    DESIGN_FILE = "design.parquet"
    MANIFEST_FILE = "manifest.json"

    def __init__(self, draws_root, model_id: str, compression: str = "snappy"):
        if not model_id or not _MODEL_ID_RE.match(model_id) or model_id in {".", ".."}:
            raise ConfigurationError(f"Invalid model_id for a store directory: {model_id!r}")
        self.model_id = model_id
        self.store_dir = Path(draws_root) / model_id
        self.compression = None if compression == "none" else compression
        self.store_dir.mkdir(parents=True, exist_ok=True)

    # ------------------------------------------------------------------
    # Paths and discovery
    # ------------------------------------------------------------------

    def chunk_path(self, index: int) -> Path:
        return self.store_dir / f"chunk-{index:06d}.parquet"

    @property
    def design_path(self) -> Path:
        return self.store_dir / self.DESIGN_FILE

    @property
    def manifest_path(self) -> Path:
        return self.store_dir / self.MANIFEST_FILE

    def published_chunks(self) -> Set[int]:
        """Indices of chunks whose artifact is fully published."""
        indices = set()
        for path in self.store_dir.glob("chunk-*.parquet"):
            match = _CHUNK_RE.match(path.name)
            if match:
                indices.add(int(match.group(1)))
        return indices

    def chunk_files(self) -> List[Path]:
        """Published chunk files in index order."""
        return [self.chunk_path(i) for i in sorted(self.published_chunks())]

    def is_published(self, index: int) -> bool:
        return self.chunk_path(index).exists()

    def record_count(self) -> int:
        """Total DrawRecords across published chunks (from Parquet metadata)."""
        return sum(pq.ParquetFile(path).metadata.num_rows for path in self.chunk_files())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _publish(self, table: pa.Table, path: Path) -> None:
        """Write ``table`` to ``path`` via a temporary file and atomic rename."""
        tmp_path = path.with_name(path.name + ".tmp")
        if tmp_path.exists():
            logger.warning("Replacing stale partial artifact: %s", tmp_path.name)
            tmp_path.unlink()

        try:
            pq.write_table(table, tmp_path, compression=self.compression)
            os.replace(tmp_path, path)
        except (OSError, pa.ArrowException) as e:
            tmp_path.unlink(missing_ok=True)
            raise PersistenceError(f"Failed to publish {path.name}: {e}") from e

    def write_chunk(self, chunk: Chunk, records: pd.DataFrame) -> Path:
        """Durably publish one chunk's DrawRecords.

        Re-publishing the same chunk index replaces the earlier artifact,
        so retrying a chunk is idempotent.

        Raises
        ------
        PersistenceError
            If the write fails. Nothing is published in that case.
        """
        path = self.chunk_path(chunk.index)
        try:
            table = pa.Table.from_pandas(records, schema=DRAW_SCHEMA, preserve_index=False)
        except (pa.ArrowException, KeyError) as e:
            raise PersistenceError(f"Chunk {chunk.index} records do not fit the draw schema: {e}") from e

        self._publish(table, path)
        logger.debug("Published %s (%d records)", path.name, table.num_rows)
        return path

    def write_design(self, design: pd.DataFrame) -> Path:
        """Persist the indexed design matrix once per run."""
        try:
            table = pa.Table.from_pandas(design, preserve_index=False)
        except pa.ArrowException as e:
            raise PersistenceError(f"Design matrix cannot be stored as Parquet: {e}") from e
        self._publish(table, self.design_path)
        logger.info("Design matrix persisted: %s (%d rows)", self.design_path, len(design))
        return self.design_path

    def read_design(self) -> pd.DataFrame:
        if not self.design_path.exists():
            raise PersistenceError(f"No persisted design matrix at {self.design_path}")
        return pd.read_parquet(self.design_path)

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    def write_manifest(self, **params) -> Path:
        """Record run parameters next to the chunks (atomic JSON write)."""
        payload = {"model_id": self.model_id, **params,
                   "written_at": datetime.now(timezone.utc).isoformat()}
        tmp_path = self.manifest_path.with_suffix(".json.tmp")
        try:
            tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True, default=str) + "\n",
                                encoding="utf-8")
            os.replace(tmp_path, self.manifest_path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise PersistenceError(f"Failed to write manifest: {e}") from e
        return self.manifest_path

    def read_manifest(self) -> Optional[Dict]:
        if not self.manifest_path.exists():
            return None
        return json.loads(self.manifest_path.read_text(encoding="utf-8"))

    def check_manifest(self, **expected) -> None:
        """Verify that a resumed run matches the parameters already on disk.

        Raises
        ------
        ConfigurationError
            If any of MANIFEST_KEYS differs. Start a fresh run (rerun) to
            discard the existing chunks instead.
        """
        manifest = self.read_manifest()
        if manifest is None:
            return
        expected = {"model_id": self.model_id, **expected}
        mismatched = {
            key: (manifest.get(key), expected[key])
            for key in MANIFEST_KEYS
            if key in expected and manifest.get(key) != expected[key]
        }
        if mismatched:
            raise ConfigurationError(
                f"Store {self.store_dir} was written with different parameters "
                f"(stored, requested): {mismatched}. Use a fresh run to replace it."
            )

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def clean_partials(self) -> int:
        """Remove leftover ``*.tmp`` files from an interrupted run."""
        removed = 0
        for tmp_path in self.store_dir.glob("*.tmp"):
            tmp_path.unlink()
            removed += 1
        if removed:
            logger.info("Removed %d partial artifact(s) from %s", removed, self.store_dir)
        return removed

    def clear(self) -> None:
        """Delete every artifact for this model_id and recreate an empty store."""
        if self.store_dir.exists():
            shutil.rmtree(self.store_dir)
        self.store_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Cleared store: %s", self.store_dir)
