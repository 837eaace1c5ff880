"""Row indexing and chunk planning.

Assigns every design row a stable integer identifier and partitions the
row domain into ordered, non-overlapping, gap-free chunks.
"""

import logging
import math
from dataclasses import dataclass
from typing import Iterator, List, Tuple

import numpy as np
import pandas as pd

from drawsum.contracts import ConfigurationError, assert_chunk_plan, assert_row_ids

__all__ = ['Chunk', 'RowIndexer']

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Chunk:
    """Half-open row_id range ``[start, stop)`` processed as one unit."""
    index: int
    start: int
    stop: int

    @property
    def size(self) -> int:
        return self.stop - self.start

    @property
    def name(self) -> str:
        """File stem used by the columnar store."""
        return f"chunk-{self.index:06d}"


class RowIndexer:
    """Assigns row identifiers and plans chunks.

    Parameters
    ----------
    chunk_size : int
        Maximum number of design rows per chunk. Must be positive.

    Raises
    ------
    ConfigurationError
        If chunk_size is not a positive integer.

    Examples
    --------
    >>> indexer = RowIndexer(chunk_size=2)
    >>> [(c.start, c.stop) for c in indexer.plan(5)]
    [(0, 2), (2, 4), (4, 5)]
    """

    def __init__(self, chunk_size: int):
        if isinstance(chunk_size, bool) or not isinstance(chunk_size, (int, np.integer)):
            raise ConfigurationError(f"chunk_size must be an integer, got {chunk_size!r}")
        if chunk_size <= 0:
            raise ConfigurationError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = int(chunk_size)

    def assign_row_ids(self, design: pd.DataFrame) -> pd.DataFrame:
        """Return a copy of ``design`` with ``row_id = 0..N-1`` in matrix order.

        If the frame already carries a ``row_id`` column it is validated and
        kept, so a design matrix persisted by an earlier run round-trips
        unchanged.
        """
        if len(design) == 0:
            raise ConfigurationError("Design matrix has no rows")

        if "row_id" in design.columns:
            assert_row_ids(design)
            indexed = design.reset_index(drop=True)
        else:
            indexed = design.reset_index(drop=True)
            indexed.insert(0, "row_id", np.arange(len(indexed), dtype=np.int64))

        indexed["row_id"] = indexed["row_id"].astype(np.int64)
        logger.debug("Indexed %d design rows", len(indexed))
        return indexed

    def plan(self, n_rows: int) -> List[Chunk]:
        """Partition ``n_rows`` rows into ``ceil(n_rows / chunk_size)`` chunks."""
        if n_rows <= 0:
            raise ConfigurationError(f"Cannot plan chunks for {n_rows} rows")

        n_chunks = math.ceil(n_rows / self.chunk_size)
        chunks = [
            Chunk(index=i,
                  start=i * self.chunk_size,
                  stop=min((i + 1) * self.chunk_size, n_rows))
            for i in range(n_chunks)
        ]
        assert_chunk_plan(chunks, n_rows, self.chunk_size)
        logger.info("Chunk plan: %d rows -> %d chunk(s) of <= %d rows",
                    n_rows, n_chunks, self.chunk_size)
        return chunks

    def iter_chunks(self, design: pd.DataFrame) -> Iterator[Tuple[Chunk, pd.DataFrame]]:
        """Yield ``(chunk, rows)`` pairs over an indexed design matrix."""
        for chunk in self.plan(len(design)):
            yield chunk, design.iloc[chunk.start:chunk.stop]
