"""Chunk-plan contract.

Enforces that a chunk plan partitions the row domain totally, contiguously,
and without overlap.
"""

from drawsum.contracts.base import require


def assert_chunk_plan(chunks, n_rows: int, chunk_size: int) -> None:
    """Enforce chunking contract.

    Parameters
    ----------
    chunks : sequence of Chunk
        Plan from RowIndexer.plan()
    n_rows : int
        Size of the row domain.
    chunk_size : int
        Configured maximum chunk size.

    Raises
    ------
    ContractViolation
        If the plan has gaps, overlaps, or oversized chunks.
    """
    require(len(chunks) > 0, "Chunk contract violated: empty plan")
    require(
        chunks[0].start == 0,
        f"Chunk contract violated: first chunk starts at {chunks[0].start}, expected 0"
    )
    require(
        chunks[-1].stop == n_rows,
        f"Chunk contract violated: last chunk stops at {chunks[-1].stop}, expected {n_rows}"
    )
    for i, chunk in enumerate(chunks):
        require(chunk.index == i, f"Chunk contract violated: chunk {i} has index {chunk.index}")
        require(
            0 < chunk.size <= chunk_size,
            f"Chunk contract violated: chunk {i} has size {chunk.size}, limit {chunk_size}"
        )
        if i > 0:
            require(
                chunk.start == chunks[i - 1].stop,
                f"Chunk contract violated: chunk {i} does not continue chunk {i - 1}"
            )
