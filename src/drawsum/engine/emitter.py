"""Draw emission for one chunk.

Calls the external model on a chunk's covariate rows and reshapes the
``draws x rows`` matrix into long-form DrawRecords keyed by global row_id.
"""

import logging

import numpy as np
import pandas as pd
import xarray as xr

from drawsum.contracts import (
    DRAW_COLUMNS,
    ConfigurationError,
    ModelEvaluationError,
    assert_draw_matrix,
    assert_long_form,
)
from drawsum.engine.indexer import Chunk

__all__ = ['DrawEmitter']

logger = logging.getLogger(__name__)


class DrawEmitter:
    """Produces long-form posterior draws for one chunk at a time.

    Memory is bounded by one chunk: the draw matrix and its long-form
    projection are locals of emit() and are released as soon as the caller
    drops the returned frame (after the sink has published it).

    Parameters
    ----------
    model : PredictiveModel
        Object exposing ``predict(rows, draw_count)``.
    draw_count : int
        Draws requested per row. Must not exceed the model's posterior
        sample size (the model is expected to complain if it does).
    model_id : str
        Identifier attached to every record.
    """

    def __init__(self, model, draw_count: int, model_id: str):
        if isinstance(draw_count, bool) or not isinstance(draw_count, (int, np.integer)) or draw_count <= 0:
            raise ConfigurationError(f"draw_count must be a positive integer, got {draw_count!r}")
        if not hasattr(model, "predict"):
            raise ConfigurationError(f"Model {model!r} has no predict(rows, draw_count) method")
        self.model = model
        self.draw_count = int(draw_count)
        self.model_id = model_id

    def predict_matrix(self, chunk: Chunk, rows: pd.DataFrame) -> np.ndarray:
        """Call the model and return a validated float64 ``(D, |chunk|)`` matrix.

        Raises
        ------
        ModelEvaluationError
            If the model raises or returns something that is not a numeric
            matrix of the requested shape.
        """
        if len(rows) != chunk.size:
            raise ModelEvaluationError(
                f"Chunk {chunk.index} expects {chunk.size} rows, got {len(rows)}"
            )
        try:
            raw = self.model.predict(rows, self.draw_count)
        except Exception as e:
            raise ModelEvaluationError(
                f"Model raised on chunk {chunk.index} (rows {chunk.start}-{chunk.stop - 1}): {e}"
            ) from e

        try:
            matrix = np.asarray(raw, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise ModelEvaluationError(
                f"Model output for chunk {chunk.index} is not numeric: {e}"
            ) from e

        assert_draw_matrix(matrix, self.draw_count, chunk.size)

        n_missing = int(np.isnan(matrix).sum())
        if n_missing:
            logger.debug("Chunk %d: %d of %d draws missing",
                         chunk.index, n_missing, matrix.size)
        return matrix

    def to_long_form(self, chunk: Chunk, matrix: np.ndarray) -> pd.DataFrame:
        """Reshape a ``(D, |chunk|)`` matrix into DrawRecords.

        One record per (draw_id, row position), with row_id shifted to the
        chunk's global offsets. NaN draws are kept; the sink stores them as
        nulls.
        """
        draws = xr.DataArray(
            matrix,
            dims=("draw_id", "row_id"),
            coords={
                "draw_id": np.arange(matrix.shape[0], dtype=np.int32),
                "row_id": np.arange(chunk.start, chunk.stop, dtype=np.int64),
            },
            name="value",
        )
        records = draws.to_dataframe().reset_index()
        records["draw_id"] = records["draw_id"].astype(np.int32)
        records["row_id"] = records["row_id"].astype(np.int64)
        records["model_id"] = self.model_id
        records = records[DRAW_COLUMNS]

        assert_long_form(records, chunk.start, chunk.stop, self.draw_count)
        return records

    def emit(self, chunk: Chunk, rows: pd.DataFrame) -> pd.DataFrame:
        """Produce the long-form DrawRecords for one chunk."""
        matrix = self.predict_matrix(chunk, rows)
        records = self.to_long_form(chunk, matrix)
        del matrix
        logger.debug("Chunk %d: emitted %d draw records", chunk.index, len(records))
        return records
