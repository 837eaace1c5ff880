"""Draw stage contracts.

Enforces the guarantees of the external model output (shape, numeric type)
and of the long-form records handed to the sink.
"""

import numpy as np
import pandas as pd

from drawsum.contracts.base import require
from drawsum.contracts.failure import ModelEvaluationError

DRAW_COLUMNS = ["draw_id", "row_id", "value", "model_id"]


def assert_draw_matrix(matrix: np.ndarray, draw_count: int, n_rows: int) -> None:
    """Enforce the model-output contract.

    Parameters
    ----------
    matrix : np.ndarray
        Output of model.predict(), already coerced to an ndarray.
    draw_count : int
        Number of draws requested.
    n_rows : int
        Number of design rows passed to the model.

    Raises
    ------
    ModelEvaluationError
        If the matrix is not numeric or not (draw_count, n_rows).
    """
    require(
        matrix.ndim == 2,
        f"Model contract violated: output has {matrix.ndim} dims, expected 2",
        ModelEvaluationError,
    )
    require(
        matrix.shape == (draw_count, n_rows),
        f"Model contract violated: output shape {matrix.shape}, "
        f"expected ({draw_count}, {n_rows})",
        ModelEvaluationError,
    )
    require(
        matrix.dtype.kind in {"f", "i", "u"},
        f"Model contract violated: output dtype is {matrix.dtype}, expected numeric",
        ModelEvaluationError,
    )


def assert_long_form(df: pd.DataFrame, start: int, stop: int, draw_count: int) -> None:
    """Enforce long-form record contract for one chunk."""
    for col in DRAW_COLUMNS:
        require(col in df.columns, f"Draw contract violated: missing column '{col}'")

    require(
        len(df) == draw_count * (stop - start),
        f"Draw contract violated: {len(df)} records, expected {draw_count * (stop - start)}"
    )
    if len(df) > 0:
        require(
            df["row_id"].min() >= start and df["row_id"].max() < stop,
            f"Draw contract violated: row_id outside chunk range [{start}, {stop})"
        )
        require(
            df["model_id"].nunique() == 1,
            "Draw contract violated: records carry more than one model_id"
        )
