"""Design-matrix contract.

Enforces the input guarantees the feature-engineering collaborator owes
the pipeline: a non-empty frame with the covariates the model was fit on,
and (once indexed) a clean row_id column.
"""

from typing import Iterable, Optional

import numpy as np
import pandas as pd

from drawsum.contracts.base import require
from drawsum.contracts.failure import ConfigurationError


def assert_design_matrix(df: pd.DataFrame, required: Optional[Iterable[str]] = None) -> None:
    """Enforce design-matrix input contract.

    Parameters
    ----------
    df : pd.DataFrame
        Prediction design matrix (one row per prediction unit).

    required : iterable of str, optional
        Column names that must be present.

    Raises
    ------
    ConfigurationError
        If the input is not a DataFrame, is empty, or lacks required columns.
    """
    require(
        isinstance(df, pd.DataFrame),
        f"Design contract violated: input is {type(df)}, expected DataFrame",
        ConfigurationError,
    )
    require(
        len(df) > 0,
        "Design contract violated: design matrix has no rows",
        ConfigurationError,
    )
    missing = [col for col in (required or []) if col not in df.columns]
    require(
        not missing,
        f"Design contract violated: missing required columns {missing}",
        ConfigurationError,
    )


def assert_row_ids(df: pd.DataFrame) -> None:
    """Enforce the row_id invariant: integer, unique, exactly 0..N-1 in order."""
    require(
        "row_id" in df.columns,
        "Design contract violated: missing 'row_id' column",
        ConfigurationError,
    )
    row_ids = df["row_id"]
    require(
        pd.api.types.is_integer_dtype(row_ids),
        f"Design contract violated: 'row_id' dtype is {row_ids.dtype}, expected integer",
        ConfigurationError,
    )
    require(
        np.array_equal(row_ids.to_numpy(), np.arange(len(df))),
        "Design contract violated: 'row_id' must equal 0..N-1 in matrix order",
        ConfigurationError,
    )
