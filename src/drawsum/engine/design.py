"""Design-matrix helpers at the boundary with feature engineering.

The covariates themselves (rasters, building footprints, road distances)
are produced upstream. These helpers cover the temporal side that the
pipeline needs to reason about: crossing spatial cells with prediction
dates, day-of-year harmonic terms, and calendar labels for output rows.
"""

import logging
from typing import Iterable, Sequence

import numpy as np
import pandas as pd

from drawsum.contracts import assert_design_matrix

__all__ = [
    'SPATIAL_COLUMNS',
    'add_doy_harmonics',
    'build_prediction_grid',
    'calendar_label',
]

logger = logging.getLogger(__name__)

SPATIAL_COLUMNS = ("x", "y")

# Mean tropical year; harmonics complete one cycle per year
DAYS_PER_YEAR = 365.25


def calendar_label(dates: pd.Series, fmt: str = "%d %b %Y") -> pd.Series:
    """Format dates as human-readable labels; null where the date is missing."""
    parsed = pd.to_datetime(dates, errors="coerce")
    labels = parsed.dt.strftime(fmt)
    return pd.Series(
        [label if ok else None for label, ok in zip(labels, parsed.notna())],
        index=parsed.index,
        dtype="object",
    )


def add_doy_harmonics(df: pd.DataFrame, date_column: str = "date", order: int = 1) -> pd.DataFrame:
    """Add ``doy`` and sine/cosine day-of-year terms up to ``order``.

    First-order terms are named ``sin_doy``/``cos_doy``; higher orders
    ``sin2_doy``, ``cos2_doy``, and so on. Returns a copy.
    """
    if order < 1:
        raise ValueError(f"Harmonic order must be >= 1, got {order}")
    out = df.copy()
    doy = pd.to_datetime(out[date_column]).dt.dayofyear.astype("int64")
    out["doy"] = doy
    angle = 2.0 * np.pi * doy.to_numpy(dtype=np.float64) / DAYS_PER_YEAR
    for k in range(1, order + 1):
        suffix = "" if k == 1 else str(k)
        out[f"sin{suffix}_doy"] = np.sin(k * angle)
        out[f"cos{suffix}_doy"] = np.cos(k * angle)
    return out


def build_prediction_grid(cells: pd.DataFrame, dates: Iterable, date_column: str = "date",
                          harmonics_order: int = 1,
                          required: Sequence[str] = SPATIAL_COLUMNS) -> pd.DataFrame:
    """Cross spatial cells with prediction dates.

    Rows come out in date-major blocks: all cells for the first date, then
    all cells for the second, and so on. Each row gets ``doy`` and its
    harmonic terms. No row_id is assigned here; the RowIndexer does that.

    Parameters
    ----------
    cells : pd.DataFrame
        One row per spatial cell with ``x``, ``y`` and static covariates.
    dates : iterable
        Prediction dates (anything ``pandas.to_datetime`` understands).
    """
    assert_design_matrix(cells, required)
    date_values = pd.to_datetime(pd.Series(list(dates))).dt.normalize()
    if date_values.empty:
        raise ValueError("At least one prediction date is required")

    grid = pd.DataFrame({date_column: date_values}).merge(cells, how="cross")
    grid = add_doy_harmonics(grid, date_column=date_column, order=harmonics_order)
    logger.info("Prediction grid: %d cell(s) x %d date(s) = %d row(s)",
                len(cells), len(date_values), len(grid))
    return grid
