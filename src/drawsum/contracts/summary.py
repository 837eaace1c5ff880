"""Summary and join contracts."""

import pandas as pd

from drawsum.contracts.base import require
from drawsum.contracts.failure import JoinIntegrityError

SUMMARY_COLUMNS = [
    "row_id",
    "n_draws",
    "mean_log",
    "sd_log",
    "lwr_log",
    "upr_log",
    "mean",
    "sd",
    "lwr",
    "upr",
    "prob_exceed",
]


def assert_summary_output(df: pd.DataFrame) -> None:
    """Enforce aggregation stage contract.

    Structural checks only: required columns, one record per row_id, and
    prob_exceed inside [0, 1]. Numerical correctness is the engine's job.

    Raises
    ------
    ContractViolation
        If structural requirements are violated
    """
    for col in SUMMARY_COLUMNS:
        require(col in df.columns, f"Summary contract violated: missing column '{col}'")

    require(
        not df["row_id"].duplicated().any(),
        "Summary contract violated: duplicate row_id values"
    )

    prob = df["prob_exceed"].dropna()
    require(
        bool(((prob >= 0.0) & (prob <= 1.0)).all()),
        "Summary contract violated: prob_exceed outside [0, 1]"
    )


def assert_joinable(design_ids: pd.Series, summary_ids: pd.Series) -> None:
    """Every summary row_id must exist in the design matrix, at most once.

    Raises
    ------
    JoinIntegrityError
        On duplicate or unknown row_id values.
    """
    require(
        not summary_ids.duplicated().any(),
        "Join integrity violated: summary holds duplicate row_id values",
        JoinIntegrityError,
    )
    unknown = summary_ids[~summary_ids.isin(design_ids)]
    require(
        unknown.empty,
        f"Join integrity violated: {len(unknown)} summary row_id(s) absent from design "
        f"matrix (first: {unknown.head(5).tolist()})",
        JoinIntegrityError,
    )


def assert_join_cardinality(joined: pd.DataFrame, n_design_rows: int) -> None:
    """The left join must preserve every design row exactly once."""
    require(
        len(joined) == n_design_rows,
        f"Join integrity violated: {len(joined)} output rows, expected {n_design_rows}",
        JoinIntegrityError,
    )
    require(
        not joined["row_id"].duplicated().any(),
        "Join integrity violated: duplicate row_id in joined output",
        JoinIntegrityError,
    )
