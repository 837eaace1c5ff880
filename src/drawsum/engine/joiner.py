"""Rejoins per-row summaries onto the design matrix."""

import logging

import pandas as pd

from drawsum.contracts import (
    SUMMARY_COLUMNS,
    assert_join_cardinality,
    assert_joinable,
    require,
    JoinIntegrityError,
)
from drawsum.engine.design import calendar_label

__all__ = ['ResultJoiner']

logger = logging.getLogger(__name__)


class ResultJoiner:
    """Left-joins SummaryRecords onto design rows by row_id.

    Every design row appears exactly once in the output, in design order.
    Rows with no summary (the model produced no draws for them, or their
    chunk was skipped) keep null summary fields. A ``date_label`` column is
    resolved from the stored date column.

    Parameters
    ----------
    date_column : str
        Name of the design column holding the calendar date.
    label_format : str
        ``strftime`` format for ``date_label`` (default "15 Jul 2023" style).
    """

    def __init__(self, date_column: str = "date", label_format: str = "%d %b %Y"):
        self.date_column = date_column
        self.label_format = label_format

    def join(self, design: pd.DataFrame, summary: pd.DataFrame) -> pd.DataFrame:
        """Join ``summary`` onto ``design``.

        Raises
        ------
        JoinIntegrityError
            If the summary references a row_id the design does not have, or
            holds a row_id twice.
        """
        require("row_id" in design.columns,
                "Join integrity violated: design matrix has no 'row_id'", JoinIntegrityError)
        require("row_id" in summary.columns,
                "Join integrity violated: summary has no 'row_id'", JoinIntegrityError)
        assert_joinable(design["row_id"], summary["row_id"])

        # Summary columns win over same-named design columns
        overlap = [c for c in SUMMARY_COLUMNS if c != "row_id" and c in design.columns]
        if overlap:
            logger.warning("Design columns %s are replaced by summary statistics", overlap)
            design = design.drop(columns=overlap)

        joined = design.merge(summary, on="row_id", how="left", sort=False, validate="one_to_one")
        joined["n_draws"] = joined["n_draws"].fillna(0).astype("int64")
        joined["date_label"] = self.resolve_labels(joined)

        assert_join_cardinality(joined, len(design))

        n_missing = int((joined["n_draws"] == 0).sum())
        if n_missing:
            logger.warning("%d of %d row(s) have no draws; their summaries are null",
                           n_missing, len(joined))
        logger.info("Joined %d summary record(s) onto %d design row(s)", len(summary), len(design))
        return joined

    def resolve_labels(self, frame: pd.DataFrame) -> pd.Series:
        """Human-readable calendar label per row; null without a date."""
        if self.date_column not in frame.columns:
            logger.debug("No '%s' column; date_label left null", self.date_column)
            return pd.Series(pd.NA, index=frame.index, dtype="object")
        return calendar_label(frame[self.date_column], self.label_format)
