"""Per-row summary statistics over the on-disk draw store.

The store is scanned as a group-by over row_id, one partition at a time,
so the full draw set is never resident in memory. Two backends produce the
same records:

- ``arrow``: pyarrow dataset scan filtered on row_id ranges, each range
  grouped with pandas.
- ``duckdb``: one ``GROUP BY row_id`` query over the Parquet files, letting
  DuckDB manage memory (it spills to disk when needed).
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import pyarrow.compute as pc
import pyarrow.dataset as ds

from drawsum.contracts import SUMMARY_COLUMNS, ConfigurationError, assert_summary_output
from drawsum.engine.sink import DRAW_SCHEMA

__all__ = ['AggregationEngine', 'empty_summary']

logger = logging.getLogger(__name__)

_TRANSFORMS = ("log", "identity")
_BACKENDS = ("arrow", "duckdb")


def empty_summary() -> pd.DataFrame:
    """Summary frame with the SummaryRecord columns and no rows."""
    frame = pd.DataFrame({col: pd.Series(dtype="float64") for col in SUMMARY_COLUMNS})
    frame["row_id"] = frame["row_id"].astype("int64")
    frame["n_draws"] = frame["n_draws"].astype("int64")
    return frame


class AggregationEngine:
    """Computes one SummaryRecord per row_id from a model's draw store.

    For each row, over its non-missing draws:

    - ``mean_log``, ``sd_log``: mean and sample standard deviation (ddof=1)
      of the draws on the modeled scale
    - ``lwr_log``, ``upr_log``: linear-interpolated quantiles at
      ``lower_q`` and ``upper_q``
    - ``mean``, ``sd``, ``lwr``, ``upr``: the same statistics of the
      back-transformed draws (``exp`` for ``transform="log"``)
    - ``prob_exceed``: fraction of draws whose back-transformed value is
      strictly greater than ``threshold``
    - ``n_draws``: number of non-missing draws

    Rows whose draws are all missing keep ``n_draws = 0`` and null
    statistics. A single non-missing draw gives a null sd.

    Parameters
    ----------
    threshold : float
        Exceedance threshold on the back-transformed scale.
    transform : {"log", "identity"}
        How the modeled quantity maps back to the measurement scale.
    lower_q, upper_q : float
        Credible-interval quantiles, ``0 < lower_q < upper_q < 1``.
    backend : {"arrow", "duckdb"}
        Scan implementation.
    rows_per_partition : int
        Arrow backend only: width of the row_id range grouped per pass.
        Peak memory is roughly ``rows_per_partition * draw_count`` values.
    """

    def __init__(self, threshold: float, transform: str = "log",
                 lower_q: float = 0.025, upper_q: float = 0.975,
                 backend: str = "arrow", rows_per_partition: int = 50000):
        try:
            threshold_value = float(threshold)
            lower_q, upper_q = float(lower_q), float(upper_q)
            rows_per_partition = int(rows_per_partition)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Non-numeric aggregation setting: {e}") from e
        if not np.isfinite(threshold_value):
            raise ConfigurationError(f"threshold must be a finite number, got {threshold!r}")
        if transform not in _TRANSFORMS:
            raise ConfigurationError(f"transform must be one of {_TRANSFORMS}, got {transform!r}")
        if backend not in _BACKENDS:
            raise ConfigurationError(f"backend must be one of {_BACKENDS}, got {backend!r}")
        if not 0.0 < lower_q < upper_q < 1.0:
            raise ConfigurationError(
                f"Quantiles must satisfy 0 < lower < upper < 1, got ({lower_q}, {upper_q})"
            )
        if rows_per_partition <= 0:
            raise ConfigurationError(f"rows_per_partition must be positive, got {rows_per_partition}")

        self.threshold = threshold_value
        self.transform = transform
        self.lower_q = lower_q
        self.upper_q = upper_q
        self.backend = backend
        self.rows_per_partition = rows_per_partition

    @classmethod
    def from_config(cls, config) -> "AggregationEngine":
        """Build from an InternalConfig."""
        summary = config.summary
        return cls(
            threshold=summary.threshold,
            transform=summary.transform,
            lower_q=summary.lower_quantile,
            upper_q=summary.upper_quantile,
            backend=summary.backend,
            rows_per_partition=summary.rows_per_partition,
        )

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def summarize(self, store_dir) -> pd.DataFrame:
        """Summarize every row_id found in the published chunks of ``store_dir``.

        Returns
        -------
        pd.DataFrame
            SummaryRecords sorted by row_id. Empty (with the right columns)
            when no chunk is published.
        """
        files = sorted(Path(store_dir).glob("chunk-*.parquet"))
        if not files:
            logger.warning("No published chunks in %s; summary is empty", store_dir)
            return empty_summary()

        logger.info("Aggregating %d chunk file(s) from %s [backend=%s, transform=%s]",
                    len(files), store_dir, self.backend, self.transform)

        if self.backend == "duckdb":
            summary = self._summarize_duckdb(files)
        else:
            summary = self._summarize_arrow(files)

        summary = self._finalize(summary)
        assert_summary_output(summary)
        logger.info("Summarized %d row(s); %d with no usable draws",
                    len(summary), int((summary["n_draws"] == 0).sum()))
        return summary

    # ------------------------------------------------------------------
    # Arrow + pandas backend
    # ------------------------------------------------------------------

    def _row_id_bounds(self, dataset: ds.Dataset) -> Optional[Tuple[int, int]]:
        """Min and max row_id, streamed over record batches."""
        lo, hi = None, None
        for batch in dataset.to_batches(columns=["row_id"]):
            if batch.num_rows == 0:
                continue
            bounds = pc.min_max(batch.column("row_id"))
            b_lo, b_hi = bounds["min"].as_py(), bounds["max"].as_py()
            lo = b_lo if lo is None else min(lo, b_lo)
            hi = b_hi if hi is None else max(hi, b_hi)
        if lo is None:
            return None
        return lo, hi

    def _partitions(self, lo: int, hi: int) -> List[Tuple[int, int]]:
        step = self.rows_per_partition
        return [(start, min(start + step, hi + 1)) for start in range(lo, hi + 1, step)]

    def _back_transform(self, values):
        if self.transform == "log":
            with np.errstate(over="ignore"):
                return np.exp(values)
        return values

    def summarize_frame(self, draws: pd.DataFrame) -> pd.DataFrame:
        """Group long-form draws (``row_id``, ``value``) held in memory.

        Used per partition by the arrow backend; also handy for summarizing a
        small in-memory draw set directly.
        """
        value = draws["value"].astype("float64")
        present = value.notna()
        back = self._back_transform(value)
        exceed = (back > self.threshold).astype("float64").where(present)

        frame = pd.DataFrame({
            "row_id": draws["row_id"].to_numpy(),
            "value": value.to_numpy(),
            "back": back.to_numpy(),
            "exceed": exceed.to_numpy(),
        })
        grouped = frame.groupby("row_id", sort=True)

        out = pd.DataFrame({
            "n_draws": grouped["value"].count(),
            "mean_log": grouped["value"].mean(),
            "sd_log": grouped["value"].std(ddof=1),
            "lwr_log": grouped["value"].quantile(self.lower_q),
            "upr_log": grouped["value"].quantile(self.upper_q),
            "mean": grouped["back"].mean(),
            "sd": grouped["back"].std(ddof=1),
            "lwr": grouped["back"].quantile(self.lower_q),
            "upr": grouped["back"].quantile(self.upper_q),
            "prob_exceed": grouped["exceed"].mean(),
        })
        return out.reset_index()

    def _summarize_arrow(self, files: Sequence[Path]) -> pd.DataFrame:
        dataset = ds.dataset([str(f) for f in files], format="parquet", schema=DRAW_SCHEMA)
        bounds = self._row_id_bounds(dataset)
        if bounds is None:
            return empty_summary()

        parts = []
        partitions = self._partitions(*bounds)
        for i, (start, stop) in enumerate(partitions):
            row_filter = (ds.field("row_id") >= start) & (ds.field("row_id") < stop)
            table = dataset.to_table(columns=["row_id", "value"], filter=row_filter)
            if table.num_rows == 0:
                continue
            parts.append(self.summarize_frame(table.to_pandas()))
            del table
            logger.debug("Partition %d/%d: rows [%d, %d) summarized",
                         i + 1, len(partitions), start, stop)

        if not parts:
            return empty_summary()
        return pd.concat(parts, ignore_index=True)

    # ------------------------------------------------------------------
    # DuckDB backend
    # ------------------------------------------------------------------

    def _summary_sql(self, files: Sequence[Path]) -> str:
        file_list = ", ".join("'" + str(f).replace("'", "''") + "'" for f in files)
        back = "exp(value)" if self.transform == "log" else "value"
        lq, uq, thr = repr(self.lower_q), repr(self.upper_q), repr(self.threshold)
        return f"""
            WITH draws AS (
                SELECT row_id, value, {back} AS back
                FROM read_parquet([{file_list}])
            )
            SELECT
                row_id,
                count(value) AS n_draws,
                avg(value) AS mean_log,
                stddev_samp(value) AS sd_log,
                quantile_cont(value, {lq}) AS lwr_log,
                quantile_cont(value, {uq}) AS upr_log,
                avg(back) AS mean,
                stddev_samp(back) AS sd,
                quantile_cont(back, {lq}) AS lwr,
                quantile_cont(back, {uq}) AS upr,
                avg(CASE WHEN value IS NULL THEN NULL
                         WHEN back > {thr} THEN 1.0 ELSE 0.0 END) AS prob_exceed
            FROM draws
            GROUP BY row_id
            ORDER BY row_id
        """

    def _summarize_duckdb(self, files: Sequence[Path]) -> pd.DataFrame:
        import duckdb

        con = duckdb.connect()
        try:
            return con.execute(self._summary_sql(files)).df()
        finally:
            con.close()

    # ------------------------------------------------------------------

    def _finalize(self, summary: pd.DataFrame) -> pd.DataFrame:
        """Column order, dtypes, and NaN -> null-compatible float columns."""
        summary = summary[SUMMARY_COLUMNS].sort_values("row_id", kind="stable").reset_index(drop=True)
        summary["row_id"] = summary["row_id"].astype("int64")
        summary["n_draws"] = summary["n_draws"].fillna(0).astype("int64")
        for col in SUMMARY_COLUMNS[2:]:
            summary[col] = summary[col].astype("float64")
        return summary
