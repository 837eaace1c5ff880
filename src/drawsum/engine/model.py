"""Predictive-model interface.

The statistical model is an external collaborator. The pipeline only needs
one capability from it: produce a ``draw_count x len(rows)`` matrix of
posterior draws for a batch of design rows. Any object with a matching
``predict`` method works; the adapters below cover plain functions and the
deterministic models used for smoke runs and tests.
"""

from typing import Callable, Optional, Protocol, runtime_checkable

import numpy as np
import pandas as pd

__all__ = [
    'PredictiveModel',
    'CallableModel',
    'ConstantModel',
    'RowDrawModel',
    'GaussianModel',
]


@runtime_checkable
class PredictiveModel(Protocol):
    """Anything that can produce posterior draws for a batch of rows."""

    def predict(self, rows: pd.DataFrame, draw_count: int) -> np.ndarray:
        """Return an array of shape ``(draw_count, len(rows))``.

        Values may be NaN for rows outside the model's support.
        """
        ...


class CallableModel:
    """Adapts a ``fn(rows, draw_count)`` function to PredictiveModel."""

    def __init__(self, fn: Callable[[pd.DataFrame, int], np.ndarray], name: Optional[str] = None):
        self.fn = fn
        self.name = name or getattr(fn, "__name__", "callable")

    def predict(self, rows: pd.DataFrame, draw_count: int) -> np.ndarray:
        return self.fn(rows, draw_count)

    def __repr__(self):
        return f"CallableModel({self.name})"


class ConstantModel:
    """Every draw of every row equals ``value``."""

    def __init__(self, value: float):
        self.value = float(value)

    def predict(self, rows: pd.DataFrame, draw_count: int) -> np.ndarray:
        return np.full((draw_count, len(rows)), self.value, dtype=np.float64)


class RowDrawModel:
    """Draw ``d`` of row ``r`` equals ``r + d * step``.

    Deterministic and row-identifiable, so any mix-up of rows, draws, or
    chunks shows up in the summaries.
    """

    def __init__(self, step: float = 1e-3):
        self.step = step

    def predict(self, rows: pd.DataFrame, draw_count: int) -> np.ndarray:
        row_ids = rows["row_id"].to_numpy(dtype=np.float64)
        draws = np.arange(draw_count, dtype=np.float64)[:, None] * self.step
        return row_ids[None, :] + draws


class GaussianModel:
    """Seeded normal draws around a linear predictor.

    Stands in for a fitted model in demo runs: the mean is
    ``intercept + sum(coef * covariate)`` over ``coefficients`` and each
    draw adds N(0, sigma) noise. Rows with a missing covariate produce NaN
    draws.

    Parameters
    ----------
    coefficients : dict, optional
        Covariate name -> coefficient. Unknown columns are an error.
    intercept : float
        Linear predictor intercept (on the modeled, e.g. log, scale).
    sigma : float
        Posterior spread per draw.
    seed : int, optional
        Seed for reproducible draws. Each row draws from its own stream,
        seeded by ``(seed, row_id)``, so results do not depend on chunking.
    """

    def __init__(self, coefficients: Optional[dict] = None, intercept: float = 0.0,
                 sigma: float = 0.25, seed: Optional[int] = None):
        self.coefficients = dict(coefficients or {})
        self.intercept = float(intercept)
        self.sigma = float(sigma)
        self.seed = seed

    def _linear_predictor(self, rows: pd.DataFrame) -> np.ndarray:
        eta = np.full(len(rows), self.intercept, dtype=np.float64)
        for name, coef in self.coefficients.items():
            eta = eta + coef * rows[name].to_numpy(dtype=np.float64)
        return eta

    def _noise(self, rows: pd.DataFrame, draw_count: int) -> np.ndarray:
        if self.seed is None:
            return np.random.default_rng().normal(0.0, self.sigma, size=(draw_count, len(rows)))

        if "row_id" in rows.columns:
            row_ids = rows["row_id"].to_numpy(dtype=np.int64)
        else:
            row_ids = np.arange(len(rows), dtype=np.int64)
        noise = np.empty((draw_count, len(rows)), dtype=np.float64)
        for j, row_id in enumerate(row_ids):
            rng = np.random.default_rng([self.seed, int(row_id)])
            noise[:, j] = rng.normal(0.0, self.sigma, size=draw_count)
        return noise

    def predict(self, rows: pd.DataFrame, draw_count: int) -> np.ndarray:
        eta = self._linear_predictor(rows)
        noise = self._noise(rows, draw_count)
        return eta[None, :] + noise
