"""drawsum User Configuration.

This is the user-facing configuration file. Modify settings here to customize
the pipeline behavior. Advanced settings are in drawsum/schemas/param.py

Usage:
    python scripts/run_summary_pipeline.py scripts/user_config.py
    python scripts/run_summary_pipeline.py scripts/user_config.py --model-id pm25_gp_v4
    python scripts/run_summary_pipeline.py scripts/user_config.py --rerun
"""

from drawsum.engine import GaussianModel


def build_model():
    """Return the fitted model. Replace with your own predict(rows, draw_count) object."""
    return GaussianModel(
        coefficients={"sin_doy": 0.3, "cos_doy": -0.2},
        intercept=2.5,
        sigma=0.4,
        seed=20230715,
    )


CONFIG = {
    # ========================================================================
    # RUN IDENTITY & INPUTS
    # ========================================================================
    "MODEL_ID": "pm25_gp_v3",          # Scopes the on-disk draw store
    "BASE_DIR": "~/drawsum_output",    # All outputs go here
    "DESIGN_PATH": "data/prediction_grid.parquet",
    "MODEL": build_model,              # Object, class, factory, or fn(rows, draw_count)

    # ========================================================================
    # SAMPLING & CHUNKING
    # ========================================================================
    "DRAW_COUNT": 1000,       # Posterior draws per design row
    "CHUNK_SIZE": 10000,      # Design rows per chunk (memory ~ CHUNK_SIZE * DRAW_COUNT)
    "WORKERS": 1,             # >1 emits chunks concurrently

    # ========================================================================
    # SUMMARY
    # ========================================================================
    "THRESHOLD": 15,          # Exceedance threshold on the measurement scale
    "TRANSFORM": "log",       # "log" (draws are log-scale) or "identity"
    "BACKEND": "arrow",       # "arrow" or "duckdb"

    # Note: quantiles, failure policy and partition width are set
    # with nested overrides, e.g.
    # "summary": {"lower_quantile": 0.05, "upper_quantile": 0.95},
    # "chunking": {"failure_policy": "skip_chunk"},
}
