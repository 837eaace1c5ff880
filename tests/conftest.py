"""Root-level pytest fixtures for the drawsum test suite.

Provides shared configuration fixtures following Pydantic-based architecture.
All tests must use these fixtures instead of creating raw dict configs.
"""

import pytest
from pathlib import Path
import tempfile
import shutil

import numpy as np
import pandas as pd

from drawsum.schemas import ParamConfig, UserConfig, resolve_config
from drawsum.setup_directories import setup_output_directories


# =============================================================================
# Configuration Fixtures (Pydantic-based)
# =============================================================================

@pytest.fixture
def param_config():
    """Expert configuration with all defaults.

    Use this as the base for all test configs. Override specific values
    using make_config or by creating custom UserConfig instances.
    """
    return ParamConfig()


@pytest.fixture
def internal_config(param_config):
    """Fully validated runtime configuration (no overrides).

    Use this when tests don't care about specific config values and just
    need a valid InternalConfig to pass to constructors.
    """
    return resolve_config(param_config, None, None)


@pytest.fixture
def make_config(param_config):
    """Factory fixture for creating custom test configs.

    Returns a callable that accepts UserConfig-compatible kwargs.

    Examples
    --------
    >>> def test_custom_threshold(make_config):
    ...     config = make_config(threshold=15)
    ...     assert config.summary.threshold == 15.0
    """
    def _make(**user_overrides):
        """Create InternalConfig with user overrides."""
        if user_overrides:
            user = UserConfig(**user_overrides)
            return resolve_config(param_config, user, None)
        else:
            return resolve_config(param_config, None, None)

    return _make


# =============================================================================
# Directory Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Temporary directory that is cleaned up after test."""
    d = tempfile.mkdtemp()
    yield Path(d)
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def output_dirs(temp_dir):
    """Standard drawsum output directory structure.

    Returns dict with keys: base, draws, summaries, analysis, logs
    All directories are created and cleaned up automatically.
    """
    return setup_output_directories(temp_dir)


# =============================================================================
# Data Fixtures
# =============================================================================

@pytest.fixture
def small_design():
    """Four design rows over two cells and two dates."""
    return pd.DataFrame({
        "x": [0.0, 1.0, 0.0, 1.0],
        "y": [0.0, 0.0, 1.0, 1.0],
        "date": pd.to_datetime(["2023-07-15", "2023-07-15", "2023-07-16", "2023-07-16"]),
        "elevation": [12.0, 15.5, 9.0, np.nan],
    })


@pytest.fixture
def hand_matrix():
    """Draws x rows matrix for the four-row worked example: value = row + draw."""
    return np.array([
        [0.0, 1.0, 2.0, 3.0],
        [1.0, 2.0, 3.0, 4.0],
        [2.0, 3.0, 4.0, 5.0],
    ])
