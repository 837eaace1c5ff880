import numpy as np
import pandas as pd
import pytest

from drawsum.contracts import ConfigurationError
from drawsum.engine.design import (
    DAYS_PER_YEAR,
    add_doy_harmonics,
    build_prediction_grid,
    calendar_label,
)

pytestmark = [pytest.mark.unit]


@pytest.fixture
def cells():
    return pd.DataFrame({"x": [10.0, 20.0, 30.0], "y": [1.0, 2.0, 3.0], "road_dist": [5.0, 0.5, 2.0]})


def test_grid_is_date_major(cells):
    grid = build_prediction_grid(cells, ["2023-07-15", "2023-07-16"])

    assert len(grid) == 6
    assert grid["date"].dt.strftime("%Y-%m-%d").tolist() == ["2023-07-15"] * 3 + ["2023-07-16"] * 3
    assert grid["x"].tolist() == [10.0, 20.0, 30.0] * 2
    assert "road_dist" in grid.columns
    assert "row_id" not in grid.columns


def test_grid_has_harmonics(cells):
    grid = build_prediction_grid(cells, ["2023-01-01"], harmonics_order=2)

    for col in ("doy", "sin_doy", "cos_doy", "sin2_doy", "cos2_doy"):
        assert col in grid.columns
    assert (grid["doy"] == 1).all()


def test_grid_requires_spatial_columns():
    with pytest.raises(ConfigurationError):
        build_prediction_grid(pd.DataFrame({"x": [1.0]}), ["2023-01-01"])


def test_grid_requires_dates(cells):
    with pytest.raises(ValueError):
        build_prediction_grid(cells, [])


def test_doy_harmonic_values():
    df = pd.DataFrame({"date": pd.to_datetime(["2023-01-01", "2023-07-02"])})
    out = add_doy_harmonics(df)

    assert out["doy"].tolist() == [1, 183]
    angle = 2 * np.pi * np.array([1, 183]) / DAYS_PER_YEAR
    np.testing.assert_allclose(out["sin_doy"], np.sin(angle))
    np.testing.assert_allclose(out["cos_doy"], np.cos(angle))
    # copy, not in place
    assert "doy" not in df.columns


def test_invalid_harmonic_order():
    with pytest.raises(ValueError):
        add_doy_harmonics(pd.DataFrame({"date": ["2023-01-01"]}), order=0)


def test_calendar_label():
    labels = calendar_label(pd.Series(["2023-07-15", None, "not a date"]))
    assert labels.tolist() == ["15 Jul 2023", None, None]
