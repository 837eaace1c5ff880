import textwrap

import numpy as np
import pandas as pd
import pytest

from drawsum.cli.run_summary import (
    load_design,
    load_user_config_dict,
    resolve_model,
    run_summary_pipeline,
)
from drawsum.contracts import ConfigurationError
from drawsum.engine import CallableModel, ConstantModel, GaussianModel, RowDrawModel

pytestmark = [pytest.mark.integration]


def write_config(path, body):
    path.write_text(textwrap.dedent(body))
    return path


def test_load_user_config_dict(tmp_path):
    cfg = write_config(tmp_path / "user_config.py", """
        CONFIG = {"MODEL_ID": "m1", "DRAW_COUNT": 10}
    """)
    assert load_user_config_dict(str(cfg)) == {"MODEL_ID": "m1", "DRAW_COUNT": 10}


def test_load_user_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_user_config_dict(str(tmp_path / "nope.py"))


def test_load_user_config_without_dict(tmp_path):
    cfg = write_config(tmp_path / "empty.py", "SETTINGS = 1\n")
    with pytest.raises(ValueError, match="No CONFIG dict"):
        load_user_config_dict(str(cfg))


def test_load_design_formats(tmp_path, small_design):
    small_design.to_parquet(tmp_path / "grid.parquet", index=False)
    small_design.to_csv(tmp_path / "grid.csv", index=False)

    assert len(load_design(tmp_path / "grid.parquet")) == 4
    assert load_design(tmp_path / "grid.csv")["x"].tolist() == small_design["x"].tolist()

    (tmp_path / "grid.xlsx").write_bytes(b"")
    with pytest.raises(ConfigurationError):
        load_design(tmp_path / "grid.xlsx")
    with pytest.raises(FileNotFoundError):
        load_design(tmp_path / "missing.csv")


def test_resolve_model_variants():
    constant = ConstantModel(1.0)
    assert resolve_model(constant) is constant
    assert isinstance(resolve_model(lambda: ConstantModel(2.0)), ConstantModel)
    assert isinstance(resolve_model(lambda rows, draw_count: np.zeros((draw_count, len(rows)))),
                      CallableModel)
    assert isinstance(resolve_model(None, seed=3), GaussianModel)

    with pytest.raises(ConfigurationError):
        resolve_model(lambda: 42)
    with pytest.raises(ConfigurationError):
        resolve_model("not a model")


def test_resolve_model_instantiates_classes():
    model = resolve_model(GaussianModel, seed=7)
    assert isinstance(model, GaussianModel)
    assert model.seed == 7

    assert isinstance(resolve_model(RowDrawModel), RowDrawModel)
    with pytest.raises(ConfigurationError, match="needs 1 argument"):
        resolve_model(ConstantModel)


def test_resolve_model_factory_errors_propagate():
    def broken_factory():
        raise TypeError("bad coefficients")

    with pytest.raises(TypeError, match="bad coefficients"):
        resolve_model(broken_factory)


def test_resolve_model_rejects_wrong_arity():
    with pytest.raises(ConfigurationError, match="rows, draw_count"):
        resolve_model(lambda rows: rows)


def test_run_summary_pipeline_invalid_values_are_configuration_errors(tmp_path, small_design):
    design_path = tmp_path / "grid.csv"
    small_design.to_csv(design_path, index=False)
    cfg = write_config(tmp_path / "user_config.py", f"""
        CONFIG = {{
            "MODEL_ID": "m1",
            "BASE_DIR": {str(tmp_path / "out")!r},
            "DESIGN_PATH": {str(design_path)!r},
            "THRESHOLD": "high",
        }}
    """)
    with pytest.raises(ConfigurationError, match="(?i)threshold"):
        run_summary_pipeline(str(cfg))

    cfg = write_config(tmp_path / "user_config.py", f"""
        CONFIG = {{
            "MODEL_ID": "m1",
            "BASE_DIR": {str(tmp_path / "out")!r},
            "DESIGN_PATH": {str(design_path)!r},
        }}
    """)
    with pytest.raises(ConfigurationError, match="(?i)chunk_size"):
        run_summary_pipeline(str(cfg), cli_args={"chunk_size": "many"})


def test_run_summary_pipeline_end_to_end(tmp_path, small_design):
    design_path = tmp_path / "grid.csv"
    small_design.to_csv(design_path, index=False)
    cfg = write_config(tmp_path / "user_config.py", f"""
        import numpy as np

        def predict(rows, draw_count):
            return np.full((draw_count, len(rows)), 0.0)

        CONFIG = {{
            "MODEL_ID": "cli_model",
            "BASE_DIR": {str(tmp_path / "out")!r},
            "DESIGN_PATH": {str(design_path)!r},
            "MODEL": predict,
            "DRAW_COUNT": 4,
            "CHUNK_SIZE": 3,
            "THRESHOLD": 0.5,
        }}
    """)

    summary = run_summary_pipeline(str(cfg), cli_args={"chunk_size": 2, "threshold": None})

    assert len(summary) == 4
    assert summary["n_draws"].tolist() == [4, 4, 4, 4]
    # exp(0) = 1 > 0.5
    assert summary["prob_exceed"].tolist() == [1.0] * 4
    assert (tmp_path / "out" / "summaries" / "cli_model_summary.parquet").exists()
    assert sorted(p.name for p in (tmp_path / "out" / "draws" / "cli_model").glob("chunk-*")) == [
        "chunk-000000.parquet", "chunk-000001.parquet",
    ]


def test_run_summary_pipeline_requires_design(tmp_path):
    cfg = write_config(tmp_path / "user_config.py", f"""
        CONFIG = {{"MODEL_ID": "m1", "BASE_DIR": {str(tmp_path)!r}}}
    """)
    with pytest.raises(ConfigurationError, match="design"):
        run_summary_pipeline(str(cfg))


def test_run_summary_pipeline_requires_model_id(tmp_path):
    cfg = write_config(tmp_path / "user_config.py", f"""
        CONFIG = {{"BASE_DIR": {str(tmp_path)!r}}}
    """)
    with pytest.raises(ConfigurationError, match="model_id"):
        run_summary_pipeline(str(cfg), design_path=str(tmp_path / "x.csv"))
