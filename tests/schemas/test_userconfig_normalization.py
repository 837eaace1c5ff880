import pytest

from drawsum.schemas import UserConfig

pytestmark = pytest.mark.unit


def test_uppercase_aliases_are_accepted():
    user = UserConfig.model_validate({
        "MODEL_ID": "pm25_gp_v3",
        "BASE_DIR": "/data/out",
        "DRAW_COUNT": 500,
        "CHUNK_SIZE": 2000,
        "THRESHOLD": 15,
        "TRANSFORM": "Identity",
        "BACKEND": " DuckDB ",
        "LOG_LEVEL": "debug",
    })

    assert user.model_id == "pm25_gp_v3"
    assert user.draw_count == 500
    assert user.threshold == 15.0
    assert user.transform == "identity"
    assert user.backend == "duckdb"
    assert user.log_level == "DEBUG"


def test_unknown_keys_are_ignored():
    user = UserConfig.model_validate({"MODEL_ID": "m1", "MODEL": object(), "DESIGN_PATH": "x.csv"})
    assert user.model_id == "m1"


def test_to_internal_overrides_only_sets_given_fields():
    overrides = UserConfig(threshold=2, date_column="day").to_internal_overrides()

    assert overrides == {
        "summary": {"threshold": 2.0},
        "join": {"date_column": "day"},
    }


def test_nested_overrides_win_over_flat_aliases():
    user = UserConfig(chunk_size=10, chunking={"chunk_size": 20})
    assert user.to_internal_overrides()["chunking"]["chunk_size"] == 20


def test_empty_user_config_has_no_overrides():
    assert UserConfig().to_internal_overrides() == {}
