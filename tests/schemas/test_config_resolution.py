"""Test config resolution and validation with Pydantic."""

import pytest
from pydantic import ValidationError

from drawsum.contracts import ConfigurationError
from drawsum.schemas import ParamConfig, UserConfig, CLIConfig, InternalConfig
from drawsum.schemas.resolve import resolve_config, deep_merge

pytestmark = pytest.mark.unit


class TestConfigResolution:
    """Test resolve_config() precedence and merging."""

    def test_resolve_config_all_defaults(self):
        """Resolving with no user/CLI overrides uses all ParamConfig defaults."""
        config = resolve_config(ParamConfig(), None, None)

        assert isinstance(config, InternalConfig)
        assert config.sampling.draw_count == 1000
        assert config.chunking.chunk_size == 10000
        assert config.chunking.failure_policy == "fail_fast"
        assert config.summary.threshold == 1.0
        assert config.summary.transform == "log"
        assert config.summary.lower_quantile == 0.025
        assert config.summary.upper_quantile == 0.975
        assert config.run.model_id is None  # No default model_id

    def test_user_config_overrides_param_config(self):
        """UserConfig values override ParamConfig defaults."""
        user = UserConfig(threshold=15, chunk_size=500)
        config = resolve_config(ParamConfig(), user, None)

        assert config.summary.threshold == 15.0
        assert isinstance(config.summary.threshold, float)
        assert config.chunking.chunk_size == 500

    def test_nested_user_overrides(self):
        user = UserConfig(
            summary={"lower_quantile": 0.05, "upper_quantile": 0.95},
            chunking={"failure_policy": "SKIP_CHUNK", "gc_every": 4},
        )
        config = resolve_config(ParamConfig(), user, None)

        assert config.summary.lower_quantile == 0.05
        assert config.summary.upper_quantile == 0.95
        assert config.chunking.failure_policy == "skip_chunk"
        assert config.chunking.gc_every == 4
        # untouched siblings keep their defaults
        assert config.chunking.chunk_size == 10000

    def test_dict_inputs_accepted(self):
        config = resolve_config({}, {"MODEL_ID": "m1"}, {"draw_count": 7})

        assert config.run.model_id == "m1"
        assert config.sampling.draw_count == 7

    def test_param_layer_can_be_edited(self, param_config):
        param_config.summary.backend = "duckdb"
        config = resolve_config(param_config, None, None)
        assert config.summary.backend == "duckdb"

    def test_internal_config_is_frozen(self, internal_config):
        with pytest.raises(ValidationError):
            internal_config.run = internal_config.run


class TestConfigValidation:
    """Invalid configs surface as ConfigurationError."""

    @pytest.mark.parametrize("overrides", [
        {"chunk_size": 0},
        {"draw_count": 0},
        {"workers": 0},
        {"threshold": float("nan")},
        {"transform": "sqrt"},
        {"backend": "spark"},
        {"summary": {"lower_quantile": 0.9, "upper_quantile": 0.1}},
        {"summary": {"upper_quantile": 1.5}},
        {"chunking": {"failure_policy": "retry_forever"}},
        {"model_id": "../escape"},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ConfigurationError) as excinfo:
            resolve_config(ParamConfig(), UserConfig(**overrides), None)
        assert isinstance(excinfo.value.__cause__, ValidationError)

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            resolve_config(ParamConfig(), UserConfig(chunk_size=-1), None)

    def test_require_runtime(self):
        with pytest.raises(ConfigurationError, match="model_id"):
            resolve_config(ParamConfig(), UserConfig(base_dir="/tmp"), None, require_runtime=True)

        with pytest.raises(ConfigurationError, match="base_dir"):
            resolve_config(ParamConfig(), UserConfig(model_id="m1"), None, require_runtime=True)

        config = resolve_config(ParamConfig(), UserConfig(model_id="m1", base_dir="/tmp"),
                                None, require_runtime=True)
        assert config.run.model_id == "m1"

    @pytest.mark.parametrize("threshold", [None, "high", [1.0]])
    def test_non_numeric_threshold_is_validation_error(self, threshold):
        with pytest.raises(ValidationError):
            ParamConfig(summary={"threshold": threshold})

    @pytest.mark.parametrize("user_dict", [
        {"THRESHOLD": "high"},
        {"THRESHOLD": [1.0]},
        {"CHUNK_SIZE": "many"},
        {"DRAW_COUNT": -3},
    ])
    def test_raw_user_dict_errors_are_configuration_errors(self, user_dict):
        with pytest.raises(ConfigurationError) as excinfo:
            resolve_config(ParamConfig(), user_dict, None)
        assert isinstance(excinfo.value.__cause__, ValidationError)

    def test_param_config_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            ParamConfig(sampling={"draws": 10})


def test_deep_merge():
    base = {"a": 1, "b": {"c": 2, "d": 3}}
    override = {"b": {"d": 4, "e": 5}, "f": 6}

    assert deep_merge(base, override) == {"a": 1, "b": {"c": 2, "d": 4, "e": 5}, "f": 6}
    # base is not modified
    assert base == {"a": 1, "b": {"c": 2, "d": 3}}
