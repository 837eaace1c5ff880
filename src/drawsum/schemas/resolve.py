"""Configuration resolution and merging logic.

This module provides the single entrypoint for configuration resolution:
resolve_config(). It merges ParamConfig, UserConfig, and CLIConfig in
the correct precedence order and returns a validated InternalConfig.

Precedence (highest to lowest):
1. CLIConfig (command-line overrides)
2. UserConfig (user file)
3. ParamConfig (expert defaults)
"""

from typing import Union, Optional
from pydantic import ValidationError
from drawsum.contracts.failure import ConfigurationError
from drawsum.schemas.param import ParamConfig
from drawsum.schemas.user import UserConfig
from drawsum.schemas.cli import CLIConfig
from drawsum.schemas.internal import InternalConfig


def deep_merge(base: dict, *overrides: dict) -> dict:
    """Deep merge multiple dictionaries.

    Later dictionaries override earlier ones. Nested dictionaries are
    merged recursively; other values are replaced.

    Examples
    --------
    >>> base = {"a": 1, "b": {"c": 2, "d": 3}}
    >>> override = {"b": {"d": 4, "e": 5}, "f": 6}
    >>> deep_merge(base, override)
    {'a': 1, 'b': {'c': 2, 'd': 4, 'e': 5}, 'f': 6}
    """
    result = base.copy()

    for override in overrides:
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = deep_merge(result[key], value)
            else:
                result[key] = value

    return result


def resolve_config(
    param_cfg: Union[dict, ParamConfig],
    user_cfg: Optional[Union[dict, UserConfig]] = None,
    cli_cfg: Optional[Union[dict, CLIConfig]] = None,
    require_runtime: bool = False,
) -> InternalConfig:
    """Resolve final runtime configuration from param, user, and CLI configs.

    This is the SINGLE ENTRYPOINT for configuration resolution.

    Parameters
    ----------
    param_cfg : dict or ParamConfig
        Expert configuration with complete defaults. Required.
    user_cfg : dict or UserConfig, optional
        User configuration with overrides.
    cli_cfg : dict or CLIConfig, optional
        Command-line overrides.
    require_runtime : bool, optional
        If True, model_id and base_dir must be set after merging. The
        orchestrator needs both; unit tests of single components do not.

    Returns
    -------
    InternalConfig
        Fully validated, immutable runtime configuration

    Raises
    ------
    ConfigurationError
        If any config fails validation (the pydantic ValidationError is
        chained as the cause), or a runtime-required field is missing.

    Examples
    --------
    >>> config = resolve_config(ParamConfig(), UserConfig(chunk_size=5000))
    >>> config.chunking.chunk_size
    5000
    """
    try:
        param = param_cfg if isinstance(param_cfg, ParamConfig) else ParamConfig.model_validate(param_cfg)

        if user_cfg is None or (isinstance(user_cfg, dict) and not user_cfg):
            user = UserConfig()
        elif not isinstance(user_cfg, UserConfig):
            user = UserConfig.model_validate(user_cfg)
        else:
            user = user_cfg

        if cli_cfg is None or (isinstance(cli_cfg, dict) and not cli_cfg):
            cli = CLIConfig()
        elif not isinstance(cli_cfg, CLIConfig):
            cli = CLIConfig.model_validate(cli_cfg)
        else:
            cli = cli_cfg

        merged = deep_merge(
            param.model_dump(),
            user.to_internal_overrides(),
            cli.to_internal_overrides(),
        )

        internal = InternalConfig.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e

    if require_runtime:
        if not internal.run.model_id:
            raise ConfigurationError("run.model_id is required to run the pipeline")
        if not internal.run.base_dir:
            raise ConfigurationError("run.base_dir is required to run the pipeline")

    return internal
