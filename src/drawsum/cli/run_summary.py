"""Core summary pipeline execution logic.

This module contains the actual pipeline runner, separated from argument parsing.
Scripts are thin wrappers; this is the real implementation.
"""

import inspect
import json
import logging
import importlib.util
from pathlib import Path
from typing import Optional, Dict, Any, Tuple

import pandas as pd

from drawsum.contracts import ConfigurationError
from drawsum.engine import CallableModel, GaussianModel
from drawsum.setup_directories import setup_output_directories
from drawsum.pipeline.orchestrator import PipelineOrchestrator
from drawsum.schemas import resolve_config, ParamConfig


logger = logging.getLogger(__name__)


def _load_config_module(config_path: str):
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    spec = importlib.util.spec_from_file_location("config_module", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def load_user_config_dict(config_path: str) -> dict:
    """Load user config dict from Python file.

    Returns the raw dict before Pydantic validation.

    Parameters
    ----------
    config_path : str
        Path to user config Python file containing CONFIG dict.

    Returns
    -------
    dict
        Raw user configuration dictionary.

    Raises
    ------
    FileNotFoundError
        If config file does not exist.
    ValueError
        If no CONFIG dict found in file.
    """
    module = _load_config_module(config_path)

    # Find CONFIG dict
    for name in dir(module):
        if name.startswith('CONFIG'):
            obj = getattr(module, name)
            if isinstance(obj, dict):
                return obj

    raise ValueError(f"No CONFIG dict found in {config_path}")


def load_design(design_path) -> pd.DataFrame:
    """Read a design matrix from Parquet or CSV.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ConfigurationError
        If the extension is neither .parquet/.pq nor .csv.
    """
    path = Path(design_path).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"Design matrix not found: {path}")

    suffix = path.suffix.lower()
    if suffix in (".parquet", ".pq"):
        return pd.read_parquet(path)
    if suffix == ".csv":
        return pd.read_csv(path)
    raise ConfigurationError(f"Unsupported design matrix format: {path.name} (use .parquet or .csv)")


def _required_positional(func) -> Optional[int]:
    """Number of positional parameters ``func`` needs, or None if unknown."""
    try:
        params = inspect.signature(func).parameters.values()
    except (TypeError, ValueError):
        return None
    positional = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    return sum(1 for p in params if p.kind in positional and p.default is inspect.Parameter.empty)


def _accepts_seed(func) -> bool:
    try:
        return "seed" in inspect.signature(func).parameters
    except (TypeError, ValueError):
        return False


def resolve_model(model_entry, seed: Optional[int] = None):
    """Turn the ``MODEL`` entry of a user config into a PredictiveModel.

    Accepts an object with ``predict``, a model class or zero-argument
    factory returning one, or a ``fn(rows, draw_count)`` function. Classes
    and factories taking a ``seed`` keyword receive the configured seed.
    Without an entry, a seeded ``GaussianModel`` is used so the pipeline can
    be smoke-tested end to end.
    """
    if model_entry is None:
        logger.warning("No MODEL in user config; using GaussianModel demo draws")
        return GaussianModel(seed=seed)

    if not isinstance(model_entry, type) and hasattr(model_entry, "predict"):
        return model_entry

    if not callable(model_entry):
        raise ConfigurationError(f"MODEL must be a model object, factory, or function, got {model_entry!r}")

    n_required = _required_positional(model_entry)
    if isinstance(model_entry, type) or n_required == 0:
        if n_required:
            raise ConfigurationError(
                f"MODEL {model_entry!r} needs {n_required} argument(s); pass an instance instead"
            )
        kwargs = {"seed": seed} if seed is not None and _accepts_seed(model_entry) else {}
        candidate = model_entry(**kwargs)
        if hasattr(candidate, "predict"):
            return candidate
        raise ConfigurationError(f"MODEL factory returned {candidate!r}, which has no predict() method")

    if n_required == 2:
        return CallableModel(model_entry)

    raise ConfigurationError(
        f"MODEL function {model_entry!r} must take (rows, draw_count), "
        f"or no arguments if it is a factory"
    )


def _split_user_config(user_cfg_dict: dict) -> Tuple[dict, Any, Optional[str]]:
    """Separate runtime objects (MODEL, DESIGN_PATH) from config values."""
    cfg = dict(user_cfg_dict)
    model_entry = cfg.pop("MODEL", None)
    design_path = cfg.pop("DESIGN_PATH", None)
    return cfg, model_entry, design_path


def run_summary_pipeline(
    user_config_path: str,
    cli_args: Optional[Dict[str, Any]] = None,
    design_path: Optional[str] = None,
    rerun: bool = False,
    verbose: bool = False
) -> pd.DataFrame:
    """Execute the posterior-predictive summary pipeline.

    This is the core pipeline execution function. It:
    1. Loads and resolves configuration (Param < User < CLI)
    2. Sets up output directories
    3. Loads the design matrix and the model
    4. Runs the orchestrator (optionally discarding the model's store first)

    Parameters
    ----------
    user_config_path : str
        Path to user config file (Python file with CONFIG dict). The dict
        may also carry ``MODEL`` and ``DESIGN_PATH``.

    cli_args : dict, optional
        CLI argument overrides. Keys: model_id, base_dir, draw_count,
        chunk_size, threshold, workers, log_level. All optional.

    design_path : str, optional
        Design matrix file (.parquet or .csv). Overrides ``DESIGN_PATH``.

    rerun : bool, optional
        If True, discard this model's published chunks before running.

    verbose : bool, optional
        If True, enable DEBUG logging and print full resolved config.

    Returns
    -------
    pd.DataFrame
        The joined summary table (also written under ``summaries/``).

    Raises
    ------
    FileNotFoundError
        If the config or design file does not exist.
    ConfigurationError
        If configuration validation fails or no design matrix is given.

    Examples
    --------
    Run with user config only::

        run_summary_pipeline("config/my_config.py")

    Run with CLI overrides::

        run_summary_pipeline(
            "config/my_config.py",
            cli_args={"model_id": "pm25_gp_v4", "chunk_size": 5000},
        )
    """
    # Load configurations
    param_cfg = ParamConfig()  # Expert defaults

    # Load user config from file
    user_cfg_dict, model_entry, config_design_path = _split_user_config(
        load_user_config_dict(user_config_path)
    )

    # Create CLI config from arguments
    cli_args = dict(cli_args or {})
    if verbose and "log_level" not in cli_args:
        cli_args["log_level"] = "DEBUG"

    # Filter None values
    cli_dict = {k: v for k, v in cli_args.items() if v is not None}

    # Resolve to internal config (Param < User < CLI)
    config = resolve_config(param_cfg, user_cfg_dict, cli_dict, require_runtime=True)

    design_path = design_path or config_design_path
    if design_path is None:
        raise ConfigurationError("No design matrix: pass design_path or set DESIGN_PATH in the config")

    output_dirs = setup_output_directories(config.run.base_dir)
    design = load_design(design_path)
    model = resolve_model(model_entry, seed=config.sampling.seed)

    # Print summary
    print(f"\n{'='*60}")
    print("drawsum Posterior Summary Pipeline")
    print('='*60)
    print(f"Config:  {user_config_path}")
    print(f"Model:   {config.run.model_id}")
    print(f"Design:  {design_path} ({len(design)} rows)")
    print(f"Draws:   {config.sampling.draw_count} per row, chunks of {config.chunking.chunk_size}")
    print(f"Output:  {config.run.base_dir}")
    print('='*60)

    if verbose:
        print("\nFull Internal Configuration:")
        print(json.dumps(config.model_dump(), indent=2, default=str))
        print('='*60)

    orchestrator = PipelineOrchestrator(config, output_dirs)
    summary = orchestrator.run(design, model, rerun=rerun)

    print(f"Summary: {orchestrator.summary_path} ({len(summary)} rows)")
    return summary
