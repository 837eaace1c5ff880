"""
Directory setup for the summary pipeline.

Layout under the base directory:
- draws/<model_id>/       chunk store (one directory per model)
- summaries/              joined summary tables
- analysis/               chunk tracker databases, runtime configs
- logs/                   pipeline logs
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

SUBDIRECTORIES = ("draws", "summaries", "analysis", "logs")


def setup_output_directories(base_output_dir):
    """
    Set up organized output directory structure.

    Parameters
    ----------
    base_output_dir : str or Path
        Base output directory. ``~`` is expanded.

    Returns
    -------
    dict
        Dictionary with paths: 'base', 'draws', 'summaries', 'analysis', 'logs'
    """
    if base_output_dir is None:
        raise ValueError("base_output_dir is required")

    base_output_dir = Path(base_output_dir).expanduser().resolve()

    directories = {"base": base_output_dir}
    for name in SUBDIRECTORIES:
        directories[name] = base_output_dir / name

    for path in directories.values():
        path.mkdir(parents=True, exist_ok=True)

    for key, path in directories.items():
        logger.debug("  %-10s: %s", key, path)

    return directories


def get_store_dir(output_dirs, model_id):
    """
    Get the chunk store directory for one model.

    Example
    -------
    >>> get_store_dir(dirs, 'pm25_gp_v3')
    Path('output/draws/pm25_gp_v3')
    """
    return Path(output_dirs["draws"]) / model_id


def get_summary_path(output_dirs, model_id, extension="parquet"):
    """
    Get the joined summary path for one model.

    Example
    -------
    >>> get_summary_path(dirs, 'pm25_gp_v3')
    Path('output/summaries/pm25_gp_v3_summary.parquet')
    """
    summaries = Path(output_dirs["summaries"])
    summaries.mkdir(parents=True, exist_ok=True)
    return summaries / f"{model_id}_summary.{extension.lstrip('.')}"


def get_tracker_path(output_dirs, model_id):
    """
    Get the chunk tracker database path for one model.

    Example
    -------
    >>> get_tracker_path(dirs, 'pm25_gp_v3')
    Path('output/analysis/pm25_gp_v3_chunk_tracker.db')
    """
    return Path(output_dirs["analysis"]) / f"{model_id}_chunk_tracker.db"
