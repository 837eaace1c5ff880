from pathlib import Path

import pytest

from drawsum.setup_directories import (
    get_store_dir,
    get_summary_path,
    get_tracker_path,
    setup_output_directories,
)


def test_setup_output_directories_creates_all(tmp_path):
    dirs = setup_output_directories(tmp_path)

    expected = {
        "base", "draws", "summaries", "analysis", "logs"
    }

    assert set(dirs.keys()) == expected

    for path in dirs.values():
        assert isinstance(path, Path)
        assert path.exists()
        assert path.is_dir()


def test_setup_output_directories_is_idempotent(tmp_path):
    dirs1 = setup_output_directories(tmp_path)
    dirs2 = setup_output_directories(tmp_path)

    assert dirs1 == dirs2


def test_setup_output_directories_requires_base():
    with pytest.raises(ValueError):
        setup_output_directories(None)


def test_model_scoped_paths(tmp_path):
    dirs = setup_output_directories(tmp_path)

    assert get_store_dir(dirs, "pm25") == dirs["draws"] / "pm25"
    assert get_summary_path(dirs, "pm25") == dirs["summaries"] / "pm25_summary.parquet"
    assert get_summary_path(dirs, "pm25", ".csv").name == "pm25_summary.csv"
    assert get_tracker_path(dirs, "pm25") == dirs["analysis"] / "pm25_chunk_tracker.db"
