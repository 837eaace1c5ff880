import pytest

from drawsum.pipeline.chunk_tracker import ChunkProcessingTracker
from drawsum.setup_directories import setup_output_directories


@pytest.fixture
def tracker(temp_dir):
    db_path = temp_dir / "tracker.db"
    t = ChunkProcessingTracker(db_path)
    yield t
    t.close()


@pytest.fixture
def pipeline_config(make_config, temp_dir):
    """InternalConfig for pipeline tests: 3 draws, chunks of 2 rows, identity scale."""
    def _make(**overrides):
        settings = dict(
            model_id="test_model",
            base_dir=str(temp_dir),
            draw_count=3,
            chunk_size=2,
            transform="identity",
            threshold=2.5,
        )
        settings.update(overrides)
        return make_config(**settings)

    return _make


@pytest.fixture
def pipeline_output_dirs(temp_dir):
    """Output directories for pipeline tests."""
    return setup_output_directories(temp_dir)
