import json
import os

import numpy as np
import pandas as pd
import pyarrow.parquet as pq
import pytest

from drawsum.contracts import ConfigurationError, PersistenceError
from drawsum.engine import Chunk, ColumnarSink, DrawEmitter, RowDrawModel, RowIndexer
from drawsum.engine.sink import DRAW_SCHEMA, design_fingerprint

pytestmark = [pytest.mark.unit]


@pytest.fixture
def sink(temp_dir):
    return ColumnarSink(temp_dir / "draws", "model_a")


@pytest.fixture
def records(small_design):
    indexed = RowIndexer(2).assign_row_ids(small_design)
    emitter = DrawEmitter(RowDrawModel(), draw_count=3, model_id="model_a")
    return emitter.emit(Chunk(0, 0, 2), indexed.iloc[0:2])


def test_write_chunk_publishes_atomically(sink, records):
    path = sink.write_chunk(Chunk(0, 0, 2), records)

    assert path == sink.chunk_path(0)
    assert path.exists()
    assert not list(sink.store_dir.glob("*.tmp"))
    assert sink.published_chunks() == {0}
    assert sink.is_published(0)
    assert not sink.is_published(1)


def test_published_chunk_matches_schema(sink, records):
    path = sink.write_chunk(Chunk(0, 0, 2), records)
    table = pq.read_table(path)

    assert table.schema.equals(DRAW_SCHEMA, check_metadata=False)
    assert table.num_rows == 6
    assert sink.record_count() == 6


def test_nan_values_stored_as_null(sink, records):
    records = records.copy()
    records.loc[records["row_id"] == 1, "value"] = np.nan

    path = sink.write_chunk(Chunk(0, 0, 2), records)
    table = pq.read_table(path)

    assert table.column("value").null_count == 3


def test_rewrite_is_idempotent(sink, records):
    sink.write_chunk(Chunk(0, 0, 2), records)
    sink.write_chunk(Chunk(0, 0, 2), records)

    assert sink.published_chunks() == {0}
    assert sink.record_count() == 6


def test_stale_partial_is_replaced(sink, records):
    stale = sink.chunk_path(0).with_name(sink.chunk_path(0).name + ".tmp")
    stale.write_bytes(b"half a parquet file")

    sink.write_chunk(Chunk(0, 0, 2), records)

    assert not stale.exists()
    assert pq.read_table(sink.chunk_path(0)).num_rows == 6


def test_failed_publish_leaves_nothing(sink, records, monkeypatch):
    def failing_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", failing_replace)

    with pytest.raises(PersistenceError, match="disk full") as excinfo:
        sink.write_chunk(Chunk(0, 0, 2), records)

    assert isinstance(excinfo.value.__cause__, OSError)
    assert sink.published_chunks() == set()
    assert not list(sink.store_dir.glob("*.tmp"))


def test_records_outside_schema_raise(sink):
    bad = pd.DataFrame({"draw_id": [0], "row_id": [0]})
    with pytest.raises(PersistenceError):
        sink.write_chunk(Chunk(0, 0, 1), bad)


def test_clean_partials(sink):
    (sink.store_dir / "chunk-000004.parquet.tmp").write_bytes(b"x")
    (sink.store_dir / "design.parquet.tmp").write_bytes(b"x")

    assert sink.clean_partials() == 2
    assert not list(sink.store_dir.glob("*.tmp"))


def test_design_round_trip(sink, small_design):
    indexed = RowIndexer(2).assign_row_ids(small_design)
    sink.write_design(indexed)

    restored = sink.read_design()
    assert restored["row_id"].tolist() == [0, 1, 2, 3]
    assert restored["x"].tolist() == indexed["x"].tolist()


def test_read_design_missing_raises(sink):
    with pytest.raises(PersistenceError):
        sink.read_design()


def test_manifest_round_trip_and_check(sink):
    assert sink.read_manifest() is None
    sink.check_manifest(n_rows=4, chunk_size=2, draw_count=3)  # no manifest: nothing to compare

    sink.write_manifest(n_rows=4, chunk_size=2, draw_count=3, n_chunks=2)
    manifest = json.loads(sink.manifest_path.read_text())
    assert manifest["model_id"] == "model_a"
    assert manifest["n_chunks"] == 2

    sink.check_manifest(n_rows=4, chunk_size=2, draw_count=3)
    with pytest.raises(ConfigurationError, match="draw_count"):
        sink.check_manifest(n_rows=4, chunk_size=2, draw_count=5)


def test_clear_removes_store(sink, records):
    sink.write_chunk(Chunk(0, 0, 2), records)
    sink.write_manifest(n_rows=4, chunk_size=2, draw_count=3)

    sink.clear()

    assert sink.store_dir.exists()
    assert sink.published_chunks() == set()
    assert sink.read_manifest() is None


def test_stores_are_scoped_by_model_id(temp_dir, records):
    a = ColumnarSink(temp_dir / "draws", "model_a")
    b = ColumnarSink(temp_dir / "draws", "model_b")
    a.write_chunk(Chunk(0, 0, 2), records)

    assert a.published_chunks() == {0}
    assert b.published_chunks() == set()


@pytest.mark.parametrize("bad", ["", "..", "a/b", "x y", None])
def test_unsafe_model_id_rejected(temp_dir, bad):
    with pytest.raises(ConfigurationError):
        ColumnarSink(temp_dir / "draws", bad)


def test_design_fingerprint_tracks_values(small_design):
    indexed = RowIndexer(2).assign_row_ids(small_design)

    assert design_fingerprint(indexed) == design_fingerprint(indexed.copy())
    shifted = indexed.assign(x=indexed["x"] + 100)
    assert design_fingerprint(shifted) != design_fingerprint(indexed)
    renamed = indexed.rename(columns={"elevation": "elev"})
    assert design_fingerprint(renamed) != design_fingerprint(indexed)


def test_manifest_rejects_different_design(sink):
    sink.write_manifest(n_rows=4, chunk_size=2, draw_count=3, design_hash="abc")

    sink.check_manifest(n_rows=4, chunk_size=2, draw_count=3, design_hash="abc")
    with pytest.raises(ConfigurationError, match="design_hash"):
        sink.check_manifest(n_rows=4, chunk_size=2, draw_count=3, design_hash="def")
