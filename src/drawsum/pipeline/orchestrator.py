"""Chunked summary pipeline orchestration.

Drives the chunk loop (emit draws, publish to the columnar store), then
aggregates the store once and joins the summaries back onto the design
matrix. Manages logging, the chunk tracker, resumption, and shutdown.
"""

import gc
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, TYPE_CHECKING

import pandas as pd

from drawsum.contracts import (
    FailurePolicy,
    ModelEvaluationError,
    PersistenceError,
    assert_design_matrix,
    require,
)
from drawsum.engine import (
    AggregationEngine,
    Chunk,
    ColumnarSink,
    DrawEmitter,
    ResultJoiner,
    RowIndexer,
    design_fingerprint,
)
from drawsum.pipeline.chunk_tracker import ChunkProcessingTracker
from drawsum.setup_directories import (
    get_summary_path,
    get_tracker_path,
    setup_output_directories,
)

if TYPE_CHECKING:
    from drawsum.schemas import InternalConfig

__all__ = ['PipelineOrchestrator']

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Runs the memory-bounded summary pipeline for one model.

    **Pipeline Architecture:**

    1. **Index**: Assign ``row_id = 0..N-1`` and plan chunks of at most
       ``chunking.chunk_size`` rows.

    2. **Persist design**: Write the indexed design matrix to the model's
       store for the final join.

    3. **Chunk loop**: For each chunk without a published artifact, ask the
       model for ``sampling.draw_count`` draws, reshape to long form, and
       publish atomically. The chunk's matrix is released before the next
       chunk starts; ``gc.collect()`` runs every ``chunking.gc_every``
       chunks.

    4. **Aggregate**: One group-by scan over the completed store.

    5. **Join**: Left-join summaries onto the persisted design rows and
       export the table to ``summaries/{model_id}_summary.parquet``.

    **Resumability:**

    A chunk is the unit of commit. If a run stops part way, the next run
    with the same parameters only processes chunks that have no published
    file. ``rerun=True`` discards the model's store and starts over.

    **Concurrency:**

    Sequential by default, so at most one chunk's draw matrix is resident.
    With ``chunking.workers > 1`` chunks are emitted and published from a
    thread pool; aggregation still waits for every chunk.

    **Logging:**

    Output goes to console and logs/pipeline_{model_id}.log at the level in
    ``config.logging.level``.

    Example usage::

        from drawsum.pipeline import PipelineOrchestrator

        orch = PipelineOrchestrator(config)
        summary = orch.run(design, model)
    """

    def __init__(self, config: "InternalConfig", output_dirs: Optional[Dict[str, Path]] = None):
        """Initialize orchestrator with validated configuration.

        Parameters
        ----------
        config : InternalConfig
            Resolved runtime configuration. ``run.model_id`` and
            ``run.base_dir`` must be set.
        output_dirs : dict, optional
            Directory layout from ``setup_output_directories()``. Created
            from ``config.run.base_dir`` when omitted.
        """
        self.config = config
        self.model_id = config.run.model_id
        require(bool(self.model_id), "Orchestrator requires run.model_id")

        if output_dirs is None:
            require(bool(config.run.base_dir), "Orchestrator requires run.base_dir or output_dirs")
            output_dirs = setup_output_directories(config.run.base_dir)
        self.output_dirs = {k: Path(v) for k, v in output_dirs.items()}

        self.indexer = RowIndexer(config.chunking.chunk_size)
        self.aggregator = AggregationEngine.from_config(config)
        self.joiner = ResultJoiner(config.join.date_column, config.join.label_format)
        self.sink = ColumnarSink(self.output_dirs["draws"], self.model_id,
                                 compression=config.output.compression)
        self.failure_policy = FailurePolicy(config.chunking.failure_policy)

        # Set up in _setup_logging()
        self.tracker = None
        self._handlers = []

        # Run state
        self.failed_chunks: List[int] = []
        self.summary_path: Optional[Path] = None
        self._stop_event = False
        self._start_time = None

    def _setup_logging(self):
        """Configure logging and chunk tracking.

        Attaches a file handler (logs/pipeline_{model_id}.log) and a console
        handler to the root logger and opens the ChunkProcessingTracker.
        Handlers from an earlier orchestrator are replaced, not stacked.
        """
        log_level = getattr(logging, self.config.logging.level.upper(), logging.INFO)

        log_dir = self.output_dirs["logs"]
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / f"pipeline_{self.model_id}.log"

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        root = logging.getLogger()
        root.setLevel(log_level)
        for handler in root.handlers[:]:
            if getattr(handler, "_drawsum", False):
                root.removeHandler(handler)
                handler.close()

        fh = logging.FileHandler(log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)

        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)

        for handler in (fh, ch):
            handler._drawsum = True
            root.addHandler(handler)
            self._handlers.append(handler)

        logger.info("Logging: level=%s, file=%s", logging.getLevelName(log_level), log_path)

        tracker_path = get_tracker_path(self.output_dirs, self.model_id)
        self.tracker = ChunkProcessingTracker(tracker_path)
        logger.info("Chunk tracker: %s", tracker_path)

    def _persist_runtime_config(self) -> Path:
        """Save the resolved configuration next to the outputs for reproducibility."""
        run_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
        config_file = self.output_dirs["analysis"] / f"runtime_config_{self.model_id}_{run_id}.json"

        config_dict = self.config.model_dump()
        config_dict["run_id"] = run_id
        config_dict["created_at"] = datetime.now(timezone.utc).isoformat()

        with open(config_file, 'w') as f:
            json.dump(config_dict, f, indent=2, default=str)

        logger.info("Runtime config saved: %s", config_file)
        return config_file

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def run(self, design: pd.DataFrame, model, rerun: bool = False) -> pd.DataFrame:
        """Run the pipeline end to end and return the joined summary table.

        Parameters
        ----------
        design : pd.DataFrame
            Prediction design matrix. Not modified.
        model : PredictiveModel
            Object exposing ``predict(rows, draw_count)``.
        rerun : bool, optional
            Discard this model's existing store and chunk records first.

        Returns
        -------
        pd.DataFrame
            One row per design row: design columns, SummaryRecord columns,
            and ``date_label``.

        Raises
        ------
        ConfigurationError
            Invalid design matrix, or resumed store written with different
            parameters.
        ModelEvaluationError, PersistenceError
            A chunk failed under the ``fail_fast`` policy. Chunks published
            before the failure stay on disk for the next run.
        JoinIntegrityError
            The store holds rows the design matrix does not have.
        """
        if self.tracker is None:
            self._setup_logging()

        logger.info("=" * 60)
        logger.info("Starting summary pipeline for model %s", self.model_id)
        logger.info("=" * 60)
        self._start_time = time.time()

        try:
            assert_design_matrix(design)
            indexed = self.indexer.assign_row_ids(design)
            chunks = self.indexer.plan(len(indexed))

            self._prepare_store(indexed, chunks, rerun)
            self._persist_runtime_config()

            emitter = DrawEmitter(model, self.config.sampling.draw_count, self.model_id)
            self._run_chunks(emitter, indexed, chunks)
            del indexed

            self._check_record_count(len(chunks))
            summary = self.aggregator.summarize(self.sink.store_dir)
            joined = self.joiner.join(self.sink.read_design(), summary)
            self._export(joined)
            return joined
        finally:
            self.stop()

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _prepare_store(self, design: pd.DataFrame, chunks: List[Chunk], rerun: bool):
        """Reset or validate the store, then persist design and manifest."""
        params = {
            "n_rows": len(design),
            "chunk_size": self.config.chunking.chunk_size,
            "draw_count": self.config.sampling.draw_count,
            "design_hash": design_fingerprint(design),
        }

        if rerun:
            logger.info("Fresh run requested: clearing store for %s", self.model_id)
            self.sink.clear()
            self.tracker.forget_model(self.model_id)
        else:
            self.sink.clean_partials()
            self.sink.check_manifest(**params)

        self.sink.write_manifest(n_chunks=len(chunks), **params)
        if rerun or not self.sink.design_path.exists():
            self.sink.write_design(design)
        else:
            logger.info("Resuming with persisted design matrix: %s", self.sink.design_path)

        for chunk in chunks:
            self.tracker.register_chunk(self.model_id, chunk.index, chunk.start, chunk.stop)

    def _run_chunks(self, emitter: DrawEmitter, design: pd.DataFrame, chunks: List[Chunk]):
        """Emit and publish every chunk that lacks a published artifact."""
        published = self.sink.published_chunks()
        pending = [c for c in chunks if c.index not in published]

        for chunk in chunks:
            if chunk.index in published and self.tracker.should_process(self.model_id, chunk.index):
                self.tracker.mark_stage_complete(self.model_id, chunk.index, "published",
                                                 path=self.sink.chunk_path(chunk.index))

        if len(pending) < len(chunks):
            logger.info("Resuming: %d of %d chunk(s) already published",
                        len(chunks) - len(pending), len(chunks))
        logger.info("Processing %d chunk(s) [draws=%d, workers=%d, policy=%s]",
                    len(pending), emitter.draw_count, self.config.chunking.workers,
                    self.failure_policy.value)

        workers = self.config.chunking.workers
        if workers <= 1 or len(pending) <= 1:
            gc_every = self.config.chunking.gc_every
            for n, chunk in enumerate(pending, start=1):
                self._process_chunk(emitter, design, chunk, len(chunks))
                if n % gc_every == 0:
                    gc.collect()
            return

        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="drawsum-chunk") as pool:
            futures = [pool.submit(self._process_chunk, emitter, design, chunk, len(chunks))
                       for chunk in pending]
            try:
                for future in as_completed(futures):
                    future.result()
            except (ModelEvaluationError, PersistenceError):
                for future in futures:
                    future.cancel()
                raise
        gc.collect()

    def _process_chunk(self, emitter: DrawEmitter, design: pd.DataFrame,
                       chunk: Chunk, n_chunks: int) -> Optional[Path]:
        """Emit and publish one chunk; apply the failure policy on error."""
        stage = "emitted"
        try:
            records = emitter.emit(chunk, design.iloc[chunk.start:chunk.stop])
            n_records = len(records)
            n_missing = int(records["value"].isna().sum())
            self.tracker.mark_stage_complete(self.model_id, chunk.index, "emitted",
                                             n_records=n_records, n_missing=n_missing)

            stage = "published"
            path = self.sink.write_chunk(chunk, records)
            del records
            self.tracker.mark_stage_complete(self.model_id, chunk.index, "published", path=path)

            logger.info("Chunk %d/%d published: rows [%d, %d), %d records (%d missing)",
                        chunk.index + 1, n_chunks, chunk.start, chunk.stop, n_records, n_missing)
            return path

        except (ModelEvaluationError, PersistenceError) as e:
            self.tracker.mark_stage_complete(self.model_id, chunk.index, stage, error=str(e))
            self.failed_chunks.append(chunk.index)
            if self.failure_policy == FailurePolicy.FAIL_FAST:
                logger.error("Chunk %d failed at stage '%s': %s", chunk.index, stage, e)
                raise
            logger.warning("Skipping chunk %d (rows [%d, %d)): %s",
                           chunk.index, chunk.start, chunk.stop, e)
            return None

    def _check_record_count(self, n_chunks: int):
        """Published draws must cover num_rows * draw_count exactly."""
        n_records = self.sink.record_count()
        if self.failed_chunks:
            logger.warning("%d chunk(s) failed and were skipped: %s",
                           len(self.failed_chunks), sorted(self.failed_chunks))
            return
        manifest = self.sink.read_manifest()
        expected = manifest["n_rows"] * manifest["draw_count"]
        require(
            n_records == expected,
            f"Store contract violated: {n_records} draw records, expected {expected}"
        )
        logger.info("Store complete: %d chunk(s), %d draw records", n_chunks, n_records)

    def _export(self, joined: pd.DataFrame):
        """Write the joined summary table (Parquet, plus CSV if configured)."""
        compression = self.config.output.compression
        self.summary_path = get_summary_path(self.output_dirs, self.model_id)
        joined.to_parquet(self.summary_path, engine='pyarrow',
                          compression=None if compression == "none" else compression,
                          index=False)
        logger.info("Exported %d rows to: %s", len(joined), self.summary_path)

        if self.config.output.write_csv:
            csv_path = get_summary_path(self.output_dirs, self.model_id, "csv")
            joined.to_csv(csv_path, index=False)
            logger.info("Exported CSV: %s", csv_path)

    # ------------------------------------------------------------------

    def stop(self):
        """Finalize the run. Safe to call multiple times.

        Logs runtime and chunk statistics, closes the chunk tracker, and
        detaches the log handlers this orchestrator installed.
        """
        if self._stop_event:
            return
        self._stop_event = True

        elapsed = time.time() - self._start_time if self._start_time else 0
        logger.info("=" * 60)
        logger.info("Pipeline stopped. Runtime: %.1f seconds", elapsed)

        if self.tracker:
            stats = self.tracker.get_statistics(self.model_id)
            logger.info("Chunks: total=%d, published=%d, failed=%d, records=%d",
                        stats.get('total') or 0, stats.get('published') or 0,
                        stats.get('failed') or 0, stats.get('total_records') or 0)
            self.tracker.close()

        logger.info("=" * 60)

        root = logging.getLogger()
        for handler in self._handlers:
            root.removeHandler(handler)
            handler.close()
        self._handlers = []
