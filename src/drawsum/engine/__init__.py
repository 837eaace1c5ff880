"""Summary engine: indexing, emission, storage, aggregation, joining."""

from drawsum.engine.indexer import Chunk, RowIndexer
from drawsum.engine.model import (
    CallableModel,
    ConstantModel,
    GaussianModel,
    PredictiveModel,
    RowDrawModel,
)
from drawsum.engine.emitter import DrawEmitter
from drawsum.engine.sink import ColumnarSink, design_fingerprint
from drawsum.engine.aggregator import AggregationEngine
from drawsum.engine.joiner import ResultJoiner

__all__ = [
    "Chunk",
    "RowIndexer",
    "PredictiveModel",
    "CallableModel",
    "ConstantModel",
    "RowDrawModel",
    "GaussianModel",
    "DrawEmitter",
    "ColumnarSink",
    "design_fingerprint",
    "AggregationEngine",
    "ResultJoiner",
]
