"""Pipeline modules.

- orchestrator: Main pipeline controller
- chunk_tracker: SQLite-based chunk tracking
"""

from drawsum.pipeline.orchestrator import PipelineOrchestrator
from drawsum.pipeline.chunk_tracker import ChunkProcessingTracker

__all__ = [
    "PipelineOrchestrator",
    "ChunkProcessingTracker",
]
