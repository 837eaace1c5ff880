"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and immutable.

All .get() calls, fallback defaults, and validation logic are FORBIDDEN in
runtime code - everything is explicit here.
"""

from typing import Literal, Optional
from pydantic import ConfigDict, Field
from drawsum.schemas.base import DrawsumBaseModel
from drawsum.schemas.param import SummaryConfig


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalRunConfig(DrawsumBaseModel):
    """Runtime run identity.

    Note: model_id and base_dir may be None while configs are merged, but
    resolve_config(require_runtime=True) rejects None before execution.
    """
    model_id: Optional[str] = Field(pattern=r"^[A-Za-z0-9_.\-]+$")
    base_dir: Optional[str]


class InternalSamplingConfig(DrawsumBaseModel):
    """Runtime sampling request."""
    draw_count: int = Field(ge=1)
    seed: Optional[int]


class InternalChunkingConfig(DrawsumBaseModel):
    """Runtime chunk loop settings."""
    chunk_size: int = Field(ge=1)
    gc_every: int = Field(ge=1)
    workers: int = Field(ge=1)
    failure_policy: Literal["fail_fast", "skip_chunk"]


class InternalSummaryConfig(SummaryConfig):
    """Runtime aggregation settings (same validation as the defaults)."""
    pass


class InternalJoinConfig(DrawsumBaseModel):
    """Runtime join settings."""
    date_column: str
    label_format: str


class InternalOutputConfig(DrawsumBaseModel):
    """Runtime output configuration."""
    compression: Literal["snappy", "gzip", "zstd", "none"]
    write_csv: bool


class InternalLoggingConfig(DrawsumBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(DrawsumBaseModel):
    """Authoritative runtime configuration.

    Usage
    -----
    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.chunk_size = config.chunking.chunk_size  # NOT .get()
            self.threshold = config.summary.threshold

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO validation in runtime code
    """

    run: InternalRunConfig
    sampling: InternalSamplingConfig
    chunking: InternalChunkingConfig
    summary: InternalSummaryConfig
    join: InternalJoinConfig
    output: InternalOutputConfig
    logging: InternalLoggingConfig

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
        protected_namespaces=(),
    )
