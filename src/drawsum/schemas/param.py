"""ParamConfig: Expert defaults for the summary pipeline.

This module defines the complete default configuration. ALL pipeline
parameters must have defaults here. No runtime code should define fallback
values - this is the single source of truth for defaults.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

import math
from typing import Literal, Optional
from pydantic import Field, field_validator, model_validator
from drawsum.schemas.base import DrawsumBaseModel


# =============================================================================
# Nested Configuration Models
# =============================================================================

class RunConfig(DrawsumBaseModel):
    """Run identity and output location."""
    model_id: Optional[str] = Field(None, description="Identifier scoping the on-disk store")
    base_dir: Optional[str] = Field(None, description="Root output directory")


class SamplingConfig(DrawsumBaseModel):
    """Posterior sampling request."""
    draw_count: int = Field(1000, ge=1, description="Posterior draws per design row")
    seed: Optional[int] = Field(None, ge=0, description="Seed handed to seeded models")


class ChunkingConfig(DrawsumBaseModel):
    """Chunk loop settings."""
    chunk_size: int = Field(10000, ge=1, description="Maximum design rows per chunk")
    gc_every: int = Field(1, ge=1, description="Run gc.collect() every N chunks")
    workers: int = Field(1, ge=1, le=64, description="Concurrent chunk workers")
    failure_policy: Literal["fail_fast", "skip_chunk"] = "fail_fast"


class SummaryConfig(DrawsumBaseModel):
    """Aggregation settings."""
    threshold: float = Field(1.0, description="Exceedance threshold on the back-transformed scale")
    transform: Literal["log", "identity"] = "log"
    lower_quantile: float = Field(0.025, gt=0, lt=1)
    upper_quantile: float = Field(0.975, gt=0, lt=1)
    backend: Literal["arrow", "duckdb"] = "arrow"
    rows_per_partition: int = Field(50000, ge=1, description="row_id range scanned per group-by pass")

    @field_validator("threshold", mode="before")
    @classmethod
    def coerce_threshold_to_float(cls, v):
        """Allow int or float for threshold."""
        if isinstance(v, (int, float)):
            return float(v)
        return v

    @field_validator("threshold")
    @classmethod
    def threshold_is_finite(cls, v):
        """Reject NaN and infinite thresholds."""
        if not math.isfinite(v):
            raise ValueError(f"threshold must be finite, got {v}")
        return v

    @field_validator("transform", "backend", mode="before")
    @classmethod
    def normalize_names(cls, v):
        """Normalize names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @model_validator(mode="after")
    def quantiles_ordered(self):
        if self.lower_quantile >= self.upper_quantile:
            raise ValueError(
                f"lower_quantile ({self.lower_quantile}) must be below "
                f"upper_quantile ({self.upper_quantile})"
            )
        return self


class JoinConfig(DrawsumBaseModel):
    """Result join settings."""
    date_column: str = "date"
    label_format: str = "%d %b %Y"


class OutputConfig(DrawsumBaseModel):
    """Output file configuration."""
    compression: Literal["snappy", "gzip", "zstd", "none"] = "snappy"
    write_csv: bool = False


class LoggingConfig(DrawsumBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(DrawsumBaseModel):
    """Complete expert configuration with all defaults.

    This is the single source of truth for all pipeline parameters.
    Every tunable parameter MUST have a default here.

    Usage
    -----
    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)

    Runtime code only sees InternalConfig.
    """

    run: RunConfig = Field(default_factory=RunConfig)
    sampling: SamplingConfig = Field(default_factory=SamplingConfig)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    summary: SummaryConfig = Field(default_factory=SummaryConfig)
    join: JoinConfig = Field(default_factory=JoinConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
