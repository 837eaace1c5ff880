"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs with aliases for common naming patterns
(e.g., MODEL_ID -> model_id, CHUNK_SIZE -> chunk_size).

UserConfig is intentionally minimal - users only specify what they want
to override from the expert defaults.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator
from drawsum.schemas.base import DrawsumBaseModel


class UserSamplingConfig(DrawsumBaseModel):
    """User-facing sampling config."""
    draw_count: Optional[int] = None
    seed: Optional[int] = None


class UserChunkingConfig(DrawsumBaseModel):
    """User-facing chunking config."""
    chunk_size: Optional[int] = None
    gc_every: Optional[int] = None
    workers: Optional[int] = None
    failure_policy: Optional[str] = None

    @field_validator("failure_policy", mode="before")
    @classmethod
    def normalize_policy(cls, v):
        """Normalize policy names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class UserSummaryConfig(DrawsumBaseModel):
    """User-facing summary config."""
    threshold: Optional[float] = None
    transform: Optional[str] = None
    lower_quantile: Optional[float] = None
    upper_quantile: Optional[float] = None
    backend: Optional[str] = None
    rows_per_partition: Optional[int] = None

    @field_validator("threshold", mode="before")
    @classmethod
    def coerce_threshold(cls, v):
        """Accept int or float for threshold."""
        if isinstance(v, (int, float)):
            return float(v)
        return v


class UserJoinConfig(DrawsumBaseModel):
    """User-facing join config."""
    date_column: Optional[str] = None
    label_format: Optional[str] = None


class UserConfig(DrawsumBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Users only specify
    what they want to override from ParamConfig defaults.

    Usage
    -----
        user_cfg = UserConfig(
            model_id="pm25_gp_v3",
            base_dir="/data/drawsum",
            draw_count=500,
            threshold=15,
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    # Top-level operational settings
    model_id: Optional[str] = Field(None, alias="MODEL_ID")
    base_dir: Optional[str] = Field(None, alias="BASE_DIR")

    # Flat aliases
    draw_count: Optional[int] = Field(None, alias="DRAW_COUNT")
    seed: Optional[int] = Field(None, alias="SEED")
    chunk_size: Optional[int] = Field(None, alias="CHUNK_SIZE")
    workers: Optional[int] = Field(None, alias="WORKERS")
    threshold: Optional[float] = Field(None, alias="THRESHOLD")
    transform: Optional[str] = Field(None, alias="TRANSFORM")
    backend: Optional[str] = Field(None, alias="BACKEND")
    date_column: Optional[str] = Field(None, alias="DATE_COLUMN")
    compression: Optional[Literal["snappy", "gzip", "zstd", "none"]] = Field(None, alias="COMPRESSION")
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = Field(None, alias="LOG_LEVEL")

    # Nested overrides (advanced users)
    sampling: Optional[UserSamplingConfig] = None
    chunking: Optional[UserChunkingConfig] = None
    summary: Optional[UserSummaryConfig] = None
    join: Optional[UserJoinConfig] = None

    model_config = DrawsumBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown keys such as MODEL)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("threshold", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        """Accept int or float for numeric fields."""
        if isinstance(v, (int, float)):
            return float(v)
        return v

    @field_validator("transform", "backend", mode="before")
    @classmethod
    def normalize_names(cls, v):
        """Normalize names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        run = {}
        if self.model_id is not None:
            run["model_id"] = self.model_id
        if self.base_dir is not None:
            run["base_dir"] = str(self.base_dir)
        if run:
            overrides["run"] = run

        # Sampling section
        sampling = {}
        if self.draw_count is not None:
            sampling["draw_count"] = self.draw_count
        if self.seed is not None:
            sampling["seed"] = self.seed
        if self.sampling is not None:
            sampling.update(self.sampling.model_dump(exclude_none=True))
        if sampling:
            overrides["sampling"] = sampling

        # Chunking section
        chunking = {}
        if self.chunk_size is not None:
            chunking["chunk_size"] = self.chunk_size
        if self.workers is not None:
            chunking["workers"] = self.workers
        if self.chunking is not None:
            chunking.update(self.chunking.model_dump(exclude_none=True))
        if chunking:
            overrides["chunking"] = chunking

        # Summary section
        summary = {}
        if self.threshold is not None:
            summary["threshold"] = self.threshold
        if self.transform is not None:
            summary["transform"] = self.transform
        if self.backend is not None:
            summary["backend"] = self.backend
        if self.summary is not None:
            summary.update(self.summary.model_dump(exclude_none=True))
        if summary:
            overrides["summary"] = summary

        # Join section
        join = {}
        if self.date_column is not None:
            join["date_column"] = self.date_column
        if self.join is not None:
            join.update(self.join.model_dump(exclude_none=True))
        if join:
            overrides["join"] = join

        if self.compression is not None:
            overrides["output"] = {"compression": self.compression}

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
