"""CLIConfig: Command-line operational overrides.

Minimal configuration for parameters that commonly change between runs:
model identifier, output path, draw count, chunk size, threshold, verbosity.
"""

from typing import Literal, Optional
from drawsum.schemas.base import DrawsumBaseModel


class CLIConfig(DrawsumBaseModel):
    """Command-line configuration overrides.

    Highest priority in config resolution.

    Usage
    -----
        cli_cfg = CLIConfig(model_id="pm25_gp_v3", chunk_size=5000)
        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    model_id: Optional[str] = None
    base_dir: Optional[str] = None
    draw_count: Optional[int] = None
    chunk_size: Optional[int] = None
    threshold: Optional[float] = None
    workers: Optional[int] = None
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None

    def to_internal_overrides(self) -> dict:
        """Convert CLI config to internal config structure.

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

        if self.draw_count is not None:
            overrides["sampling"] = {"draw_count": self.draw_count}

        chunking = {}
        if self.chunk_size is not None:
            chunking["chunk_size"] = self.chunk_size
        if self.workers is not None:
            chunking["workers"] = self.workers
        if chunking:
            overrides["chunking"] = chunking

        if self.threshold is not None:
            overrides["summary"] = {"threshold": self.threshold}

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
