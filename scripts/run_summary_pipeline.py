#!/usr/bin/env python3
"""``drawsum`` Posterior Summary Pipeline Runner.

Usage:
    python scripts/run_summary_pipeline.py scripts/user_config.py
    python scripts/run_summary_pipeline.py scripts/user_config.py --design grid.parquet
    python scripts/run_summary_pipeline.py scripts/user_config.py --chunk-size 5000 --rerun

Note: User config in scripts/user_config.py, expert defaults in drawsum.schemas.param
"""

import argparse
import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from drawsum.cli import run_summary_pipeline
from drawsum.contracts import ConfigurationError, ContractViolation, PersistenceError


def main():
    parser = argparse.ArgumentParser(description="Summarize posterior-predictive draws per design row")
    parser.add_argument("config", help="Path to user config file")
    parser.add_argument("--design", help="Design matrix (.parquet or .csv)")
    parser.add_argument("--model-id", help="Override model identifier")
    parser.add_argument("--base-dir", help="Output directory")
    parser.add_argument("--draw-count", type=int, help="Posterior draws per row")
    parser.add_argument("--chunk-size", type=int, help="Design rows per chunk")
    parser.add_argument("--threshold", type=float, help="Exceedance threshold")
    parser.add_argument("--workers", type=int, help="Concurrent chunk workers")
    parser.add_argument("--rerun", action="store_true", help="Discard published chunks before running")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    cli_args = {
        "model_id": args.model_id,
        "base_dir": args.base_dir,
        "draw_count": args.draw_count,
        "chunk_size": args.chunk_size,
        "threshold": args.threshold,
        "workers": args.workers,
    }

    try:
        run_summary_pipeline(
            args.config,
            cli_args=cli_args,
            design_path=args.design,
            rerun=args.rerun,
            verbose=args.verbose,
        )
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except (ContractViolation, PersistenceError) as e:
        print(f"Pipeline failed: {e}", file=sys.stderr)
        print("Published chunks are kept; rerun the same command to resume.", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
