"""Command-line interface modules for drawsum pipeline execution.

This package contains core execution logic, making scripts/ optional and deletable.
"""

from drawsum.cli.run_summary import run_summary_pipeline

__all__ = ['run_summary_pipeline']
