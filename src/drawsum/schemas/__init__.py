"""Pydantic configuration schemas for the drawsum pipeline.

Exports
-------
resolve_config : function
    Single entrypoint for configuration resolution
InternalConfig : class
    Fully validated, authoritative runtime configuration
ParamConfig : class
    Expert defaults (complete)
UserConfig : class
    User-facing configuration (forgiving, minimal)
CLIConfig : class
    Command-line operational overrides
"""

from drawsum.schemas.resolve import resolve_config
from drawsum.schemas.internal import InternalConfig
from drawsum.schemas.param import ParamConfig
from drawsum.schemas.user import UserConfig
from drawsum.schemas.cli import CLIConfig

__all__ = [
    'resolve_config',
    'InternalConfig',
    'ParamConfig',
    'UserConfig',
    'CLIConfig',
]
