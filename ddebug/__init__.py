"""ddebug - structure-aware reducer for compiler error reproductions"""

__version__ = "0.1.0"

from .errors import (
    DDebugError,
    ProcessFailure,
    ParseFailure,
    NoReproduction,
    WorkspaceIOFailure,
    ConfigError,
)

__all__ = [
    '__version__',
    'DDebugError',
    'ProcessFailure',
    'ParseFailure',
    'NoReproduction',
    'WorkspaceIOFailure',
    'ConfigError',
]
