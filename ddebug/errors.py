"""Fatal error taxonomy for reduction sessions"""

from typing import Optional


class DDebugError(Exception):
    """Base class for errors that stop a reduction session"""

    exit_code = 4

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def describe(self) -> str:
        """Human-readable description including detail, if any."""
        if self.detail:
            return f"{self.message}\n{self.detail}"
        return self.message


class ProcessFailure(DDebugError):
    """The external build tool could not be invoked or crashed"""

    exit_code = 2


class ParseFailure(DDebugError):
    """The target file does not parse, so there is nothing to reduce"""

    exit_code = 4


class NoReproduction(DDebugError):
    """The initial build does not exhibit the requested error"""

    exit_code = 1


class WorkspaceIOFailure(DDebugError):
    """A trial workspace could not be created or written"""

    exit_code = 4


class ConfigError(DDebugError):
    """Invalid configuration value"""

    exit_code = 4
