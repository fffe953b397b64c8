"""Session configuration"""

import json
import shlex
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigError


class SizeMetric(Enum):
    """How node size is measured when ordering candidates"""
    BYTES = "bytes"
    DESCENDANTS = "descendants"


class WorkspaceBackend(Enum):
    """Workspace implementation used for trials"""
    AUTO = "auto"
    COPY = "copy"
    OVERLAY = "overlay"


CARGO_COMMAND = ["cargo", "check", "--message-format=json", "--quiet"]

RUSTC_COMMAND = [
    "rustc",
    "--edition=2021",
    "--error-format=json",
    "--emit=metadata",
    "--crate-type=lib",
    "{file}",
]

DEFAULT_IGNORE = ["target", ".git", ".hg", ".svn"]


@dataclass
class ReductionConfig:
    """Options for one reduction session.

    Attributes:
        timeout: Per-trial oracle budget in seconds
        concurrency: Worker pool size; 1 runs trials sequentially
        max_passes: Safety cap on the number of passes
        time_budget: Whole-session wall-clock budget in seconds (None: unlimited)
        size_metric: Node size policy used to order candidates
        command: Build command argv; ``{file}`` expands to the target path
        env: Extra environment variables for the build command
        grace: Seconds in-flight trials may run after cancellation
        workspace_backend: Trial workspace implementation
        workspace_ignore: Glob patterns not copied into workspaces
        target_dir_env: Environment variable pointing the tool at a
            per-worker build cache directory (None disables)
        verify: Rebuild the final result once, bypassing the cache
    """
    timeout: float = 60.0
    concurrency: int = 1
    max_passes: int = 100
    time_budget: Optional[float] = None
    size_metric: SizeMetric = SizeMetric.BYTES
    command: Optional[List[str]] = None
    env: Dict[str, str] = field(default_factory=dict)
    grace: float = 5.0
    workspace_backend: WorkspaceBackend = WorkspaceBackend.AUTO
    workspace_ignore: List[str] = field(default_factory=lambda: list(DEFAULT_IGNORE))
    target_dir_env: Optional[str] = "CARGO_TARGET_DIR"
    verify: bool = True

    def __post_init__(self):
        if isinstance(self.command, str):
            self.command = shlex.split(self.command)
        if isinstance(self.size_metric, str):
            self.size_metric = _enum_value(SizeMetric, self.size_metric, "size_metric")
        if isinstance(self.workspace_backend, str):
            self.workspace_backend = _enum_value(
                WorkspaceBackend, self.workspace_backend, "workspace_backend"
            )
        self.validate()

    def validate(self):
        """Raise ConfigError for mistyped or out-of-range values."""
        for name in ("timeout", "concurrency", "max_passes", "time_budget", "grace"):
            value = getattr(self, name)
            if value is not None and (isinstance(value, bool) or not isinstance(value, (int, float))):
                raise ConfigError(f"{name} must be a number, got {value!r}")
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be at least 1, got {self.concurrency}")
        if self.max_passes < 1:
            raise ConfigError(f"max_passes must be at least 1, got {self.max_passes}")
        if self.time_budget is not None and self.time_budget <= 0:
            raise ConfigError(f"time_budget must be positive, got {self.time_budget}")
        if self.grace < 0:
            raise ConfigError(f"grace must not be negative, got {self.grace}")
        if self.command is not None:
            if not isinstance(self.command, list) or not all(isinstance(a, str) for a in self.command):
                raise ConfigError(f"command must be a list of strings, got {self.command!r}")
            if not self.command:
                raise ConfigError("command must not be empty")
        if not isinstance(self.env, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in self.env.items()
        ):
            raise ConfigError(f"env must map strings to strings, got {self.env!r}")

    def merged(self, **overrides: Any) -> "ReductionConfig":
        """Copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        unknown = set(changes) - {f.name for f in fields(self)}
        if unknown:
            raise ConfigError(f"Unknown config option(s): {', '.join(sorted(unknown))}")
        return replace(self, **changes)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "ReductionConfig":
        """Build a config from a plain dict, e.g. parsed JSON."""
        if not isinstance(data, dict):
            raise ConfigError("config must be a JSON object")
        return cls().merged(**data)

    @classmethod
    def from_file(cls, path: Path) -> "ReductionConfig":
        """Load a JSON config file.

        Args:
            path: Path to a JSON object with ReductionConfig field names

        Returns:
            Parsed configuration
        """
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON in config file {path}: {e}") from e
        return cls.from_mapping(data)


def _enum_value(enum_cls, value: str, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        choices = ", ".join(m.value for m in enum_cls)
        raise ConfigError(f"{name} must be one of {choices}, got {value!r}") from None
