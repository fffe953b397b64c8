"""Trial workspaces - platform abstraction"""

import os
import platform
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..config import WorkspaceBackend
from .linux import OverlayWorkspace
from .portable import CopyWorkspace
from .process import ExecutionResult, run_process

# Type alias for workspace implementations
Workspace = Union[OverlayWorkspace, CopyWorkspace]


def overlay_supported() -> bool:
    """overlayfs mounts need Linux and root."""
    return platform.system() == "Linux" and hasattr(os, "geteuid") and os.geteuid() == 0


def resolve_backend(backend: WorkspaceBackend) -> WorkspaceBackend:
    """Turn AUTO into the concrete backend for this machine."""
    if backend is WorkspaceBackend.AUTO:
        return WorkspaceBackend.OVERLAY if overlay_supported() else WorkspaceBackend.COPY
    return backend


def create_workspace(
    project_root: Path,
    backend: WorkspaceBackend = WorkspaceBackend.AUTO,
    ignore: Optional[List[str]] = None,
    env: Optional[Dict[str, str]] = None,
    parent_dir: Optional[Path] = None
) -> Workspace:
    """Create a workspace of the requested kind.

    Args:
        project_root: Project to materialize
        backend: Backend choice
        ignore: Glob patterns excluded from copies
        env: Environment for commands run in the workspace
        parent_dir: Directory under which the sandbox is created

    Returns:
        OverlayWorkspace or CopyWorkspace
    """
    kwargs = dict(
        project_root=project_root,
        ignore=list(ignore or []),
        env=dict(env or {}),
        parent_dir=parent_dir,
    )
    if resolve_backend(backend) is WorkspaceBackend.OVERLAY:
        return OverlayWorkspace(**kwargs)
    return CopyWorkspace(**kwargs)


# Imported last: the manager uses the factory above.
from .manager import WorkspaceManager  # noqa: E402

__all__ = [
    'Workspace',
    'OverlayWorkspace',
    'CopyWorkspace',
    'ExecutionResult',
    'WorkspaceManager',
    'create_workspace',
    'overlay_supported',
    'resolve_backend',
    'run_process',
]
