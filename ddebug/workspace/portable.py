"""Portable trial workspace using a directory copy"""

import shutil
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Dict
from dataclasses import dataclass, field

from .process import ExecutionResult, run_process


@dataclass
class CopyWorkspace:
    """Disposable copy of the project for one speculative build"""

    project_root: Path
    ignore: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    parent_dir: Optional[Path] = None
    root: Path = field(init=False)
    _temp_root: Optional[Path] = None

    def __post_init__(self):
        """Create the sandbox and copy the project into it"""
        self._temp_root = Path(tempfile.mkdtemp(
            prefix="ddebug-ws-",
            dir=str(self.parent_dir) if self.parent_dir else None
        ))
        self.root = self._temp_root / "project"

        try:
            shutil.copytree(
                self.project_root,
                self.root,
                symlinks=True,
                ignore=shutil.ignore_patterns(*self.ignore) if self.ignore else None
            )
        except (OSError, shutil.Error):
            self.cleanup()
            raise

    def mount(self) -> Path:
        """Return the sandbox directory (already prepared).

        Returns:
            Path to the project copy
        """
        return self.root

    def write_file(self, rel_path: Path, text: str):
        """Replace one file in the sandbox.

        A symlinked file is unlinked first so the write can never reach the
        file it points to.

        Args:
            rel_path: Path relative to the project root
            text: New file content
        """
        path = self.root / rel_path
        if path.is_symlink():
            path.unlink()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")

    def execute(
        self,
        cmd: List[str],
        timeout_sec: float = 60.0,
        abort_event: Optional[threading.Event] = None
    ) -> ExecutionResult:
        """Run a command with the sandbox as working directory."""
        return run_process(
            cmd,
            cwd=self.root,
            env=self.env,
            timeout_sec=timeout_sec,
            abort_event=abort_event
        )

    def cleanup(self):
        """Remove the sandbox"""
        if self._temp_root and self._temp_root.exists():
            shutil.rmtree(self._temp_root, ignore_errors=True)
