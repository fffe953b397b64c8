"""Linux trial workspace using overlayfs"""

import shutil
import subprocess
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Dict
from dataclasses import dataclass, field

from .process import ExecutionResult, run_process


@dataclass
class OverlayWorkspace:
    """Workspace layering a writable upper dir over the read-only project.

    Mounting needs privileges; when ``mount`` fails the project is copied
    into the merged directory instead and ``fell_back`` is set.
    """

    project_root: Path
    ignore: List[str] = field(default_factory=list)
    env: Dict[str, str] = field(default_factory=dict)
    parent_dir: Optional[Path] = None
    root: Path = field(init=False)
    upper_dir: Path = field(init=False)
    work_dir: Path = field(init=False)
    fell_back: bool = False
    _temp_root: Optional[Path] = None
    _is_mounted: bool = False

    def __post_init__(self):
        """Create overlay directories and mount"""
        self._temp_root = Path(tempfile.mkdtemp(
            prefix="ddebug-ovl-",
            dir=str(self.parent_dir) if self.parent_dir else None
        ))
        overlay_dir = self._temp_root / "overlay"
        self.upper_dir = overlay_dir / "upper"
        self.work_dir = overlay_dir / "work"
        self.root = overlay_dir / "merged"

        self.upper_dir.mkdir(parents=True, exist_ok=True)
        self.work_dir.mkdir(parents=True, exist_ok=True)
        self.root.mkdir(parents=True, exist_ok=True)

        try:
            self.mount()
        except (OSError, shutil.Error):
            self.cleanup()
            raise

    def mount(self) -> Path:
        """Mount overlayfs, falling back to a plain copy.

        Returns:
            Path to the merged view
        """
        if self._is_mounted:
            return self.root

        options = (
            f"lowerdir={self.project_root},"
            f"upperdir={self.upper_dir},"
            f"workdir={self.work_dir}"
        )

        try:
            result = subprocess.run(
                ["mount", "-t", "overlay", "overlay", "-o", options, str(self.root)],
                capture_output=True,
                text=True,
                check=False
            )
            mounted = result.returncode == 0
        except (subprocess.SubprocessError, OSError):
            mounted = False

        if not mounted:
            self._fallback_copy()
        self._is_mounted = True
        return self.root

    def _fallback_copy(self):
        """Copy the project when overlayfs is not available"""
        shutil.copytree(
            self.project_root,
            self.root,
            dirs_exist_ok=True,
            symlinks=True,
            ignore=shutil.ignore_patterns(*self.ignore) if self.ignore else None
        )
        self.fell_back = True

    def unmount(self):
        """Unmount overlayfs"""
        if not self._is_mounted:
            return

        if not self.fell_back:
            try:
                subprocess.run(
                    ["umount", str(self.root)],
                    capture_output=True,
                    check=False
                )
            except (subprocess.SubprocessError, OSError):
                pass

        self._is_mounted = False

    def write_file(self, rel_path: Path, text: str):
        """Replace one file; overlayfs copies it up, so the lower dir is untouched."""
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
        """Run a command with the merged view as working directory."""
        return run_process(
            cmd,
            cwd=self.mount(),
            env=self.env,
            timeout_sec=timeout_sec,
            abort_event=abort_event
        )

    def cleanup(self):
        """Unmount and remove temporary directories"""
        self.unmount()

        if self._temp_root and self._temp_root.exists():
            shutil.rmtree(self._temp_root, ignore_errors=True)
