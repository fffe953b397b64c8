"""Workspace management - disposable project copies for speculative builds"""

import itertools
import queue
import shutil
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from ..config import ReductionConfig, WorkspaceBackend
from ..errors import WorkspaceIOFailure
from ..util import get_logger, hash_file, verify_hash
from . import create_workspace, resolve_backend

logger = get_logger("ddebug.workspace")


class WorkspaceManager:
    """Creates, tracks and destroys trial workspaces for one session.

    The original project is only ever read. Each trial gets a fresh
    workspace with the target file replaced; the workspace is removed when
    the trial ends, whatever its outcome.
    """

    def __init__(
        self,
        project_root: Path,
        target_file: Path,
        config: Optional[ReductionConfig] = None
    ):
        """Initialize workspace manager.

        Args:
            project_root: Root of the project being reduced
            target_file: Target file, relative to project_root
            config: Session configuration
        """
        self.config = config or ReductionConfig()
        self.project_root = Path(project_root).resolve()
        self.target_file = Path(target_file)
        if self.target_file.is_absolute():
            self.target_file = self.target_file.relative_to(self.project_root)

        self.backend = resolve_backend(self.config.workspace_backend)
        self._ids = itertools.count(1)
        self._active: Dict[str, object] = {}
        self._lock = threading.Lock()
        self._closed = False

        try:
            self._original_hash = hash_file(self.target_path)
        except OSError as e:
            raise WorkspaceIOFailure(f"Cannot read target file {self.target_path}", str(e)) from e
        self._session_dir = Path(tempfile.mkdtemp(prefix="ddebug-session-"))

        # One build cache directory per worker, leased for the length of a trial.
        self._cache_dirs: "queue.Queue[Optional[Path]]" = queue.Queue()
        for slot in range(self.config.concurrency):
            if self.config.target_dir_env:
                cache_dir = self._session_dir / f"build-cache-{slot}"
                cache_dir.mkdir(parents=True, exist_ok=True)
                self._cache_dirs.put(cache_dir)
            else:
                self._cache_dirs.put(None)

    @property
    def target_path(self) -> Path:
        """Absolute path of the original target file."""
        return self.project_root / self.target_file

    @property
    def original_hash(self) -> str:
        """Hash of the target file when the session started."""
        return self._original_hash

    def read_original(self) -> str:
        """Read the original target file."""
        try:
            return self.target_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise WorkspaceIOFailure(f"Cannot read target file {self.target_path}", str(e)) from e

    def original_intact(self) -> bool:
        """True if the original target file still has its starting content."""
        return verify_hash(self.target_path, self._original_hash)

    @contextmanager
    def materialize(self, text: Optional[str] = None) -> Iterator[object]:
        """Yield a workspace whose target file holds ``text``.

        Args:
            text: Candidate content; None keeps the original file

        Yields:
            Workspace ready for the build tool
        """
        cache_dir = self._cache_dirs.get()
        workspace = None
        workspace_id = None
        try:
            env = dict(self.config.env)
            if cache_dir is not None:
                env[self.config.target_dir_env] = str(cache_dir)

            workspace = self._create_with_retry(text, env)
            workspace_id = f"ws_{next(self._ids)}"
            with self._lock:
                self._active[workspace_id] = workspace

            yield workspace
        finally:
            if workspace is not None:
                workspace.cleanup()
            if workspace_id is not None:
                with self._lock:
                    self._active.pop(workspace_id, None)
            self._cache_dirs.put(cache_dir)

    def _create_with_retry(self, text: Optional[str], env: Dict[str, str]):
        """Create a workspace, retrying once on I/O failure."""
        try:
            return self._create(text, env)
        except WorkspaceIOFailure as e:
            logger.warning("Workspace creation failed, retrying once", error=e.detail)
            return self._create(text, env)

    def _create(self, text: Optional[str], env: Dict[str, str]):
        if self._closed:
            raise WorkspaceIOFailure("Workspace manager is closed")

        try:
            workspace = create_workspace(
                self.project_root,
                backend=self.backend,
                ignore=self.config.workspace_ignore,
                env=env,
                parent_dir=self._session_dir
            )
        except (OSError, shutil.Error) as e:
            raise WorkspaceIOFailure("Cannot create trial workspace", str(e)) from e

        if getattr(workspace, "fell_back", False) and self.backend is WorkspaceBackend.OVERLAY:
            logger.info("overlayfs unavailable, using directory copies")
            self.backend = WorkspaceBackend.COPY

        if text is not None:
            try:
                workspace.write_file(self.target_file, text)
            except OSError as e:
                workspace.cleanup()
                raise WorkspaceIOFailure("Cannot write candidate into workspace", str(e)) from e

        return workspace

    def active(self) -> List[str]:
        """IDs of workspaces currently in use."""
        with self._lock:
            return list(self._active)

    def cleanup(self):
        """Remove every remaining workspace and the session directory"""
        with self._lock:
            self._closed = True
            remaining = list(self._active.items())
            self._active.clear()

        for workspace_id, workspace in remaining:
            try:
                workspace.cleanup()
            except OSError as e:
                logger.warning("Failed to clean up workspace", workspace=workspace_id, error=str(e))

        shutil.rmtree(self._session_dir, ignore_errors=True)
