"""Project discovery and initial error classification"""

import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from .config import CARGO_COMMAND, RUSTC_COMMAND, ReductionConfig
from .errors import ConfigError, NoReproduction, ProcessFailure, WorkspaceIOFailure
from .oracle import BuildOracle, Diagnostic, ErrorSignature, Verdict, substantive_errors
from .util import get_logger
from .workspace import create_workspace, resolve_backend

logger = get_logger("ddebug.discovery")

# A root manifest has a [workspace] table, possibly only through dotted keys.
_WORKSPACE_TABLE = re.compile(r"^\s*\[workspace[\].]", re.MULTILINE)


@dataclass
class Target:
    """What a session reduces and how it builds it"""
    project_root: Path
    target_file: Path
    command: List[str]
    signature: ErrorSignature
    diagnostic: Diagnostic

    @property
    def target_path(self) -> Path:
        return self.project_root / self.target_file


def resolve_project(path: Path) -> Tuple[Path, Optional[Path], List[str]]:
    """Find the project root and the default build command for ``path``.

    A directory containing ``Cargo.toml`` (or a file inside one) is built
    with cargo. Members of a cargo workspace resolve to the workspace root,
    since cargo reports paths relative to it. A loose ``.rs`` file outside
    any cargo project is compiled on its own with rustc.

    Args:
        path: Project directory or source file

    Returns:
        (project_root, file relative to the root or None, default command)
    """
    path = Path(path).resolve()
    if not path.exists():
        raise ConfigError(f"Path does not exist: {path}")

    start = path if path.is_dir() else path.parent
    for candidate in [start, *start.parents]:
        if (candidate / "Cargo.toml").is_file():
            root = _workspace_root(candidate) or candidate
            rel = path.relative_to(root) if path.is_file() else None
            return root, rel, list(CARGO_COMMAND)

    if path.is_file() and path.suffix == ".rs":
        return path.parent, Path(path.name), list(RUSTC_COMMAND)

    raise ConfigError(f"No Cargo.toml found for {path} and it is not a .rs file")


def _workspace_root(package_dir: Path) -> Optional[Path]:
    """Nearest directory at or above a package whose manifest declares a workspace."""
    for candidate in [package_dir, *package_dir.parents]:
        manifest = candidate / "Cargo.toml"
        if not manifest.is_file():
            continue
        try:
            text = manifest.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise ConfigError(f"Cannot read {manifest}: {e}") from e
        if _WORKSPACE_TABLE.search(text):
            return candidate
    return None


def select_error(
    diagnostics: List[Diagnostic],
    target_error: Optional[str] = None
) -> Tuple[ErrorSignature, Diagnostic]:
    """Pick the error to reduce.

    Args:
        diagnostics: Diagnostics of the unmodified build
        target_error: User-supplied signature, or None for the first error

    Returns:
        (signature, the diagnostic it was taken from)
    """
    errors = substantive_errors(diagnostics)

    if target_error:
        try:
            signature = ErrorSignature.parse(target_error)
        except ValueError as e:
            raise ConfigError(f"Invalid --target-error: {e}") from e
        for diagnostic in errors:
            if signature.matches(diagnostic):
                return signature, diagnostic
        found = ", ".join(sorted({d.code or d.message for d in errors})) or "none"
        raise NoReproduction(f"Initial build does not report {signature}", f"errors found: {found}")

    if not errors:
        raise NoReproduction("Initial build reports no error")
    return ErrorSignature.from_diagnostic(errors[0]), errors[0]


def _target_file(
    project_root: Path,
    workspace_root: Path,
    diagnostic: Diagnostic
) -> Path:
    if not diagnostic.file:
        raise ConfigError(
            f"Error {diagnostic.code or diagnostic.message!r} has no source location",
            "pass the file to reduce with --file"
        )

    reported = Path(diagnostic.file)
    if reported.is_absolute():
        for root in (workspace_root, project_root):
            try:
                reported = reported.relative_to(root)
                break
            except ValueError:
                continue
        else:
            raise ConfigError(f"Error location {reported} is outside the project",
                              "pass the file to reduce with --file")

    if not (project_root / reported).is_file():
        raise ConfigError(f"Error location {reported} not found under {project_root}",
                          "pass the file to reduce with --file")
    return reported


def discover(
    path: Path,
    config: ReductionConfig,
    target_error: Optional[str] = None,
    file: Optional[Path] = None
) -> Target:
    """Build the untouched project once and establish the session target.

    Args:
        path: Project directory or source file
        config: Session configuration (command, timeout, backend, ...)
        target_error: Optional signature overriding the first error
        file: Optional target file overriding the error's primary span

    Returns:
        Target

    Raises:
        NoReproduction: If the build shows no (matching) error
        ProcessFailure: If the build tool cannot be run
    """
    project_root, path_file, default_command = resolve_project(path)
    command = list(config.command) if config.command else default_command

    if file is not None:
        file = Path(file)
        if file.is_absolute():
            try:
                file = file.resolve().relative_to(project_root)
            except ValueError as e:
                raise ConfigError(f"--file {file} is outside project {project_root}") from e
        if not (project_root / file).is_file():
            raise ConfigError(f"--file {file} not found under {project_root}")
    elif path_file is not None:
        file = path_file

    logger.info("Initial build", project=str(project_root), command=" ".join(command))

    oracle = BuildOracle(command, file or Path("."), timeout_sec=config.timeout)
    try:
        workspace = create_workspace(
            project_root,
            backend=resolve_backend(config.workspace_backend),
            ignore=config.workspace_ignore,
            env=dict(config.env)
        )
    except (OSError, shutil.Error) as e:
        raise WorkspaceIOFailure("Cannot create workspace for the initial build", str(e)) from e

    try:
        outcome = oracle.run(workspace)
        workspace_root = Path(workspace.root)
    finally:
        workspace.cleanup()

    if outcome.verdict is Verdict.PROCESS_FAILURE:
        raise ProcessFailure("Initial build could not be run", outcome.detail)
    if outcome.verdict is Verdict.TIMEOUT:
        raise NoReproduction(
            f"Initial build did not finish within {config.timeout:g}s",
            "raise --timeout if the project needs longer to check"
        )

    signature, diagnostic = select_error(outcome.diagnostics, target_error)
    target_file = file if file is not None else _target_file(project_root, workspace_root, diagnostic)

    logger.info(
        "Target error selected",
        signature=str(signature),
        location=diagnostic.location(),
        file=target_file.as_posix(),
    )
    return Target(
        project_root=project_root,
        target_file=target_file,
        command=command,
        signature=signature,
        diagnostic=diagnostic,
    )
