"""Build oracle - runs the build tool in a workspace and classifies the result"""

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from ..util import ResourceUsage, get_logger
from .diagnostics import Diagnostic, ErrorSignature, collect_diagnostics

logger = get_logger("ddebug.oracle")


class Verdict(Enum):
    """Classification of one trial build"""
    REPRODUCES = "reproduces"
    OTHER_ERROR = "other_error"
    NO_ERROR = "no_error"
    TIMEOUT = "timeout"
    PROCESS_FAILURE = "process_failure"

    @property
    def accepted(self) -> bool:
        return self is Verdict.REPRODUCES


@dataclass
class OracleOutcome:
    """Verdict plus the evidence it was derived from"""
    verdict: Verdict
    diagnostics: List[Diagnostic] = field(default_factory=list)
    exit_code: Optional[int] = None
    duration_sec: float = 0.0
    usage: ResourceUsage = field(default_factory=ResourceUsage)
    detail: str = ""

    def first_error(self) -> Optional[Diagnostic]:
        return next((d for d in self.diagnostics if d.is_error and not d.is_summary), None)


class BuildOracle:
    """Invokes the external build/check command and classifies its outcome.

    The oracle only ever runs inside the workspace it is handed. Setting
    ``kill_event`` makes every in-flight build stop at its next poll and
    report TIMEOUT; the session uses it at the end of a cancellation grace
    period.
    """

    def __init__(
        self,
        command: List[str],
        target_file: Path,
        timeout_sec: float = 60.0
    ):
        """Initialize build oracle.

        Args:
            command: Build command argv; ``{file}`` expands to the target path
            target_file: Target file relative to the project root
            timeout_sec: Per-build wall-clock budget
        """
        if not command:
            raise ValueError("Build command must not be empty")
        self.command = list(command)
        self.target_file = Path(target_file)
        self.timeout_sec = timeout_sec
        self.kill_event = threading.Event()

    def argv(self) -> List[str]:
        """The command with placeholders expanded."""
        file_arg = self.target_file.as_posix()
        return [arg.replace("{file}", file_arg) for arg in self.command]

    def run(self, workspace) -> OracleOutcome:
        """Run the build and collect diagnostics, without a signature.

        Used for the initial classification, where the signature is not yet
        known. The verdict is NO_ERROR or OTHER_ERROR for completed builds.
        """
        return self._run(workspace, signature=None)

    def classify(self, workspace, signature: ErrorSignature) -> OracleOutcome:
        """Run the build in ``workspace`` and classify it against ``signature``.

        Args:
            workspace: Workspace whose target file holds the candidate
            signature: Target error

        Returns:
            OracleOutcome with the verdict
        """
        return self._run(workspace, signature)

    def _run(self, workspace, signature: Optional[ErrorSignature]) -> OracleOutcome:
        start = time.monotonic()
        result = workspace.execute(
            self.argv(),
            timeout_sec=self.timeout_sec,
            abort_event=self.kill_event
        )
        duration = time.monotonic() - start

        if result.spawn_error is not None:
            return OracleOutcome(
                verdict=Verdict.PROCESS_FAILURE,
                exit_code=result.exit_code,
                duration_sec=duration,
                detail=f"Cannot run {self.command[0]}: {result.spawn_error}",
            )

        if result.interrupted:
            reason = "aborted" if result.aborted else f"exceeded {self.timeout_sec:g}s"
            logger.warning("Build interrupted", reason=reason)
            return OracleOutcome(
                verdict=Verdict.TIMEOUT,
                exit_code=result.exit_code,
                duration_sec=duration,
                usage=result.usage,
                detail=f"Build {reason}",
            )

        if result.exit_code < 0:
            # Killed by a signal we did not send.
            return OracleOutcome(
                verdict=Verdict.PROCESS_FAILURE,
                exit_code=result.exit_code,
                duration_sec=duration,
                usage=result.usage,
                detail=f"{self.command[0]} died with signal {-result.exit_code}\n{result.stderr[-2000:]}",
            )

        diagnostics = collect_diagnostics(result.stdout, result.stderr)
        verdict = self._verdict(diagnostics, result.exit_code, signature)

        return OracleOutcome(
            verdict=verdict,
            diagnostics=diagnostics,
            exit_code=result.exit_code,
            duration_sec=duration,
            usage=result.usage,
            detail=result.stderr[-2000:] if verdict is Verdict.OTHER_ERROR else "",
        )

    @staticmethod
    def _verdict(
        diagnostics: List[Diagnostic],
        exit_code: int,
        signature: Optional[ErrorSignature]
    ) -> Verdict:
        if signature is not None and any(signature.matches(d) for d in diagnostics):
            return Verdict.REPRODUCES
        if exit_code != 0 or any(d.is_error for d in diagnostics):
            return Verdict.OTHER_ERROR
        return Verdict.NO_ERROR
