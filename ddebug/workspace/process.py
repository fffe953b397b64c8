"""Bounded subprocess execution inside a workspace"""

import os
import subprocess
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..util import ProcessTracer, ResourceUsage

POLL_INTERVAL_SEC = 0.1


@dataclass
class ExecutionResult:
    """Outcome of one build tool run"""
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    usage: ResourceUsage = field(default_factory=ResourceUsage)
    timed_out: bool = False
    aborted: bool = False
    spawn_error: Optional[str] = None

    @property
    def interrupted(self) -> bool:
        """True if the process was killed before it finished."""
        return self.timed_out or self.aborted


def run_process(
    cmd: List[str],
    cwd: Path,
    env: Optional[Dict[str, str]] = None,
    timeout_sec: float = 60.0,
    abort_event: Optional[threading.Event] = None
) -> ExecutionResult:
    """Run a command to completion, its timeout, or an abort request.

    Args:
        cmd: Command and arguments
        cwd: Working directory
        env: Environment variables added to the current environment
        timeout_sec: Wall-clock budget
        abort_event: When set, the process tree is killed at the next poll

    Returns:
        ExecutionResult; ``spawn_error`` is set if the command could not start
    """
    exec_env = os.environ.copy()
    if env:
        exec_env.update(env)

    tracer = ProcessTracer()

    try:
        proc = subprocess.Popen(
            cmd,
            cwd=str(cwd),
            env=exec_env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace"
        )
    except OSError as e:
        return ExecutionResult(exit_code=-1, stderr=str(e), spawn_error=str(e))

    tracer.attach(proc.pid)
    deadline = time.monotonic() + timeout_sec
    timed_out = False
    aborted = False

    while True:
        try:
            # Retrying communicate() after a timeout does not lose output.
            stdout, stderr = proc.communicate(timeout=POLL_INTERVAL_SEC)
            break
        except subprocess.TimeoutExpired:
            tracer.sample()
            if abort_event is not None and abort_event.is_set():
                aborted = True
            elif time.monotonic() >= deadline:
                timed_out = True
            else:
                continue

            tracer.kill_tree()
            stdout, stderr = proc.communicate()
            break

    return ExecutionResult(
        exit_code=proc.returncode,
        stdout=stdout or "",
        stderr=stderr or "",
        usage=tracer.get_usage(),
        timed_out=timed_out,
        aborted=aborted,
    )
