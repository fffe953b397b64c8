"""Trial process tracing and termination"""

import time
import psutil
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ResourceUsage:
    """Resource usage statistics"""
    cpu_ms: int = 0
    rss_max_kb: int = 0
    wall_ms: int = 0


@dataclass
class ProcessTracer:
    """Trace a build process and its children"""
    pid: Optional[int] = None
    start_time: float = field(default_factory=time.monotonic)
    _process: Optional[psutil.Process] = None
    _max_rss: int = 0
    _cpu_ms: int = 0
    _process_exists: bool = True

    def attach(self, pid: int):
        """Attach to a process for monitoring"""
        self.pid = pid
        self.start_time = time.monotonic()
        try:
            self._process = psutil.Process(pid)
            self._process_exists = True
        except psutil.NoSuchProcess:
            self._process_exists = False

    def _family(self) -> List[psutil.Process]:
        if not self._process or not self._process_exists:
            return []
        try:
            return [self._process] + self._process.children(recursive=True)
        except psutil.NoSuchProcess:
            self._process_exists = False
            return []

    def sample(self):
        """Sample memory and CPU of the process tree.

        Called periodically while waiting; the last successful sample is what
        ``get_usage`` reports, since an exited process can no longer be read.
        """
        rss = 0
        cpu_ms = 0
        for proc in self._family():
            try:
                with proc.oneshot():
                    rss += proc.memory_info().rss // 1024
                    times = proc.cpu_times()
                    cpu_ms += int((times.user + times.system) * 1000)
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        self._max_rss = max(self._max_rss, rss)
        self._cpu_ms = max(self._cpu_ms, cpu_ms)

    def kill_tree(self) -> int:
        """Kill the traced process and all of its descendants.

        Returns:
            Number of processes signalled
        """
        family = self._family()
        # Children first so the parent cannot respawn them.
        for proc in reversed(family):
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                pass
        # The root is reaped by its Popen owner, not here.
        psutil.wait_procs(family[1:], timeout=5)
        return len(family)

    def get_usage(self) -> ResourceUsage:
        """Get resource usage statistics gathered so far"""
        return ResourceUsage(
            cpu_ms=self._cpu_ms,
            rss_max_kb=self._max_rss,
            wall_ms=int((time.monotonic() - self.start_time) * 1000),
        )
