"""Session controller - drives one reduction from parsed tree to final text"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Optional, Sequence

from ..config import ReductionConfig
from ..errors import DDebugError, NoReproduction, ProcessFailure
from ..oracle import BuildOracle, ErrorSignature, Verdict
from ..syntax import NodeRegistry, RustParser
from ..util import count_lines, get_logger, hash_ids
from ..workspace import WorkspaceManager
from .cache import VariantCache
from .search import HierarchicalSearch
from .state import ReductionState

logger = get_logger("ddebug.session")


class SessionStatus(Enum):
    """How a session ended"""
    MINIMIZED = "minimized"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class TrialRecord:
    """One oracle invocation"""
    fingerprint: str
    verdict: Verdict
    duration_sec: float


@dataclass
class ReductionResult:
    """Final (or best-effort) outcome of a session"""
    status: SessionStatus
    stop_reason: str
    original_text: str
    text: str
    accepted: List[int] = field(default_factory=list)
    passes: int = 0
    nodes_removed: int = 0
    trials: int = 0
    cache_hits: int = 0
    elapsed_sec: float = 0.0
    verified: Optional[bool] = None
    parses: bool = True
    error: Optional[DDebugError] = None

    @property
    def minimal(self) -> bool:
        """True if the result is certified 1-minimal."""
        return self.status is SessionStatus.MINIMIZED

    @property
    def changed(self) -> bool:
        return self.text != self.original_text

    @property
    def lines_before(self) -> int:
        return count_lines(self.original_text)

    @property
    def lines_after(self) -> int:
        return count_lines(self.text)

    @property
    def exit_code(self) -> int:
        if self.status is SessionStatus.MINIMIZED:
            return 0
        if self.status is SessionStatus.PARTIAL:
            return 3
        return self.error.exit_code if self.error else 4


class ReductionSession:
    """Owns the state, cache, workspaces, oracle and worker pool of a session.

    All of them are released together when ``run`` returns.
    """

    def __init__(
        self,
        registry: NodeRegistry,
        signature: ErrorSignature,
        workspaces: WorkspaceManager,
        oracle: BuildOracle,
        config: Optional[ReductionConfig] = None,
        parser: Optional[RustParser] = None
    ):
        """Initialize session.

        Args:
            registry: Registry of the parsed target file
            signature: Target error, fixed for the whole session
            workspaces: Workspace manager for the project
            oracle: Build oracle
            config: Session configuration
            parser: Parser used for the final sanity check
        """
        self.registry = registry
        self.signature = signature
        self.workspaces = workspaces
        self.oracle = oracle
        self.config = config or ReductionConfig()
        self.parser = parser or RustParser()

        self.state = ReductionState(registry)
        self.cache = VariantCache()
        self.cancel_event = threading.Event()
        self.cancel_reason = ""
        self.trial_log: List[TrialRecord] = []

        self._log_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._timers: List[threading.Timer] = []

    def fingerprint(self, candidate: FrozenSet[int]) -> str:
        """Deterministic identity of a removal set."""
        return hash_ids(self.registry.topmost(candidate))

    def seed_baseline(self, verdict: Verdict = Verdict.REPRODUCES):
        """Record the verdict of the unmodified file, e.g. from initial classification."""
        self.cache.seed(self.fingerprint(frozenset()), verdict)

    def cancel(self, reason: str = "cancelled"):
        """Stop dispatching trials; kill in-flight ones after the grace period."""
        if self.cancel_event.is_set():
            return
        self.cancel_reason = reason
        self.cancel_event.set()
        logger.warning("Cancelling session", reason=reason, grace_sec=self.config.grace)

        timer = threading.Timer(self.config.grace, self.oracle.kill_event.set)
        timer.daemon = True
        timer.start()
        self._timers.append(timer)

    def evaluate(self, candidate: FrozenSet[int]) -> Verdict:
        """Verdict for a removal set, from the cache or a fresh trial."""
        if self.cancel_event.is_set():
            # Not started, so never cached.
            return Verdict.TIMEOUT

        fingerprint = self.fingerprint(candidate)
        verdict, hit = self.cache.get_or_compute(
            fingerprint,
            lambda: self._run_trial(candidate, fingerprint)
        )
        if hit:
            logger.debug("Cache hit", fingerprint=fingerprint[:19], verdict=verdict.value)
        return verdict

    def _run_trial(self, candidate: FrozenSet[int], fingerprint: str) -> Verdict:
        text = self.registry.reconstruct(candidate)
        with self.workspaces.materialize(text) as workspace:
            outcome = self.oracle.classify(workspace, self.signature)

        with self._log_lock:
            self.trial_log.append(TrialRecord(fingerprint, outcome.verdict, outcome.duration_sec))

        logger.debug(
            "Trial finished",
            fingerprint=fingerprint[:19],
            removed=len(candidate),
            verdict=outcome.verdict.value,
            duration_sec=round(outcome.duration_sec, 3),
            cpu_ms=outcome.usage.cpu_ms,
            rss_max_kb=outcome.usage.rss_max_kb,
        )

        if outcome.verdict is Verdict.PROCESS_FAILURE:
            raise ProcessFailure("Build tool invocation failed", outcome.detail)
        return outcome.verdict

    def _dispatch(self, candidates: Sequence[FrozenSet[int]]) -> List[Verdict]:
        """Evaluate a window of candidates and join on all of them."""
        if self._executor is None or len(candidates) == 1:
            return [self.evaluate(candidate) for candidate in candidates]

        futures = [self._executor.submit(self.evaluate, candidate) for candidate in candidates]
        wait(futures)
        # Raises the highest-priority failure, after every trial has finished.
        return [future.result() for future in futures]

    def _start_budget_timer(self):
        if self.config.time_budget is None:
            return
        timer = threading.Timer(
            self.config.time_budget,
            self.cancel,
            kwargs={"reason": "time budget exhausted"}
        )
        timer.daemon = True
        timer.start()
        self._timers.append(timer)

    def run(self) -> ReductionResult:
        """Reduce to a fixed point, or as far as possible before a stop.

        Fatal errors are not raised: they end the session and are reported
        on the result together with the best text found so far.

        Returns:
            ReductionResult
        """
        start = time.monotonic()
        original_text = self.registry.reconstruct(())
        error: Optional[DDebugError] = None
        status = SessionStatus.FAILED
        stop_reason = ""

        logger.info(
            "Session started",
            signature=str(self.signature),
            nodes=len(self.registry),
            removable=len(self.state.live_removable()),
            concurrency=self.config.concurrency,
        )

        if self.config.concurrency > 1:
            self._executor = ThreadPoolExecutor(
                max_workers=self.config.concurrency,
                thread_name_prefix="ddebug-trial"
            )
        self._start_budget_timer()

        try:
            baseline = self.evaluate(frozenset())
            if baseline is not Verdict.REPRODUCES and not self.cancel_event.is_set():
                raise NoReproduction(
                    f"Unmodified file does not reproduce {self.signature}",
                    f"baseline verdict: {baseline.value}"
                )

            search = HierarchicalSearch(
                self.state,
                self._dispatch,
                window_size=self.config.concurrency,
                max_passes=self.config.max_passes,
                should_stop=self.cancel_event.is_set
            )
            outcome = search.run()

            if outcome.converged:
                status = SessionStatus.MINIMIZED
                stop_reason = outcome.stop_reason
            else:
                status = SessionStatus.PARTIAL
                stop_reason = self.cancel_reason or outcome.stop_reason
        except DDebugError as e:
            error = e
            stop_reason = e.message
            logger.error("Session aborted", reason=e.message, detail=e.detail)
        finally:
            if self._executor is not None:
                self._executor.shutdown(wait=True)
                self._executor = None
            for timer in self._timers:
                timer.cancel()

        text = self.state.current_text()
        result = ReductionResult(
            status=status,
            stop_reason=stop_reason,
            original_text=original_text,
            text=text,
            accepted=list(self.state.accepted),
            passes=self.state.pass_number,
            nodes_removed=self.state.nodes_removed,
            trials=len(self.trial_log),
            cache_hits=self.cache.stats.hits,
            error=error,
        )

        result.parses = self.parser.parses(text)
        if not result.parses:
            logger.warning("Minimized text no longer parses")

        if status is SessionStatus.MINIMIZED and self.config.verify and result.changed:
            result.verified = self._verify(text)

        if not self.workspaces.original_intact():
            logger.warning("Original target file changed during the session",
                           path=str(self.workspaces.target_path))

        result.elapsed_sec = time.monotonic() - start
        logger.info(
            "Session finished",
            status=status.value,
            reason=stop_reason,
            passes=result.passes,
            accepted=len(result.accepted),
            trials=result.trials,
            cache_hits=result.cache_hits,
        )
        return result

    def _verify(self, text: str) -> bool:
        """Rebuild the final text once, bypassing the cache."""
        try:
            with self.workspaces.materialize(text) as workspace:
                outcome = self.oracle.classify(workspace, self.signature)
        except DDebugError as e:
            logger.warning("Verification build failed", reason=e.message)
            return False

        if outcome.verdict is not Verdict.REPRODUCES:
            logger.error("Final result did not reproduce on rebuild", verdict=outcome.verdict.value)
            return False
        return True
