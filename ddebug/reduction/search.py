"""Hierarchical delta debugging over syntax trees"""

from collections import deque
from dataclasses import dataclass
from typing import Callable, FrozenSet, List, Sequence

from ..oracle import Verdict
from ..util import get_logger
from .state import ReductionState

logger = get_logger("ddebug.search")

# Runs one window of candidates and returns their verdicts in the same order.
Dispatch = Callable[[Sequence[FrozenSet[int]]], List[Verdict]]


@dataclass
class SearchOutcome:
    """How the search ended"""
    converged: bool
    stop_reason: str
    passes: int


class HierarchicalSearch:
    """Coarse-to-fine node removal, repeated to a fixed point.

    Each pass walks the tree level by level. A level is ordered by
    descending node size, ties by document order. Removing a node is tried
    with every removal accepted so far; if the build still reproduces the
    error the node and its subtree are gone for good, otherwise the node's
    nearest removable descendants form part of the next level. Passes repeat
    until one accepts nothing, at which point every remaining removable node
    has been shown necessary on its own (1-minimality).

    Candidates of a level are dispatched in windows of ``window_size``
    against the same accepted base. Verdicts are applied in priority order;
    everything ranked after the first acceptance in a window was judged
    against a stale base and goes back into the queue. The accepted set is
    therefore the same for every window size.
    """

    def __init__(
        self,
        state: ReductionState,
        dispatch: Dispatch,
        window_size: int = 1,
        max_passes: int = 100,
        should_stop: Callable[[], bool] = lambda: False
    ):
        """Initialize search.

        Args:
            state: Reduction state to mutate
            dispatch: Evaluates a window of candidates
            window_size: Candidates evaluated per window (worker count)
            max_passes: Safety cap on passes
            should_stop: Polled between windows; True ends the search early
        """
        if window_size < 1:
            raise ValueError("window_size must be at least 1")
        self.state = state
        self.registry = state.registry
        self.dispatch = dispatch
        self.window_size = window_size
        self.max_passes = max_passes
        self.should_stop = should_stop

    def run(self) -> SearchOutcome:
        """Run passes until a fixed point, the pass cap, or a stop request.

        Returns:
            SearchOutcome; ``converged`` is True only at a fixed point
        """
        state = self.state

        while state.pass_number < self.max_passes:
            if self.should_stop():
                return SearchOutcome(False, "cancelled", state.pass_number)

            state.begin_pass()
            finished = self._run_pass()
            state.end_pass()

            logger.info(
                "Pass finished",
                pass_number=state.pass_number,
                accepted=state.accepted_in_pass,
                rejected=len(state.rejected),
                live=len(state.live_removable()),
            )

            if not finished:
                return SearchOutcome(False, "cancelled", state.pass_number)
            if state.accepted_in_pass == 0:
                return SearchOutcome(True, "fixed point", state.pass_number)

        return SearchOutcome(False, "max passes reached", state.pass_number)

    def _run_pass(self) -> bool:
        """One traversal of all live nodes, level by level.

        Returns:
            False if the pass was interrupted
        """
        root_id = self.state.tree.root_id
        level = [n for n in self.registry.candidate_children(root_id) if self.state.is_live(n)]
        depth = 0

        while level:
            depth += 1
            ordered = sorted(level, key=self.registry.priority)
            logger.debug("Scanning level", depth=depth, candidates=len(ordered))

            next_level: List[int] = []
            if not self._scan_level(ordered, next_level):
                return False
            level = next_level

        return True

    def _scan_level(self, ordered: List[int], next_level: List[int]) -> bool:
        state = self.state
        pending = deque(ordered)

        while pending:
            if self.should_stop():
                return False

            window: List[int] = []
            while pending and len(window) < self.window_size:
                node_id = pending.popleft()
                # Skip nodes inside a subtree removed earlier in this level.
                if state.is_live(node_id):
                    window.append(node_id)
            if not window:
                break

            verdicts = self.dispatch([state.candidate(node_id) for node_id in window])

            for index, (node_id, verdict) in enumerate(zip(window, verdicts)):
                if verdict.accepted:
                    state.commit(node_id)
                    logger.info(
                        "Removed node",
                        node=self.registry.describe(node_id),
                        pass_number=state.pass_number,
                    )
                    stale = window[index + 1:]
                    pending.extendleft(reversed(stale))
                    break

                state.reject(node_id)
                logger.debug(
                    "Kept node",
                    node=self.registry.describe(node_id),
                    verdict=verdict.value,
                )
                next_level.extend(
                    child for child in self.registry.candidate_children(node_id)
                    if state.is_live(child)
                )

        return True
