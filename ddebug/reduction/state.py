"""Reduction state - the single owner of accepted removals"""

from typing import FrozenSet, List, Set

from ..syntax import NodeRegistry, SyntaxTree


class ReductionState:
    """Current tree, accepted removals and pass counters for one session.

    Only the search commits removals, and only at join points, so worker
    threads never see it change under them.
    """

    def __init__(self, registry: NodeRegistry):
        self.registry = registry
        self.accepted: List[int] = []
        self.rejected: Set[int] = set()
        self.pass_number = 0
        self.accepted_in_pass = 0
        self.pass_history: List[int] = []
        self._accepted_set: Set[int] = set()
        self._removed: Set[int] = set()

    @property
    def tree(self) -> SyntaxTree:
        return self.registry.tree

    @property
    def nodes_removed(self) -> int:
        """Nodes elided so far, counting whole subtrees."""
        return len(self._removed)

    def is_live(self, node_id: int) -> bool:
        """True if the node is still part of the current tree."""
        return node_id not in self._removed

    def candidate(self, node_id: int) -> FrozenSet[int]:
        """Accepted removals plus one more node."""
        return frozenset(self._accepted_set | {node_id})

    def commit(self, node_id: int):
        """Remove a node and its subtree from the current tree.

        Removals accepted earlier inside the subtree are subsumed by it, so
        ``accepted`` only ever holds topmost nodes.

        Raises:
            ValueError: If the node was already removed
        """
        if not self.is_live(node_id):
            raise ValueError(f"Node {node_id} is already removed")
        descendants = self.registry.descendants(node_id)
        subsumed = self._accepted_set.intersection(descendants)
        if subsumed:
            self.accepted = [a for a in self.accepted if a not in subsumed]
            self._accepted_set.difference_update(subsumed)
        self.accepted.append(node_id)
        self._accepted_set.add(node_id)
        self._removed.add(node_id)
        self._removed.update(descendants)
        self.accepted_in_pass += 1

    def reject(self, node_id: int):
        self.rejected.add(node_id)

    def begin_pass(self):
        self.pass_number += 1
        self.accepted_in_pass = 0
        self.rejected.clear()

    def end_pass(self):
        self.pass_history.append(self.accepted_in_pass)

    def live_removable(self) -> List[int]:
        """Removable nodes still present in the current tree."""
        return [
            node.id for node in self.tree.nodes
            if node.removable and self.is_live(node.id)
        ]

    def current_text(self) -> str:
        """Source text of the current tree."""
        return self.registry.reconstruct(self._accepted_set)
