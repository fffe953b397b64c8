"""Variant cache - memoized oracle verdicts keyed by candidate fingerprint"""

import threading
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from ..oracle import Verdict


@dataclass
class CacheStats:
    """Cache counters"""
    hits: int = 0
    misses: int = 0
    seeded: int = 0


class VariantCache:
    """Session-scoped fingerprint -> verdict store (thread-safe).

    ``get_or_compute`` guarantees each fingerprint is computed at most once:
    a second caller asking for a fingerprint that is being computed waits
    for the first caller's result instead of starting another build.
    """

    def __init__(self):
        self._entries: Dict[str, Verdict] = {}
        self._inflight: Dict[str, threading.Event] = {}
        self._lock = threading.Lock()
        self.stats = CacheStats()
        self.computed: Counter = Counter()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, fingerprint: str) -> bool:
        with self._lock:
            return fingerprint in self._entries

    def get(self, fingerprint: str) -> Optional[Verdict]:
        with self._lock:
            return self._entries.get(fingerprint)

    def put(self, fingerprint: str, verdict: Verdict):
        with self._lock:
            self._entries[fingerprint] = verdict

    def seed(self, fingerprint: str, verdict: Verdict):
        """Store a verdict established outside the session."""
        with self._lock:
            self._entries[fingerprint] = verdict
            self.stats.seeded += 1

    def get_or_compute(
        self,
        fingerprint: str,
        compute: Callable[[], Verdict]
    ) -> Tuple[Verdict, bool]:
        """Return the cached verdict or compute and store it.

        Args:
            fingerprint: Candidate fingerprint
            compute: Runs the oracle; exceptions propagate and nothing is stored

        Returns:
            (verdict, hit) where hit is True if no computation was needed
        """
        while True:
            with self._lock:
                if fingerprint in self._entries:
                    self.stats.hits += 1
                    return self._entries[fingerprint], True

                event = self._inflight.get(fingerprint)
                owner = event is None
                if owner:
                    event = threading.Event()
                    self._inflight[fingerprint] = event

            if not owner:
                # Re-check afterwards: the owner may have failed.
                event.wait()
                continue

            try:
                verdict = compute()
                with self._lock:
                    self._entries[fingerprint] = verdict
                    self.stats.misses += 1
                    self.computed[fingerprint] += 1
                return verdict, False
            finally:
                with self._lock:
                    self._inflight.pop(fingerprint, None)
                event.set()

    def clear(self):
        """Drop all entries"""
        with self._lock:
            self._entries.clear()
            self.computed.clear()
            self.stats = CacheStats()
