"""Reduction engine: search, state, cache and session control"""

from .cache import CacheStats, VariantCache
from .state import ReductionState
from .search import HierarchicalSearch, SearchOutcome
from .session import ReductionResult, ReductionSession, SessionStatus, TrialRecord

__all__ = [
    'CacheStats',
    'VariantCache',
    'ReductionState',
    'HierarchicalSearch',
    'SearchOutcome',
    'ReductionResult',
    'ReductionSession',
    'SessionStatus',
    'TrialRecord',
]
