"""Build oracle and compiler diagnostics"""

from .diagnostics import (
    Diagnostic,
    ErrorSignature,
    collect_diagnostics,
    normalize_message,
    parse_human_diagnostics,
    parse_json_diagnostics,
    substantive_errors,
)
from .build import BuildOracle, OracleOutcome, Verdict

__all__ = [
    'BuildOracle',
    'OracleOutcome',
    'Verdict',
    'Diagnostic',
    'ErrorSignature',
    'collect_diagnostics',
    'normalize_message',
    'parse_human_diagnostics',
    'parse_json_diagnostics',
    'substantive_errors',
]
