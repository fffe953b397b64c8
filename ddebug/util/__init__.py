"""Utility modules"""

from .hashing import hash_file, hash_bytes, hash_text, hash_ids, verify_hash
from .trace import ResourceUsage, ProcessTracer
from .diff import generate_unified_diff, count_changes, count_lines
from .logger import (
    StructuredLogger, LogLevel, LogEntry,
    get_logger, configure_logging
)

__all__ = [
    'hash_file',
    'hash_bytes',
    'hash_text',
    'hash_ids',
    'verify_hash',
    'ResourceUsage',
    'ProcessTracer',
    'generate_unified_diff',
    'count_changes',
    'count_lines',
    'StructuredLogger',
    'LogLevel',
    'LogEntry',
    'get_logger',
    'configure_logging',
]
