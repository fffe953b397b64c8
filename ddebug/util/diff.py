"""Diff generation utilities for before/after source text"""

import difflib
from typing import Dict


def generate_unified_diff(
    old_text: str,
    new_text: str,
    fromfile: str = "original",
    tofile: str = "minimized",
    context_lines: int = 3
) -> str:
    """Generate unified diff between two versions of a file.

    Args:
        old_text: Original file content
        new_text: Modified file content
        fromfile: Label for the original side
        tofile: Label for the modified side
        context_lines: Number of context lines

    Returns:
        Unified diff string (empty when the texts are identical)
    """
    if old_text == new_text:
        return ""

    diff = difflib.unified_diff(
        old_text.splitlines(keepends=True),
        new_text.splitlines(keepends=True),
        fromfile=fromfile,
        tofile=tofile,
        n=context_lines
    )
    return "".join(diff)


def count_changes(diff_text: str) -> Dict[str, int]:
    """Count additions and deletions in unified diff.

    Args:
        diff_text: Unified diff string

    Returns:
        Dict with added, deleted counts
    """
    added = 0
    deleted = 0

    for line in diff_text.split('\n'):
        if line.startswith('+') and not line.startswith('+++'):
            added += 1
        elif line.startswith('-') and not line.startswith('---'):
            deleted += 1

    return {"added": added, "deleted": deleted}


def count_lines(text: str) -> int:
    """Number of lines as an editor would show them."""
    if not text:
        return 0
    return text.count("\n") + (0 if text.endswith("\n") else 1)
