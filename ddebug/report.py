"""Result reporting and write-back of the minimized file"""

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from .reduction import ReductionResult, SessionStatus
from .util import count_changes, generate_unified_diff, get_logger, hash_text, verify_hash

logger = get_logger("ddebug.report")


@dataclass
class WriteBackResult:
    """Result of writing the minimized text"""
    written: bool
    path: Optional[Path] = None
    error: str = ""


def render_summary(result: ReductionResult, target_file: Path, signature: str) -> str:
    """Human-readable summary of a session.

    Args:
        result: Session result
        target_file: Reduced file
        signature: Target error signature

    Returns:
        Multi-line summary text
    """
    lines = [
        f"Target:   {target_file.as_posix()}",
        f"Error:    {signature}",
        f"Status:   {result.status.value} ({result.stop_reason})",
        f"Lines:    {result.lines_before} -> {result.lines_after}",
        f"Bytes:    {len(result.original_text.encode('utf-8'))} -> {len(result.text.encode('utf-8'))}",
        f"Removed:  {len(result.accepted)} node(s), {result.nodes_removed} including subtrees",
        f"Passes:   {result.passes}",
        f"Trials:   {result.trials} build(s), {result.cache_hits} cache hit(s)",
        f"Elapsed:  {result.elapsed_sec:.1f}s",
    ]

    if result.verified is not None:
        lines.append(f"Verified: {'yes' if result.verified else 'NO - result did not reproduce on rebuild'}")
    if not result.parses:
        lines.append("Warning:  minimized text does not parse")
    if result.status is SessionStatus.PARTIAL:
        lines.append("Note:     partial result, not guaranteed 1-minimal")
    if result.error is not None:
        lines.append(f"Error:    {result.error.describe()}")

    return "\n".join(lines)


def render_diff(result: ReductionResult, target_file: Path) -> str:
    """Unified diff from the original to the minimized text."""
    name = target_file.as_posix()
    diff = generate_unified_diff(
        result.original_text,
        result.text,
        fromfile=f"a/{name}",
        tofile=f"b/{name}"
    )
    if diff:
        changes = count_changes(diff)
        logger.debug("Diff rendered", added=changes["added"], deleted=changes["deleted"])
    return diff


def write_back(
    result: ReductionResult,
    destination: Path,
    original_path: Optional[Path] = None,
    expected_hash: Optional[str] = None,
    confirm: Optional[Callable[[str], bool]] = None,
    dry_run: bool = False
) -> WriteBackResult:
    """Write the minimized text to ``destination``.

    Args:
        result: Session result
        destination: File to write; may be the original target file
        original_path: Original target file, checked before overwriting it
        expected_hash: Hash the original must still have
        confirm: Asked before writing; returning False cancels
        dry_run: If True, don't actually write

    Returns:
        WriteBackResult with status and details
    """
    destination = Path(destination)

    if result.error is not None:
        return WriteBackResult(written=False, path=destination, error="Session failed; not writing a result")

    if not result.changed:
        return WriteBackResult(written=False, path=destination, error="Nothing was removed")

    if not result.parses:
        return WriteBackResult(
            written=False,
            path=destination,
            error="Minimized text does not parse; not writing it"
        )
    if result.verified is False:
        return WriteBackResult(
            written=False,
            path=destination,
            error="Minimized text did not reproduce on rebuild; not writing it"
        )

    overwriting = original_path is not None and destination.resolve() == Path(original_path).resolve()
    if overwriting and expected_hash and not verify_hash(destination, expected_hash):
        return WriteBackResult(
            written=False,
            path=destination,
            error=f"{destination} changed during the session; not overwriting it"
        )

    if dry_run:
        return WriteBackResult(written=False, path=destination, error="Dry run - nothing written")

    if confirm is not None and not confirm(f"Overwrite {destination}?" if overwriting else f"Write {destination}?"):
        return WriteBackResult(written=False, path=destination, error="Cancelled")

    # Atomic write: write to temp, then rename
    destination.parent.mkdir(parents=True, exist_ok=True)
    temp_file = destination.parent / f".{destination.name}.tmp"
    try:
        temp_file.write_text(result.text, encoding="utf-8")
        temp_file.replace(destination)
    except OSError as e:
        if temp_file.exists():
            temp_file.unlink()
        return WriteBackResult(written=False, path=destination, error=f"Failed to write: {e}")

    logger.info("Minimized file written", path=str(destination), hash=hash_text(result.text)[:19])
    return WriteBackResult(written=True, path=destination)


def ask_yes_no(question: str) -> bool:
    """Interactive confirmation on the terminal."""
    try:
        answer = input(f"{question} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")
