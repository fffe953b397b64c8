"""BLAKE3 digests for file integrity checks and candidate fingerprints"""

import blake3
from pathlib import Path
from typing import Iterable

CHUNK_SIZE = 1024 * 1024  # 1 MiB
PREFIX = "blake3:"


def _digest(hasher) -> str:
    return f"{PREFIX}{hasher.hexdigest()}"


def hash_file(path: Path) -> str:
    """Digest of a file's content, read in chunks.

    Args:
        path: File to hash

    Returns:
        ``blake3:``-prefixed hex digest

    Raises:
        OSError: If the file cannot be read
    """
    hasher = blake3.blake3()
    with open(path, 'rb') as f:
        while chunk := f.read(CHUNK_SIZE):
            hasher.update(chunk)
    return _digest(hasher)


def hash_bytes(data: bytes) -> str:
    """Digest of an in-memory buffer."""
    return _digest(blake3.blake3(data))


def hash_text(text: str) -> str:
    """Digest of UTF-8 encoded text, e.g. a reconstructed candidate."""
    return hash_bytes(text.encode("utf-8"))


def hash_ids(ids: Iterable[int]) -> str:
    """Order-independent digest of a set of node ids.

    Args:
        ids: Node ids; duplicates and order are ignored

    Returns:
        ``blake3:``-prefixed hex digest
    """
    canonical = ",".join(str(i) for i in sorted(set(ids)))
    return hash_bytes(canonical.encode("ascii"))


def verify_hash(path: Path, expected_hash: str) -> bool:
    """Check that a file still has the expected digest.

    Returns:
        True if it matches; False otherwise, including a missing file
    """
    try:
        return hash_file(path) == expected_hash
    except OSError:
        return False
