"""Content fingerprint of a dependency manifest."""

import hashlib
from pathlib import Path
from typing import Union

from .hash_constants import HASH_ALGORITHM, BLOCK_SIZE


def compute_fingerprint(path: Union[str, Path]) -> str:
    """
    Calculate the hash of a manifest file's raw bytes.

    Only the content is hashed: the same bytes at a different path or with
    a different mtime give the same fingerprint.

    Args:
        path: Path to the manifest file

    Returns:
        The hexadecimal hash string

    Raises:
        OSError: If the file cannot be read
    """
    hasher = hashlib.new(HASH_ALGORITHM)
    with open(path, "rb") as f:
        while True:
            chunk = f.read(BLOCK_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()
