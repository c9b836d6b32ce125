"""Streaming SHA-256 hashing of binaries.

The digest produced here is the sole identity of "which exact bytes are
being trusted". It is recomputed on every evaluation and never read from a
cache.
"""

from __future__ import annotations

import asyncio
import errno
import hashlib
import logging
from pathlib import Path

from clitrust.core.trust.models import Digest
from clitrust.exceptions import TrustError, TrustErrorCode

logger = logging.getLogger(__name__)

# Read size for the streaming accumulator (bytes).
CHUNK_SIZE: int = 8192


def hash_binary(path: str | Path) -> Digest:
    """Compute the SHA-256 digest of a file without loading it whole.

    Args:
        path: Path to the binary.

    Returns:
        The lowercase ``Digest`` of the file contents.

    Raises:
        TrustError: ``BINARY_NOT_FOUND``, ``PERMISSION_DENIED``,
            ``IS_A_DIRECTORY`` or ``HASH_COMPUTATION_FAILED``.
    """
    target = Path(path)
    hasher = hashlib.sha256()
    try:
        with target.open("rb") as fh:
            for chunk in iter(lambda: fh.read(CHUNK_SIZE), b""):
                hasher.update(chunk)
    except FileNotFoundError as exc:
        raise TrustError(
            f"Binary file not found: {target}",
            TrustErrorCode.BINARY_NOT_FOUND,
            exc,
        ) from exc
    except IsADirectoryError as exc:
        raise TrustError(
            f"Cannot hash directory: {target}",
            TrustErrorCode.IS_A_DIRECTORY,
            exc,
        ) from exc
    except PermissionError as exc:
        # Windows reports opening a directory as EACCES.
        if target.is_dir():
            raise TrustError(
                f"Cannot hash directory: {target}",
                TrustErrorCode.IS_A_DIRECTORY,
                exc,
            ) from exc
        raise TrustError(
            f"Permission denied reading binary: {target}",
            TrustErrorCode.PERMISSION_DENIED,
            exc,
        ) from exc
    except OSError as exc:
        code = (
            TrustErrorCode.IS_A_DIRECTORY
            if exc.errno == errno.EISDIR
            else TrustErrorCode.HASH_COMPUTATION_FAILED
        )
        raise TrustError(
            f"Failed to read binary for hashing: {exc}",
            code,
            exc,
        ) from exc

    digest = Digest(hex=hasher.hexdigest())
    logger.debug("Hashed %s -> %s", target, digest.formatted)
    return digest


async def hash_binary_async(path: str | Path) -> Digest:
    """Run ``hash_binary`` in a worker thread."""
    return await asyncio.to_thread(hash_binary, path)
