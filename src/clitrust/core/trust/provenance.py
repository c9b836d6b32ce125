"""SLSA provenance verification.

``verify_provenance`` runs a fixed, short-circuiting sequence:

1. Hash the binary.
2. Fetch the attestation under a hard timeout.
3. Parse it (DSSE envelope or raw in-toto statement).
4. Require a subject whose sha256 equals the binary digest. This is what
   stops an attestation for one binary being replayed against another.
5. Enforce the minimum SLSA level.
6. Enforce the builder allow-list.

Unreachable networks and HTTP errors are reported as results so the caller
can choose to degrade; timeouts and unparseable documents are raised.

References:
    SLSA Framework: https://slsa.dev/spec/v1.0/verifying-artifacts
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

import httpx

from clitrust.core.trust.attestation import parse_attestation
from clitrust.core.trust.hashing import hash_binary_async
from clitrust.core.trust.models import (
    AttestationDetails,
    CheckStatus,
    Provenance,
    ProvenanceCheck,
)
from clitrust.exceptions import ProvenanceTimeoutError
from clitrust.transport.http_client import FetchError, FetchTimeoutError, fetch_text

logger = logging.getLogger(__name__)

# Default bound on the attestation fetch (seconds).
DEFAULT_PROVENANCE_TIMEOUT: float = 10.0


async def verify_provenance(
    path: str | Path,
    provenance: Provenance,
    *,
    timeout: float = DEFAULT_PROVENANCE_TIMEOUT,
    minimum_level: int = 1,
    allowed_builders: Sequence[str] = (),
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProvenanceCheck:
    """Verify a SLSA provenance attestation against a binary.

    Args:
        path: The binary.
        provenance: Provenance block from trust metadata.
        timeout: Bound on the attestation fetch, in seconds.
        minimum_level: Lowest acceptable SLSA level.
        allowed_builders: Builder id substrings accepted (empty = any).
        transport: Optional httpx transport (tests use ``MockTransport``).

    Returns:
        A ``ProvenanceCheck``: ``passed``, ``failed`` (HTTP error, subject
        mismatch, level or builder below policy) or ``unreachable``.

    Raises:
        TrustError: If the binary cannot be hashed.
        ProvenanceTimeoutError: If the fetch exceeds ``timeout``.
        AttestationParseError: If the document has an unrecognised shape.
    """
    digest = await hash_binary_async(path)

    logger.debug("Fetching attestation %s", provenance.url)
    try:
        body = await fetch_text(provenance.url, timeout=timeout, transport=transport)
    except FetchTimeoutError as exc:
        raise ProvenanceTimeoutError(timeout, exc) from exc
    except FetchError as exc:
        if exc.status_code is not None:
            return ProvenanceCheck(
                status=CheckStatus.FAILED,
                error=f"Failed to fetch attestation: HTTP {exc.status_code}",
            )
        return ProvenanceCheck(
            status=CheckStatus.UNREACHABLE,
            error=f"Failed to fetch attestation: {exc}",
        )

    statement = parse_attestation(body, provenance.format)

    subject = statement.find_subject(digest.hex)
    if subject is None:
        return ProvenanceCheck(
            status=CheckStatus.FAILED,
            error=(
                "Attestation subject mismatch: no subject has sha256 "
                f"{digest.hex}"
            ),
        )

    level = statement.slsa_level if statement.slsa_level is not None else provenance.slsa_level
    builder = statement.builder or provenance.builder

    if level < minimum_level:
        return ProvenanceCheck(
            status=CheckStatus.FAILED,
            slsa_level=level,
            builder=builder,
            error=f"SLSA level {level} is below minimum required {minimum_level}",
        )

    if allowed_builders:
        if not builder or not any(allowed in builder for allowed in allowed_builders):
            return ProvenanceCheck(
                status=CheckStatus.FAILED,
                slsa_level=level,
                builder=builder,
                error=f"Builder '{builder}' is not in allowed list",
            )

    return ProvenanceCheck(
        status=CheckStatus.PASSED,
        slsa_level=level,
        builder=builder,
        attestation=AttestationDetails(
            subject=subject.name or str(path),
            predicate_type=statement.predicate_type or "unknown",
            build_type=statement.build_type,
        ),
    )
