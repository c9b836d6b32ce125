"""Trust evaluation: fold hash, signature and provenance checks into one level.

The evaluator runs a fixed sequence of steps. Each step returns either
``None`` (continue) or a terminal ``Verdict``; the first verdict ends the
evaluation:

1. Hash the binary (always).
2. Checksum -- mismatch is COMPROMISED and dominates everything else.
3. Signature -- failed is UNSIGNED, unsupported or disabled is UNVERIFIED,
   absent (while enabled) is UNSIGNED.
4. Provenance -- any failure is PROVENANCE_FAIL.
5. No metadata -- UNSIGNED.
6. Otherwise VERIFIED.

Steps 3 and 4 need the network. Both go through ``_run_network_check``, so
offline degradation (error or unreachable network -> UNVERIFIED) is applied
identically to each. Outside offline mode errors propagate unchanged.

The evaluator holds no per-call state; concurrent evaluations are safe.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import httpx

from clitrust.core.trust.hashing import hash_binary_async
from clitrust.core.trust.models import (
    CheckStatus,
    Digest,
    HashCheck,
    ProvenanceCheck,
    SignatureCheck,
    TrustChecks,
    TrustEvaluationResult,
    TrustLevel,
    TrustMetadata,
    TrustSource,
    TrustVerificationOptions,
    TrustVerificationResult,
)
from clitrust.core.trust.provenance import verify_provenance
from clitrust.core.trust.signature import CosignVerifier, SignatureVerifier, verify_signature
from clitrust.exceptions import TrustError

logger = logging.getLogger(__name__)

_CheckT = TypeVar("_CheckT", SignatureCheck, ProvenanceCheck)


@dataclass(frozen=True)
class Verdict:
    """Terminal outcome of an evaluation step."""

    level: TrustLevel
    reason: str


@dataclass
class _Evaluation:
    """Per-call working state. Never shared between calls."""

    path: Path
    metadata: TrustMetadata | None
    options: TrustVerificationOptions
    digest: Digest
    hash: HashCheck | None = None
    signature: SignatureCheck | None = None
    provenance: ProvenanceCheck | None = None

    def finish(self, verdict: Verdict) -> TrustEvaluationResult:
        return TrustEvaluationResult(
            level=verdict.level,
            reason=verdict.reason,
            checks=TrustChecks(
                hash=self.hash,
                signature=self.signature,
                provenance=self.provenance,
            ),
            digest=self.digest,
        )


class TrustEvaluator:
    """Runs the trust checks for a binary and produces a trust level.

    Args:
        signature_verifier: Backend for signature checks. Defaults to
            ``CosignVerifier``; tests pass a fake.
        transport: Optional httpx transport for attestation fetches.
    """

    def __init__(
        self,
        signature_verifier: SignatureVerifier | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._signature_verifier = signature_verifier or CosignVerifier(transport=transport)
        self._transport = transport

    async def evaluate(
        self,
        path: str | Path,
        metadata: TrustMetadata | None = None,
        options: TrustVerificationOptions | None = None,
    ) -> TrustEvaluationResult:
        """Evaluate the trust level of a binary.

        Args:
            path: Absolute path to the binary.
            metadata: Trust metadata, or None when the tool has none.
            options: Caller policy; defaults apply when None.

        Returns:
            The evaluation result.

        Raises:
            TrustError: If the binary cannot be hashed, or (outside offline
                mode) a signature or provenance step fails operationally.
            ValueError: If ``options`` are out of range.
        """
        opts = options or TrustVerificationOptions()
        opts.validate()
        target = Path(path)

        digest = await hash_binary_async(target)
        state = _Evaluation(path=target, metadata=metadata, options=opts, digest=digest)

        steps: tuple[Callable[[_Evaluation], Awaitable[Verdict | None]], ...] = (
            self._check_checksum,
            self._check_signature,
            self._check_provenance,
            self._check_metadata_present,
        )
        for step in steps:
            verdict = await step(state)
            if verdict is not None:
                logger.debug("%s: %s (%s)", target, verdict.level.name, verdict.reason)
                return state.finish(verdict)

        return state.finish(Verdict(TrustLevel.VERIFIED, "Full cryptographic verification passed"))

    async def verify(
        self,
        path: str | Path,
        metadata: TrustMetadata | None = None,
        options: TrustVerificationOptions | None = None,
    ) -> TrustVerificationResult:
        """Evaluate a binary and wrap the result with tool context."""
        evaluation = await self.evaluate(path, metadata, options)
        source = metadata.source if metadata else TrustSource.COMMUNITY
        return TrustVerificationResult.from_evaluation(evaluation, source)

    # -- Steps --

    async def _check_checksum(self, state: _Evaluation) -> Verdict | None:
        expected = state.metadata.checksum if state.metadata else None
        if not expected:
            return None

        matches = state.digest.matches(expected)
        state.hash = HashCheck(
            checked=True,
            expected=expected.lower().removeprefix("sha256:"),
            actual=state.digest.hex,
            matches=matches,
        )
        if not matches:
            logger.warning("Checksum mismatch for %s", state.path)
            return Verdict(
                TrustLevel.COMPROMISED,
                "Binary hash mismatch: does not match expected checksum",
            )
        return None

    async def _check_signature(self, state: _Evaluation) -> Verdict | None:
        opts = state.options
        signature = state.metadata.signature if state.metadata else None

        if signature is None:
            if not opts.verify_signatures:
                return None
            if state.metadata is None:
                return Verdict(TrustLevel.UNSIGNED, "No trust metadata available")
            return Verdict(TrustLevel.UNSIGNED, "No cryptographic signature available")

        if not opts.verify_signatures:
            state.signature = SignatureCheck(
                status=CheckStatus.SKIPPED,
                type=signature.type,
                error="Signature verification disabled by caller",
            )
            return Verdict(TrustLevel.UNVERIFIED, "Signature verification was skipped (disabled)")

        check, degraded = await self._run_network_check(
            state,
            "Signature",
            lambda: verify_signature(
                state.path,
                signature,
                timeout=opts.network_timeout,
                verifier=self._signature_verifier,
                allowed_identities=opts.allowed_signer_identities,
                allowed_issuers=opts.allowed_issuers,
            ),
            lambda error: SignatureCheck(
                status=CheckStatus.UNREACHABLE, type=signature.type, error=error
            ),
        )
        state.signature = check
        if degraded is not None:
            return degraded
        if check.status is CheckStatus.PASSED:
            return None
        if check.status is CheckStatus.UNSUPPORTED:
            return Verdict(TrustLevel.UNVERIFIED, check.error or "Signature type not supported")
        return Verdict(TrustLevel.UNSIGNED, check.error or "Signature verification failed")

    async def _check_provenance(self, state: _Evaluation) -> Verdict | None:
        opts = state.options
        provenance = state.metadata.provenance if state.metadata else None
        if provenance is None or not opts.verify_provenance:
            return None

        check, degraded = await self._run_network_check(
            state,
            "Provenance",
            lambda: verify_provenance(
                state.path,
                provenance,
                timeout=opts.network_timeout,
                minimum_level=opts.minimum_slsa_level,
                allowed_builders=opts.allowed_builders,
                transport=self._transport,
            ),
            lambda error: ProvenanceCheck(status=CheckStatus.UNREACHABLE, error=error),
        )
        state.provenance = check
        if degraded is not None:
            return degraded
        if check.status is CheckStatus.PASSED:
            return None
        return Verdict(
            TrustLevel.PROVENANCE_FAIL,
            check.error or "SLSA provenance verification failed",
        )

    async def _check_metadata_present(self, state: _Evaluation) -> Verdict | None:
        if state.metadata is None:
            return Verdict(TrustLevel.UNSIGNED, "No trust metadata available")
        return None

    # -- Offline degradation --

    async def _run_network_check(
        self,
        state: _Evaluation,
        label: str,
        call: Callable[[], Awaitable[_CheckT]],
        degraded_check: Callable[[str], _CheckT],
    ) -> tuple[_CheckT, Verdict | None]:
        """Run a network-dependent check under the offline policy.

        In offline mode a raised ``TrustError`` or an ``unreachable`` result
        becomes UNVERIFIED. Otherwise errors propagate and results are
        returned as-is.
        """
        offline = state.options.offline_mode
        try:
            check = await call()
        except TrustError as exc:
            if not offline:
                raise
            problem = str(exc)
        else:
            if not (offline and check.status is CheckStatus.UNREACHABLE):
                return check, None
            problem = check.error or "network unreachable"

        logger.warning(
            "%s verification for %s degraded to UNVERIFIED (offline mode): %s",
            label, state.path, problem,
        )
        return (
            degraded_check(f"Offline mode: {problem}"),
            Verdict(TrustLevel.UNVERIFIED, f"{label} verification skipped (offline mode)"),
        )


async def evaluate_trust_level(
    path: str | Path,
    metadata: TrustMetadata | None = None,
    options: TrustVerificationOptions | None = None,
) -> TrustEvaluationResult:
    """Evaluate a binary with a default ``TrustEvaluator``."""
    return await TrustEvaluator().evaluate(path, metadata, options)


async def verify_trust(
    path: str | Path,
    metadata: TrustMetadata | None = None,
    options: TrustVerificationOptions | None = None,
) -> TrustVerificationResult:
    """Verify a binary with a default ``TrustEvaluator``.

    Main entry point for callers holding a binary path and its metadata.

    Example::

        result = asyncio.run(verify_trust("/usr/local/bin/gh", metadata))
        if not result.trusted:
            print(result.evaluation.reason, result.recommendation.value)
    """
    return await TrustEvaluator().verify(path, metadata, options)
