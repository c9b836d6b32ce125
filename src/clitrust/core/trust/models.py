"""Trust data models: levels, metadata, options, and verification results.

Defines the core data structures of the trust evaluation engine:

- ``TrustLevel`` -- Five ordered verdicts (COMPROMISED .. VERIFIED).
- ``Recommendation`` -- The agent action implied by a level.
- ``TrustMetadata`` -- Externally supplied integrity and provenance claims.
- ``Digest`` -- Canonical SHA-256 content identity of a binary.
- ``HashCheck`` / ``SignatureCheck`` / ``ProvenanceCheck`` -- Tagged
  per-check sub-results.
- ``TrustEvaluationResult`` / ``TrustVerificationResult`` -- Engine output.
- ``TrustVerificationOptions`` -- Caller policy.

Every ``to_dict`` emits the camelCase shape consumed by agent tooling.

References:
    SLSA Framework: https://slsa.dev
    in-toto Attestation Framework: https://github.com/in-toto/attestation
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any


# ---------------------------------------------------------------------------
# TrustLevel and Recommendation
# ---------------------------------------------------------------------------


class TrustLevel(IntEnum):
    """Ordered trust verdicts for a binary.

    The integer encoding is the one and only ordering: callers may compare
    levels numerically (``level >= TrustLevel.PROVENANCE_FAIL``).

    - **COMPROMISED** (0): Checksum mismatch. The bytes on disk are not the
      bytes the metadata describes.
    - **UNSIGNED** (1): No signature, a failed signature, or no trust
      metadata at all.
    - **UNVERIFIED** (2): A signature exists but was not checked (disabled,
      unsupported type, or offline).
    - **PROVENANCE_FAIL** (3): Signature passed, SLSA provenance did not.
    - **VERIFIED** (4): Every applicable check passed.
    """

    COMPROMISED = 0
    UNSIGNED = 1
    UNVERIFIED = 2
    PROVENANCE_FAIL = 3
    VERIFIED = 4


class Recommendation(str, Enum):
    """Action an agent should take for a binary at a given trust level."""

    EXECUTE = "execute"
    SANDBOX = "sandbox"
    CONFIRM = "confirm"
    BLOCK = "block"


_RECOMMENDATIONS: dict[TrustLevel, Recommendation] = {
    TrustLevel.COMPROMISED: Recommendation.BLOCK,
    TrustLevel.UNSIGNED: Recommendation.CONFIRM,
    TrustLevel.UNVERIFIED: Recommendation.SANDBOX,
    TrustLevel.PROVENANCE_FAIL: Recommendation.CONFIRM,
    TrustLevel.VERIFIED: Recommendation.EXECUTE,
}


def recommendation_for(level: TrustLevel) -> Recommendation:
    """Return the recommendation for a trust level.

    This is the only place the mapping lives; results derive their
    recommendation from here rather than storing one.
    """
    return _RECOMMENDATIONS[TrustLevel(level)]


# ---------------------------------------------------------------------------
# Trust metadata (externally supplied)
# ---------------------------------------------------------------------------


class TrustSource(str, Enum):
    """Origin of a tool's metadata, from most to least authoritative."""

    NATIVE = "native"
    VENDOR = "vendor"
    ORG = "org"
    COMMUNITY = "community"
    USER = "user"
    INFERRED = "inferred"


class SignatureType(str, Enum):
    """Signature systems a metadata block may declare."""

    COSIGN = "cosign"
    GPG = "gpg"
    MINISIGN = "minisign"


class ProvenanceFormat(str, Enum):
    """Attestation document formats a provenance block may declare."""

    SLSA_PROVENANCE_V1 = "slsa-provenance-v1"
    IN_TOTO = "in-toto"


@dataclass(frozen=True)
class Signature:
    """Signature block for a binary.

    Keyless mode uses ``identity`` + ``issuer`` (optionally a ``bundle``).
    Key mode uses ``public_key`` plus ``signature_file`` or ``bundle``.

    Attributes:
        type: Signature system.
        identity: Expected OIDC subject for keyless verification.
        issuer: Expected OIDC issuer URL for keyless verification.
        bundle: Path or https URL of a signature bundle.
        public_key: Path to a public key for key-based verification.
        signature_file: Path to a detached signature for key-based
            verification.
    """

    type: SignatureType
    identity: str | None = None
    issuer: str | None = None
    bundle: str | None = None
    public_key: str | None = None
    signature_file: str | None = None

    @property
    def is_keyless(self) -> bool:
        return bool(self.identity and self.issuer)

    @property
    def is_key_based(self) -> bool:
        return bool(self.public_key)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Signature:
        return cls(
            type=SignatureType(data["type"]),
            identity=data.get("identity"),
            issuer=data.get("issuer"),
            bundle=data.get("bundle"),
            public_key=data.get("publicKey"),
            signature_file=data.get("signatureFile"),
        )


@dataclass(frozen=True)
class Integrity:
    """Checksum and optional signature for a binary.

    Attributes:
        checksum: ``sha256:<64-hex>`` content hash expected on disk.
        signature: Cryptographic signature block.
    """

    checksum: str | None = None
    signature: Signature | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Integrity:
        signature = data.get("signature")
        return cls(
            checksum=data.get("checksum"),
            signature=Signature.from_dict(signature) if signature else None,
        )


@dataclass(frozen=True)
class Provenance:
    """Reference to a SLSA provenance attestation.

    Attributes:
        url: Location of the attestation document.
        format: Declared attestation format.
        slsa_level: SLSA level claimed by the metadata (1-4).
        builder: Builder identity claimed by the metadata.
    """

    url: str
    format: ProvenanceFormat
    slsa_level: int
    builder: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Provenance:
        return cls(
            url=data["url"],
            format=ProvenanceFormat(data["format"]),
            slsa_level=int(data["slsaLevel"]),
            builder=data.get("builder"),
        )


@dataclass(frozen=True)
class TrustMetadata:
    """Trust block of a tool's metadata, already schema-validated upstream.

    Attributes:
        source: Who produced the metadata.
        verified: Whether the metadata was checked against tool behaviour.
        integrity: Checksum and signature claims.
        provenance: SLSA provenance reference.
    """

    source: TrustSource = TrustSource.COMMUNITY
    verified: bool = False
    integrity: Integrity | None = None
    provenance: Provenance | None = None

    @property
    def checksum(self) -> str | None:
        return self.integrity.checksum if self.integrity else None

    @property
    def signature(self) -> Signature | None:
        return self.integrity.signature if self.integrity else None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrustMetadata:
        """Build metadata from a camelCase ATIP ``trust`` block.

        Args:
            data: The trust block, e.g. ``{"source": "native", ...}``.

        Returns:
            A new ``TrustMetadata``.

        Raises:
            ValueError: If an enum field holds an unknown value.
            KeyError: If a required nested field is missing.
        """
        integrity = data.get("integrity")
        provenance = data.get("provenance")
        return cls(
            source=TrustSource(data.get("source", TrustSource.COMMUNITY.value)),
            verified=bool(data.get("verified", False)),
            integrity=Integrity.from_dict(integrity) if integrity else None,
            provenance=Provenance.from_dict(provenance) if provenance else None,
        )


# ---------------------------------------------------------------------------
# Digest
# ---------------------------------------------------------------------------

_HEX_RE = re.compile(r"^[0-9a-f]{64}$")


@dataclass(frozen=True)
class Digest:
    """SHA-256 content digest, canonicalized to lowercase hex."""

    hex: str
    algorithm: str = "sha256"

    def __post_init__(self) -> None:
        object.__setattr__(self, "hex", self.hex.lower())

    @classmethod
    def parse(cls, value: str) -> Digest:
        """Parse ``sha256:<hex>`` or bare hex, case-insensitively.

        Raises:
            ValueError: If the value is not a 64-character SHA-256 hex string.
        """
        raw = value.strip()
        if raw.lower().startswith("sha256:"):
            raw = raw[len("sha256:"):]
        raw = raw.lower()
        if not _HEX_RE.match(raw):
            raise ValueError(f"Not a sha256 digest: {value!r}")
        return cls(hex=raw)

    @property
    def formatted(self) -> str:
        return f"{self.algorithm}:{self.hex}"

    def matches(self, other: str) -> bool:
        """Compare against a hex string with or without ``sha256:`` prefix."""
        candidate = other.strip().lower()
        if candidate.startswith("sha256:"):
            candidate = candidate[len("sha256:"):]
        return candidate == self.hex

    def __str__(self) -> str:
        return self.formatted


# ---------------------------------------------------------------------------
# Per-check results
# ---------------------------------------------------------------------------


class CheckStatus(str, Enum):
    """Outcome tag carried by every per-check sub-result.

    ``unsupported`` means the check was not attempted; ``unreachable`` means
    it was attempted but the network was unavailable. Neither is the same as
    ``failed``.
    """

    PASSED = "passed"
    FAILED = "failed"
    UNSUPPORTED = "unsupported"
    UNREACHABLE = "unreachable"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class HashCheck:
    """Result of comparing the computed digest to the expected checksum."""

    checked: bool
    expected: str | None = None
    actual: str | None = None
    matches: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "checked": self.checked,
            "expected": self.expected,
            "actual": self.actual,
            "matches": self.matches,
        })


@dataclass(frozen=True)
class SignatureCheck:
    """Result of a signature verification attempt.

    Attributes:
        status: Outcome tag.
        type: Signature system that was (or would have been) used.
        identity: Verified signer identity, on success.
        error: Failure or skip reason.
        raw_output: Verifier stdout + stderr, for debugging.
    """

    status: CheckStatus
    type: SignatureType
    identity: str | None = None
    error: str | None = None
    raw_output: str | None = None

    @property
    def verified(self) -> bool:
        return self.status is CheckStatus.PASSED

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "verified": self.verified,
            "status": self.status.value,
            "type": self.type.value,
            "identity": self.identity,
            "error": self.error,
            "rawOutput": self.raw_output,
        })


@dataclass(frozen=True)
class AttestationDetails:
    """Summary of the attestation that satisfied a provenance check."""

    subject: str
    predicate_type: str
    build_type: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "subject": self.subject,
            "predicateType": self.predicate_type,
            "buildType": self.build_type,
        }


@dataclass(frozen=True)
class ProvenanceCheck:
    """Result of a SLSA provenance verification attempt.

    Attributes:
        status: Outcome tag.
        slsa_level: SLSA level derived from the attestation.
        builder: Builder identity derived from the attestation.
        error: Failure reason.
        attestation: Details of the matching attestation, on success.
    """

    status: CheckStatus
    slsa_level: int | None = None
    builder: str | None = None
    error: str | None = None
    attestation: AttestationDetails | None = None

    @property
    def verified(self) -> bool:
        return self.status is CheckStatus.PASSED

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "verified": self.verified,
            "status": self.status.value,
            "slsaLevel": self.slsa_level,
            "builder": self.builder,
            "error": self.error,
            "attestation": self.attestation.to_dict() if self.attestation else None,
        })


@dataclass(frozen=True)
class TrustChecks:
    """Audit record of every check an evaluation ran.

    Downstream components must not branch on this; it exists for logs and
    debugging only.
    """

    hash: HashCheck | None = None
    signature: SignatureCheck | None = None
    provenance: ProvenanceCheck | None = None

    def to_dict(self) -> dict[str, Any]:
        return _compact({
            "hash": self.hash.to_dict() if self.hash else None,
            "signature": self.signature.to_dict() if self.signature else None,
            "provenance": self.provenance.to_dict() if self.provenance else None,
        })


# ---------------------------------------------------------------------------
# Evaluation output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TrustEvaluationResult:
    """Final verdict of one evaluation.

    Attributes:
        level: The trust level reached.
        reason: Human-readable explanation of the level.
        checks: Per-check audit record.
        digest: Digest of the binary computed during this evaluation.
    """

    level: TrustLevel
    reason: str
    checks: TrustChecks
    digest: Digest

    @property
    def recommendation(self) -> Recommendation:
        return recommendation_for(self.level)

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": int(self.level),
            "levelName": self.level.name,
            "reason": self.reason,
            "checks": self.checks.to_dict(),
            "recommendation": self.recommendation.value,
        }


@dataclass(frozen=True)
class TrustVerificationResult:
    """Caller-facing result combining the evaluation with tool context.

    Attributes:
        level: Same as ``evaluation.level``.
        trusted: True only for ``TrustLevel.VERIFIED``.
        evaluation: Full evaluation detail.
        source: Metadata source (``community`` when no metadata).
        binary_hash: Lowercase hex SHA-256 of the binary.
    """

    level: TrustLevel
    trusted: bool
    evaluation: TrustEvaluationResult
    source: TrustSource
    binary_hash: str

    @classmethod
    def from_evaluation(
        cls,
        evaluation: TrustEvaluationResult,
        source: TrustSource,
    ) -> TrustVerificationResult:
        return cls(
            level=evaluation.level,
            trusted=evaluation.level == TrustLevel.VERIFIED,
            evaluation=evaluation,
            source=source,
            binary_hash=evaluation.digest.hex,
        )

    @property
    def recommendation(self) -> Recommendation:
        return self.evaluation.recommendation

    def to_dict(self) -> dict[str, Any]:
        return {
            "level": int(self.level),
            "trusted": self.trusted,
            "evaluation": self.evaluation.to_dict(),
            "source": self.source.value,
            "binaryHash": self.binary_hash,
        }


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------

DEFAULT_NETWORK_TIMEOUT_MS: int = 30_000


@dataclass(frozen=True)
class TrustVerificationOptions:
    """Caller policy for an evaluation.

    Attributes:
        verify_signatures: Run signature verification when a block exists.
        verify_provenance: Run provenance verification when a block exists.
        minimum_slsa_level: Lowest acceptable SLSA level (>= 1).
        allowed_builders: Builder id substrings accepted; empty means any.
        allowed_signer_identities: Keyless identities accepted; empty
            means any.
        allowed_issuers: OIDC issuers accepted; empty means any.
        network_timeout_ms: Bound on each subprocess call and HTTP fetch.
        offline_mode: Degrade network-dependent failures to UNVERIFIED
            instead of raising.
    """

    verify_signatures: bool = True
    verify_provenance: bool = True
    minimum_slsa_level: int = 1
    allowed_builders: tuple[str, ...] = ()
    allowed_signer_identities: tuple[str, ...] = ()
    allowed_issuers: tuple[str, ...] = ()
    network_timeout_ms: int = DEFAULT_NETWORK_TIMEOUT_MS
    offline_mode: bool = False

    @property
    def network_timeout(self) -> float:
        """Network timeout in seconds."""
        return self.network_timeout_ms / 1000.0

    def validate(self) -> None:
        """Raise ValueError if the options are out of range."""
        if self.minimum_slsa_level < 1:
            raise ValueError(
                f"minimum_slsa_level must be >= 1, got {self.minimum_slsa_level}"
            )
        if self.network_timeout_ms <= 0:
            raise ValueError(
                f"network_timeout_ms must be positive, got {self.network_timeout_ms}"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TrustVerificationOptions:
        """Build options from camelCase keys; missing keys keep defaults."""
        defaults = cls()
        return cls(
            verify_signatures=bool(data.get("verifySignatures", defaults.verify_signatures)),
            verify_provenance=bool(data.get("verifyProvenance", defaults.verify_provenance)),
            minimum_slsa_level=int(data.get("minimumSlsaLevel", defaults.minimum_slsa_level)),
            allowed_builders=tuple(data.get("allowedBuilders", ())),
            allowed_signer_identities=tuple(data.get("allowedSignerIdentities", ())),
            allowed_issuers=tuple(data.get("allowedIssuers", ())),
            network_timeout_ms=int(data.get("networkTimeoutMs", defaults.network_timeout_ms)),
            offline_mode=bool(data.get("offlineMode", defaults.offline_mode)),
        )


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}
