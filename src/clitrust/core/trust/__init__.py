"""Trust evaluation engine for agent-discovered CLI binaries.

This package decides whether an exact binary can be trusted, chaining
content hashing, delegated signature verification and SLSA provenance
into one ordered ``TrustLevel`` with a recommendation.

Submodules:
    models       -- TrustLevel, Recommendation, metadata, options, results
    hashing      -- Streaming SHA-256 of a binary
    signature    -- SignatureVerifier protocol, CosignVerifier
    attestation  -- DSSE / in-toto statement parsing
    provenance   -- SLSA provenance verification
    evaluator    -- TrustEvaluator (ordered, short-circuiting evaluation)

All public names are re-exported here so callers can write
``from clitrust.core.trust import verify_trust``.
"""

from clitrust.core.trust.models import (
    AttestationDetails,
    CheckStatus,
    Digest,
    HashCheck,
    Integrity,
    Provenance,
    ProvenanceCheck,
    ProvenanceFormat,
    Recommendation,
    Signature,
    SignatureCheck,
    SignatureType,
    TrustChecks,
    TrustEvaluationResult,
    TrustLevel,
    TrustMetadata,
    TrustSource,
    TrustVerificationOptions,
    TrustVerificationResult,
    recommendation_for,
)
from clitrust.core.trust.hashing import hash_binary, hash_binary_async
from clitrust.core.trust.signature import (
    CosignVerifier,
    SignatureVerifier,
    verify_signature,
)
from clitrust.core.trust.attestation import (
    AttestationStatement,
    AttestationSubject,
    parse_attestation,
)
from clitrust.core.trust.provenance import verify_provenance
from clitrust.core.trust.evaluator import (
    TrustEvaluator,
    Verdict,
    evaluate_trust_level,
    verify_trust,
)

__all__ = [
    "AttestationDetails",
    "AttestationStatement",
    "AttestationSubject",
    "CheckStatus",
    "CosignVerifier",
    "Digest",
    "HashCheck",
    "Integrity",
    "Provenance",
    "ProvenanceCheck",
    "ProvenanceFormat",
    "Recommendation",
    "Signature",
    "SignatureCheck",
    "SignatureType",
    "SignatureVerifier",
    "TrustChecks",
    "TrustEvaluationResult",
    "TrustEvaluator",
    "TrustLevel",
    "TrustMetadata",
    "TrustSource",
    "TrustVerificationOptions",
    "TrustVerificationResult",
    "Verdict",
    "evaluate_trust_level",
    "hash_binary",
    "hash_binary_async",
    "parse_attestation",
    "recommendation_for",
    "verify_provenance",
    "verify_signature",
    "verify_trust",
]
