"""clitrust exception hierarchy.

All public exceptions inherit from ClitrustError, giving callers a single
base class to catch when they want to handle any clitrust-specific failure
without swallowing unrelated errors.

Only operational failures are exceptions. A binary that fails a check
(checksum mismatch, bad signature, wrong attestation subject) is reported
as a result, never raised.
"""

from __future__ import annotations

from enum import Enum


class ClitrustError(Exception):
    """Base exception for all clitrust errors."""


class TrustErrorCode(str, Enum):
    """Machine-readable codes attached to every ``TrustError``."""

    HASH_COMPUTATION_FAILED = "HASH_COMPUTATION_FAILED"
    BINARY_NOT_FOUND = "BINARY_NOT_FOUND"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    IS_A_DIRECTORY = "IS_A_DIRECTORY"
    COSIGN_NOT_INSTALLED = "COSIGN_NOT_INSTALLED"
    VERIFICATION_TIMEOUT = "VERIFICATION_TIMEOUT"
    ATTESTATION_FETCH_FAILED = "ATTESTATION_FETCH_FAILED"
    ATTESTATION_FETCH_TIMEOUT = "ATTESTATION_FETCH_TIMEOUT"
    ATTESTATION_PARSE_FAILED = "ATTESTATION_PARSE_FAILED"
    PUBLIC_KEY_NOT_FOUND = "PUBLIC_KEY_NOT_FOUND"
    BUNDLE_NOT_FOUND = "BUNDLE_NOT_FOUND"
    SIGNATURE_FILE_NOT_FOUND = "SIGNATURE_FILE_NOT_FOUND"
    INVALID_SIGNATURE_CONFIG = "INVALID_SIGNATURE_CONFIG"


class TrustError(ClitrustError):
    """Raised when a trust verification step cannot run to completion.

    Covers unreadable binaries, missing verifier tooling, malformed
    attestations and invalid signature configuration. The failing step is
    aborted; whether the whole evaluation fails depends on the caller's
    offline policy.

    Attributes:
        code: The ``TrustErrorCode`` classifying the failure.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        code: TrustErrorCode,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.cause = cause

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.args[0]}"


class AttestationParseError(TrustError):
    """Raised when an attestation document has an unrecognised shape.

    Distinct from a verification failure: the document could not be read
    at all, so nothing about the binary was decided.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message, TrustErrorCode.ATTESTATION_PARSE_FAILED, cause)


class TrustTimeoutError(TrustError):
    """Raised when a network-bound verification step exceeds its timeout.

    Attributes:
        timeout: The timeout that expired, in seconds.
    """

    def __init__(
        self,
        message: str,
        code: TrustErrorCode,
        timeout: float,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, code, cause)
        self.timeout = timeout


class SignatureTimeoutError(TrustTimeoutError):
    """The signature verifier subprocess did not finish in time."""

    def __init__(self, timeout: float, cause: BaseException | None = None) -> None:
        super().__init__(
            f"Signature verification timeout after {timeout:g}s",
            TrustErrorCode.VERIFICATION_TIMEOUT,
            timeout,
            cause,
        )


class ProvenanceTimeoutError(TrustTimeoutError):
    """The attestation fetch did not finish in time."""

    def __init__(self, timeout: float, cause: BaseException | None = None) -> None:
        super().__init__(
            f"SLSA attestation fetch timeout after {timeout:g}s",
            TrustErrorCode.ATTESTATION_FETCH_TIMEOUT,
            timeout,
            cause,
        )
