"""Signature verification delegated to an installed signing-identity verifier.

The engine does no signature math itself. ``verify_signature`` decides
whether a signature block can be checked at all (type support, signer
policy) and hands the actual check to a ``SignatureVerifier``. The default
verifier, ``CosignVerifier``, runs ``cosign verify-blob`` in one of two
modes:

- **Keyless** -- ``--certificate-identity`` / ``--certificate-oidc-issuer``
  against a transparency-log-backed bundle.
- **Key-based** -- ``--key`` against a detached signature or bundle.

Exactly one mode must be resolvable from the signature block.

References:
    Sigstore cosign: https://docs.sigstore.dev/cosign/verifying/verify/
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import shutil
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

import httpx

from clitrust.core.trust.models import CheckStatus, Signature, SignatureCheck, SignatureType
from clitrust.exceptions import SignatureTimeoutError, TrustError, TrustErrorCode
from clitrust.transport.http_client import FetchError, FetchTimeoutError, fetch_bytes

logger = logging.getLogger(__name__)

SUPPORTED_SIGNATURE_TYPES: frozenset[SignatureType] = frozenset({SignatureType.COSIGN})


@runtime_checkable
class SignatureVerifier(Protocol):
    """Anything that can check one signature block against one file."""

    async def verify(
        self, path: Path, signature: Signature, *, timeout: float
    ) -> SignatureCheck:
        """Verify ``signature`` over ``path`` within ``timeout`` seconds.

        Must return a ``SignatureCheck`` for verification outcomes and raise
        ``TrustError`` (``SignatureTimeoutError`` on expiry) for operational
        failures.
        """
        ...


def _is_url(value: str) -> bool:
    return value.startswith(("https://", "http://"))


class CosignVerifier:
    """``SignatureVerifier`` backed by the ``cosign`` CLI.

    Args:
        executable: Name or path of the cosign binary.
        transport: Optional httpx transport for bundle downloads.
    """

    def __init__(
        self,
        executable: str = "cosign",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._executable = executable
        self._transport = transport

    def resolve_executable(self) -> str:
        """Return the absolute path of cosign.

        Raises:
            TrustError: ``COSIGN_NOT_INSTALLED`` if it is not on PATH.
        """
        found = shutil.which(self._executable)
        if found is None:
            raise TrustError(
                "cosign CLI is not installed. Install it from "
                "https://docs.sigstore.dev/cosign/system_config/installation/",
                TrustErrorCode.COSIGN_NOT_INSTALLED,
            )
        return found

    @staticmethod
    def build_args(
        path: Path, signature: Signature, bundle_path: str | None = None
    ) -> list[str]:
        """Build the ``verify-blob`` argument list for a signature block.

        Args:
            path: The file being verified.
            signature: The signature block.
            bundle_path: Local bundle path overriding ``signature.bundle``.

        Raises:
            TrustError: ``INVALID_SIGNATURE_CONFIG`` when the mode is
                ambiguous or incomplete, or a ``*_NOT_FOUND`` code when a
                referenced local file is missing.
        """
        bundle = bundle_path or signature.bundle
        args = ["verify-blob"]

        if signature.is_key_based and signature.is_keyless:
            raise TrustError(
                "Ambiguous signature configuration: both publicKey and "
                "(identity + issuer) are set",
                TrustErrorCode.INVALID_SIGNATURE_CONFIG,
            )

        if signature.is_key_based:
            key = signature.public_key or ""
            if not Path(key).is_file():
                raise TrustError(
                    f"Public key file not found: {key}",
                    TrustErrorCode.PUBLIC_KEY_NOT_FOUND,
                )
            args += ["--key", key]
            if bundle:
                if not _is_url(bundle) and not Path(bundle).is_file():
                    raise TrustError(
                        f"Bundle file not found: {bundle}",
                        TrustErrorCode.BUNDLE_NOT_FOUND,
                    )
                args += ["--bundle", bundle]
            elif signature.signature_file:
                if not Path(signature.signature_file).is_file():
                    raise TrustError(
                        f"Signature file not found: {signature.signature_file}",
                        TrustErrorCode.SIGNATURE_FILE_NOT_FOUND,
                    )
                args += ["--signature", signature.signature_file]
            else:
                raise TrustError(
                    "Key-based verification requires either bundle or signatureFile",
                    TrustErrorCode.INVALID_SIGNATURE_CONFIG,
                )
        elif signature.is_keyless:
            args += [
                "--certificate-identity", signature.identity or "",
                "--certificate-oidc-issuer", signature.issuer or "",
            ]
            if bundle:
                args += ["--bundle", bundle]
        else:
            raise TrustError(
                "Invalid signature configuration: must provide either "
                "publicKey or (identity + issuer)",
                TrustErrorCode.INVALID_SIGNATURE_CONFIG,
            )

        args.append(str(path))
        return args

    async def verify(
        self, path: Path, signature: Signature, *, timeout: float
    ) -> SignatureCheck:
        """Run ``cosign verify-blob`` and classify its result.

        A remote bundle is downloaded first; download and subprocess share
        one ``timeout`` budget.

        Raises:
            SignatureTimeoutError: When the budget expires. The subprocess
                is killed and reaped before this is raised.
            TrustError: For missing tooling, missing files or invalid
                configuration.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        # A bad block is an error regardless of tooling.
        self.build_args(path, signature)
        executable = self.resolve_executable()
        if not path.is_file():
            raise TrustError(
                f"Target file not found: {path}",
                TrustErrorCode.BINARY_NOT_FOUND,
            )

        with tempfile.TemporaryDirectory(prefix="clitrust-") as tmp:
            bundle_path = None
            if signature.bundle and _is_url(signature.bundle):
                try:
                    data = await fetch_bytes(
                        signature.bundle,
                        timeout=max(deadline - loop.time(), 0.001),
                        transport=self._transport,
                    )
                except FetchTimeoutError as exc:
                    raise SignatureTimeoutError(timeout, exc) from exc
                except FetchError as exc:
                    return SignatureCheck(
                        status=CheckStatus.UNREACHABLE,
                        type=signature.type,
                        error=f"Failed to download signature bundle: {exc}",
                    )
                local = Path(tmp) / "signature.bundle"
                local.write_bytes(data)
                bundle_path = str(local)

            args = self.build_args(path, signature, bundle_path=bundle_path)
            remaining = max(deadline - loop.time(), 0.001)
            return await self._run(executable, args, signature, remaining, timeout)

    async def _run(
        self,
        executable: str,
        args: list[str],
        signature: Signature,
        remaining: float,
        timeout: float,
    ) -> SignatureCheck:
        logger.debug("Running %s %s", executable, " ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            return SignatureCheck(
                status=CheckStatus.FAILED,
                type=signature.type,
                error=f"Failed to execute cosign: {exc}",
            )

        try:
            stdout_b, stderr_b = await asyncio.wait_for(proc.communicate(), remaining)
        except asyncio.TimeoutError as exc:
            logger.warning("cosign timed out after %.1fs, process killed", timeout)
            raise SignatureTimeoutError(timeout, exc) from exc
        finally:
            # Also reached on cancellation; cosign must not outlive the call.
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
                await asyncio.shield(proc.wait())

        stdout = stdout_b.decode("utf-8", errors="replace")
        stderr = stderr_b.decode("utf-8", errors="replace")
        raw_output = stdout + stderr

        if proc.returncode == 0:
            return SignatureCheck(
                status=CheckStatus.PASSED,
                type=signature.type,
                identity=signature.identity if signature.is_keyless else signature.public_key,
                raw_output=raw_output,
            )
        return SignatureCheck(
            status=CheckStatus.FAILED,
            type=signature.type,
            error=stderr.strip() or stdout.strip() or f"cosign exited with code {proc.returncode}",
            raw_output=raw_output,
        )


def check_signer_policy(
    signature: Signature,
    allowed_identities: Sequence[str] = (),
    allowed_issuers: Sequence[str] = (),
) -> str | None:
    """Return a rejection reason if a keyless signer is outside policy.

    Key-based signatures carry no OIDC identity and are not subject to
    this policy.
    """
    if not signature.is_keyless:
        return None
    if allowed_identities and signature.identity not in allowed_identities:
        return f"Signer identity '{signature.identity}' is not in allowed list"
    if allowed_issuers and signature.issuer not in allowed_issuers:
        return f"OIDC issuer '{signature.issuer}' is not in allowed list"
    return None


async def verify_signature(
    path: str | Path,
    signature: Signature,
    *,
    timeout: float,
    verifier: SignatureVerifier | None = None,
    allowed_identities: Sequence[str] = (),
    allowed_issuers: Sequence[str] = (),
) -> SignatureCheck:
    """Verify a signature block over a binary.

    Args:
        path: The binary.
        signature: Signature block from trust metadata.
        timeout: Bound on the verifier call, in seconds.
        verifier: Verifier to delegate to; ``CosignVerifier`` by default.
        allowed_identities: Accepted keyless identities (empty = any).
        allowed_issuers: Accepted OIDC issuers (empty = any).

    Returns:
        ``unsupported`` for signature types with no verifier, ``failed``
        for policy rejections and bad signatures, ``passed`` otherwise.

    Raises:
        SignatureTimeoutError: If the verifier exceeds ``timeout``.
        TrustError: For operational failures.
    """
    if signature.type not in SUPPORTED_SIGNATURE_TYPES:
        logger.info("Signature type %s not supported, not attempted", signature.type.value)
        return SignatureCheck(
            status=CheckStatus.UNSUPPORTED,
            type=signature.type,
            error=f"Signature type '{signature.type.value}' not yet supported",
        )

    rejection = check_signer_policy(signature, allowed_identities, allowed_issuers)
    if rejection is not None:
        return SignatureCheck(
            status=CheckStatus.FAILED,
            type=signature.type,
            error=rejection,
        )

    verifier = verifier or CosignVerifier()
    return await verifier.verify(Path(path), signature, timeout=timeout)
