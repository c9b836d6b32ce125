"""Tests for signature verification.

The cosign backend is exercised against a fake ``cosign`` shell script so
argument building, exit-code handling and timeouts run through a real
subprocess.
"""

from __future__ import annotations

import asyncio
import os
import time
from pathlib import Path

import pytest

from clitrust.core.trust import (
    CheckStatus,
    CosignVerifier,
    Signature,
    SignatureType,
    SignatureVerifier,
    verify_signature,
)
from clitrust.core.trust.signature import check_signer_policy
from clitrust.exceptions import SignatureTimeoutError, TrustError, TrustErrorCode
from tests.core.trust.helpers import (
    GITHUB_ISSUER,
    RELEASE_IDENTITY,
    FakeSignatureVerifier,
    failing_transport,
    text_transport,
    write_fake_cosign,
)

KEYLESS = Signature(
    type=SignatureType.COSIGN,
    identity=RELEASE_IDENTITY,
    issuer=GITHUB_ISSUER,
)


@pytest.fixture
def key_files(tmp_path: Path) -> tuple[Path, Path]:
    """Create a public key and detached signature file."""
    key = tmp_path / "cosign.pub"
    key.write_text("-----BEGIN PUBLIC KEY-----\n-----END PUBLIC KEY-----\n")
    sig = tmp_path / "gh.sig"
    sig.write_text("MEUCIQ==")
    return key, sig


def _run(coro):
    return asyncio.run(coro)


class TestBuildArgs:
    """Tests for cosign argument construction and mode resolution."""

    def test_keyless(self, binary: Path) -> None:
        args = CosignVerifier.build_args(binary, KEYLESS)
        assert args == [
            "verify-blob",
            "--certificate-identity", RELEASE_IDENTITY,
            "--certificate-oidc-issuer", GITHUB_ISSUER,
            str(binary),
        ]

    def test_keyless_with_bundle(self, binary: Path, tmp_path: Path) -> None:
        bundle = tmp_path / "gh.bundle"
        sig = Signature(
            type=SignatureType.COSIGN,
            identity=RELEASE_IDENTITY,
            issuer=GITHUB_ISSUER,
            bundle=str(bundle),
        )
        args = CosignVerifier.build_args(binary, sig)
        assert args[-3:] == ["--bundle", str(bundle), str(binary)]

    def test_key_with_signature_file(
        self, binary: Path, key_files: tuple[Path, Path]
    ) -> None:
        key, sig_file = key_files
        sig = Signature(
            type=SignatureType.COSIGN,
            public_key=str(key),
            signature_file=str(sig_file),
        )
        args = CosignVerifier.build_args(binary, sig)
        assert args == [
            "verify-blob", "--key", str(key), "--signature", str(sig_file), str(binary)
        ]

    def test_key_prefers_bundle(
        self, binary: Path, key_files: tuple[Path, Path], tmp_path: Path
    ) -> None:
        key, sig_file = key_files
        bundle = tmp_path / "gh.bundle"
        bundle.write_text("{}")
        sig = Signature(
            type=SignatureType.COSIGN,
            public_key=str(key),
            signature_file=str(sig_file),
            bundle=str(bundle),
        )
        args = CosignVerifier.build_args(binary, sig)
        assert "--bundle" in args
        assert "--signature" not in args

    def test_ambiguous_mode_is_config_error(
        self, binary: Path, key_files: tuple[Path, Path]
    ) -> None:
        key, sig_file = key_files
        sig = Signature(
            type=SignatureType.COSIGN,
            identity=RELEASE_IDENTITY,
            issuer=GITHUB_ISSUER,
            public_key=str(key),
            signature_file=str(sig_file),
        )
        with pytest.raises(TrustError) as excinfo:
            CosignVerifier.build_args(binary, sig)
        assert excinfo.value.code is TrustErrorCode.INVALID_SIGNATURE_CONFIG

    def test_no_mode_is_config_error(self, binary: Path) -> None:
        sig = Signature(type=SignatureType.COSIGN, identity=RELEASE_IDENTITY)
        with pytest.raises(TrustError) as excinfo:
            CosignVerifier.build_args(binary, sig)
        assert excinfo.value.code is TrustErrorCode.INVALID_SIGNATURE_CONFIG

    def test_key_mode_without_signature_file(
        self, binary: Path, key_files: tuple[Path, Path]
    ) -> None:
        key, _ = key_files
        sig = Signature(type=SignatureType.COSIGN, public_key=str(key))
        with pytest.raises(TrustError) as excinfo:
            CosignVerifier.build_args(binary, sig)
        assert excinfo.value.code is TrustErrorCode.INVALID_SIGNATURE_CONFIG

    def test_missing_public_key(self, binary: Path, tmp_path: Path) -> None:
        sig = Signature(
            type=SignatureType.COSIGN,
            public_key=str(tmp_path / "absent.pub"),
            signature_file=str(tmp_path / "absent.sig"),
        )
        with pytest.raises(TrustError) as excinfo:
            CosignVerifier.build_args(binary, sig)
        assert excinfo.value.code is TrustErrorCode.PUBLIC_KEY_NOT_FOUND

    def test_missing_signature_file(
        self, binary: Path, key_files: tuple[Path, Path], tmp_path: Path
    ) -> None:
        key, _ = key_files
        sig = Signature(
            type=SignatureType.COSIGN,
            public_key=str(key),
            signature_file=str(tmp_path / "absent.sig"),
        )
        with pytest.raises(TrustError) as excinfo:
            CosignVerifier.build_args(binary, sig)
        assert excinfo.value.code is TrustErrorCode.SIGNATURE_FILE_NOT_FOUND

    def test_missing_bundle(
        self, binary: Path, key_files: tuple[Path, Path], tmp_path: Path
    ) -> None:
        key, _ = key_files
        sig = Signature(
            type=SignatureType.COSIGN,
            public_key=str(key),
            bundle=str(tmp_path / "absent.bundle"),
        )
        with pytest.raises(TrustError) as excinfo:
            CosignVerifier.build_args(binary, sig)
        assert excinfo.value.code is TrustErrorCode.BUNDLE_NOT_FOUND


class TestCosignVerifier:
    """Tests for CosignVerifier against a fake cosign executable."""

    def test_is_a_signature_verifier(self) -> None:
        assert isinstance(CosignVerifier(), SignatureVerifier)

    def test_success(self, binary: Path, tmp_path: Path) -> None:
        cosign = write_fake_cosign(tmp_path, 'echo "Verified OK" >&2\nexit 0')
        check = _run(CosignVerifier(str(cosign)).verify(binary, KEYLESS, timeout=5))
        assert check.status is CheckStatus.PASSED
        assert check.verified
        assert check.identity == RELEASE_IDENTITY
        assert "Verified OK" in (check.raw_output or "")

    def test_key_mode_identity_is_key_path(
        self, binary: Path, tmp_path: Path, key_files: tuple[Path, Path]
    ) -> None:
        key, sig_file = key_files
        cosign = write_fake_cosign(tmp_path, "exit 0")
        sig = Signature(
            type=SignatureType.COSIGN,
            public_key=str(key),
            signature_file=str(sig_file),
        )
        check = _run(CosignVerifier(str(cosign)).verify(binary, sig, timeout=5))
        assert check.identity == str(key)

    def test_passes_arguments(self, binary: Path, tmp_path: Path) -> None:
        record = tmp_path / "args.txt"
        cosign = write_fake_cosign(tmp_path, f'echo "$@" > "{record}"\nexit 0')
        _run(CosignVerifier(str(cosign)).verify(binary, KEYLESS, timeout=5))
        recorded = record.read_text()
        assert recorded.startswith("verify-blob --certificate-identity")
        assert str(binary) in recorded

    def test_failure_reports_stderr(self, binary: Path, tmp_path: Path) -> None:
        cosign = write_fake_cosign(
            tmp_path, 'echo "Error: none of the expected identities matched" >&2\nexit 1'
        )
        check = _run(CosignVerifier(str(cosign)).verify(binary, KEYLESS, timeout=5))
        assert check.status is CheckStatus.FAILED
        assert not check.verified
        assert "none of the expected identities matched" in (check.error or "")

    def test_failure_without_output(self, binary: Path, tmp_path: Path) -> None:
        cosign = write_fake_cosign(tmp_path, "exit 3")
        check = _run(CosignVerifier(str(cosign)).verify(binary, KEYLESS, timeout=5))
        assert check.error == "cosign exited with code 3"

    def test_timeout_kills_process(self, binary: Path, tmp_path: Path) -> None:
        cosign = write_fake_cosign(tmp_path, "exec sleep 30")
        started = time.monotonic()
        with pytest.raises(SignatureTimeoutError) as excinfo:
            _run(CosignVerifier(str(cosign)).verify(binary, KEYLESS, timeout=0.3))
        assert time.monotonic() - started < 10
        assert excinfo.value.code is TrustErrorCode.VERIFICATION_TIMEOUT

    def test_cancel_kills_process(self, binary: Path, tmp_path: Path) -> None:
        pid_file = tmp_path / "cosign.pid"
        cosign = write_fake_cosign(tmp_path, f'echo $$ > "{pid_file}"\nexec sleep 30')

        async def cancel_mid_run() -> int:
            task = asyncio.create_task(
                CosignVerifier(str(cosign)).verify(binary, KEYLESS, timeout=20)
            )
            for _ in range(200):
                if pid_file.exists() and pid_file.read_text().strip():
                    break
                await asyncio.sleep(0.02)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return int(pid_file.read_text().strip())

        pid = _run(cancel_mid_run())
        with pytest.raises(ProcessLookupError):
            os.kill(pid, 0)

    def test_not_installed(self, binary: Path, tmp_path: Path) -> None:
        verifier = CosignVerifier(str(tmp_path / "no-such-cosign"))
        with pytest.raises(TrustError) as excinfo:
            _run(verifier.verify(binary, KEYLESS, timeout=5))
        assert excinfo.value.code is TrustErrorCode.COSIGN_NOT_INSTALLED

    def test_missing_target(self, tmp_path: Path) -> None:
        cosign = write_fake_cosign(tmp_path, "exit 0")
        with pytest.raises(TrustError) as excinfo:
            _run(CosignVerifier(str(cosign)).verify(tmp_path / "gone", KEYLESS, timeout=5))
        assert excinfo.value.code is TrustErrorCode.BINARY_NOT_FOUND

    def test_config_error_raised_before_tool_lookup(self, binary: Path, tmp_path: Path) -> None:
        verifier = CosignVerifier(str(tmp_path / "no-such-cosign"))
        sig = Signature(type=SignatureType.COSIGN)
        with pytest.raises(TrustError) as excinfo:
            _run(verifier.verify(binary, sig, timeout=5))
        assert excinfo.value.code is TrustErrorCode.INVALID_SIGNATURE_CONFIG

    def test_remote_bundle_is_downloaded(self, binary: Path, tmp_path: Path) -> None:
        record = tmp_path / "bundle-copy"
        cosign = write_fake_cosign(
            tmp_path,
            'while [ "$#" -gt 0 ]; do\n'
            '  if [ "$1" = "--bundle" ]; then cp "$2" "' + str(record) + '"; fi\n'
            "  shift\n"
            "done\n"
            "exit 0",
        )
        sig = Signature(
            type=SignatureType.COSIGN,
            identity=RELEASE_IDENTITY,
            issuer=GITHUB_ISSUER,
            bundle="https://example.com/gh.bundle",
        )
        verifier = CosignVerifier(str(cosign), transport=text_transport('{"bundle": 1}'))
        check = _run(verifier.verify(binary, sig, timeout=5))
        assert check.status is CheckStatus.PASSED
        assert record.read_text() == '{"bundle": 1}'

    def test_remote_bundle_unreachable(self, binary: Path, tmp_path: Path) -> None:
        cosign = write_fake_cosign(tmp_path, "exit 0")
        sig = Signature(
            type=SignatureType.COSIGN,
            identity=RELEASE_IDENTITY,
            issuer=GITHUB_ISSUER,
            bundle="https://example.com/gh.bundle",
        )
        verifier = CosignVerifier(str(cosign), transport=failing_transport())
        check = _run(verifier.verify(binary, sig, timeout=5))
        assert check.status is CheckStatus.UNREACHABLE
        assert "signature bundle" in (check.error or "")


class TestSignerPolicy:
    """Tests for allowed identity / issuer enforcement."""

    def test_no_policy(self) -> None:
        assert check_signer_policy(KEYLESS) is None

    def test_identity_allowed(self) -> None:
        assert check_signer_policy(KEYLESS, allowed_identities=[RELEASE_IDENTITY]) is None

    def test_identity_rejected(self) -> None:
        reason = check_signer_policy(KEYLESS, allowed_identities=["trusted@example.com"])
        assert reason is not None
        assert "not in allowed list" in reason

    def test_issuer_rejected(self) -> None:
        reason = check_signer_policy(KEYLESS, allowed_issuers=["https://accounts.google.com"])
        assert reason is not None
        assert "issuer" in reason

    def test_key_mode_not_subject_to_policy(self) -> None:
        sig = Signature(type=SignatureType.COSIGN, public_key="/k.pub", signature_file="/s")
        assert check_signer_policy(sig, allowed_identities=["x"]) is None


class TestVerifySignature:
    """Tests for the verify_signature dispatcher."""

    @pytest.mark.parametrize("sig_type", [SignatureType.GPG, SignatureType.MINISIGN])
    def test_unsupported_types_not_attempted(
        self, binary: Path, sig_type: SignatureType
    ) -> None:
        fake = FakeSignatureVerifier()
        sig = Signature(type=sig_type, public_key="/keys/key.asc")
        check = _run(verify_signature(binary, sig, timeout=5, verifier=fake))
        assert check.status is CheckStatus.UNSUPPORTED
        assert sig_type.value in (check.error or "")
        assert fake.calls == []

    def test_policy_rejection_skips_verifier(self, binary: Path) -> None:
        fake = FakeSignatureVerifier()
        check = _run(verify_signature(
            binary, KEYLESS, timeout=5, verifier=fake,
            allowed_identities=["trusted@example.com"],
        ))
        assert check.status is CheckStatus.FAILED
        assert fake.calls == []

    def test_delegates_with_timeout(self, binary: Path) -> None:
        fake = FakeSignatureVerifier()
        check = _run(verify_signature(binary, KEYLESS, timeout=7.5, verifier=fake))
        assert check.verified
        assert fake.calls == [(binary, KEYLESS, 7.5)]

    def test_timeout_propagates(self, binary: Path) -> None:
        fake = FakeSignatureVerifier(error=SignatureTimeoutError(1.0))
        with pytest.raises(SignatureTimeoutError):
            _run(verify_signature(binary, KEYLESS, timeout=1.0, verifier=fake))
