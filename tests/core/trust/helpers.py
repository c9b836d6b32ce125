"""Shared helpers for trust engine tests.

Builders for attestation documents, httpx mock transports, a fake
``SignatureVerifier``, and a fake ``cosign`` executable.
"""

from __future__ import annotations

import asyncio
import base64
import hashlib
import json
import stat
from pathlib import Path
from typing import Any

import httpx

from clitrust.core.trust import CheckStatus, Signature, SignatureCheck

GITHUB_ISSUER = "https://token.actions.githubusercontent.com"
RELEASE_IDENTITY = (
    "https://github.com/cli/cli/.github/workflows/release.yml@refs/tags/v2.45.0"
)
GITHUB_BUILDER = (
    "https://github.com/slsa-framework/slsa-github-generator/"
    ".github/workflows/generator_generic_slsa3.yml@refs/tags/v1.9.0"
)
ATTESTATION_URL = "https://example.com/gh.intoto.jsonl"


def sha256_hex(content: bytes) -> str:
    """Return the lowercase hex sha256 of ``content``."""
    return hashlib.sha256(content).hexdigest()


def make_statement(
    binary_hash: str,
    slsa_level: int | None = None,
    builder: str | None = GITHUB_BUILDER,
    statement_type: str = "https://in-toto.io/Statement/v0.1",
    subject_name: str = "gh",
) -> dict[str, Any]:
    """Build an in-toto statement with a SLSA v1 predicate."""
    predicate: dict[str, Any] = {
        "buildDefinition": {"buildType": "https://slsa.dev/slsaBuildType/v1"},
    }
    if builder is not None:
        predicate["runDetails"] = {"builder": {"id": builder}}
    if slsa_level is not None:
        predicate["slsaLevel"] = slsa_level
    return {
        "_type": statement_type,
        "subject": [{"name": subject_name, "digest": {"sha256": binary_hash}}],
        "predicateType": "https://slsa.dev/provenance/v1",
        "predicate": predicate,
    }


def make_dsse_envelope(statement: dict[str, Any]) -> dict[str, Any]:
    """Wrap a statement in a DSSE envelope."""
    payload = base64.b64encode(json.dumps(statement).encode()).decode()
    return {
        "payloadType": "application/vnd.in-toto+json",
        "payload": payload,
        "signatures": [{"sig": "mock-signature"}],
    }


def json_transport(document: Any, status_code: int = 200) -> httpx.MockTransport:
    """Mock transport answering every request with a JSON document."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json=document)

    return httpx.MockTransport(handler)


def text_transport(body: str, status_code: int = 200) -> httpx.MockTransport:
    """Mock transport answering every request with a raw text body."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, text=body)

    return httpx.MockTransport(handler)


def failing_transport() -> httpx.MockTransport:
    """Mock transport that fails to connect."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Name or service not known", request=request)

    return httpx.MockTransport(handler)


def hanging_transport(delay: float = 5.0) -> httpx.MockTransport:
    """Mock transport whose responses take ``delay`` seconds."""

    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(delay)
        return httpx.Response(200, json={})

    return httpx.MockTransport(handler)


class FakeSignatureVerifier:
    """``SignatureVerifier`` returning a canned result or raising an error."""

    def __init__(
        self,
        status: CheckStatus = CheckStatus.PASSED,
        error: BaseException | None = None,
    ) -> None:
        self.status = status
        self.error = error
        self.calls: list[tuple[Path, Signature, float]] = []

    async def verify(
        self, path: Path, signature: Signature, *, timeout: float
    ) -> SignatureCheck:
        self.calls.append((path, signature, timeout))
        if self.error is not None:
            raise self.error
        return SignatureCheck(
            status=self.status,
            type=signature.type,
            identity=signature.identity if self.status is CheckStatus.PASSED else None,
            error=None if self.status is CheckStatus.PASSED else "invalid signature",
        )


def write_fake_cosign(directory: Path, body: str) -> Path:
    """Write an executable shell script standing in for ``cosign``.

    Args:
        directory: Where to create the script.
        body: Shell commands; ``"$@"`` holds the verify-blob arguments.

    Returns:
        Absolute path of the script.
    """
    script = directory / "cosign"
    script.write_text(f"#!/bin/sh\n{body}\n")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script
