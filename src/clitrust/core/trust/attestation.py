"""Parsing of in-toto attestations into ``AttestationStatement`` objects.

Two document shapes are accepted:

- A **DSSE envelope** whose ``payloadType`` is
  ``application/vnd.in-toto+json`` and whose ``payload`` is a base64
  in-toto statement.
- A raw **in-toto statement** (``_type`` v0.1 or v1).

Anything else is an ``AttestationParseError``. Parsing only reads the
document; whether it describes the binary is decided by the provenance
verifier.

References:
    DSSE: https://github.com/secure-systems-lab/dsse
    in-toto Statement: https://github.com/in-toto/attestation/tree/main/spec
    SLSA Provenance v0.2 / v1: https://slsa.dev/provenance
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass, field
from typing import Any

from clitrust.core.trust.models import ProvenanceFormat
from clitrust.exceptions import AttestationParseError

DSSE_PAYLOAD_TYPE = "application/vnd.in-toto+json"

IN_TOTO_STATEMENT_TYPES: frozenset[str] = frozenset({
    "https://in-toto.io/Statement/v0.1",
    "https://in-toto.io/Statement/v1",
})


@dataclass(frozen=True)
class AttestationSubject:
    """One artifact named by a statement.

    Attributes:
        name: Artifact name (often a file name).
        digests: Algorithm name -> hex digest.
    """

    name: str
    digests: dict[str, str] = field(default_factory=dict)

    def matches_sha256(self, hex_digest: str) -> bool:
        value = self.digests.get("sha256")
        return bool(value) and value.lower() == hex_digest.lower()


@dataclass(frozen=True)
class AttestationStatement:
    """Parsed in-toto statement. Transient; never persisted.

    Attributes:
        subjects: Artifacts the statement is about.
        predicate_type: ``predicateType`` URI.
        build_type: Build type from v0.2 ``buildType`` or v1
            ``buildDefinition.buildType``.
        slsa_level: Explicit SLSA level in the predicate, if any.
        builder: Builder id from v0.2 ``builder.id`` or v1
            ``runDetails.builder.id``.
    """

    subjects: list[AttestationSubject]
    predicate_type: str = ""
    build_type: str = ""
    slsa_level: int | None = None
    builder: str | None = None

    def find_subject(self, hex_digest: str) -> AttestationSubject | None:
        """Return the first subject whose sha256 equals ``hex_digest``."""
        for subject in self.subjects:
            if subject.matches_sha256(hex_digest):
                return subject
        return None


def parse_attestation(text: str, fmt: ProvenanceFormat | str) -> AttestationStatement:
    """Parse an attestation document body.

    Args:
        text: Response body of the attestation URL.
        fmt: Format declared by the provenance metadata.

    Returns:
        The parsed statement.

    Raises:
        AttestationParseError: For an unknown declared format, invalid JSON,
            an undecodable DSSE payload, or an unrecognised document shape.
    """
    try:
        ProvenanceFormat(fmt)
    except ValueError as exc:
        raise AttestationParseError(f"Unknown attestation format: {fmt}", exc) from exc

    document = _load_json(text, "attestation")
    if not isinstance(document, dict):
        raise AttestationParseError("Unsupported attestation format: not a JSON object")

    if document.get("payloadType") == DSSE_PAYLOAD_TYPE:
        statement = _decode_dsse_payload(document)
    elif document.get("_type") in IN_TOTO_STATEMENT_TYPES:
        statement = document
    else:
        raise AttestationParseError("Unsupported attestation format")

    return _build_statement(statement)


def _load_json(text: str, what: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise AttestationParseError(f"Malformed {what} JSON: {exc}", exc) from exc


def _decode_dsse_payload(envelope: dict[str, Any]) -> dict[str, Any]:
    payload = envelope.get("payload")
    if not isinstance(payload, str):
        raise AttestationParseError("DSSE envelope has no payload")
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise AttestationParseError(f"DSSE payload is not valid base64: {exc}", exc) from exc
    try:
        decoded = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise AttestationParseError(f"DSSE payload is not valid UTF-8: {exc}", exc) from exc
    statement = _load_json(decoded, "DSSE payload")
    if not isinstance(statement, dict):
        raise AttestationParseError("DSSE payload is not a JSON object")
    return statement


def _build_statement(statement: dict[str, Any]) -> AttestationStatement:
    subjects: list[AttestationSubject] = []
    for entry in statement.get("subject") or []:
        if not isinstance(entry, dict):
            continue
        digests = entry.get("digest") or {}
        subjects.append(AttestationSubject(
            name=str(entry.get("name", "")),
            digests={str(k): str(v) for k, v in digests.items()} if isinstance(digests, dict) else {},
        ))

    predicate = statement.get("predicate") or {}
    if not isinstance(predicate, dict):
        predicate = {}

    build_type = predicate.get("buildType") or ""
    build_definition = predicate.get("buildDefinition")
    if not build_type and isinstance(build_definition, dict):
        build_type = build_definition.get("buildType") or ""

    level = predicate.get("slsaLevel")
    slsa_level = level if isinstance(level, int) and not isinstance(level, bool) else None

    return AttestationStatement(
        subjects=subjects,
        predicate_type=str(statement.get("predicateType") or ""),
        build_type=str(build_type),
        slsa_level=slsa_level,
        builder=_extract_builder(predicate),
    )


def _extract_builder(predicate: dict[str, Any]) -> str | None:
    builder = predicate.get("builder")
    if isinstance(builder, dict) and builder.get("id"):
        return str(builder["id"])
    run_details = predicate.get("runDetails")
    if isinstance(run_details, dict):
        builder = run_details.get("builder")
        if isinstance(builder, dict) and builder.get("id"):
            return str(builder["id"])
    return None
