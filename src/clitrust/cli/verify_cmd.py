"""``clitrust verify <binary>`` — Evaluate whether a binary can be trusted.

Loads the tool's trust metadata (JSON or YAML; either a full metadata
document with a ``trust`` key or a bare trust block), runs the trust
evaluator, and prints the level, recommendation and per-check detail.

Exit Codes:
    0 — Binary is VERIFIED.
    1 — Binary evaluated below VERIFIED.
    2 — Metadata could not be loaded or evaluation failed operationally.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click
import yaml

from clitrust.core.trust import (
    TrustEvaluator,
    TrustMetadata,
    TrustVerificationOptions,
)
from clitrust.core.trust.models import DEFAULT_NETWORK_TIMEOUT_MS
from clitrust.exceptions import ClitrustError


def load_metadata(path: Path) -> TrustMetadata | None:
    """Read trust metadata from a JSON or YAML file.

    Args:
        path: Metadata file. ``.yaml`` / ``.yml`` are read as YAML,
            anything else as JSON.

    Returns:
        The trust metadata, or None if the document has no trust block.

    Raises:
        ValueError: If the file is not a mapping or holds invalid values.
    """
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        data: Any = yaml.safe_load(text)
    else:
        data = json.loads(text)

    if not isinstance(data, dict):
        raise ValueError(f"Metadata in {path} is not a mapping")
    trust = data.get("trust", data if "source" in data else None)
    if trust is None:
        return None
    if not isinstance(trust, dict):
        raise ValueError(f"'trust' in {path} is not a mapping")
    try:
        return TrustMetadata.from_dict(trust)
    except KeyError as exc:
        raise ValueError(f"Missing field {exc} in trust metadata") from exc


def _fail(message: str, output_format: str) -> None:
    if output_format == "json":
        click.echo(json.dumps({"error": message}))
    else:
        click.echo(f"Error: {message}", err=True)
    sys.exit(2)


@click.command("verify")
@click.argument("binary", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--metadata", "metadata_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Tool metadata file (JSON or YAML) carrying a trust block.",
)
@click.option(
    "--no-signatures", is_flag=True, default=False,
    help="Skip signature verification (signed tools become UNVERIFIED).",
)
@click.option(
    "--no-provenance", is_flag=True, default=False,
    help="Skip SLSA provenance verification.",
)
@click.option(
    "--min-slsa-level", type=click.IntRange(min=1), default=1, show_default=True,
    help="Minimum acceptable SLSA level.",
)
@click.option(
    "--allowed-builder", "allowed_builders", multiple=True,
    help="Accepted builder id substring (repeatable).",
)
@click.option(
    "--allowed-identity", "allowed_identities", multiple=True,
    help="Accepted keyless signer identity (repeatable).",
)
@click.option(
    "--allowed-issuer", "allowed_issuers", multiple=True,
    help="Accepted OIDC issuer (repeatable).",
)
@click.option(
    "--timeout-ms", type=click.IntRange(min=1),
    default=DEFAULT_NETWORK_TIMEOUT_MS, show_default=True,
    envvar="CLITRUST_NETWORK_TIMEOUT_MS",
    help="Timeout for each signature check and attestation fetch.",
)
@click.option(
    "--offline", is_flag=True, default=False, envvar="CLITRUST_OFFLINE",
    help="Degrade network failures to UNVERIFIED instead of erroring.",
)
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format (default: text).",
)
def verify_command(
    binary: str,
    metadata_path: str | None,
    no_signatures: bool,
    no_provenance: bool,
    min_slsa_level: int,
    allowed_builders: tuple[str, ...],
    allowed_identities: tuple[str, ...],
    allowed_issuers: tuple[str, ...],
    timeout_ms: int,
    offline: bool,
    output_format: str,
) -> None:
    """Evaluate the trust level of BINARY.

    Without --metadata the binary has no trust claims and is reported as
    UNSIGNED. Exit code 0 if VERIFIED, 1 otherwise, 2 on errors.
    """
    metadata = None
    if metadata_path is not None:
        try:
            metadata = load_metadata(Path(metadata_path))
        except (ValueError, yaml.YAMLError) as exc:
            _fail(f"Could not load metadata from {metadata_path}: {exc}", output_format)

    options = TrustVerificationOptions(
        verify_signatures=not no_signatures,
        verify_provenance=not no_provenance,
        minimum_slsa_level=min_slsa_level,
        allowed_builders=allowed_builders,
        allowed_signer_identities=allowed_identities,
        allowed_issuers=allowed_issuers,
        network_timeout_ms=timeout_ms,
        offline_mode=offline,
    )

    target = str(Path(binary).resolve())
    try:
        result = asyncio.run(TrustEvaluator().verify(target, metadata, options))
    except ClitrustError as exc:
        _fail(str(exc), output_format)
        return

    if output_format == "json":
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        from clitrust.cli.output import print_verification
        print_verification(target, result)

    sys.exit(0 if result.trusted else 1)
