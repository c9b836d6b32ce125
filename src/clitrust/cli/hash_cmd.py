"""``clitrust hash <binary>...`` — Print content-addressable digests.

Exit Codes:
    0 — Every file was hashed.
    2 — A file could not be read.
"""

from __future__ import annotations

import json
import sys

import click

from clitrust.core.trust import Digest, hash_binary
from clitrust.exceptions import TrustError


@click.command("hash")
@click.argument("binaries", nargs=-1, required=True, type=click.Path())
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format (default: text).",
)
def hash_command(binaries: tuple[str, ...], output_format: str) -> None:
    """Print the sha256 digest of each BINARY, in checksum metadata format."""
    digests: list[tuple[str, Digest]] = []
    for binary in binaries:
        try:
            digests.append((binary, hash_binary(binary)))
        except TrustError as exc:
            if output_format == "json":
                click.echo(json.dumps({"error": str(exc), "path": binary}))
            else:
                click.echo(f"Error: {exc}", err=True)
            sys.exit(2)

    if output_format == "json":
        click.echo(json.dumps(
            [{"path": path, "checksum": d.formatted} for path, d in digests],
            indent=2,
        ))
    else:
        from clitrust.cli.output import print_digests
        print_digests(digests)
