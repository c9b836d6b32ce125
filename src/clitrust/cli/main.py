"""clitrust CLI — Trust evaluation for agent-discovered command-line tools.

Entry point for the ``clitrust`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    verify — Evaluate whether a binary can be trusted.
    hash   — Print sha256 digests in checksum metadata format.

Usage::

    clitrust verify /usr/local/bin/gh --metadata gh.json
    clitrust verify /usr/local/bin/gh --metadata gh.yaml --min-slsa-level 3
    clitrust verify ./tool --offline --format json
    clitrust hash /usr/local/bin/gh
"""

from __future__ import annotations

import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from clitrust import __version__
from clitrust.cli.hash_cmd import hash_command
from clitrust.cli.verify_cmd import verify_command


@click.group()
@click.version_option(version=__version__)
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """clitrust: Can this exact binary be trusted?

    Checks a binary against its checksum, cosign signature and SLSA
    provenance, and recommends execute, sandbox, confirm or block.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


# Register all subcommands
cli.add_command(verify_command)
cli.add_command(hash_command)
