"""Rich output formatting helpers for the clitrust CLI.

Trust Level Color Mapping:
    COMPROMISED = bold red, UNSIGNED = yellow, UNVERIFIED = cyan,
    PROVENANCE_FAIL = magenta, VERIFIED = bold green
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from clitrust.core.trust import (
    CheckStatus,
    Digest,
    Recommendation,
    TrustLevel,
    TrustVerificationResult,
)

_TRUST_LEVEL_STYLES: dict[TrustLevel, str] = {
    TrustLevel.COMPROMISED: "bold red",
    TrustLevel.UNSIGNED: "yellow",
    TrustLevel.UNVERIFIED: "cyan",
    TrustLevel.PROVENANCE_FAIL: "magenta",
    TrustLevel.VERIFIED: "bold green",
}

_RECOMMENDATION_STYLES: dict[Recommendation, str] = {
    Recommendation.BLOCK: "bold red",
    Recommendation.CONFIRM: "yellow",
    Recommendation.SANDBOX: "cyan",
    Recommendation.EXECUTE: "bold green",
}

_STATUS_STYLES: dict[CheckStatus, str] = {
    CheckStatus.PASSED: "green",
    CheckStatus.FAILED: "red",
    CheckStatus.UNSUPPORTED: "dim",
    CheckStatus.UNREACHABLE: "yellow",
    CheckStatus.SKIPPED: "dim",
}

console = Console()


def trust_level_style(level: TrustLevel) -> str:
    """Return the Rich style string for a given trust level."""
    return _TRUST_LEVEL_STYLES.get(level, "white")


def print_verification(binary: str, result: TrustVerificationResult) -> None:
    """Print a verdict panel and per-check breakdown for one binary.

    Args:
        binary: Path shown in the header.
        result: Verification result for the binary.
    """
    evaluation = result.evaluation
    header = Text.assemble(
        ("Binary: ", "bold"), (binary, ""),
        ("\nSHA-256: ", "bold"), (result.binary_hash, "dim"),
        ("\nSource: ", "bold"), (result.source.value, ""),
    )
    console.print(Panel(header, title="Trust Verification"))
    console.print(
        "  Trust Level:     ",
        Text(f"{evaluation.level.name} ({int(evaluation.level)})",
             style=trust_level_style(evaluation.level)),
    )
    console.print(
        "  Recommendation:  ",
        Text(evaluation.recommendation.value,
             style=_RECOMMENDATION_STYLES[evaluation.recommendation]),
    )
    console.print(f"  Reason:          {evaluation.reason}")

    checks = evaluation.checks
    table = Table(title="Checks", show_header=True)
    table.add_column("Check", style="bold")
    table.add_column("Result", justify="center")
    table.add_column("Detail")

    if checks.hash is not None:
        ok = bool(checks.hash.matches)
        table.add_row(
            "checksum",
            Text("match" if ok else "MISMATCH", style="green" if ok else "bold red"),
            f"expected {checks.hash.expected}",
        )
    if checks.signature is not None:
        sig = checks.signature
        table.add_row(
            f"signature ({sig.type.value})",
            Text(sig.status.value, style=_STATUS_STYLES[sig.status]),
            sig.identity or sig.error or "",
        )
    if checks.provenance is not None:
        prov = checks.provenance
        detail = prov.error or f"SLSA L{prov.slsa_level} builder {prov.builder or '-'}"
        table.add_row(
            "provenance",
            Text(prov.status.value, style=_STATUS_STYLES[prov.status]),
            detail,
        )

    if table.row_count:
        console.print(table)
    else:
        console.print("[dim]No checks were applicable.[/dim]")


def print_digests(digests: list[tuple[str, Digest]]) -> None:
    """Print ``sha256:<hex>  path`` lines, like ``sha256sum``."""
    for path, digest in digests:
        console.print(f"{digest.formatted}  {path}", highlight=False, soft_wrap=True)
