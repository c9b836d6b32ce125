"""Shared fixtures for CLI tests.

Provides a Click runner, metadata-file writers, and a fake ``cosign``
placed first on PATH so keyless verification runs without network access.
"""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml
from click.testing import CliRunner

from tests.core.trust.helpers import (
    GITHUB_ISSUER,
    RELEASE_IDENTITY,
    sha256_hex,
    write_fake_cosign,
)
from tests.conftest import BINARY_CONTENT


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CliRunner for invoking commands."""
    return CliRunner()


@pytest.fixture
def write_metadata(tmp_path: Path) -> Callable[..., Path]:
    """Return a function writing a metadata document to a file.

    The function takes the trust block and an optional file name; the
    suffix picks JSON or YAML.
    """

    def _write(trust: dict[str, Any], name: str = "gh.json") -> Path:
        path = tmp_path / name
        document = {"name": "gh", "version": "2.45.0", "trust": trust}
        if name.endswith((".yaml", ".yml")):
            path.write_text(yaml.safe_dump(document))
        else:
            path.write_text(json.dumps(document))
        return path

    return _write


@pytest.fixture
def good_checksum() -> str:
    """Checksum of the ``binary`` fixture in metadata format."""
    return f"sha256:{sha256_hex(BINARY_CONTENT)}"


@pytest.fixture
def keyless_trust(good_checksum: str) -> dict[str, Any]:
    """Trust block with a matching checksum and a keyless cosign signature."""
    return {
        "source": "native",
        "verified": True,
        "integrity": {
            "checksum": good_checksum,
            "signature": {
                "type": "cosign",
                "identity": RELEASE_IDENTITY,
                "issuer": GITHUB_ISSUER,
            },
        },
    }


@pytest.fixture
def fake_cosign_on_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Callable[[str], Path]:
    """Return a function installing a fake ``cosign`` first on PATH."""

    def _install(body: str) -> Path:
        bin_dir = tmp_path / "fakebin"
        bin_dir.mkdir(exist_ok=True)
        script = write_fake_cosign(bin_dir, body)
        monkeypatch.setenv("PATH", f"{bin_dir}{os.pathsep}{os.environ.get('PATH', '')}")
        return script

    return _install
