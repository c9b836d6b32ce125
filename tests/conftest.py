"""Shared fixtures for clitrust tests."""

import pathlib

import pytest

BINARY_CONTENT = b"\x7fELF\x02\x01\x01\x00fake gh binary\n"


@pytest.fixture
def binary(tmp_path: pathlib.Path) -> pathlib.Path:
    """Create a small file standing in for a tool binary."""
    path = tmp_path / "gh"
    path.write_bytes(BINARY_CONTENT)
    path.chmod(0o755)
    return path
