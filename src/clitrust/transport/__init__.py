"""Network transport used by the provenance and signature verifiers."""

from clitrust.transport.http_client import (
    FetchError,
    FetchTimeoutError,
    fetch,
    fetch_bytes,
    fetch_text,
)

__all__ = [
    "FetchError",
    "FetchTimeoutError",
    "fetch",
    "fetch_bytes",
    "fetch_text",
]
