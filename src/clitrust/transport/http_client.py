"""Async HTTP fetch helpers for attestation and bundle downloads.

Provides a thin wrapper around ``httpx.AsyncClient`` with a standard
user-agent and a hard, cancellable timeout. The whole request (connect,
headers and body) runs inside ``asyncio.wait_for``; when it expires the
request task is cancelled and the client is closed by its ``async with``
block, so no socket outlives the timeout window.

Failures are raised as ``FetchError`` subclasses; callers decide whether a
failure is a verification outcome or an error.
"""

from __future__ import annotations

import asyncio
import logging

import httpx

from clitrust.exceptions import ClitrustError

logger = logging.getLogger(__name__)

# Timeout used when callers pass none (seconds).
DEFAULT_TIMEOUT: float = 30.0

# User-Agent sent with every request.
USER_AGENT: str = "clitrust/0.1"


class FetchError(ClitrustError):
    """Raised when a URL could not be fetched.

    Attributes:
        url: The URL requested.
        status_code: HTTP status for non-2xx responses, None when no
            response was received.
    """

    def __init__(self, message: str, url: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class FetchTimeoutError(FetchError):
    """Raised when the fetch did not complete within the timeout."""


async def _get(
    url: str,
    *,
    timeout: float,
    transport: httpx.AsyncBaseTransport | None,
) -> httpx.Response:
    async with httpx.AsyncClient(
        timeout=timeout,
        headers={"User-Agent": USER_AGENT},
        follow_redirects=True,
        transport=transport,
    ) as client:
        resp = await client.get(url)
        await resp.aread()
        return resp


async def fetch(
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.Response:
    """Fetch a URL and return the fully-read 2xx response.

    Args:
        url: The URL to fetch.
        timeout: Hard bound on the whole request, in seconds.
        transport: Optional httpx transport (tests use ``MockTransport``).

    Returns:
        The response, body already read.

    Raises:
        FetchTimeoutError: If the timeout expires.
        FetchError: On non-2xx status or any transport failure.
    """
    try:
        resp = await asyncio.wait_for(
            _get(url, timeout=timeout, transport=transport),
            timeout=timeout,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
        logger.warning("Timeout fetching %s after %.1fs", url, timeout)
        raise FetchTimeoutError(
            f"Timeout after {timeout:g}s fetching {url}", url
        ) from exc
    except httpx.HTTPError as exc:
        logger.warning("Request error for %s: %s", url, exc)
        raise FetchError(f"{type(exc).__name__}: {exc}", url) from exc

    if resp.is_error:
        logger.warning("HTTP %d from %s", resp.status_code, url)
        raise FetchError(f"HTTP {resp.status_code}", url, resp.status_code)
    return resp


async def fetch_text(
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Fetch a URL and return the response body as text.

    See :func:`fetch` for arguments and errors.
    """
    resp = await fetch(url, timeout=timeout, transport=transport)
    return resp.text


async def fetch_bytes(
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bytes:
    """Fetch a URL and return the raw response body.

    See :func:`fetch` for arguments and errors.
    """
    resp = await fetch(url, timeout=timeout, transport=transport)
    return resp.content
