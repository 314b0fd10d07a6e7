"""Shared httpx plumbing for GitHub API, web and raw-content requests."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from batch_installer.errors import NetworkFailureError

if TYPE_CHECKING:
    from collections.abc import Callable

    from batch_installer.config import InstallerConfig

logger = logging.getLogger(__name__)

API_ACCEPT = "application/vnd.github.v3+json"
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

# Statuses that end a retry loop immediately
_NO_RETRY_BELOW = 500


def api_headers(config: InstallerConfig) -> dict[str, str]:
    return {"User-Agent": config.user_agent, "Accept": API_ACCEPT}


def web_headers(config: InstallerConfig) -> dict[str, str]:
    return {
        "User-Agent": f"Mozilla/5.0 (compatible; {config.user_agent})",
        "Accept": HTML_ACCEPT,
        "Accept-Language": "en-US,en;q=0.9",
    }


def build_client(config: InstallerConfig, transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """Create the client shared by the fetcher and detector.

    Args:
        config: Installer configuration (user agent).
        transport: Optional transport override, e.g. ``httpx.MockTransport`` in tests.
    """
    return httpx.Client(
        headers={"User-Agent": config.user_agent},
        follow_redirects=True,
        transport=transport,
    )


def is_rate_limited(response: httpx.Response) -> bool:
    """Whether a response signals upstream rate limiting."""
    if response.status_code == 429:
        return True
    if response.status_code != 403:
        return False
    if response.headers.get("X-RateLimit-Remaining") == "0":
        return True
    return "rate limit" in response.text.lower()


def get_with_retry(
    client: httpx.Client,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    timeout: float = 15.0,
    max_retries: int = 2,
    retry_delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
) -> httpx.Response:
    """GET ``url``, retrying transient failures.

    Transport errors and 5xx responses are retried up to ``max_retries``
    times with ``retry_delay`` seconds between attempts. Any response below
    500 (including 403/429 rate limiting and 404) is returned as-is.

    Raises:
        NetworkFailureError: If every attempt failed at the transport level.
    """
    attempts = max_retries + 1
    last_error: httpx.HTTPError | None = None
    response: httpx.Response | None = None

    for attempt in range(1, attempts + 1):
        try:
            response = client.get(url, params=params, headers=headers, timeout=timeout)
        except httpx.HTTPError as e:
            last_error = e
            response = None
            logger.warning("GET %s failed (attempt %d/%d): %s", url, attempt, attempts, e)
        else:
            if response.status_code < _NO_RETRY_BELOW:
                return response
            logger.warning(
                "GET %s returned %d (attempt %d/%d)", url, response.status_code, attempt, attempts
            )

        if attempt < attempts:
            sleep(retry_delay)

    if response is not None:
        return response
    msg = f"Request to {url} failed: {last_error}"
    raise NetworkFailureError(msg)
