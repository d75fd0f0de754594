"""Single-shot HTTP GET shared by the static, discovery and realtime clients."""

from __future__ import annotations

from urllib.parse import urlparse, urlunparse

import httpx

from next_vehicle.errors import NetworkError
from next_vehicle.logging import get_logger

logger = get_logger(__name__)


def redact_url(url: str) -> str:
    """Drop the query string so API keys never reach logs or error messages."""
    parsed = urlparse(url)
    return urlunparse(parsed._replace(query=""))


async def http_get(
    url: str,
    *,
    timeout_sec: float,
    label: str,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.Response:
    """Issue one GET request; never retries.

    Raises:
        NetworkError: On timeout, transport failure or non-2xx status.
    """
    safe_url = redact_url(url)
    try:
        async with httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_sec),
            follow_redirects=True,
            transport=transport,
        ) as client:
            response = await client.get(url)
            response.raise_for_status()
    except httpx.TimeoutException as exc:
        msg = f"Timed out fetching {label} after {timeout_sec}s"
        raise NetworkError(msg, url=safe_url) from exc
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        msg = f"{label} request returned HTTP {status}"
        raise NetworkError(msg, status_code=status, url=safe_url) from exc
    except httpx.RequestError as exc:
        msg = f"Failed to fetch {label}: {exc}"
        raise NetworkError(msg, url=safe_url) from exc

    logger.debug(
        "HTTP fetch complete",
        label=label,
        url=safe_url,
        status_code=response.status_code,
        size_bytes=len(response.content),
    )
    return response
