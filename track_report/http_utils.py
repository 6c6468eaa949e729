"""
HTTP Client Utilities

The only outbound traffic is the summarizer call. Clients built here pick
up TLS and proxy settings from AppConfig; transient failures are retried
with exponential backoff.
"""

import asyncio
import logging
from typing import Any

import httpx

from .config import AppConfig, RetryConfig, get_config


logger = logging.getLogger(__name__)


# Transport errors worth another attempt
RETRYABLE_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.ReadTimeout)

# Rate limiting and gateway/overload responses
RETRYABLE_STATUSES = (429, 500, 502, 503, 504)


def create_httpx_client(
    config: AppConfig | None = None,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Create an AsyncClient for the summarizer endpoint.

    Args:
        config: Application config (global config if None)
        timeout: Read timeout in seconds (30 if None)
        transport: Explicit transport; proxies are not mounted when given

    Returns:
        Configured AsyncClient
    """
    config = config or get_config()

    kwargs: dict[str, Any] = {
        "verify": config.ssl.get_verify_path(),
        "timeout": httpx.Timeout(timeout or 30.0, connect=10.0),
        "follow_redirects": True,
    }

    if transport is not None:
        kwargs["transport"] = transport
    elif config.proxy.is_configured:
        kwargs["mounts"] = {
            prefix: httpx.AsyncHTTPTransport(proxy=url)
            for prefix, url in config.proxy.proxy_map().items()
        }

    return httpx.AsyncClient(**kwargs)


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    retry_config: RetryConfig | None = None,
    **kwargs: Any
) -> httpx.Response:
    """
    Send a request, retrying transient failures.

    A response with a retryable status is returned as-is once attempts run
    out; the caller decides what an error status means.

    Raises:
        httpx.HTTPError: The last transport error if every attempt failed
    """
    retry = retry_config or RetryConfig()
    attempts = max(1, retry.max_attempts)

    for attempt in range(attempts):
        last_attempt = attempt == attempts - 1

        try:
            response = await client.request(method, url, **kwargs)
        except RETRYABLE_ERRORS as e:
            if last_attempt:
                logger.error(f"{method} {url} failed after {attempts} attempts: {e}")
                raise
            reason = type(e).__name__
        else:
            if response.status_code not in RETRYABLE_STATUSES or last_attempt:
                return response
            reason = f"HTTP {response.status_code}"

        delay = retry.delay_for(attempt)
        logger.warning(
            f"{method} {url}: {reason}, retry {attempt + 1}/{attempts - 1} in {delay:.1f}s"
        )
        await asyncio.sleep(delay)

    # Unreachable: the last attempt always returns or raises
    raise httpx.RequestError(f"{method} {url} was never attempted")
