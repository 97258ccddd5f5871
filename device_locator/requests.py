"""
Low-level HTTP request helper for the Find My iPhone service.
This module sends a single request over a shared aiohttp session, applies the
retry policy and maps HTTP outcomes onto the device-locator error types.
"""
import asyncio
import json
import logging

import aiohttp

from .const import REQUEST_TIMEOUT, MAX_RETRIES
from .errors import AuthError, DecodeError, TransportError

_LOGGER = logging.getLogger(__name__)

DENIED_STATUSES = (401, 403)


async def make_request(
    http: aiohttp.ClientSession,
    method: str,
    url: str,
    headers: dict,
    data: bytes = None,
    auth: aiohttp.BasicAuth = None,
    timeout: int = REQUEST_TIMEOUT,
    max_retries: int = MAX_RETRIES,
):
    """
    Make an HTTP request and return the decoded JSON body.

    Args:
        http: Shared client session (owned by the caller)
        method: HTTP method
        url: Target URL for the request
        headers: HTTP headers dictionary
        data: Raw request body (optional)
        auth: Basic auth credentials (optional)
        timeout: Total timeout in seconds for one attempt
        max_retries: Extra attempts after a TransportError (0 = no retry)

    Returns:
        Parsed JSON response

    Raises:
        AuthError: Remote answered 401 or 403, never retried
        TransportError: Network failure, timeout or unexpected status
        DecodeError: Body of a successful response is not JSON
    """
    method = method.upper()
    attempts = max(0, max_retries) + 1
    timeout_config = aiohttp.ClientTimeout(total=timeout)

    for attempt in range(attempts):
        try:
            async with http.request(
                method, url, headers=headers, data=data, auth=auth, timeout=timeout_config
            ) as response:
                return await _process_response(response, url)
        except TransportError:
            if attempt < attempts - 1:
                _LOGGER.debug("Retrying %s %s (attempt %s of %s)", method, url, attempt + 2, attempts)
                continue
            raise
        except (asyncio.TimeoutError, TimeoutError) as e:
            if attempt < attempts - 1:
                _LOGGER.debug("Timeout on %s %s, retrying", method, url)
                continue
            _LOGGER.warning("Timeout on %s request to %s after %s attempts", method, url, attempts)
            raise TransportError(f"Timeout on {method} {url}") from e
        except aiohttp.ClientError as e:
            if attempt < attempts - 1:
                _LOGGER.debug("%s on %s %s, retrying", type(e).__name__, method, url)
                continue
            raise TransportError(f"{method} {url} failed: {e}") from e

    # Unreachable: the last attempt either returns or raises
    raise TransportError(f"{method} {url} failed")


async def _process_response(response, url: str):
    """
    Check the status of response and decode its body.

    The service answers with a text/plain content type, so the body is
    decoded as JSON regardless of the Content-Type header.
    """
    if response.status in DENIED_STATUSES:
        raise AuthError(response.status)

    if response.status != 200:
        text = await response.text()
        _LOGGER.warning(
            "Unexpected response from %s: status %s, body preview: %s",
            url, response.status, text[:200]
        )
        raise TransportError(f"HTTP {response.status} from {url}")

    body = await response.read()
    try:
        return json.loads(body)
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(f"Invalid JSON from {url}: {body[:200]!r}") from e
