"""
Secure channel to the Find My iPhone service.

Responsible for:
- Fetching the certificate the server presents on first contact
- Building an SSL context that trusts the system store plus that certificate
- Creating the process-wide aiohttp session used by every LocationSession

The pinned certificate is trusted on first use. This is a weak integrity
measure kept for compatibility with the service, not a full PKI validation.
"""
from __future__ import annotations

import asyncio
import logging
import ssl

import aiohttp

from .const import FMIP_SERVER, FMIP_PORT, REQUEST_TIMEOUT
from .errors import TransportError

_LOGGER = logging.getLogger(__name__)


async def fetch_peer_certificate(host: str = FMIP_SERVER, port: int = FMIP_PORT, timeout: int = REQUEST_TIMEOUT) -> bytes:
    """Return the DER encoded leaf certificate offered by host:port."""
    probe = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    probe.check_hostname = False
    probe.verify_mode = ssl.CERT_NONE

    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port, ssl=probe, server_hostname=host),
            timeout=timeout,
        )
    except (OSError, asyncio.TimeoutError, ssl.SSLError) as e:
        raise TransportError(f"SSL handshake with {host}:{port} failed: {e}") from e

    try:
        ssl_object = writer.get_extra_info("ssl_object")
        der = ssl_object.getpeercert(binary_form=True) if ssl_object else None
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except (OSError, ssl.SSLError):
            pass

    if not der:
        raise TransportError(f"{host}:{port} presented no certificate")
    return der


def build_pinned_context(der: bytes) -> ssl.SSLContext:
    """Return a verifying context that also trusts the given certificate."""
    context = ssl.create_default_context()
    context.load_verify_locations(cadata=ssl.DER_cert_to_PEM_cert(der))
    return context


async def create_http_session(
    host: str = FMIP_SERVER, port: int = FMIP_PORT, timeout: int = REQUEST_TIMEOUT
) -> aiohttp.ClientSession:
    """
    Create the shared aiohttp session for talking to the service.

    The caller owns the returned session and must close it.
    """
    der = await fetch_peer_certificate(host, port, timeout)
    _LOGGER.debug("Pinned certificate of %s:%s (%s bytes)", host, port, len(der))
    connector = aiohttp.TCPConnector(ssl=build_pinned_context(der))
    return aiohttp.ClientSession(connector=connector)
