# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_github_auth

"""
Secure HTTP transport and bounded JSON fetching for calls to GitHub.
"""

import ipaddress
import json
import socket
from typing import Any

import anyio
import httpx

from coreason_github_auth.exceptions import IssuerError, OversizedResponseError
from coreason_github_auth.utils.logger import logger

DEFAULT_MAX_RESPONSE_BYTES = 1_000_000


class SecurityError(IssuerError):
    """Raised when an issuer host resolves to a blocked address."""


class SafeAsyncTransport(httpx.AsyncHTTPTransport):
    """
    An async transport that pins connections to a validated public IP.

    Configurable endpoints (GitHub Enterprise) make the token and profile URLs operator input,
    so the hostname is resolved here, private/loopback/link-local/reserved/multicast addresses
    are refused, and the request is sent to the checked IP with the original Host and SNI.
    """

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        hostname = request.url.host

        try:
            ip_obj = ipaddress.ip_address(hostname)
        except ValueError:
            ip_obj = None

        if ip_obj is not None:
            self._validate_ip(ip_obj, hostname)
            return await super().handle_async_request(request)

        try:
            addr_infos = await anyio.to_thread.run_sync(
                socket.getaddrinfo, hostname, None, 0, socket.SOCK_STREAM
            )
        except socket.gaierror as e:
            logger.error(f"DNS resolution failed for {hostname}: {e}")
            raise SecurityError(f"DNS resolution failed for {hostname}") from e

        target_ip: str | None = None
        for _, _, _, _, sockaddr in addr_infos:
            try:
                candidate = ipaddress.ip_address(sockaddr[0])
                self._validate_ip(candidate, hostname)
            except (SecurityError, ValueError):
                continue
            target_ip = str(candidate)
            break

        if not target_ip:
            logger.error(f"Security violation: No valid public IP found for {hostname}")
            raise SecurityError(f"SSRF Protection: Blocked {hostname}, no public address")

        request.extensions["sni_hostname"] = hostname
        if "Host" not in request.headers:
            request.headers["Host"] = request.url.netloc.decode("ascii")
        request.url = request.url.copy_with(host=target_ip)

        logger.debug(f"DNS Pinned: {hostname} -> {target_ip}")
        return await super().handle_async_request(request)

    def _validate_ip(self, ip_obj: Any, hostname: str) -> None:
        if (
            ip_obj.is_private
            or ip_obj.is_loopback
            or ip_obj.is_link_local
            or ip_obj.is_reserved
            or ip_obj.is_multicast
        ):
            logger.warning(f"Security violation: Blocked access to {hostname} ({ip_obj})")
            raise SecurityError(f"SSRF Protection: Blocked {hostname} ({ip_obj})")


async def safe_json_fetch(
    client: httpx.AsyncClient,
    url: str,
    method: str = "GET",
    max_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
    **kwargs: Any,
) -> dict[str, Any]:
    """
    Performs a request and decodes a JSON object body, refusing oversized responses.

    Args:
        client: The async HTTP client.
        url: The target URL.
        method: The HTTP method.
        max_bytes: Maximum accepted body size.
        **kwargs: Forwarded to ``client.stream`` (headers, data, ...).

    Returns:
        dict[str, Any]: The decoded JSON object.

    Raises:
        OversizedResponseError: If the body exceeds ``max_bytes``.
        httpx.HTTPStatusError: For non-2xx responses.
        httpx.HTTPError: For transport failures.
        IssuerError: If the body is not a JSON object.
    """
    async with client.stream(method, url, **kwargs) as response:
        content_length = response.headers.get("Content-Length")
        if content_length and content_length.isdigit() and int(content_length) > max_bytes:
            raise OversizedResponseError(f"Response from {url} too large ({content_length} bytes)")

        content = bytearray()
        async for chunk in response.aiter_bytes():
            content.extend(chunk)
            if len(content) > max_bytes:
                raise OversizedResponseError(f"Response from {url} exceeded {max_bytes} bytes")

        response.raise_for_status()

    try:
        data = json.loads(content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise IssuerError(f"Invalid JSON response from {url}: {e}") from e

    if not isinstance(data, dict):
        raise IssuerError(f"Unexpected JSON response from {url}: expected an object")
    return data
