"""Remote API context — an authenticated handle on the application endpoint.

``build_context`` performs the remote API handshake: a GET to
``/_ah/remote_api`` carrying a random ``rtok``.  The server echoes the
token and names the application, e.g.::

    {'app_id': 's~myapp', 'rtok': '8340183021'}

Only then is the handle returned.  What is sent through ``call`` is up to
the caller.
"""

from __future__ import annotations

import asyncio
import re
import secrets
from dataclasses import dataclass

import aiohttp
from yarl import URL

from .helpers import http_debug_log
from .session import Session

REMOTE_API_PATH = "/_ah/remote_api"
API_VERSION_HEADER = {"X-Appcfg-Api-Version": "1"}

_RTOK_RE = re.compile(r"'rtok':\s*'([^']+)'")
_APP_ID_RE = re.compile(r"'app_id':\s*'([^']+)'")
_BODY_PREVIEW = 200


class ContextError(RuntimeError):
    """The remote API endpoint rejected or couldn't be reached."""


@dataclass
class RemoteContext:
    """A signed-in remote API endpoint."""

    host: str
    url: str
    app_id: str
    client: aiohttp.ClientSession

    async def call(self, body: bytes) -> bytes:
        """POST one serialized remote API request and return the raw reply."""
        headers = {**API_VERSION_HEADER, "Content-Type": "application/octet-stream"}
        http_debug_log(
            "remote-api", "call_request",
            method="POST", url=self.url, headers=headers,
        )
        try:
            async with self.client.post(self.url, data=body, headers=headers) as resp:
                http_debug_log(
                    "remote-api", "call_response",
                    method="POST", url=self.url, status=resp.status,
                )
                data = await resp.read()
                if resp.status != 200:
                    raise ContextError(f"HTTP {resp.status}: {data[:_BODY_PREVIEW]!r}")
                return data
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ContextError(f"remote API call failed: {e}") from e


def remote_api_url(host: str) -> str:
    """Return the remote API URL for *host*.

    Raises ContextError for anything that isn't a bare ``host[:port]``.
    """
    if not host or "/" in host or "://" in host or host.startswith("."):
        raise ContextError(f"invalid host {host!r}")
    scheme = "http" if host == "localhost" or host.startswith("localhost:") else "https"
    try:
        url = URL(f"{scheme}://{host}{REMOTE_API_PATH}")
    except ValueError as e:
        raise ContextError(f"invalid host {host!r}: {e}") from e
    if not url.host:
        raise ContextError(f"invalid host {host!r}")
    return str(url)


async def build_context(session: Session) -> RemoteContext:
    """Handshake with the application's remote API using the Session's cookies."""
    url = remote_api_url(session.app_host)
    token = str(secrets.randbelow(2**63))
    params = {"rtok": token}

    http_debug_log(
        "remote-api", "handshake_request",
        method="GET", url=url, params=params,
    )
    try:
        async with session.client.get(
            url, params=params, headers=API_VERSION_HEADER,
        ) as resp:
            body = await resp.text()
            http_debug_log(
                "remote-api", "handshake_response",
                method="GET", url=url, status=resp.status,
            )
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise ContextError(f"unable to contact server: {e}") from e

    if resp.status != 200:
        raise ContextError(f"bad response {resp.status}; body: {body[:_BODY_PREVIEW]!r}")

    match = _RTOK_RE.search(body)
    if match is None:
        raise ContextError(f"failed to parse body: {body[:_BODY_PREVIEW]!r}")
    if match.group(1) != token:
        raise ContextError(f"token mismatch: {match.group(1)!r} vs {token!r}")

    match = _APP_ID_RE.search(body)
    if match is None:
        raise ContextError(f"failed to parse body: {body[:_BODY_PREVIEW]!r}")

    return RemoteContext(host=session.app_host, url=url, app_id=match.group(1), client=session.client)
