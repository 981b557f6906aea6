"""Authenticator — the two-stage App Engine sign-in.

1. Remote mode only: trade the username and password for an ``Auth`` token
   at the Google ClientLogin endpoint.  The reply is a ``key=value`` per
   line document.
2. Call ``/_ah/login`` on the service endpoint (and on the application
   endpoint when an application is configured) with that token.  The
   replies are redirects that are not followed; their ``Set-Cookie``
   headers carry the session cookies.
3. Snapshot the issued cookies per endpoint and persist them.

Local development servers skip step 1 and take the username as the
signed-in admin instead.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Optional

import aiohttp
from yarl import URL

from .cookie_store import CookieStore
from .helpers import http_debug_log
from .models import Credentials, SignInResult
from .session import DEFAULT_TIMEOUT, Session, endpoint_trays

# ── Protocol constants ─────────────────────────────────────

CLIENT_LOGIN_URL = "https://www.google.com/accounts/ClientLogin"
CLIENT_SOURCE = "Google-appcfg-1.9.17"
ACCOUNT_TYPE = "HOSTED_OR_GOOGLE"
SERVICE = "ah"

LOGIN_PATH = "/_ah/login"
CONTINUE_URL = "http://localhost"

TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


class AuthState(Enum):
    UNAUTHENTICATED = "unauthenticated"
    IDENTITY_TOKEN_OBTAINED = "identity_token_obtained"
    COOKIES_ISSUED = "cookies_issued"
    PERSISTED = "persisted"
    FAILED = "failed"


def parse_key_values(body: str) -> dict[str, str]:
    """Parse a ``key=value`` per line document into a dict.

    Lines without ``=`` are ignored; only the first ``=`` separates the key.
    """
    values: dict[str, str] = {}
    for line in body.splitlines():
        key, sep, value = line.partition("=")
        if sep and key:
            values[key] = value
    return values


class Authenticator:
    """Runs the sign-in exchange for a Session and saves the result."""

    def __init__(
        self,
        session: Session,
        store: CookieStore,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        login_url: str = CLIENT_LOGIN_URL,
    ) -> None:
        self.session = session
        self.store = store
        self.timeout = timeout
        self.login_url = login_url
        self.state = AuthState.UNAUTHENTICATED
        self.reason: Optional[str] = None

    def _fail(self, result: SignInResult) -> SignInResult:
        self.state = AuthState.FAILED
        self.reason = result.reason
        return result

    async def sign_in(self, credentials: Credentials) -> SignInResult:
        """Sign in with *credentials* and persist the issued cookies."""
        self.state = AuthState.UNAUTHENTICATED
        self.reason = None
        client_timeout = aiohttp.ClientTimeout(total=self.timeout)

        # Stage 1: identity token
        tokens: dict[str, str] = {}
        if not self.session.local:
            try:
                tokens = await self._client_login(credentials, client_timeout)
            except TRANSPORT_ERRORS as e:
                return self._fail(SignInResult.transport_error(e))
            if "Error" in tokens:
                return self._fail(SignInResult.credential_error(tokens["Error"]))
            if "Auth" not in tokens:
                return self._fail(SignInResult.credential_error(
                    "missing Auth token in identity provider response"
                ))
        self.state = AuthState.IDENTITY_TOKEN_OBTAINED

        # Stage 2: per-endpoint cookies
        params = {"continue": CONTINUE_URL, "auth": tokens.get("Auth", "")}
        if self.session.local:
            params.update({
                "admin": "True",
                "action": "Login",
                "email": credentials.username,
            })
        jar = aiohttp.CookieJar()
        try:
            async with aiohttp.ClientSession(
                cookie_jar=aiohttp.DummyCookieJar(), timeout=client_timeout,
            ) as client:
                await self._fetch_login_cookies(client, jar, self.session.service_url, params)
                if self.session.app_id:
                    await self._fetch_login_cookies(client, jar, self.session.app_url, params)
        except TRANSPORT_ERRORS as e:
            return self._fail(SignInResult.transport_error(e))
        self.state = AuthState.COOKIES_ISSUED

        # Stage 3: persist
        trays = endpoint_trays(
            jar,
            self.session.service_url,
            self.session.app_url if self.session.app_id else None,
        )
        try:
            self.store.save(trays)
        except OSError as e:
            return self._fail(SignInResult.persistence_error(e))

        self.session.restore(trays)
        self.state = AuthState.PERSISTED
        return SignInResult.success(trays)

    def sign_out(self) -> None:
        """Forget the saved cookies."""
        sign_out(self.store)
        self.state = AuthState.UNAUTHENTICATED

    # ── Requests ──────────────────────────────────────────

    async def _client_login(
        self,
        credentials: Credentials,
        timeout: aiohttp.ClientTimeout,
    ) -> dict[str, str]:
        params = {
            "Email": credentials.username,
            "Passwd": credentials.password,
            "source": CLIENT_SOURCE,
            "accountType": ACCOUNT_TYPE,
            "service": SERVICE,
        }
        http_debug_log(
            "client-login", "token_request",
            method="GET", url=self.login_url, params=params,
        )
        async with aiohttp.ClientSession(timeout=timeout) as client:
            async with client.get(self.login_url, params=params) as resp:
                # Failures come back as 403 with an Error= body, so the
                # status alone says nothing.
                body = await resp.text()
                http_debug_log(
                    "client-login", "token_response",
                    method="GET", url=self.login_url, status=resp.status,
                )
        return parse_key_values(body)

    async def _fetch_login_cookies(
        self,
        client: aiohttp.ClientSession,
        jar: aiohttp.CookieJar,
        origin: str,
        params: dict[str, str],
    ) -> None:
        url = f"{origin}{LOGIN_PATH}"
        http_debug_log(
            "ah-login", "login_request",
            method="GET", url=url, params=params,
        )
        async with client.get(url, params=params, allow_redirects=False) as resp:
            http_debug_log(
                "ah-login", "login_response",
                method="GET", url=url, status=resp.status,
                message=f"{len(resp.cookies)} cookie(s) issued",
            )
            jar.update_cookies(resp.cookies, URL(origin))


def sign_out(store: CookieStore) -> None:
    """Delete the saved cookie file; a missing file is fine."""
    store.clear()
