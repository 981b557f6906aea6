"""Session — endpoint identities plus a cookie-backed HTTP client.

A Session is built once per run.  Construction resolves the service and
application endpoints and restores any cookies saved by an earlier
sign-in; the live jar then backs every request made through ``client``.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence

import aiohttp
from yarl import URL

from .config import AppDescriptor
from .cookie_store import CookieStore
from .models import Cookie, CookieTray

# ── Endpoint constants ─────────────────────────────────────

LOCAL_SERVICE_HOST = "localhost:8000"
LOCAL_APP_HOST = "localhost:8080"
REMOTE_SERVICE_HOST = "appengine.google.com"
REMOTE_APP_DOMAIN = "appspot.com"

DEFAULT_TIMEOUT = 30.0


def parse_origin(origin: str) -> Optional[URL]:
    """Parse *origin* as an absolute URL, or return None."""
    try:
        url = URL(origin)
    except (TypeError, ValueError):
        return None
    if not url.is_absolute() or not url.host:
        return None
    return url


def _domain_matches(host: str, domain: str) -> bool:
    domain = domain.lstrip(".").lower()
    host = host.lower()
    return host == domain or host.endswith("." + domain)


def cookies_for(jar: aiohttp.CookieJar, url: URL) -> list[Cookie]:
    """Cookies in *jar* that would be sent to *url*, in jar order."""
    host = url.host or ""
    return [
        Cookie.from_morsel(morsel)
        for morsel in jar
        if _domain_matches(host, morsel["domain"] or host)
    ]


def install_trays(jar: aiohttp.CookieJar, trays: Iterable[CookieTray]) -> int:
    """Put each tray's cookies into *jar*; return how many trays were used.

    Trays whose origin doesn't parse are skipped.
    """
    installed = 0
    for tray in trays:
        url = parse_origin(tray.origin)
        if url is None:
            continue
        jar.update_cookies([(c.name, c.to_morsel()) for c in tray.cookies], url)
        installed += 1
    return installed


def endpoint_trays(
    jar: aiohttp.CookieJar,
    service_url: str,
    app_url: Optional[str] = None,
) -> list[CookieTray]:
    """Snapshot *jar* as a service tray plus, if given, an application tray."""
    trays = [CookieTray(service_url, cookies_for(jar, URL(service_url)))]
    if app_url:
        trays.append(CookieTray(app_url, cookies_for(jar, URL(app_url))))
    return trays


class Session:
    """Connection details and cookie state for one App Engine application."""

    def __init__(
        self,
        app_id: str = "",
        app_version: str = "",
        *,
        local: bool = False,
        store: Optional[CookieStore] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.local = local
        self.app_id = app_id
        self.app_version = app_version
        self.store = store
        self.timeout = timeout

        if local:
            scheme = "http"
            self.service_host = LOCAL_SERVICE_HOST
            self.app_host = LOCAL_APP_HOST
        else:
            scheme = "https"
            self.service_host = REMOTE_SERVICE_HOST
            self.app_host = f"{app_id}.{REMOTE_APP_DOMAIN}"
        self.service_url = f"{scheme}://{self.service_host}"
        self.app_url = f"{scheme}://{self.app_host}"

        # aiohttp jars bind to the running loop, so the jar is created on
        # first use and restored trays wait here until then.
        self._jar: Optional[aiohttp.CookieJar] = None
        self._pending: list[CookieTray] = []
        self.restored_trays = 0
        if store is not None:
            self.restored_trays = self.restore(store.load())

        self._client: Optional[aiohttp.ClientSession] = None

    @classmethod
    def from_descriptor(
        cls,
        app: AppDescriptor,
        *,
        local: bool = False,
        store: Optional[CookieStore] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> "Session":
        return cls(
            app.application, app.version,
            local=local, store=store, timeout=timeout,
        )

    # ── Cookie state ──────────────────────────────────────

    @property
    def jar(self) -> aiohttp.CookieJar:
        """The live cookie jar; must be used inside the event loop."""
        if self._jar is None:
            self._jar = aiohttp.CookieJar()
            install_trays(self._jar, self._pending)
            self._pending = []
        return self._jar

    def restore(self, trays: Sequence[CookieTray]) -> int:
        """Install *trays* into the live jar; return how many were usable."""
        usable = [t for t in trays if parse_origin(t.origin) is not None]
        if self._jar is None:
            self._pending.extend(usable)
        else:
            install_trays(self._jar, usable)
        return len(usable)

    def snapshot(self) -> list[CookieTray]:
        """Copy the live jar into trays, one per endpoint."""
        return endpoint_trays(self.jar, self.service_url, self.app_url if self.app_id else None)

    # ── HTTP client ───────────────────────────────────────

    @property
    def client(self) -> aiohttp.ClientSession:
        """HTTP client sharing the live jar; must be used inside the event loop."""
        if self._client is None or self._client.closed:
            self._client = aiohttp.ClientSession(
                cookie_jar=self.jar,
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.closed:
            await self._client.close()
        self._client = None

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def __repr__(self) -> str:
        mode = "local" if self.local else "remote"
        return f"Session({self.app_id!r}, {mode}, service={self.service_url}, app={self.app_url})"
