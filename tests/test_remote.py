"""Tests for the remote API context handshake."""

from __future__ import annotations

import re

import aiohttp
import pytest
from aioresponses import CallbackResult, aioresponses

from gaeremote.cookie_store import CookieStore
from gaeremote.models import CookieTray
from gaeremote.remote import ContextError, build_context, remote_api_url
from gaeremote.session import Session

REMOTE_API_RE = re.compile(r"^https://myapp\.appspot\.com/_ah/remote_api(\?.*)?$")
LOCAL_REMOTE_API_RE = re.compile(r"^http://localhost:8080/_ah/remote_api(\?.*)?$")


def _echo_token(app_id: str = "s~myapp"):
    def callback(url, **kwargs):
        token = url.query["rtok"]
        return CallbackResult(
            status=200,
            body=f"{{'app_id': '{app_id}', 'rtok': '{token}'}}",
            content_type="text/plain",
        )
    return callback


class TestRemoteApiUrl:
    def test_remote_host_uses_https(self) -> None:
        assert remote_api_url("myapp.appspot.com") == "https://myapp.appspot.com/_ah/remote_api"

    def test_localhost_uses_http(self) -> None:
        assert remote_api_url("localhost:8080") == "http://localhost:8080/_ah/remote_api"

    @pytest.mark.parametrize(
        "host",
        ["", ".appspot.com", "https://myapp.appspot.com", "myapp.appspot.com/path"],
    )
    def test_rejects_malformed_hosts(self, host: str) -> None:
        with pytest.raises(ContextError):
            remote_api_url(host)


class TestBuildContext:
    async def test_handshake_returns_app_id(self) -> None:
        async with Session("myapp") as session:
            with aioresponses() as m:
                m.get(REMOTE_API_RE, callback=_echo_token())
                ctx = await build_context(session)

                ((method, url), calls), = m.requests.items()
                assert calls[0].kwargs["headers"]["X-Appcfg-Api-Version"] == "1"

        assert ctx.app_id == "s~myapp"
        assert ctx.host == "myapp.appspot.com"
        assert ctx.url == "https://myapp.appspot.com/_ah/remote_api"

    async def test_local_handshake(self) -> None:
        async with Session("myapp", local=True) as session:
            with aioresponses() as m:
                m.get(LOCAL_REMOTE_API_RE, callback=_echo_token("dev~myapp"))
                ctx = await build_context(session)
        assert ctx.app_id == "dev~myapp"

    async def test_uses_restored_cookies(
        self, store: CookieStore, sample_trays: list[CookieTray]
    ) -> None:
        store.save(sample_trays)
        async with Session("myapp", store=store) as session:
            with aioresponses() as m:
                m.get(REMOTE_API_RE, callback=_echo_token())
                ctx = await build_context(session)
            assert ctx.client is session.client
            assert len(session.jar) == 3

    async def test_token_mismatch(self) -> None:
        async with Session("myapp") as session:
            with aioresponses() as m:
                m.get(REMOTE_API_RE, status=200, body="{'app_id': 's~myapp', 'rtok': '1'}")
                with pytest.raises(ContextError, match="token mismatch"):
                    await build_context(session)

    async def test_login_page_instead_of_api(self) -> None:
        async with Session("myapp") as session:
            with aioresponses() as m:
                m.get(REMOTE_API_RE, status=200, body="<html>Sign in</html>")
                with pytest.raises(ContextError, match="failed to parse"):
                    await build_context(session)

    async def test_bad_status(self) -> None:
        async with Session("myapp") as session:
            with aioresponses() as m:
                m.get(REMOTE_API_RE, status=401, body="Unauthorized")
                with pytest.raises(ContextError, match="bad response 401"):
                    await build_context(session)

    async def test_unreachable(self) -> None:
        async with Session("myapp") as session:
            with aioresponses() as m:
                m.get(REMOTE_API_RE, exception=aiohttp.ClientConnectionError("refused"))
                with pytest.raises(ContextError, match="unable to contact server"):
                    await build_context(session)

    async def test_empty_application_is_rejected_before_network(self) -> None:
        async with Session("") as session:
            with aioresponses() as m:
                with pytest.raises(ContextError, match="invalid host"):
                    await build_context(session)
                assert m.requests == {}


class TestRemoteContextCall:
    async def test_call_posts_body(self) -> None:
        async with Session("myapp") as session:
            with aioresponses() as m:
                m.get(REMOTE_API_RE, callback=_echo_token())
                ctx = await build_context(session)

                m.post(REMOTE_API_RE, status=200, body=b"\x0a\x02ok")
                reply = await ctx.call(b"\x0a\x04ping")

                post_calls = [c for (meth, _), cs in m.requests.items() if meth == "POST" for c in cs]
                assert post_calls[0].kwargs["data"] == b"\x0a\x04ping"
        assert reply == b"\x0a\x02ok"

    async def test_call_error_status(self) -> None:
        async with Session("myapp") as session:
            with aioresponses() as m:
                m.get(REMOTE_API_RE, callback=_echo_token())
                ctx = await build_context(session)

                m.post(REMOTE_API_RE, status=500, body=b"boom")
                with pytest.raises(ContextError, match="HTTP 500"):
                    await ctx.call(b"")
