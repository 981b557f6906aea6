"""Shared fixtures for gaeremote tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from gaeremote.cookie_store import CookieStore
from gaeremote.models import Cookie, CookieTray


@pytest.fixture
def tmp_config_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate XDG config and home directories under tmp_path."""
    config_home = tmp_path / "config"
    home = tmp_path / "home"
    config_home.mkdir()
    home.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_home))
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("GAEREMOTE_DEBUG_HTTP", raising=False)
    monkeypatch.delenv("GAEREMOTE_DEBUG_LOG_PATH", raising=False)
    return config_home / "gaeremote"


@pytest.fixture
def store(tmp_path: Path) -> CookieStore:
    return CookieStore(tmp_path / "cookies.json")


@pytest.fixture
def sample_trays() -> list[CookieTray]:
    return [
        CookieTray(
            origin="https://appengine.google.com",
            cookies=[
                Cookie(
                    name="SACSID",
                    value="svc-token",
                    domain="appengine.google.com",
                    path="/",
                    expires="Wed, 01 Jan 2031 12:00:00 GMT",
                    secure=True,
                    httponly=True,
                ),
            ],
        ),
        CookieTray(
            origin="https://myapp.appspot.com",
            cookies=[
                Cookie(name="SACSID", value="app-token", domain="myapp.appspot.com"),
                Cookie(name="dev_appserver_login", value="me@example.com:True:1", domain="myapp.appspot.com"),
            ],
        ),
    ]
