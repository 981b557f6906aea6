"""Data models for gaeremote."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import formatdate, parsedate_to_datetime
from enum import Enum
from http.cookies import CookieError, Morsel
from typing import Any, Optional


def _optional_str(d: dict, key: str) -> Optional[str]:
    raw: Any = d.get(key)
    if raw is None or raw == "":
        return None
    if not isinstance(raw, str):
        raise ValueError(f"cookie {key!r} must be a string, got {type(raw).__name__}")
    return raw


def _absolute_expiry(max_age: str) -> Optional[str]:
    """HTTP date for a relative ``max-age``, measured from now."""
    try:
        seconds = int(max_age)
    except (TypeError, ValueError):
        return None
    return formatdate(time.time() + max(seconds, 0), usegmt=True)


@dataclass
class Cookie:
    """One cookie, copied verbatim between a live jar and a persisted tray."""

    name: str
    value: str
    coded_value: str = ""
    domain: str = ""
    path: str = "/"
    expires: Optional[str] = None
    max_age: Optional[str] = None
    secure: bool = False
    httponly: bool = False
    samesite: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.coded_value:
            self.coded_value = self.value

    @classmethod
    def from_morsel(cls, morsel: "Morsel[str]") -> "Cookie":
        """Copy a live morsel.

        A ``max-age`` is pinned to an absolute ``expires`` so the lifetime
        doesn't restart when the cookie is restored later.
        """
        expires = morsel["expires"] or None
        if morsel["max-age"] != "":
            expires = _absolute_expiry(str(morsel["max-age"])) or expires
        return cls(
            name=morsel.key,
            value=morsel.value,
            coded_value=morsel.coded_value,
            domain=morsel["domain"] or "",
            path=morsel["path"] or "/",
            expires=expires,
            max_age=None,
            secure=bool(morsel["secure"]),
            httponly=bool(morsel["httponly"]),
            samesite=morsel["samesite"] or None,
        )

    def to_morsel(self) -> "Morsel[str]":
        morsel: Morsel[str] = Morsel()
        morsel.set(self.name, self.value, self.coded_value)
        if self.domain:
            morsel["domain"] = self.domain
        morsel["path"] = self.path
        if self.expires:
            morsel["expires"] = self.expires
        if self.max_age:
            morsel["max-age"] = self.max_age
        if self.secure:
            morsel["secure"] = True
        if self.httponly:
            morsel["httponly"] = True
        if self.samesite:
            morsel["samesite"] = self.samesite
        return morsel

    @property
    def expires_at(self) -> Optional[datetime]:
        """Absolute expiry from the ``expires`` attribute, if parseable."""
        if not self.expires:
            return None
        try:
            dt = parsedate_to_datetime(self.expires)
        except (TypeError, ValueError, IndexError):
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "value": self.value,
            "coded_value": self.coded_value,
            "domain": self.domain,
            "path": self.path,
            "expires": self.expires,
            "max_age": self.max_age,
            "secure": self.secure,
            "httponly": self.httponly,
            "samesite": self.samesite,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Cookie":
        """Build a Cookie from stored data.

        Raises ValueError if the entry couldn't be installed in a jar.
        """
        cookie = cls(
            name=str(d["name"]),
            value=str(d["value"]),
            coded_value=str(d.get("coded_value") or ""),
            domain=str(d.get("domain") or ""),
            path=str(d.get("path") or "/"),
            expires=_optional_str(d, "expires"),
            max_age=_optional_str(d, "max_age"),
            secure=bool(d.get("secure", False)),
            httponly=bool(d.get("httponly", False)),
            samesite=_optional_str(d, "samesite"),
        )
        try:
            cookie.to_morsel()
        except CookieError as e:
            raise ValueError(str(e)) from e
        return cookie


@dataclass
class CookieTray:
    """The cookies issued for one endpoint, in receipt order."""

    origin: str
    cookies: list[Cookie] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "origin": self.origin,
            "cookies": [c.to_dict() for c in self.cookies],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "CookieTray":
        return cls(
            origin=str(d["origin"]),
            cookies=[Cookie.from_dict(c) for c in d.get("cookies", [])],
        )


@dataclass
class Credentials:
    """Username/password pair, held in memory for one sign-in only."""

    username: str
    password: str = field(repr=False)


class ResultKind(Enum):
    SUCCESS = "success"
    CREDENTIAL_ERROR = "credential_error"
    TRANSPORT_ERROR = "transport_error"
    PERSISTENCE_ERROR = "persistence_error"


@dataclass
class SignInResult:
    """Outcome of a sign-in attempt.

    Branch on ``kind``; a result has no truth value.
    """

    kind: ResultKind
    reason: str = ""
    cause: Optional[BaseException] = None
    trays: list[CookieTray] = field(default_factory=list)

    def __bool__(self) -> bool:
        raise TypeError("SignInResult has no truth value; compare .kind instead")

    @classmethod
    def success(cls, trays: list[CookieTray]) -> "SignInResult":
        return cls(kind=ResultKind.SUCCESS, trays=trays)

    @classmethod
    def credential_error(cls, reason: str) -> "SignInResult":
        return cls(kind=ResultKind.CREDENTIAL_ERROR, reason=reason)

    @classmethod
    def transport_error(cls, cause: BaseException) -> "SignInResult":
        return cls(
            kind=ResultKind.TRANSPORT_ERROR,
            reason=str(cause) or type(cause).__name__,
            cause=cause,
        )

    @classmethod
    def persistence_error(cls, cause: BaseException) -> "SignInResult":
        return cls(
            kind=ResultKind.PERSISTENCE_ERROR,
            reason=str(cause) or type(cause).__name__,
            cause=cause,
        )
