"""Shared helpers for gaeremote."""

from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Optional

# Query/header keys whose values never reach the debug log.
SECRET_KEYS = {"passwd", "auth", "cookie", "set-cookie"}


def config_dir(*parts: str) -> Path:
    """Return a path under the gaeremote XDG config directory.

    >>> config_dir("settings.json")
    PosixPath('/home/user/.config/gaeremote/settings.json')
    """
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / "gaeremote" / Path(*parts) if parts else base / "gaeremote"


def redact(values: Mapping[str, Any] | None) -> dict[str, Any]:
    """Copy *values* with secret entries masked."""
    if not values:
        return {}
    return {
        k: ("***" if k.lower() in SECRET_KEYS and v else v)
        for k, v in values.items()
    }




# ── HTTP trace ─────────────────────────────────────────────

TRACE_ENV = "GAEREMOTE_DEBUG_HTTP"
TRACE_PATH_ENV = "GAEREMOTE_DEBUG_LOG_PATH"
_TRUTHY = frozenset({"1", "true", "yes", "on"})


def trace_file() -> Optional[Path]:
    """Where HTTP traces go, or None when tracing is switched off."""
    if os.environ.get(TRACE_ENV, "").strip().lower() not in _TRUTHY:
        return None
    custom = os.environ.get(TRACE_PATH_ENV, "").strip()
    return Path(custom).expanduser() if custom else config_dir("debug.log")


def http_debug_log(
    component: str,
    phase: str,
    *,
    method: str,
    url: str,
    status: int | None = None,
    headers: Mapping[str, Any] | None = None,
    params: Mapping[str, Any] | None = None,
    message: str | None = None,
) -> None:
    """Append one JSON line describing an HTTP exchange step.

    Secrets in *headers* and *params* are masked. The file is created
    owner-only. I/O failures are ignored.
    """
    path = trace_file()
    if path is None:
        return

    event: dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "component": component,
        "phase": phase,
        "method": method,
        "url": url,
        "status": status,
        "headers": redact(headers) or None,
        "params": redact(params) or None,
        "message": message or None,
    }
    line = json.dumps({k: v for k, v in event.items() if v is not None}, default=str)

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write(line + "\n")
    except OSError:
        return
