"""Configuration handling for gaeremote.

Two sources feed a run:

* the application descriptor ``app.yaml`` in the application directory,
  which names the application and version to sign in to;
* optional user settings at ~/.config/gaeremote/settings.json (XDG).

Example settings:
{
  "timeout": 30,
  "cookie_file": "~/.cookies"
}
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .cookie_store import default_cookie_path
from .helpers import config_dir

APP_DESCRIPTOR = "app.yaml"


class ConfigError(RuntimeError):
    """The application descriptor is missing or can't be parsed."""


# ── Application descriptor ─────────────────────────────────


@dataclass
class URLHandler:
    """One entry of the ``handlers`` list in app.yaml."""
    url: str = ""
    static_dir: str = ""
    static_files: str = ""
    upload: str = ""
    script: str = ""

    @classmethod
    def from_dict(cls, d: dict) -> "URLHandler":
        return cls(**{
            k: str(d.get(k) or "")
            for k in ("url", "static_dir", "static_files", "upload", "script")
        })


@dataclass
class AppDescriptor:
    """The subset of app.yaml gaeremote cares about."""
    application: str = ""
    version: str = ""
    runtime: str = ""
    api_version: str = ""
    handlers: list[URLHandler] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict) -> "AppDescriptor":
        handlers = d.get("handlers") or []
        if not isinstance(handlers, list):
            raise ConfigError("'handlers' must be a list")
        return cls(
            application=str(d.get("application") or ""),
            version=str(d.get("version") or ""),
            runtime=str(d.get("runtime") or ""),
            api_version=str(d.get("api_version") or ""),
            handlers=[URLHandler.from_dict(h) for h in handlers if isinstance(h, dict)],
        )


def read_app(app_dir: Path | str) -> AppDescriptor:
    """Read ``<app_dir>/app.yaml``.

    Raises ConfigError if the file is missing or isn't a YAML mapping.
    """
    path = Path(app_dir) / APP_DESCRIPTOR
    try:
        text = path.read_text()
    except OSError as e:
        raise ConfigError(f"cannot read {path}: {e.strerror or e}") from e
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a YAML mapping")
    return AppDescriptor.from_dict(data)


# ── User settings ──────────────────────────────────────────


@dataclass
class ToolConfig:
    """User-level settings."""
    timeout: float = 30.0
    cookie_file: Path = field(default_factory=default_cookie_path)

    MIN_TIMEOUT = 1.0
    MAX_TIMEOUT = 600.0

    @classmethod
    def from_dict(cls, d: dict) -> "ToolConfig":
        raw_timeout = d.get("timeout", 30.0)
        timeout = max(cls.MIN_TIMEOUT, min(cls.MAX_TIMEOUT, float(raw_timeout)))
        raw_cookie = d.get("cookie_file")
        cookie_file = Path(raw_cookie).expanduser() if raw_cookie else default_cookie_path()
        return cls(timeout=timeout, cookie_file=cookie_file)

    @classmethod
    def default(cls) -> "ToolConfig":
        return cls()


def config_path() -> Path:
    """Return the settings file path, preferring XDG."""
    return config_dir("settings.json")


def load_config(path: Optional[Path] = None) -> ToolConfig:
    """Load settings from disk, or return defaults if no file exists."""
    path = path or config_path()
    if not path.exists():
        return ToolConfig.default()

    try:
        data = json.loads(path.read_text())
        if not isinstance(data, dict):
            raise TypeError("settings must be a JSON object")
        return ToolConfig.from_dict(data)
    except (json.JSONDecodeError, OSError, TypeError, ValueError) as e:
        print(f"gaeremote: bad config ({path}): {e} — using defaults", file=sys.stderr)
        return ToolConfig.default()


def init_config() -> None:
    """Create a settings file with the default values."""
    path = config_path()
    if path.exists():
        print(f"Config already exists: {path}")
        return

    cfg = ToolConfig.default()
    data = {"timeout": int(cfg.timeout), "cookie_file": str(cfg.cookie_file)}

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n")
    print(f"Created config: {path}")
