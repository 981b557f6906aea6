"""Cookie store — persists signed-in cookie trays between runs.

Trays live in a single JSON file (``~/.cookies`` unless configured)::

    {
      "version": 1,
      "trays": [
        {
          "origin": "https://appengine.google.com",
          "cookies": [{"name": "SACSID", "value": "xxxx", "domain": ...}]
        },
        {
          "origin": "https://myapp.appspot.com",
          "cookies": [...]
        }
      ]
    }

The format only needs to round-trip within gaeremote itself.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional, Sequence

from .models import CookieTray

FORMAT_VERSION = 1
COOKIE_FILENAME = ".cookies"


def default_cookie_path() -> Path:
    """Return ``<home>/.cookies``."""
    return Path.home() / COOKIE_FILENAME


class CookieStore:
    """Reads and writes cookie trays at a fixed path."""

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else default_cookie_path()
        self.load_error: Optional[str] = None

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, trays: Sequence[CookieTray]) -> None:
        """Overwrite the cookie file with *trays*.

        Raises OSError if the file can't be written; the caller decides
        whether that is fatal.
        """
        data = {
            "version": FORMAT_VERSION,
            "trays": [t.to_dict() for t in trays],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2) + "\n")
        try:
            self.path.chmod(0o600)
        except OSError:
            pass

    def load(self) -> list[CookieTray]:
        """Load trays, returning [] if the file is missing or corrupt.

        A missing file is the normal signed-out state and leaves
        ``load_error`` as None.  Anything else that prevents decoding is
        recorded in ``load_error``.
        """
        self.load_error = None
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            self.load_error = f"unreadable cookie file {self.path}: {e}"
            return []

        if not isinstance(data, dict) or data.get("version") != FORMAT_VERSION:
            self.load_error = f"unrecognized cookie file format in {self.path}"
            return []

        try:
            return [CookieTray.from_dict(t) for t in data.get("trays", [])]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            self.load_error = f"malformed cookie tray in {self.path}: {e!r}"
            return []

    def clear(self) -> None:
        """Delete the cookie file; a missing file is not an error."""
        self.path.unlink(missing_ok=True)
