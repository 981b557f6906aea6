"""Interactive credential prompt.

The terminal mode of the input stream is saved before anything is read,
echo is switched off for the password, and the saved mode is put back on
every way out of ``read_credentials``.
"""

from __future__ import annotations

import sys
import termios
from typing import Any, TextIO

from .models import Credentials


class CredentialReadError(RuntimeError):
    """The terminal could not be prepared or a prompt could not be read."""


# ── Terminal mode ─────────────────────────────────────────


def _get_mode(fd: int) -> list[Any]:
    return termios.tcgetattr(fd)


def _set_no_echo(fd: int, mode: list[Any]) -> None:
    quiet = list(mode)
    quiet[3] = quiet[3] & ~termios.ECHO
    termios.tcsetattr(fd, termios.TCSAFLUSH, quiet)


def _restore_mode(fd: int, mode: list[Any]) -> None:
    termios.tcsetattr(fd, termios.TCSAFLUSH, mode)


# ── Prompting ─────────────────────────────────────────────


def _prompt(label: str, stream: TextIO, out: TextIO) -> str:
    out.write(label)
    out.flush()
    try:
        line = stream.readline()
    except OSError as e:
        raise CredentialReadError(f"could not read {label.rstrip(': ').lower()}: {e}") from e
    if not line:
        raise CredentialReadError(f"no {label.rstrip(': ').lower()} entered")
    return line.rstrip("\r\n")


def read_credentials(
    stream: TextIO | None = None,
    out: TextIO | None = None,
) -> Credentials:
    """Prompt for a username and a password without echoing the password."""
    stream = stream or sys.stdin
    out = out or sys.stdout

    try:
        fd = stream.fileno()
        mode = _get_mode(fd)
    except (termios.error, OSError, ValueError) as e:
        raise CredentialReadError(f"could not access the terminal: {e}") from e

    try:
        username = _prompt("Username: ", stream, out)
        _set_no_echo(fd, mode)
        password = _prompt("Password: ", stream, out)
        out.write("\n")
    finally:
        _restore_mode(fd, mode)

    return Credentials(username=username, password=password)
