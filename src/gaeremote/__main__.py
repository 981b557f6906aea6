"""Entry point for gaeremote — run with `python -m gaeremote` or `gaeremote`."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from . import __version__


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="gaeremote",
        description="gaeremote — sign in once, then use the App Engine remote API.",
    )
    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"gaeremote {__version__}",
    )
    parser.add_argument(
        "--app-dir",
        type=Path,
        default=Path("."),
        metavar="DIR",
        help="Directory containing app.yaml (default: current directory).",
    )
    parser.add_argument(
        "--local",
        action="store_true",
        help="Target the local development server instead of appspot.com.",
    )
    command = parser.add_mutually_exclusive_group(required=True)
    command.add_argument(
        "--signin",
        action="store_true",
        help="Prompt for credentials, sign in and save the session cookies.",
    )
    command.add_argument(
        "--signout",
        action="store_true",
        help="Remove the saved session cookies.",
    )
    command.add_argument(
        "--status",
        action="store_true",
        help="Show endpoints and saved cookies without touching the network.",
    )
    command.add_argument(
        "--info",
        action="store_true",
        help="Connect to the remote API and print the application ID.",
    )
    command.add_argument(
        "--init-config",
        action="store_true",
        help="Create a default settings file and exit.",
    )

    args = parser.parse_args()

    if args.init_config:
        from .config import init_config
        init_config()
        return

    from .config import load_config
    from .cookie_store import CookieStore

    config = load_config()
    store = CookieStore(config.cookie_file)

    if args.signout:
        _run_signout(store)
        return

    from .config import ConfigError, read_app

    try:
        app = read_app(args.app_dir)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if args.status:
        _run_status(app, store, local=args.local)
        return

    if args.signin:
        _run_signin(app, store, local=args.local, timeout=config.timeout)
        return

    _run_info(app, store, local=args.local, timeout=config.timeout)


def _run_signout(store) -> None:
    from .authenticator import sign_out

    existed = store.exists()
    sign_out(store)
    if existed:
        print(f"✓ Removed saved cookies from {store.path}")
    else:
        print("No saved cookies.")


def _run_signin(app, store, *, local: bool, timeout: float) -> None:
    from .authenticator import Authenticator
    from .credentials import CredentialReadError, read_credentials
    from .models import ResultKind
    from .session import Session

    try:
        credentials = read_credentials()
    except (CredentialReadError, KeyboardInterrupt) as e:
        print(f"Sign-in failed: {e}", file=sys.stderr)
        sys.exit(1)

    async def _signin():
        async with Session.from_descriptor(app, local=local, store=store, timeout=timeout) as session:
            return await Authenticator(session, store, timeout=timeout).sign_in(credentials)

    try:
        result = asyncio.run(_signin())
    except KeyboardInterrupt:
        print("Sign-in cancelled.", file=sys.stderr)
        sys.exit(1)

    if result.kind is ResultKind.SUCCESS:
        print(f"✓ Signed in; cookies saved to {store.path}")
        return

    labels = {
        ResultKind.CREDENTIAL_ERROR: "credentials rejected",
        ResultKind.TRANSPORT_ERROR: "network error",
        ResultKind.PERSISTENCE_ERROR: "could not save cookies",
    }
    print(f"Sign-in failed ({labels[result.kind]}): {result.reason}", file=sys.stderr)
    sys.exit(1)


def _run_info(app, store, *, local: bool, timeout: float) -> None:
    from .remote import ContextError, build_context
    from .session import Session

    async def _info() -> str:
        async with Session.from_descriptor(app, local=local, store=store, timeout=timeout) as session:
            ctx = await build_context(session)
            return ctx.app_id

    try:
        app_id = asyncio.run(_info())
    except ContextError as e:
        print(f"Error: {e}", file=sys.stderr)
        if store.load_error:
            print(f"  ({store.load_error})", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(1)
    print(f"App ID {app_id!r}")


def _run_status(app, store, *, local: bool) -> None:
    """Offline summary of endpoints and saved cookies, rendered with Rich."""
    from datetime import datetime, timezone

    from rich.console import Console
    from rich.panel import Panel

    from .session import Session

    console = Console()
    session = Session.from_descriptor(app, local=local)
    trays = store.load()

    lines: list[str] = [
        f"  [bold]Application:[/bold] {app.application or '[dim](none)[/dim]'}"
        + (f" [dim]v{app.version}[/dim]" if app.version else ""),
        f"  [bold]Service:[/bold] {session.service_url}",
        f"  [bold]App:[/bold] {session.app_url}",
        f"  [bold]Cookie file:[/bold] {store.path}",
    ]

    if store.load_error:
        lines.append(f"  [red]✗ {store.load_error}[/]")
    elif not trays:
        lines.append("  [yellow]Not signed in.[/]")

    now = datetime.now(timezone.utc)
    for tray in trays:
        expiries = [c.expires_at for c in tray.cookies if c.expires_at]
        line = f"  [dim]•[/dim] {tray.origin}: {len(tray.cookies)} cookie(s)"
        if expiries:
            earliest = min(expiries)
            if earliest <= now:
                line += " [red](expired)[/]"
            else:
                line += f" [dim]expires {earliest.astimezone():%Y-%m-%d %H:%M}[/dim]"
        lines.append(line)

    border = "green" if trays and not store.load_error else "yellow"
    console.print(Panel("\n".join(lines), title="gaeremote", border_style=border))


if __name__ == "__main__":
    main()
