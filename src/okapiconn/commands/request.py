"""Request commands -- talk to Okapi from the shell.

* ``okapiconn request METHOD PATH`` sends one authenticated request through
  an :class:`~okapiconn.client.OkapiConnection` built from the active
  profile and prints the response body to stdout.
* ``okapiconn forward-token TOKEN`` hands a token obtained in the web UI to
  a process waiting in a ``browser_token`` strategy.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from okapiconn.auth.base import AuthStrategy
from okapiconn.client import OkapiConnection
from okapiconn.client.response import format_response
from okapiconn.exceptions import InvalidUsageError
from okapiconn.models import Profile
from okapiconn.output import debug, success

_METHODS = ("GET", "POST", "PUT", "DELETE")


def _parse_pairs(pairs: Optional[list[str]], option: str) -> dict[str, str]:
    """Split ``key=value`` strings into a dict, keeping their order."""
    result: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise InvalidUsageError(f"{option} expects key=value, got '{pair}'")
        result[key] = value
    return result


def _read_body(data: Optional[str]) -> Optional[bytes]:
    if data is None:
        return None
    if data == "-":
        return typer.get_binary_stream("stdin").read()
    path = Path(data)
    try:
        return path.read_bytes()
    except OSError as exc:
        raise InvalidUsageError(f"cannot read request body from {path}: {exc}") from exc


def _interactive_strategy() -> AuthStrategy:
    """Strategy for profiles without auth: a dialog if a display is usable, else the terminal."""
    from okapiconn.plugins.cli_credentials import CliCredentialsStrategy
    from okapiconn.plugins.dialog_credentials import DialogCredentialsStrategy

    if DialogCredentialsStrategy.is_available():
        return DialogCredentialsStrategy()
    return CliCredentialsStrategy()


def open_connection(profile: Profile) -> OkapiConnection:
    """Build the connection used by ``okapiconn request`` for *profile*."""
    strategy = None if profile.auth is not None else _interactive_strategy()
    return OkapiConnection.from_profile(profile, strategy=strategy)


def request_command(
    ctx: typer.Context,
    method: str = typer.Argument(help="HTTP method: GET, POST, PUT or DELETE."),
    path: str = typer.Argument(help="Path below the Okapi base URI, e.g. /users."),
    param: Optional[list[str]] = typer.Option(
        None, "--param", "-P", help="Query parameter key=value (repeatable)."
    ),
    header: Optional[list[str]] = typer.Option(
        None, "--header", "-H", help="Extra header key=value (repeatable)."
    ),
    data: Optional[str] = typer.Option(
        None, "--data", "-d", help="Request body file, or '-' for stdin (POST/PUT)."
    ),
    content_type: Optional[str] = typer.Option(
        None, "--content-type", help="Content type of the request body."
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Override the profile's base URI."
    ),
    tenant: Optional[str] = typer.Option(None, "--tenant", help="Override the profile's tenant."),
) -> None:
    """Send one authenticated request to Okapi.

    The connection logs in on first use with the profile's auth strategy
    (or an interactive prompt when the profile has none) and retries once
    if Okapi rejects the token. The response body goes to stdout, the
    status line to stderr.

    Raises:
        InvalidUsageError: For an unknown method, malformed ``key=value``
            pairs or when no profile can be resolved.
        AuthenticationError: If no token can be obtained.
        ConnectionError_: If the request fails.

    Example::

        okapiconn request GET /users --param query=username==diku_admin
        okapiconn request POST /instance-storage/instances -d instance.json \\
            --content-type application/json
    """
    from okapiconn.config import resolve_profile

    method = method.upper()
    if method not in _METHODS:
        raise InvalidUsageError(
            f"unsupported method '{method}', expected one of {', '.join(_METHODS)}"
        )

    params = _parse_pairs(param, "--param")
    headers = _parse_pairs(header, "--header")
    body = _read_body(data)
    if body is not None and method not in ("POST", "PUT"):
        raise InvalidUsageError(f"{method} requests do not take a body")

    cli_profile = ctx.obj.get("profile") if ctx.obj else None
    profile = resolve_profile(cli_profile, base_url, tenant)
    if profile is None:
        raise InvalidUsageError(
            "no profile configured; use --profile, or --base-url with --tenant"
        )

    debug(f"Using profile '{profile.name}' ({profile.base_url}, tenant {profile.tenant})")
    with open_connection(profile) as connection:
        response = connection.request(
            method,
            path,
            params=params or None,
            content_type=content_type,
            headers=headers or None,
            body=body,
        )
    format_response(response)


def forward_token_command(
    ctx: typer.Context,
    token: str = typer.Argument(help="Token issued to the browser session."),
    token_dir: Optional[Path] = typer.Option(
        None, "--dir", help="Token directory (default: the active profile's token_dir)."
    ),
    token_file: Optional[str] = typer.Option(
        None, "--file", help="Token file name (default: the profile's token_file)."
    ),
) -> None:
    """Forward a token to a process waiting in a ``browser_token`` strategy.

    Example::

        okapiconn forward-token "$TOKEN" --dir ~/.cache/okapi-token
    """
    from okapiconn.config import resolve_profile
    from okapiconn.plugins.browser_token import forward_token
    from okapiconn.plugins.browser_token.plugin import DEFAULT_TOKEN_FILE

    if token_dir is None:
        cli_profile = ctx.obj.get("profile") if ctx.obj else None
        profile = resolve_profile(cli_profile)
        auth = profile.auth if profile is not None else None
        if auth is None or not auth.token_dir:
            raise InvalidUsageError("no token directory given; use --dir")
        token_dir = Path(auth.token_dir).expanduser()
        token_file = token_file or auth.token_file

    path = forward_token(token_dir, token, token_file or DEFAULT_TOKEN_FILE)
    success(f"Token forwarded to {path}")
