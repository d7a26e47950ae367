"""okapiconn -- authenticated connections to a FOLIO Okapi backend.

An :class:`~okapiconn.client.OkapiConnection` is bound to one Okapi base
URI and one tenant. It lazily obtains an access token from a pluggable
:class:`~okapiconn.auth.AuthStrategy`, caches it, sends it with every
request and transparently logs in again when the backend rejects it.

Typical usage::

    from okapiconn.client import OkapiConnection
    from okapiconn.plugins.cli_credentials import CliCredentialsStrategy

    with OkapiConnection("https://okapi.example.org/", "diku",
                         CliCredentialsStrategy()) as okapi:
        users = okapi.get_json("/users", params={"limit": "10"})

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic configuration models.
    config: XDG-aware configuration and profile management.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting for the CLI.
"""

__version__ = "0.3.0"
