"""Pluggable authentication for Okapi connections.

The main entry points are:

- :class:`AuthStrategy` -- abstract base for anything that produces an
  access token for a connection.
- :class:`CredentialsStrategy` -- base for strategies that log in with
  user credentials.
- :class:`Credentials` -- short-lived credentials with an erasable password.
- :class:`AuthManager` / :func:`create_default_manager` -- registry that
  builds a strategy from a profile's :class:`~okapiconn.models.AuthConfig`.

Concrete strategies live in :mod:`okapiconn.plugins`.
"""

from okapiconn.auth.base import AuthStrategy, CredentialsStrategy
from okapiconn.auth.credentials import Credentials
from okapiconn.auth.manager import AuthManager, create_default_manager

__all__ = [
    "AuthStrategy",
    "AuthManager",
    "Credentials",
    "CredentialsStrategy",
    "create_default_manager",
]
