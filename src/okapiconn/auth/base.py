"""Abstract base classes for auth strategies.

This module defines the contract between an
:class:`~okapiconn.client.OkapiConnection` and the mechanism that
supplies its access token:

- :class:`AuthStrategy` -- anything that can produce a token for a
  connection. Strategies holding a pre-issued token return it directly.
- :class:`CredentialsStrategy` -- strategies that gather
  :class:`~okapiconn.auth.credentials.Credentials` and exchange them for a
  token through the connection's login call.

To implement a new strategy, subclass one of these, set :attr:`auth_type`
and implement :meth:`~AuthStrategy.obtain_token` (or
:meth:`~CredentialsStrategy.get_credentials`). Override
:meth:`~AuthStrategy.from_config` to support construction from a
:class:`~okapiconn.models.AuthConfig`.

See Also:
    :mod:`okapiconn.auth.manager` for strategy registration.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, ClassVar

from okapiconn.auth.credentials import Credentials
from okapiconn.models import AuthConfig

if TYPE_CHECKING:
    from okapiconn.client.connection import OkapiConnection


class AuthStrategy(ABC):
    """Produces access tokens for an Okapi connection.

    :meth:`obtain_token` may block for a long time (waiting for user input
    or a forwarded token). The connection calls it at most once per
    cache-miss, no matter how many threads are waiting for the token.
    """

    auth_type: ClassVar[str] = ""
    """Unique identifier used in :attr:`AuthConfig.type <okapiconn.models.AuthConfig.type>`."""

    @abstractmethod
    def obtain_token(self, connection: OkapiConnection) -> str:
        """Return an access token that is valid at the moment of return.

        Args:
            connection: The connection the token is for. Credential-based
                strategies use its :meth:`~okapiconn.client.OkapiConnection.login_for_token`.

        Raises:
            AuthenticationError: If no token can be produced.
        """
        ...

    @classmethod
    def from_config(cls, auth_config: AuthConfig) -> AuthStrategy:
        """Build a strategy from a profile's auth section.

        The default implementation takes no parameters from the config.
        """
        return cls()

    @classmethod
    def validate_config(cls, auth_config: AuthConfig) -> list[str]:
        """Return human-readable problems with *auth_config*; empty if valid."""
        return []


class CredentialsStrategy(AuthStrategy):
    """A strategy that logs in with freshly gathered credentials.

    :meth:`obtain_token` asks :meth:`get_credentials` for a new
    :class:`~okapiconn.auth.credentials.Credentials`, performs the login
    and erases the credentials whether the login succeeded or not.
    """

    def obtain_token(self, connection: OkapiConnection) -> str:
        with self.get_credentials(connection) as credentials:
            return connection.login_for_token(
                credentials.username, credentials.user_id, credentials.password
            )

    @abstractmethod
    def get_credentials(self, connection: OkapiConnection) -> Credentials:
        """Return new credentials for one login attempt on *connection*.

        Raises:
            AuthenticationError: If no credentials are available (e.g. the
                user cancelled the prompt).
        """
        ...
