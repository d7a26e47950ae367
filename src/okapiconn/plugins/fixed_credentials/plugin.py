"""Fixed credentials strategy -- log in with credentials held in memory.

Suitable for unattended jobs. The strategy keeps the password for its
whole lifetime, so every login gets a copy of it in a fresh
:class:`~okapiconn.auth.credentials.Credentials` that is wiped after use.
Call :meth:`FixedCredentialsStrategy.erase` when the strategy is no longer
needed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from okapiconn.auth.base import CredentialsStrategy
from okapiconn.auth.credentials import Credentials, PasswordLike, as_password_buffer, erase_buffer
from okapiconn.config import resolve_credential
from okapiconn.exceptions import InvalidUsageError
from okapiconn.models import AuthConfig

if TYPE_CHECKING:
    from okapiconn.client.connection import OkapiConnection


class FixedCredentialsStrategy(CredentialsStrategy):
    """Log in with a fixed username and/or user id and password.

    Args:
        username: Login user name.
        user_id: Login user id.
        password: The password. A ``bytearray`` is kept (not copied) and
            wiped by :meth:`erase`.

    Raises:
        InvalidUsageError: If both *username* and *user_id* are blank.
    """

    auth_type = "fixed_credentials"

    def __init__(
        self,
        username: Optional[str] = None,
        user_id: Optional[str] = None,
        password: Optional[PasswordLike] = None,
    ) -> None:
        if not (username and username.strip()) and not (user_id and user_id.strip()):
            raise InvalidUsageError("Either username or userId must be given")
        self._username = username
        self._user_id = user_id
        self._password = as_password_buffer(password)

    def get_credentials(self, connection: OkapiConnection) -> Credentials:
        return Credentials(self._username, self._user_id, bytearray(self._password))

    def erase(self) -> None:
        """Wipe the held password. Later logins send an invalid password."""
        erase_buffer(self._password)

    @classmethod
    def from_config(cls, auth_config: AuthConfig) -> FixedCredentialsStrategy:
        password = resolve_credential(auth_config.password_source or "prompt", "Password: ")
        return cls(auth_config.username, auth_config.user_id, password)

    @classmethod
    def validate_config(cls, auth_config: AuthConfig) -> list[str]:
        errors: list[str] = []
        if not auth_config.username and not auth_config.user_id:
            errors.append("fixed_credentials auth requires 'username' or 'user_id'")
        if not auth_config.password_source:
            errors.append("fixed_credentials auth requires a 'password_source'")
        return errors

    def __repr__(self) -> str:
        return (
            f"FixedCredentialsStrategy(username={self._username!r}, "
            f"user_id={self._user_id!r}, password=***)"
        )
