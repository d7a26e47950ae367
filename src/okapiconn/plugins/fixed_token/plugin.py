"""Fixed token strategy -- use an access token obtained elsewhere.

No login is performed. If Okapi rejects the token, re-authentication
returns the same token again and the request fails after its single
retry.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from okapiconn.auth.base import AuthStrategy
from okapiconn.config import resolve_credential
from okapiconn.exceptions import InvalidUsageError
from okapiconn.models import AuthConfig

if TYPE_CHECKING:
    from okapiconn.client.connection import OkapiConnection


class FixedTokenStrategy(AuthStrategy):
    """Always return the same pre-issued token.

    Args:
        token: The access token.

    Raises:
        InvalidUsageError: If *token* is empty.
    """

    auth_type = "fixed_token"

    def __init__(self, token: str) -> None:
        if not token:
            raise InvalidUsageError("a fixed token must not be empty")
        self._token = token

    def obtain_token(self, connection: OkapiConnection) -> str:
        return self._token

    @classmethod
    def from_config(cls, auth_config: AuthConfig) -> FixedTokenStrategy:
        return cls(resolve_credential(auth_config.token_source or "prompt", "Token: "))

    @classmethod
    def validate_config(cls, auth_config: AuthConfig) -> list[str]:
        errors: list[str] = []
        if not auth_config.token_source:
            errors.append("fixed_token auth requires a 'token_source'")
        return errors

    def __repr__(self) -> str:
        return "FixedTokenStrategy(token=***)"
