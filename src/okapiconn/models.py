"""Pydantic configuration models shared across okapiconn.

These models are serialised as JSON in the user's config directory and
describe how a connection to an Okapi instance is built:

* :class:`AuthConfig` -- which auth strategy to use and its parameters.
* :class:`RequestConfig` -- HTTP settings applied to every request.
* :class:`Profile` -- one Okapi base URI / tenant pair plus the above.
* :class:`GlobalConfig` -- user-wide defaults.

All models use Pydantic v2. :class:`AuthConfig` and :class:`Profile` use
``extra="allow"`` so that unknown keys written by newer versions survive a
load/save round trip.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator


AUTH_TYPES = (
    "cli_credentials",
    "dialog_credentials",
    "fixed_credentials",
    "fixed_token",
    "browser_token",
)
"""Auth type identifiers understood by :func:`~okapiconn.auth.create_default_manager`."""


class AuthConfig(BaseModel):
    """Authentication configuration embedded in a :class:`Profile`.

    The ``type`` field selects the strategy; the remaining fields supply
    strategy-specific parameters. Secrets are never stored directly, only
    as a credential *source* (``env:VAR``, ``file:/path`` or ``prompt``)
    resolved by :func:`~okapiconn.config.resolve_credential`.

    Example::

        AuthConfig(
            type="fixed_credentials",
            username="diku_admin",
            password_source="env:OKAPI_PASSWORD",
        )
    """

    model_config = ConfigDict(extra="allow")

    type: str = Field(
        description="Auth type: cli_credentials, dialog_credentials, "
        "fixed_credentials, fixed_token, browser_token"
    )
    username: Optional[str] = Field(default=None, description="Login user name")
    user_id: Optional[str] = Field(default=None, description="Login user id (UUID)")
    password_source: Optional[str] = Field(
        default=None, description="Credential source for the password"
    )
    token_source: Optional[str] = Field(
        default=None,
        description="Credential source for a pre-issued token (fixed_token, browser_token)",
    )
    # Browser token forwarding
    login_url: Optional[str] = Field(
        default=None, description="URL of the UI to open in the browser for login"
    )
    token_dir: Optional[str] = Field(
        default=None, description="Directory a forwarded token is written into"
    )
    token_file: str = Field(
        default="token_content", description="File name of the forwarded token"
    )
    poll_interval: float = Field(
        default=0.5, description="Seconds between checks for a forwarded token"
    )

    @field_validator("type")
    @classmethod
    def _known_type(cls, value: str) -> str:
        if value not in AUTH_TYPES:
            raise ValueError(
                f"unknown auth type '{value}', expected one of: {', '.join(AUTH_TYPES)}"
            )
        return value


class RequestConfig(BaseModel):
    """HTTP settings applied to every request of a connection."""

    timeout: float = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    reauth_statuses: list[int] = Field(
        default_factory=lambda: [401, 403],
        description="HTTP statuses that discard the token and retry once",
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/okapiconn/config.json``.

    See :func:`~okapiconn.config.resolve_profile` for how
    ``default_profile`` ranks against environment variables and CLI flags.
    """

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True


class Profile(BaseModel):
    """One Okapi instance and tenant, stored under the ``profiles/`` config directory.

    See Also:
        :func:`~okapiconn.config.load_profile`: Deserialise a profile by name.
        :meth:`~okapiconn.client.OkapiConnection.from_profile`: Build a
        connection from a profile.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    base_url: str = Field(description="Absolute base URI of the Okapi instance")
    tenant: str = Field(description="Okapi tenant id")
    auth: Optional[AuthConfig] = None
    request: RequestConfig = Field(default_factory=RequestConfig)

    @field_validator("base_url")
    @classmethod
    def _absolute_url(cls, value: str) -> str:
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"base_url must be an absolute http(s) URI, got '{value}'")
        return value

    @field_validator("tenant")
    @classmethod
    def _non_blank_tenant(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("tenant must not be blank")
        return value
