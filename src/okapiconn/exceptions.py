"""Exception hierarchy for okapiconn.

All exceptions inherit from :class:`OkapiError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`okapiconn.exit_codes`.
The CLI entry point :func:`okapiconn.app.main` catches ``OkapiError`` and
exits with the appropriate code.

Subclass hierarchy::

    OkapiError (exit 1)
    +-- InvalidUsageError    (exit 2)
    +-- AuthenticationError  (exit 3)
    +-- ConnectionError_     (exit 6)
    +-- ConfigError          (exit 1)
    +-- TokenForwardingError (exit 1)
"""

from __future__ import annotations

from typing import Optional

from okapiconn.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
)


class OkapiError(Exception):
    """Base exception for all okapiconn errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(OkapiError, ValueError):
    """Raised for invalid arguments, e.g. login credentials with control characters.

    Also a :class:`ValueError` so that callers validating input can catch
    it without depending on this package's hierarchy.
    """

    exit_code = EXIT_INVALID_USAGE


class AuthenticationError(OkapiError):
    """Raised when an auth strategy cannot produce an access token.

    Covers rejected logins, cancelled prompts, missing input and missing
    identifying fields. The message never contains the password.

    Args:
        message: Human-readable cause.
        status_code: HTTP status of a rejected login, if any.
        body: Error body text of a rejected login, if any.
    """

    exit_code = EXIT_AUTH_FAILURE

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ConnectionError_(OkapiError):
    """Raised on transport failures and non-success HTTP statuses.

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.

    Args:
        message: Human-readable cause.
        path: The request path that failed.
        status_code: HTTP status, or ``None`` for transport failures.
        body: Error body text returned by Okapi, if any.
    """

    exit_code = EXIT_CONNECTION_ERROR

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.path = path
        self.status_code = status_code
        self.body = body


class ConfigError(OkapiError):
    """Raised for configuration problems such as missing profiles or bad credential sources."""

    exit_code = EXIT_GENERIC_FAILURE


class TokenForwardingError(OkapiError):
    """Raised when a token cannot be handed to a waiting browser-token strategy."""

    exit_code = EXIT_GENERIC_FAILURE
