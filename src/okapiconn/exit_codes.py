"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~okapiconn.exceptions.OkapiError` subclass.
Shell wrappers can inspect the exit code to tell a rejected login apart
from an unreachable backend without parsing stderr.

Example::

    $ okapiconn request GET /users
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- login was rejected
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or malformed credentials."""

EXIT_AUTH_FAILURE = 3
"""No access token could be obtained."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred or Okapi answered with a non-success status."""
