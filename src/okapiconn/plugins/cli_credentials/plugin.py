"""Command-line credentials strategy -- ask for user and password on the terminal.

On a TTY the password is read with :func:`getpass.getpass` (input is
hidden). Without a TTY both values are read as lines from stdin, which
lets scripts pipe credentials in. Prompts go to stderr so that stdout
stays reserved for response data.

:func:`getpass.getpass` returns an immutable :class:`str`; it is copied
into the credentials' erasable buffer immediately and not kept.
"""

from __future__ import annotations

import getpass
import sys
from typing import TYPE_CHECKING, Optional, TextIO

from okapiconn.auth.base import CredentialsStrategy
from okapiconn.auth.credentials import Credentials
from okapiconn.exceptions import AuthenticationError
from okapiconn.models import AuthConfig

if TYPE_CHECKING:
    from okapiconn.client.connection import OkapiConnection


class CliCredentialsStrategy(CredentialsStrategy):
    """Prompt for credentials on the terminal at every login.

    Args:
        username: Preset user name; when given only the password is asked for.
        stdin: Input stream, defaults to :data:`sys.stdin`.
        stderr: Prompt stream, defaults to :data:`sys.stderr`.
    """

    auth_type = "cli_credentials"

    def __init__(
        self,
        username: Optional[str] = None,
        stdin: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ) -> None:
        self._username = username
        self._stdin = stdin
        self._stderr = stderr

    def get_credentials(self, connection: OkapiConnection) -> Credentials:
        """Ask for user and password.

        Raises:
            AuthenticationError: If input ends early or the user name is blank.
        """
        stdin = self._stdin or sys.stdin
        username = self._username
        try:
            if username is None:
                username = self._read_line(stdin, f"User ({connection.tenant}): ")
            prompt = f"{username}'s password: "
            if stdin.isatty():
                password = getpass.getpass(prompt, stream=self._stderr or sys.stderr)
            else:
                password = self._read_line(stdin, prompt)
        except (EOFError, OSError) as exc:
            raise AuthenticationError("cannot read credentials from stdin") from exc

        if not username.strip():
            raise AuthenticationError("no user name given")
        return Credentials(username=username.strip(), password=password)

    def _read_line(self, stdin: TextIO, prompt: str) -> str:
        stderr = self._stderr or sys.stderr
        stderr.write(prompt)
        stderr.flush()
        line = stdin.readline()
        if not line:
            raise EOFError("end of input")
        return line.rstrip("\r\n")

    @classmethod
    def from_config(cls, auth_config: AuthConfig) -> CliCredentialsStrategy:
        return cls(username=auth_config.username)
