"""Browser token strategy -- reuse the token of a login done in the web UI.

A process is typically started from the FOLIO UI with a token already in
hand (``initial_token``). That token is used once. When Okapi later
rejects it, the strategy opens the UI's login page in the browser and
waits until a fresh token is forwarded to it: another process, launched
by the UI after the user logged in, calls :func:`forward_token` (or
``okapiconn forward-token``), which writes the token file in the shared
directory. The waiting strategy picks the file up, deletes it and
returns its content.

Waiting blocks the calling thread; without a ``timeout`` it waits until
a token arrives or the process exits.
"""

from __future__ import annotations

import logging
import time
import webbrowser
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional, Union

from okapiconn.auth.base import AuthStrategy
from okapiconn.config import atomic_write, resolve_credential
from okapiconn.exceptions import AuthenticationError, TokenForwardingError
from okapiconn.models import AuthConfig

if TYPE_CHECKING:
    from okapiconn.client.connection import OkapiConnection

DEFAULT_TOKEN_FILE = "token_content"

logger = logging.getLogger(__name__)


def forward_token(
    token_dir: Union[str, Path],
    token: str,
    token_file: str = DEFAULT_TOKEN_FILE,
) -> Path:
    """Hand *token* to a :class:`BrowserTokenStrategy` waiting on *token_dir*.

    The file is written atomically with ``0o600`` permissions so that the
    reader never sees a partial token.

    Returns:
        The path of the written token file.

    Raises:
        TokenForwardingError: If the token is empty or cannot be written.
    """
    if not token or not token.strip():
        raise TokenForwardingError("cannot forward an empty token")
    path = Path(token_dir) / token_file
    try:
        atomic_write(path, token.strip(), mode=0o600)
    except OSError as exc:
        raise TokenForwardingError(f"cannot write token file {path}: {exc}") from exc
    return path


class BrowserTokenStrategy(AuthStrategy):
    """Use an initial token once, then wait for tokens forwarded from a browser login.

    Args:
        login_url: Page to open in the browser when a new token is needed.
        token_dir: Directory shared with :func:`forward_token`.
        initial_token: Token to return on the first call, if any.
        token_file: Name of the token file inside *token_dir*.
        poll_interval: Seconds between checks for the token file.
        timeout: Give up waiting after this many seconds; ``None`` waits forever.
        open_browser: Callable opening a URL; returns ``False`` on failure.
    """

    auth_type = "browser_token"

    def __init__(
        self,
        login_url: str,
        token_dir: Union[str, Path],
        initial_token: Optional[str] = None,
        token_file: str = DEFAULT_TOKEN_FILE,
        poll_interval: float = 0.5,
        timeout: Optional[float] = None,
        open_browser: Callable[[str], bool] = webbrowser.open,
    ) -> None:
        self._login_url = login_url
        self._token_dir = Path(token_dir)
        self._initial_token = initial_token or None
        self._token_file = token_file
        self._poll_interval = poll_interval
        self._timeout = timeout
        self._open_browser = open_browser

    @property
    def token_path(self) -> Path:
        return self._token_dir / self._token_file

    def obtain_token(self, connection: OkapiConnection) -> str:
        token = self._initial_token
        if token is not None:
            self._initial_token = None
            return token

        # A leftover file would hand out a token from an earlier session.
        self.token_path.unlink(missing_ok=True)
        logger.info("opening %s in the browser to log in", self._login_url)
        try:
            opened = self._open_browser(self._login_url)
        except webbrowser.Error as exc:
            raise AuthenticationError(f"Error opening browser: {exc}") from exc
        if not opened:
            raise AuthenticationError(f"Error opening browser for {self._login_url}")
        return self._await_token()

    def forward_token(self, token: str) -> Path:
        """Forward *token* to this strategy's token file. See :func:`forward_token`."""
        return forward_token(self._token_dir, token, self._token_file)

    def _await_token(self) -> str:
        deadline = None if self._timeout is None else time.monotonic() + self._timeout
        while True:
            token = self._take_token()
            if token is not None:
                return token
            if deadline is not None and time.monotonic() >= deadline:
                raise AuthenticationError(
                    f"no token was forwarded to {self.token_path} within {self._timeout:g}s"
                )
            time.sleep(self._poll_interval)

    def _take_token(self) -> Optional[str]:
        path = self.token_path
        try:
            token = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise AuthenticationError(f"Error waiting for token: {exc}") from exc
        path.unlink(missing_ok=True)
        return token or None

    @classmethod
    def from_config(cls, auth_config: AuthConfig) -> BrowserTokenStrategy:
        initial = None
        if auth_config.token_source:
            initial = resolve_credential(auth_config.token_source, "Token: ")
        return cls(
            login_url=auth_config.login_url or "",
            token_dir=Path(auth_config.token_dir or ".").expanduser(),
            initial_token=initial,
            token_file=auth_config.token_file,
            poll_interval=auth_config.poll_interval,
        )

    @classmethod
    def validate_config(cls, auth_config: AuthConfig) -> list[str]:
        errors: list[str] = []
        if not auth_config.login_url:
            errors.append("browser_token auth requires a 'login_url'")
        if not auth_config.token_dir:
            errors.append("browser_token auth requires a 'token_dir'")
        if auth_config.poll_interval <= 0:
            errors.append("'poll_interval' must be positive")
        return errors
