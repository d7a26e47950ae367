"""Dialog credentials strategy -- ask for user and password in a Tk window.

The dialog is modal and stays on top. Closing the window counts as
cancelling, which fails the login with
:class:`~okapiconn.exceptions.AuthenticationError`. The entry fields are
cleared before the dialog is destroyed.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, Callable, Optional

from okapiconn.auth.base import CredentialsStrategy
from okapiconn.auth.credentials import Credentials, erase_buffer
from okapiconn.exceptions import AuthenticationError
from okapiconn.models import AuthConfig

if TYPE_CHECKING:
    from okapiconn.client.connection import OkapiConnection

DialogResult = Optional[tuple[str, bytearray]]
PromptFn = Callable[["DialogCredentialsStrategy"], DialogResult]


def _tk_prompt(strategy: DialogCredentialsStrategy) -> DialogResult:
    """Show the login dialog and return ``(username, password)`` or ``None`` if cancelled."""
    import tkinter as tk

    result: dict[str, DialogResult] = {"value": None}

    try:
        root = tk.Tk()
    except tk.TclError as exc:
        raise AuthenticationError(f"cannot open login dialog: {exc}") from exc
    root.withdraw()
    try:
        dialog = tk.Toplevel(root)
        dialog.title(strategy.title)
        dialog.resizable(False, False)
        dialog.attributes("-topmost", True)

        tk.Label(dialog, text=strategy.message).grid(
            row=0, column=0, columnspan=2, padx=10, pady=(10, 5), sticky="w"
        )
        tk.Label(dialog, text=strategy.label_username).grid(row=1, column=0, padx=10, sticky="w")
        username_entry = tk.Entry(dialog)
        username_entry.grid(row=1, column=1, padx=10, pady=2)
        tk.Label(dialog, text=strategy.label_password).grid(row=2, column=0, padx=10, sticky="w")
        password_entry = tk.Entry(dialog, show="*")
        password_entry.grid(row=2, column=1, padx=10, pady=2)

        def clear_and_hide() -> None:
            username_entry.delete(0, tk.END)
            password_entry.delete(0, tk.END)
            dialog.destroy()

        def proceed(*_: object) -> None:
            result["value"] = (
                username_entry.get(),
                bytearray(password_entry.get().encode("utf-8")),
            )
            clear_and_hide()

        tk.Button(dialog, text=strategy.button_proceed, command=proceed).grid(
            row=3, column=0, padx=10, pady=10
        )
        tk.Button(dialog, text=strategy.button_cancel, command=clear_and_hide).grid(
            row=3, column=1, padx=10, pady=10
        )
        dialog.protocol("WM_DELETE_WINDOW", clear_and_hide)
        dialog.bind("<Return>", proceed)
        dialog.bind("<Escape>", lambda *_: clear_and_hide())

        username_entry.focus_set()
        dialog.grab_set()
        root.wait_window(dialog)
    finally:
        root.destroy()
    return result["value"]


class DialogCredentialsStrategy(CredentialsStrategy):
    """Prompt for credentials in a graphical dialog at every login.

    The texts are class attributes and can be overridden in a subclass.

    Args:
        prompt: Callable showing the dialog; it receives the strategy and
            returns ``(username, password)`` or ``None`` when cancelled.
            Defaults to a Tk dialog.
    """

    auth_type = "dialog_credentials"

    title = "Anmelden"
    message = "Bitte melden Sie sich an."
    label_username = "Benutzername:"
    label_password = "Passwort:"
    button_proceed = "Weiter"
    button_cancel = "Abbrechen"

    def __init__(self, prompt: Optional[PromptFn] = None) -> None:
        self._prompt = prompt or _tk_prompt

    @staticmethod
    def is_available() -> bool:
        """Whether Tk can be imported and a display is present."""
        try:
            import tkinter  # noqa: F401
        except ImportError:
            return False
        if sys.platform.startswith("linux") or "bsd" in sys.platform:
            return bool(os.environ.get("DISPLAY") or os.environ.get("WAYLAND_DISPLAY"))
        return True

    def get_credentials(self, connection: OkapiConnection) -> Credentials:
        """Show the dialog.

        Raises:
            AuthenticationError: If the dialog is cancelled or cannot be shown,
                or the user name is blank.
        """
        try:
            value = self._prompt(self)
        except ImportError as exc:
            raise AuthenticationError("cannot open login dialog: tkinter is not available") from exc

        if value is None:
            raise AuthenticationError("login was cancelled")
        username, password = value
        if not username.strip():
            erase_buffer(password)
            raise AuthenticationError("no user name given")
        return Credentials(username=username.strip(), password=password)

    @classmethod
    def from_config(cls, auth_config: AuthConfig) -> DialogCredentialsStrategy:
        return cls()
