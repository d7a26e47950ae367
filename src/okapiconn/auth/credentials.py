"""Short-lived login credentials with an erasable password buffer.

A :class:`Credentials` instance is created for exactly one login attempt
and wiped right after it. The password is held as a :class:`bytearray`
(UTF-8) rather than a :class:`str` so that it can be overwritten in
place; Python strings are immutable and may linger in memory until the
garbage collector reclaims them.

Use it as a context manager so the password is erased on every exit
path::

    with Credentials(username="diku_admin", password=buffer) as cred:
        token = connection.login_for_token(cred.username, cred.user_id, cred.password)
"""

from __future__ import annotations

from typing import MutableSequence, Optional, Sequence, Union

PasswordLike = Union[bytearray, bytes, str, Sequence[str]]
"""Accepted password inputs. Only a ``bytearray`` or a list of characters
can be erased in place; ``bytes`` and ``str`` are copied into a fresh buffer."""

ERASE_BYTE = 0
ERASE_CHAR = "\0"


def as_password_buffer(password: Optional[PasswordLike]) -> bytearray:
    """Return *password* as a UTF-8 ``bytearray``.

    A ``bytearray`` is returned as-is (not copied) so that erasing the
    result erases the caller's buffer. A list of characters is encoded
    one character at a time. Only ``str`` and ``bytes`` inputs are copied
    whole; the caller's immutable originals cannot be wiped.
    """
    if password is None:
        return bytearray()
    if isinstance(password, bytearray):
        return password
    if isinstance(password, bytes):
        return bytearray(password)
    if isinstance(password, str):
        return bytearray(password.encode("utf-8"))
    # Encode a character at a time so no str holding the whole password is built.
    buffer = bytearray()
    for char in password:
        buffer += char.encode("utf-8")
    return buffer


def erase_buffer(buffer: Union[bytearray, MutableSequence[str]]) -> None:
    """Overwrite every element of *buffer* with a sentinel. Safe to call repeatedly."""
    if isinstance(buffer, bytearray):
        for i in range(len(buffer)):
            buffer[i] = ERASE_BYTE
    else:
        for i in range(len(buffer)):
            buffer[i] = ERASE_CHAR


class Credentials:
    """Username and/or user id plus an erasable password.

    Args:
        username: Login user name, may be ``None`` or blank if *user_id* is set.
        user_id: Login user id, may be ``None`` or blank if *username* is set.
        password: The password. A ``bytearray`` is used in place; a list of
            characters is converted and also wiped on :meth:`erase`.
    """

    def __init__(
        self,
        username: Optional[str] = None,
        user_id: Optional[str] = None,
        password: Optional[PasswordLike] = None,
    ) -> None:
        self.username = username
        self.user_id = user_id
        self._source = password if isinstance(password, list) else None
        self.password = as_password_buffer(password)

    @property
    def erased(self) -> bool:
        """Whether the password buffer holds only the erase sentinel."""
        return all(b == ERASE_BYTE for b in self.password)

    def erase(self) -> None:
        """Overwrite the password buffer (and a list source, if any)."""
        erase_buffer(self.password)
        if self._source is not None:
            erase_buffer(self._source)

    def __enter__(self) -> Credentials:
        return self

    def __exit__(self, *args: object) -> None:
        self.erase()

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, user_id={self.user_id!r}, password=***)"
