"""Okapi login protocol (``POST authn/login``).

The login body is assembled byte by byte into a :class:`bytearray` so that
the password never becomes an immutable :class:`str`. Only the characters
JSON requires (``\\``, ``"`` and the control characters with short
escapes) are escaped; any other control character is rejected before the
request is sent.

The token is returned in the ``x-okapi-token`` response header; the
response body is not consulted on success.

Reference: https://s3.amazonaws.com/foliodocs/api/mod-login/r/login.html
"""

from __future__ import annotations

import logging
from typing import Optional, Union

import httpx

from okapiconn.auth.credentials import as_password_buffer, erase_buffer
from okapiconn.exceptions import AuthenticationError, InvalidUsageError

LOGIN_PATH = "authn/login"
TOKEN_HEADER = "X-Okapi-Token"
TENANT_HEADER = "X-Okapi-Tenant"
JSON_CONTENT_TYPE = "application/json"

logger = logging.getLogger(__name__)

_ESCAPES = {
    0x5C: b"\\\\",
    0x22: b'\\"',
    0x08: b"\\b",
    0x0C: b"\\f",
    0x0A: b"\\n",
    0x0D: b"\\r",
    0x09: b"\\t",
}


def _write_escaped(out: bytearray, data: Union[bytes, bytearray]) -> None:
    # Bytes of multi-byte UTF-8 sequences are all >= 0x80, so escaping
    # byte-wise is equivalent to escaping code points.
    for b in data:
        escape = _ESCAPES.get(b)
        if escape is not None:
            out += escape
        elif b < 0x20:
            raise InvalidUsageError(f"illegal control character 0x{b:02x} in credentials")
        else:
            out.append(b)


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def encode_login_body(
    username: Optional[str],
    user_id: Optional[str],
    password: Union[bytearray, bytes, str, list, None],
) -> bytearray:
    """Build the JSON login body.

    Produces ``{"username":"...","userId":"...","password":"..."}`` with
    the username and userId members omitted when blank. The caller owns
    the returned buffer and should erase it once sent.

    Raises:
        InvalidUsageError: If both *username* and *user_id* are blank, or
            a field contains a disallowed control character.
    """
    if _is_blank(username) and _is_blank(user_id):
        raise InvalidUsageError("Either username or userId must be given")

    body = bytearray(b"{")
    try:
        if not _is_blank(username):
            body += b'"username":"'
            _write_escaped(body, username.encode("utf-8"))
            body += b'",'
        if not _is_blank(user_id):
            body += b'"userId":"'
            _write_escaped(body, user_id.encode("utf-8"))
            body += b'",'
        body += b'"password":"'
        password_buffer = as_password_buffer(password)
        try:
            _write_escaped(body, password_buffer)
        finally:
            # The caller erases its own bytearray; wipe only our copy.
            if password_buffer is not password:
                erase_buffer(password_buffer)
        body += b'"}'
    except BaseException:
        erase_buffer(body)
        raise
    return body


def extract_token(response: httpx.Response) -> Optional[str]:
    """Return the token from the ``x-okapi-token`` header, or ``None`` if absent/empty."""
    token = response.headers.get(TOKEN_HEADER)
    return token or None


def login(
    http: httpx.Client,
    url: str,
    tenant: str,
    username: Optional[str],
    user_id: Optional[str],
    password: Union[bytearray, bytes, str, list, None],
) -> str:
    """Post a login to *url* and return the issued token.

    The request carries the tenant header but no token header.

    Raises:
        InvalidUsageError: If the credentials are malformed (no request is sent).
        AuthenticationError: If Okapi does not issue a token, or the login
            request fails at the transport level.
    """
    body = encode_login_body(username, user_id, password)
    try:
        response = http.post(
            url,
            headers={TENANT_HEADER: tenant, "Content-type": JSON_CONTENT_TYPE},
            content=bytes(body),
        )
    except httpx.HTTPError as exc:
        logger.error("login request to %s failed: %s", url, exc)
        raise AuthenticationError(f"cannot log in: {exc}") from exc
    finally:
        erase_buffer(body)

    token = extract_token(response)
    if token is not None:
        logger.debug("login succeeded for username '%s' userId '%s'", username or "", user_id or "")
        return token

    error_body = response.text
    logger.error(
        "login failed for username '%s' and userId '%s' with HTTP code %d",
        username or "",
        user_id or "",
        response.status_code,
    )
    raise AuthenticationError(
        f"login failed for username '{username or ''}' and userId '{user_id or ''}' "
        f"with response code {response.status_code} and response being {error_body}",
        status_code=response.status_code,
        body=error_body,
    )
