"""Authenticated connection to one Okapi instance and tenant.

:class:`OkapiConnection` wraps :class:`httpx.Client` and layers on:

- **Token cache** -- the access token is obtained lazily from an
  :class:`~okapiconn.auth.base.AuthStrategy` and kept in memory. Concurrent
  callers hitting an empty cache share a single strategy call and its
  result (or its failure).
- **Fixed headers** -- ``X-Okapi-Token`` and ``X-Okapi-Tenant`` are set on
  every request and override caller-supplied headers of the same name.
- **Re-authentication** -- when Okapi rejects the token the cache is
  cleared and the request is sent once more with a fresh token. A request
  is never sent more than twice.

Transport errors and any other non-200 status fail the call immediately
with :class:`~okapiconn.exceptions.ConnectionError_`.
"""

from __future__ import annotations

import json
import logging
import threading
from concurrent.futures import Future
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional, Union
from urllib.parse import quote_plus, urlparse

import httpx

from okapiconn.auth.base import AuthStrategy
from okapiconn.auth.credentials import Credentials
from okapiconn.client.login import (
    JSON_CONTENT_TYPE,
    LOGIN_PATH,
    TENANT_HEADER,
    TOKEN_HEADER,
    login,
)
from okapiconn.client.response import Response
from okapiconn.exceptions import (
    AuthenticationError,
    ConfigError,
    ConnectionError_,
    InvalidUsageError,
)

if TYPE_CHECKING:
    from okapiconn.auth.manager import AuthManager
    from okapiconn.models import Profile

MAX_ATTEMPTS = 2
"""Attempts per request: the first one plus one after re-authentication."""

DEFAULT_REAUTH_STATUSES = frozenset({401, 403})
"""Statuses Okapi uses for a missing, expired or rejected token."""

SUCCESS_STATUS = 200

_BODY_METHODS = ("POST", "PUT")


def build_url(base_url: str, path: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Append *path* and the encoded *params* to *base_url*.

    Exactly one slash separates base and path. Each parameter is encoded
    as ``key=value`` with form encoding; the first pair is introduced by
    ``?`` unless the URL already carries a query, in which case ``&`` is
    used. A query embedded in *path* is passed through unchanged.
    """
    if base_url.endswith("/") and path.startswith("/"):
        url = base_url + path[1:]
    elif path and not base_url.endswith("/") and not path.startswith("/"):
        url = f"{base_url}/{path}"
    else:
        url = base_url + path

    if params:
        delim = "&" if "?" in url else "?"
        query = "&".join(
            f"{quote_plus(str(key))}={quote_plus(str(value))}" for key, value in params.items()
        )
        url = f"{url}{delim}{query}"
    return url


class OkapiConnection:
    """A connection to one Okapi base URI and tenant.

    The connection is safe to share between threads. Use it as a context
    manager (or call :meth:`close`) to release the underlying HTTP client.

    Args:
        base_url: Absolute base URI of the Okapi instance.
        tenant: The tenant sent with every request.
        strategy: Supplies access tokens on demand.
        timeout: Per-request timeout in seconds passed to httpx. ``None``
            waits indefinitely.
        verify: Verify TLS certificates.
        reauth_statuses: Statuses that discard the cached token and trigger
            the single retry.
        transport: Optional httpx transport (e.g. :class:`httpx.MockTransport`).
        logger: Logger to use instead of the module logger.

    Raises:
        InvalidUsageError: If *base_url* is not absolute or *tenant* is blank.

    Example::

        with OkapiConnection("https://okapi.example.org", "diku", strategy) as okapi:
            response = okapi.get("/users", params={"query": "username==diku_admin"})
            print(response.json())
    """

    def __init__(
        self,
        base_url: str,
        tenant: str,
        strategy: AuthStrategy,
        *,
        timeout: Optional[float] = 30.0,
        verify: bool = True,
        reauth_statuses: Iterable[int] = DEFAULT_REAUTH_STATUSES,
        transport: Optional[httpx.BaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        parsed = urlparse(base_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise InvalidUsageError(f"base_url must be an absolute http(s) URI, got '{base_url}'")
        if not tenant or not tenant.strip():
            raise InvalidUsageError("tenant must not be blank")

        self._base_url = base_url
        self._tenant = tenant
        self._strategy = strategy
        self._reauth_statuses = frozenset(reauth_statuses)
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self._http = httpx.Client(timeout=timeout, verify=verify, transport=transport)

        # Guards _token, _pending and _generation. Never held across network
        # I/O or strategy calls; waiters block on the pending future instead.
        self._lock = threading.Lock()
        self._token: Optional[str] = None
        self._pending: Optional[Future[str]] = None
        # Bumped by invalidate_token; a fetch started before the bump does
        # not install its token.
        self._generation = 0

    @classmethod
    def from_profile(
        cls,
        profile: Profile,
        manager: Optional[AuthManager] = None,
        strategy: Optional[AuthStrategy] = None,
        **kwargs: Any,
    ) -> OkapiConnection:
        """Build a connection from a :class:`~okapiconn.models.Profile`.

        The strategy is, in order of preference, *strategy*, the one
        described by ``profile.auth`` (built by *manager*, default
        :func:`~okapiconn.auth.create_default_manager`).

        Raises:
            ConfigError: If the profile has no auth section and no
                *strategy* is given, or the auth section is invalid.
        """
        if strategy is None:
            if profile.auth is None:
                raise ConfigError(f"Profile '{profile.name}' has no auth configuration")
            if manager is None:
                from okapiconn.auth.manager import create_default_manager

                manager = create_default_manager()
            strategy = manager.create(profile.auth)

        kwargs.setdefault("timeout", profile.request.timeout)
        kwargs.setdefault("verify", profile.request.verify_ssl)
        kwargs.setdefault("reauth_statuses", profile.request.reauth_statuses)
        return cls(profile.base_url, profile.tenant, strategy, **kwargs)

    # ------------------------------------------------------------------ #
    # Properties and lifecycle
    # ------------------------------------------------------------------ #

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def tenant(self) -> str:
        return self._tenant

    @property
    def strategy(self) -> AuthStrategy:
        return self._strategy

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()

    def __enter__(self) -> OkapiConnection:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"OkapiConnection(base_url={self._base_url!r}, tenant={self._tenant!r})"

    # ------------------------------------------------------------------ #
    # Token cache
    # ------------------------------------------------------------------ #

    def ensure_token(self) -> str:
        """Return the cached token, obtaining one from the strategy if there is none.

        Exactly one strategy call is made per cache miss, however many
        threads are asking. Threads arriving while that call is in
        progress wait for it and receive the same token, or the same
        exception if it fails. After a failure the cache stays empty, so
        the next call starts a new attempt.

        Raises:
            AuthenticationError: If the strategy cannot produce a token.
        """
        with self._lock:
            if self._token is not None:
                return self._token
            pending = self._pending
            owner = pending is None
            if owner:
                pending = self._pending = Future()
                generation = self._generation

        if not owner:
            return pending.result()

        self._logger.debug(
            "obtaining token for tenant '%s' via %s", self._tenant, type(self._strategy).__name__
        )
        try:
            token = self._strategy.obtain_token(self)
            if not token:
                raise AuthenticationError(
                    f"{type(self._strategy).__name__} did not return a token"
                )
        except BaseException as exc:
            with self._lock:
                self._pending = None
            pending.set_exception(exc)
            raise

        with self._lock:
            if self._generation == generation:
                self._token = token
            else:
                self._logger.debug("token fetched during invalidation was not cached")
            self._pending = None
        pending.set_result(token)
        self._logger.debug("obtained token for tenant '%s'", self._tenant)
        return token

    def invalidate_token(self) -> None:
        """Discard the cached token so the next request obtains a new one.

        The cache is cleared unconditionally. A fetch already in progress
        still hands its token to the callers waiting for it, but that token
        is not cached, so the next call obtains a new one.
        """
        with self._lock:
            self._token = None
            self._generation += 1

    # ------------------------------------------------------------------ #
    # Login
    # ------------------------------------------------------------------ #

    def login_for_token(
        self,
        username: Optional[str],
        user_id: Optional[str],
        password: Union[bytearray, bytes, str, list, None],
    ) -> str:
        """Log in to Okapi and return the issued token.

        This call does not use or change the token cache. The *password*
        buffer is erased before this method returns, whether the login
        succeeded or not (only a ``bytearray`` or a list of characters can
        be erased in place).

        Raises:
            InvalidUsageError: If both *username* and *user_id* are blank or
                a field contains a disallowed control character.
            AuthenticationError: If Okapi does not issue a token.
        """
        with Credentials(username, user_id, password) as credentials:
            return login(
                self._http,
                build_url(self._base_url, LOGIN_PATH),
                self._tenant,
                credentials.username,
                credentials.user_id,
                credentials.password,
            )

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        content_type: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: Union[bytes, str, None] = None,
    ) -> Response:
        """Send an authenticated request and return the response.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE).
            path: Path appended to the base URI. A query string already in
                *path* must be escaped by the caller.
            params: Query parameters; keys and values are URL-encoded.
            content_type: Sets the ``Content-type`` header when given.
            headers: Extra headers. ``X-Okapi-Token`` and ``X-Okapi-Tenant``
                are always replaced by the connection's own values.
            body: Request body, sent for POST and PUT only. ``str`` is
                encoded as UTF-8.

        Returns:
            The :class:`~okapiconn.client.response.Response` of a HTTP 200
            answer.

        Raises:
            AuthenticationError: If no token can be obtained.
            ConnectionError_: On transport failure, on a non-200 status, or
                when the token is rejected again after re-authentication.
        """
        method = method.upper()
        url = build_url(self._base_url, path, params)
        content: Optional[bytes] = None
        if method in _BODY_METHODS and body:
            content = body.encode("utf-8") if isinstance(body, str) else bytes(body)

        for attempt in range(1, MAX_ATTEMPTS + 1):
            request_headers = httpx.Headers(headers or {})
            request_headers[TOKEN_HEADER] = self.ensure_token()
            request_headers[TENANT_HEADER] = self._tenant
            if content_type is not None:
                request_headers["Content-type"] = content_type

            try:
                http_response = self._http.request(
                    method, url, headers=request_headers, content=content
                )
            except httpx.HTTPError as exc:
                self._logger.error("request for path %s failed", path, exc_info=True)
                raise ConnectionError_(f"request for path {path} failed: {exc}", path=path) from exc

            status = http_response.status_code
            if status == SUCCESS_STATUS:
                self._logger.debug(
                    "%s %s succeeded with HTTP code %d (%d bytes)",
                    method, path, status, len(http_response.content),
                )
                return Response.from_httpx(http_response)

            if status in self._reauth_statuses and attempt < MAX_ATTEMPTS:
                self._logger.info(
                    "%s %s rejected with HTTP code %d, authenticating again (attempt %d/%d)",
                    method, path, status, attempt + 1, MAX_ATTEMPTS,
                )
                self.invalidate_token()
                continue

            error_body = http_response.text
            message = (
                f"request for path {path} failed with HTTP code {status} "
                f"response error message being '{error_body}'"
            )
            self._logger.error(message)
            raise ConnectionError_(message, path=path, status_code=status, body=error_body)

        # The loop always returns or raises on its last attempt.
        raise ConnectionError_(f"request for path {path} failed", path=path)  # pragma: no cover

    def get(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Response:
        """Send a GET request. See :meth:`request`."""
        return self.request("GET", path, params=params, headers=headers)

    def delete(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Response:
        """Send a DELETE request. See :meth:`request`."""
        return self.request("DELETE", path, params=params, headers=headers)

    def post(
        self,
        path: str,
        body: Union[bytes, str, None] = None,
        content_type: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Response:
        """Send a POST request with an arbitrary body.

        Okapi rarely expects query parameters on POST; if needed, pass
        *params* or embed an escaped query in *path*.
        """
        return self.request(
            "POST", path, params=params, content_type=content_type, headers=headers, body=body
        )

    def put(
        self,
        path: str,
        body: Union[bytes, str, None] = None,
        content_type: Optional[str] = None,
        headers: Optional[Mapping[str, str]] = None,
        params: Optional[Mapping[str, Any]] = None,
    ) -> Response:
        """Send a PUT request with an arbitrary body. See :meth:`post`."""
        return self.request(
            "PUT", path, params=params, content_type=content_type, headers=headers, body=body
        )

    # ------------------------------------------------------------------ #
    # JSON helpers
    # ------------------------------------------------------------------ #

    def get_json(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """GET *path* and return the parsed JSON body (``None`` if empty)."""
        return _parse_json(self.get(path, params=params, headers=headers))

    def post_json(
        self,
        path: str,
        body: Any,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """POST *body* serialised as JSON and return the parsed JSON answer."""
        payload = json.dumps(body, ensure_ascii=False).encode("utf-8")
        return _parse_json(self.post(path, payload, JSON_CONTENT_TYPE, headers))

    def put_json(
        self,
        path: str,
        body: Any,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        """PUT *body* serialised as JSON and return the parsed JSON answer."""
        payload = json.dumps(body, ensure_ascii=False).encode("utf-8")
        return _parse_json(self.put(path, payload, JSON_CONTENT_TYPE, headers))


def _parse_json(response: Response) -> Any:
    if not response.body:
        return None
    return json.loads(response.body)
