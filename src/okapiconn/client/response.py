"""Immutable HTTP response returned by :class:`~okapiconn.client.OkapiConnection`.

:class:`Response` carries the raw body bytes; it does not assume the body
is text or JSON. :func:`format_response` is the bridge to the CLI output
layer.
"""

from __future__ import annotations

import json
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

import httpx

from okapiconn.output import get_output

JSON_MIMETYPE = "application/json"


def _is_json(content_type: Optional[str]) -> bool:
    if not content_type:
        return False
    return content_type.split(";", 1)[0].strip().lower() == JSON_MIMETYPE


class Response:
    """Status code, content type, headers and raw body of an Okapi response.

    Header names are stored lower-cased, each mapped to the tuple of its
    values in the order received.
    """

    __slots__ = ("_http_code", "_body", "_content_type", "_headers")

    def __init__(
        self,
        http_code: int,
        body: bytes,
        content_type: Optional[str] = None,
        headers: Optional[Mapping[str, Sequence[str]]] = None,
    ) -> None:
        self._http_code = http_code
        self._body = bytes(body)
        self._content_type = content_type
        self._headers = MappingProxyType(
            {name.lower(): tuple(values) for name, values in (headers or {}).items()}
        )

    @classmethod
    def from_httpx(cls, response: httpx.Response) -> Response:
        """Build a :class:`Response` from a fully read :class:`httpx.Response`."""
        headers: dict[str, list[str]] = {}
        for name, value in response.headers.multi_items():
            headers.setdefault(name.lower(), []).append(value)
        return cls(
            http_code=response.status_code,
            body=response.content,
            content_type=response.headers.get("content-type"),
            headers=headers,
        )

    @property
    def http_code(self) -> int:
        return self._http_code

    @property
    def body(self) -> bytes:
        return self._body

    @property
    def content_type(self) -> Optional[str]:
        return self._content_type

    @property
    def headers(self) -> Mapping[str, tuple[str, ...]]:
        return self._headers

    def header(self, name: str) -> Optional[str]:
        """Return the first value of header *name* (case-insensitive), or ``None``."""
        values = self._headers.get(name.lower())
        return values[0] if values else None

    @property
    def text(self) -> str:
        """The body decoded as UTF-8 (undecodable bytes replaced)."""
        return self._body.decode("utf-8", errors="replace")

    def json(self) -> Optional[dict[str, Any]]:
        """Return the body as a JSON object, or ``None`` if the response is not JSON.

        Raises:
            ValueError: If the content type is JSON but the body is not an object.
        """
        if not _is_json(self._content_type):
            return None
        data = json.loads(self._body)
        if not isinstance(data, dict):
            raise ValueError("response body is not a JSON object")
        return data

    def json_array(self) -> Optional[list[Any]]:
        """Return the body as a JSON array, or ``None`` if the response is not JSON.

        Raises:
            ValueError: If the content type is JSON but the body is not an array.
        """
        if not _is_json(self._content_type):
            return None
        data = json.loads(self._body)
        if not isinstance(data, list):
            raise ValueError("response body is not a JSON array")
        return data

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return (
            f"Response(http_code={self._http_code}, content_type={self._content_type!r}, "
            f"body=<{len(self._body)} bytes>)"
        )


def format_response(response: Response) -> None:
    """Print a response through the global output system.

    The status line goes to stderr; the body goes to stdout, parsed as
    JSON when the content type says so.
    """
    output = get_output()
    output.info(f"HTTP {response.http_code}")
    if not response.body:
        return
    content_type = response.content_type or "text/plain"
    data: Any = response.text
    if _is_json(content_type):
        try:
            data = json.loads(response.body)
        except ValueError:
            pass
    output.format_response(data, content_type)
