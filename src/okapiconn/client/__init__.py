"""Okapi connection and response types.

Classes:
    :class:`OkapiConnection` -- authenticated, thread-safe connection to one
    Okapi base URI and tenant, backed by :class:`httpx.Client`.
    :class:`Response` -- immutable status/headers/body of a successful request.

Example::

    from okapiconn.client import OkapiConnection

    with OkapiConnection(base_url, tenant, strategy) as okapi:
        resp = okapi.get("/inventory/items", params={"limit": "5"})
"""

from okapiconn.client.connection import OkapiConnection, build_url
from okapiconn.client.response import Response

__all__ = ["OkapiConnection", "Response", "build_url"]
