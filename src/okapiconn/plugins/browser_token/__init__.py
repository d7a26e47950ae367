"""Browser-forwarded token strategy.

See Also:
    :class:`~okapiconn.plugins.browser_token.plugin.BrowserTokenStrategy`
    :func:`~okapiconn.plugins.browser_token.plugin.forward_token`
"""

from okapiconn.plugins.browser_token.plugin import BrowserTokenStrategy, forward_token

__all__ = ["BrowserTokenStrategy", "forward_token"]
