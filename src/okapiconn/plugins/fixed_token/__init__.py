"""Pre-issued token strategy.

See Also:
    :class:`~okapiconn.plugins.fixed_token.plugin.FixedTokenStrategy`
"""

from okapiconn.plugins.fixed_token.plugin import FixedTokenStrategy

__all__ = ["FixedTokenStrategy"]
