"""Configured-credentials strategy.

See Also:
    :class:`~okapiconn.plugins.fixed_credentials.plugin.FixedCredentialsStrategy`
"""

from okapiconn.plugins.fixed_credentials.plugin import FixedCredentialsStrategy

__all__ = ["FixedCredentialsStrategy"]
