"""Terminal prompt strategy.

See Also:
    :class:`~okapiconn.plugins.cli_credentials.plugin.CliCredentialsStrategy`
"""

from okapiconn.plugins.cli_credentials.plugin import CliCredentialsStrategy

__all__ = ["CliCredentialsStrategy"]
