"""Graphical dialog strategy.

See Also:
    :class:`~okapiconn.plugins.dialog_credentials.plugin.DialogCredentialsStrategy`
"""

from okapiconn.plugins.dialog_credentials.plugin import DialogCredentialsStrategy

__all__ = ["DialogCredentialsStrategy"]
