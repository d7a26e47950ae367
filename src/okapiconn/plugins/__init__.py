"""Built-in auth strategies.

Each sub-package provides one :class:`~okapiconn.auth.base.AuthStrategy`:

- :mod:`~okapiconn.plugins.cli_credentials` -- terminal prompt.
- :mod:`~okapiconn.plugins.dialog_credentials` -- graphical dialog.
- :mod:`~okapiconn.plugins.fixed_credentials` -- configured credentials.
- :mod:`~okapiconn.plugins.fixed_token` -- pre-issued token.
- :mod:`~okapiconn.plugins.browser_token` -- token forwarded from a browser login.

They are registered by :func:`~okapiconn.auth.create_default_manager`.
"""
