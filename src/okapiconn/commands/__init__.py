"""Built-in CLI sub-commands for okapiconn.

* :mod:`~okapiconn.commands.profile` -- manage saved Okapi profiles.
* :mod:`~okapiconn.commands.request` -- send one authenticated request and
  forward browser tokens.

Each module either exports a :class:`typer.Typer` sub-application (for
multi-command groups like ``profile``) or plain callback functions
registered directly on the root app.
"""
