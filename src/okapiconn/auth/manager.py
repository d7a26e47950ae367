"""Auth manager -- registry of auth strategies keyed by auth type.

:class:`AuthManager` maps auth-type strings (``"cli_credentials"``,
``"fixed_token"`` ...) to :class:`~okapiconn.auth.base.AuthStrategy`
subclasses and builds a strategy for a profile's
:class:`~okapiconn.models.AuthConfig`.

For most use cases call :func:`create_default_manager` to get a manager
pre-loaded with every built-in strategy.
"""

from __future__ import annotations

from okapiconn.auth.base import AuthStrategy
from okapiconn.exceptions import ConfigError
from okapiconn.models import AuthConfig


class AuthManager:
    """Registry and factory for auth strategies.

    Example::

        manager = AuthManager()
        manager.register(FixedTokenStrategy)
        strategy = manager.create(profile.auth)
    """

    def __init__(self) -> None:
        self._strategies: dict[str, type[AuthStrategy]] = {}

    def register(self, strategy_cls: type[AuthStrategy]) -> None:
        """Register a strategy class under its ``auth_type``, replacing any previous one."""
        if not strategy_cls.auth_type:
            raise ValueError(f"{strategy_cls.__name__} does not define auth_type")
        self._strategies[strategy_cls.auth_type] = strategy_cls

    def get_strategy_class(self, auth_type: str) -> type[AuthStrategy]:
        """Return the strategy class registered for *auth_type*.

        Raises:
            ConfigError: If nothing is registered for *auth_type*.
        """
        strategy_cls = self._strategies.get(auth_type)
        if strategy_cls is None:
            available = ", ".join(sorted(self._strategies)) or "(none)"
            raise ConfigError(
                f"No auth strategy registered for type '{auth_type}'. "
                f"Available types: {available}"
            )
        return strategy_cls

    def create(self, auth_config: AuthConfig) -> AuthStrategy:
        """Validate *auth_config* and build the matching strategy.

        Raises:
            ConfigError: If the type is unknown or the config is invalid.
        """
        strategy_cls = self.get_strategy_class(auth_config.type)
        errors = strategy_cls.validate_config(auth_config)
        if errors:
            raise ConfigError(
                f"Invalid '{auth_config.type}' auth config: " + "; ".join(errors)
            )
        return strategy_cls.from_config(auth_config)

    def list_types(self) -> list[str]:
        """Return the sorted identifiers of all registered auth types."""
        return sorted(self._strategies)


def create_default_manager() -> AuthManager:
    """Create an :class:`AuthManager` with all built-in strategies.

    - ``cli_credentials`` -- prompt for user and password on the terminal.
    - ``dialog_credentials`` -- prompt in a graphical dialog.
    - ``fixed_credentials`` -- log in with configured credentials.
    - ``fixed_token`` -- use a pre-issued token.
    - ``browser_token`` -- use a token forwarded from a browser login.
    """
    from okapiconn.plugins.browser_token import BrowserTokenStrategy
    from okapiconn.plugins.cli_credentials import CliCredentialsStrategy
    from okapiconn.plugins.dialog_credentials import DialogCredentialsStrategy
    from okapiconn.plugins.fixed_credentials import FixedCredentialsStrategy
    from okapiconn.plugins.fixed_token import FixedTokenStrategy

    manager = AuthManager()
    manager.register(CliCredentialsStrategy)
    manager.register(DialogCredentialsStrategy)
    manager.register(FixedCredentialsStrategy)
    manager.register(FixedTokenStrategy)
    manager.register(BrowserTokenStrategy)
    return manager
