"""Strategy manager -- registry and dispatcher for credential strategies.

The :class:`StrategyManager` maps strategy names (``"oauth2_pkce"``,
``"sso_cookie"``) to :class:`~maconomy_auth.auth.base.CredentialStrategy`
instances. Call :func:`create_default_manager` to get a manager pre-loaded
with both built-in strategies.
"""

from __future__ import annotations

import logging
from typing import Optional

from maconomy_auth.auth.base import AcquisitionResult, CredentialStrategy, Interaction
from maconomy_auth.exceptions import InvalidUsageError
from maconomy_auth.models import AuthSettings

logger = logging.getLogger(__name__)


class StrategyManager:
    """Registry and dispatcher for credential strategies.

    Example::

        manager = create_default_manager()
        result = manager.acquire("sso_cookie", settings)
    """

    def __init__(self) -> None:
        self._strategies: dict[str, CredentialStrategy] = {}

    def register(self, strategy: CredentialStrategy) -> None:
        """Register *strategy* under its :attr:`~CredentialStrategy.name`, replacing any previous one."""
        self._strategies[strategy.name] = strategy

    def get_strategy(self, name: str) -> CredentialStrategy:
        """Retrieve a registered strategy.

        Raises:
            InvalidUsageError: If no strategy is registered under *name*.
        """
        strategy = self._strategies.get(name)
        if strategy is None:
            available = ", ".join(sorted(self._strategies)) or "(none)"
            raise InvalidUsageError(
                f"No credential strategy named '{name}'. Available strategies: {available}"
            )
        return strategy

    def acquire(
        self,
        name: str,
        settings: AuthSettings,
        interaction: Optional[Interaction] = None,
    ) -> AcquisitionResult:
        """Look up *name* and delegate to its :meth:`~CredentialStrategy.acquire`."""
        strategy = self.get_strategy(name)
        logger.debug("Acquiring credential with strategy '%s'", name)
        return strategy.acquire(settings, interaction)

    def list_names(self) -> list[str]:
        """Return the sorted names of all registered strategies."""
        return sorted(self._strategies)


def create_default_manager() -> StrategyManager:
    """Create a :class:`StrategyManager` with both built-in strategies.

    - ``oauth2_pkce`` -- OAuth2 Authorization Code + PKCE with a loopback
      TLS listener.
    - ``sso_cookie`` -- SSO login in an automated browser with session
      cookie capture.
    """
    from maconomy_auth.plugins.browser_login import SsoCookieStrategy
    from maconomy_auth.plugins.oauth2_auth_code import OAuth2PkceStrategy

    manager = StrategyManager()
    manager.register(OAuth2PkceStrategy())
    manager.register(SsoCookieStrategy())
    return manager
