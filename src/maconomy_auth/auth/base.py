"""Abstract base class for credential strategies.

This module defines the foundational types of the strategy layer:

- :class:`AcquisitionResult` -- a plain container for either the acquired
  credential or the failure that ended the attempt.
- :class:`Interaction` -- the user-facing side effects a strategy needs
  (opening the authorization URL, waiting for "I have finished logging in").
- :class:`CredentialStrategy` -- the abstract base class that both the
  OAuth2 PKCE and the SSO cookie strategies extend.

Strategies never print and never exit. They return an
:class:`AcquisitionResult`, and the entry point alone decides on output,
persistence, and exit status.

See Also:
    :mod:`maconomy_auth.auth.manager` for strategy registration and dispatch.
"""

from __future__ import annotations

import threading
import webbrowser
from abc import ABC, abstractmethod
from typing import Optional

from maconomy_auth.exceptions import MaconomyAuthError
from maconomy_auth.models import AuthSettings, Credential


class AcquisitionResult:
    """Outcome of :meth:`CredentialStrategy.acquire`.

    Exactly one of ``credential`` and ``failure`` is set.

    Args:
        credential: The token or cookie obtained by the strategy.
        failure: The terminal failure, already mapped to an exception
            carrying its exit code. It is returned, not raised.

    Example::

        result = strategy.acquire(settings)
        if not result.ok:
            raise result.failure
        sink.persist(result.credential)
    """

    def __init__(
        self,
        credential: Optional[Credential] = None,
        failure: Optional[MaconomyAuthError] = None,
    ):
        if (credential is None) == (failure is None):
            raise ValueError("AcquisitionResult needs exactly one of credential or failure")
        self.credential = credential
        self.failure = failure

    @property
    def ok(self) -> bool:
        return self.credential is not None


class Interaction:
    """User-facing hooks invoked by strategies at their suspension points.

    The defaults open the system browser and read a line from stdin. The CLI
    subclasses this to add progress messages; tests substitute fakes.
    """

    def authorization_ready(self, url: Optional[str], redirect_uri: str) -> None:
        """Called once the redirect listener is bound and accepting.

        Opens *url* in the user's browser on a daemon thread so the
        listener is never blocked. When no authorize endpoint is configured
        *url* is ``None`` and the request must be started externally.
        """
        if url is None:
            return
        browser_thread = threading.Thread(target=webbrowser.open, args=(url,), daemon=True)
        browser_thread.start()

    def wait_for_login(self) -> None:
        """Block until the user signals they have finished signing in."""
        input("Press Enter once you have finished signing in... ")


class CredentialStrategy(ABC):
    """Abstract base class for credential-acquisition strategies.

    Every concrete strategy must provide:

    1. A :attr:`name` property returning a unique identifier
       (``"oauth2_pkce"``, ``"sso_cookie"``).
    2. An :meth:`acquire` implementation that drives its controller to a
       terminal state and wraps the result in an :class:`AcquisitionResult`.

    Strategies are registered with
    :class:`~maconomy_auth.auth.manager.StrategyManager` and looked up by
    name at runtime.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the unique strategy identifier."""
        ...

    @abstractmethod
    def acquire(
        self,
        settings: AuthSettings,
        interaction: Optional[Interaction] = None,
    ) -> AcquisitionResult:
        """Obtain a credential, returning terminal failures instead of raising.

        Args:
            settings: The effective configuration.
            interaction: User-facing hooks; a default :class:`Interaction`
                is used when omitted.

        Returns:
            An :class:`AcquisitionResult` holding the credential or the
            failure.

        Raises:
            ConfigError: If *settings* lack fields this strategy requires.
            ListenerBusyError: If a required local resource is already taken.
        """
        ...

    def validate_settings(self, settings: AuthSettings) -> list[str]:
        """Return human-readable problems with *settings*. Empty means valid."""
        return []
