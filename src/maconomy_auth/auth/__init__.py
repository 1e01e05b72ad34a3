"""Strategy layer for Maconomy credential acquisition.

The main entry points are:

- :class:`CredentialStrategy` -- abstract base class for a way of obtaining
  a credential (OAuth2 PKCE token or SSO session cookie).
- :class:`StrategyManager` -- registry that maps strategy names to instances.
- :func:`create_default_manager` -- factory pre-loaded with both built-in
  strategies.
- :class:`CredentialSink` -- writes the acquired credential to its handoff file.

Typical usage::

    from maconomy_auth.auth import CredentialSink, create_default_manager

    result = create_default_manager().acquire("sso_cookie", settings)
    if result.ok:
        CredentialSink(settings.handoff_path).persist(result.credential)
"""

from maconomy_auth.auth.base import AcquisitionResult, CredentialStrategy, Interaction
from maconomy_auth.auth.credential_sink import CredentialSink
from maconomy_auth.auth.manager import StrategyManager, create_default_manager

__all__ = [
    "AcquisitionResult",
    "CredentialSink",
    "CredentialStrategy",
    "Interaction",
    "StrategyManager",
    "create_default_manager",
]
