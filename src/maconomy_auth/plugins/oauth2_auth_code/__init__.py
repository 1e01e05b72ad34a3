"""OAuth2 Authorization Code credential strategy with PKCE.

Implements the ``oauth2_pkce`` strategy: a single-attempt TLS loopback
listener captures the redirect, and the authorization code is exchanged once
for an access token per :rfc:`7636`.

Exports:
    :class:`OAuth2PkceStrategy` -- the strategy class.
    :class:`AuthCodeFlowController` -- the flow state machine.
    :class:`RedirectListener` -- the loopback redirect listener.
    :class:`TokenExchanger` -- the token endpoint client.
    :func:`build_ssl_context` -- loads the listener's TLS key pair.
"""

from maconomy_auth.plugins.oauth2_auth_code.controller import AuthCodeFlowController
from maconomy_auth.plugins.oauth2_auth_code.exchanger import TokenExchanger
from maconomy_auth.plugins.oauth2_auth_code.listener import RedirectListener, build_ssl_context
from maconomy_auth.plugins.oauth2_auth_code.plugin import OAuth2PkceStrategy

__all__ = [
    "AuthCodeFlowController",
    "OAuth2PkceStrategy",
    "RedirectListener",
    "TokenExchanger",
    "build_ssl_context",
]
