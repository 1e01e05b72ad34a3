"""OAuth2 Authorization Code flow with PKCE credential strategy.

This module provides :class:`OAuth2PkceStrategy`, which implements the
``oauth2_pkce`` strategy (:rfc:`7636`):

1. Builds a fresh :class:`~maconomy_auth.models.AuthorizationAttempt` with new
   PKCE material and, when ``enforce_state`` is on, a random ``state``.
2. Binds a TLS loopback listener on the configured redirect host and port.
3. Hands the authorization URL to the :class:`~maconomy_auth.auth.base.Interaction`
   (opens the browser by default) only once the listener is accepting.
4. Exchanges the authorization code for a token at the token endpoint.

Unlike a general OAuth client, tokens are neither cached nor refreshed; the
caller persists the token through the credential sink.

See Also:
    :class:`maconomy_auth.auth.base.CredentialStrategy` for the base interface.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from maconomy_auth.auth.base import AcquisitionResult, CredentialStrategy, Interaction
from maconomy_auth.exceptions import ConfigError
from maconomy_auth.models import AuthorizationAttempt, AuthSettings
from maconomy_auth.plugins.oauth2_auth_code.controller import AuthCodeFlowController
from maconomy_auth.plugins.oauth2_auth_code.exchanger import TokenExchanger
from maconomy_auth.plugins.oauth2_auth_code.listener import build_ssl_context

logger = logging.getLogger(__name__)


class OAuth2PkceStrategy(CredentialStrategy):
    """Acquire an access token via the Authorization Code grant with PKCE."""

    @property
    def name(self) -> str:
        return "oauth2_pkce"

    def acquire(
        self,
        settings: AuthSettings,
        interaction: Optional[Interaction] = None,
    ) -> AcquisitionResult:
        """Run one authorization attempt to a terminal state.

        Returns:
            An :class:`~maconomy_auth.auth.base.AcquisitionResult` holding the
            :class:`~maconomy_auth.models.TokenResponse`, or a
            :class:`~maconomy_auth.exceptions.ProtocolError` /
            :class:`~maconomy_auth.exceptions.TimeoutError_` failure.

        Raises:
            ConfigError: If required settings are missing or the TLS key
                pair cannot be loaded.
            ListenerBusyError: If the redirect port is already taken.
        """
        errors = self.validate_settings(settings)
        if errors:
            raise ConfigError("; ".join(errors))
        assert settings.client_id
        assert settings.token_endpoint

        interaction = interaction or Interaction()
        ssl_context = None
        if settings.redirect_scheme == "https":
            assert settings.tls_cert_file and settings.tls_key_file
            ssl_context = build_ssl_context(settings.tls_cert_file, settings.tls_key_file)

        attempt = AuthorizationAttempt.begin(
            client_id=settings.client_id,
            redirect_uri=settings.redirect_uri,
            timeout=settings.flow_timeout,
            expected_state=secrets.token_urlsafe(16) if settings.enforce_state else None,
            scope=settings.scope,
        )
        auth_url = None
        if settings.authorize_endpoint:
            auth_url = attempt.authorization_url(settings.authorize_endpoint)

        def on_listening(redirect_uri: str) -> None:
            logger.debug("Listening for the authorization redirect on %s", redirect_uri)
            interaction.authorization_ready(auth_url, redirect_uri)

        controller = AuthCodeFlowController(
            TokenExchanger(settings.token_endpoint), ssl_context=ssl_context
        )
        outcome = controller.run(attempt, on_listening=on_listening)

        if outcome.succeeded:
            return AcquisitionResult(credential=outcome.token)
        failure = outcome.to_error()
        assert failure is not None
        return AcquisitionResult(failure=failure)

    def validate_settings(self, settings: AuthSettings) -> list[str]:
        """Check the fields the PKCE flow needs.

        Returns:
            A list of human-readable error strings. Empty if valid.
        """
        errors: list[str] = []
        if not settings.client_id:
            errors.append("oauth2_pkce requires 'client_id'")
        if not settings.token_endpoint:
            errors.append("oauth2_pkce requires 'token_endpoint'")
        if settings.redirect_scheme == "https" and not (
            settings.tls_cert_file and settings.tls_key_file
        ):
            errors.append(
                "oauth2_pkce with an https redirect requires 'tls_cert_file' and 'tls_key_file'"
            )
        return errors
