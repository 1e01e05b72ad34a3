"""State machine driving one OAuth2 Authorization Code + PKCE attempt.

The controller moves through::

    idle -> awaiting -> exchanging -> succeeded
                     \\-> failed     \\-> failed
                     \\-> timed_out

It binds the :class:`~.listener.RedirectListener` before announcing that the
authorization URL may be opened, waits for the redirect, and exchanges a
received code exactly once through the :class:`~.exchanger.TokenExchanger`.
Every terminal state is returned as a
:class:`~maconomy_auth.models.FlowOutcome`; nothing is retried.
"""

from __future__ import annotations

import logging
import ssl
from typing import Callable, Optional

from maconomy_auth.exceptions import InvalidUsageError
from maconomy_auth.models import (
    AuthorizationAttempt,
    AuthorizationCode,
    AuthorizationError,
    FlowOutcome,
    FlowState,
    TokenResponse,
)
from maconomy_auth.plugins.oauth2_auth_code.exchanger import TokenExchanger
from maconomy_auth.plugins.oauth2_auth_code.listener import DEFAULT_ACK_BODY, RedirectListener

logger = logging.getLogger(__name__)


class AuthCodeFlowController:
    """Orchestrate listener and exchanger into one blocking operation.

    Args:
        exchanger: Performs the code-for-token exchange.
        ssl_context: TLS context for the redirect listener, required when
            the redirect URI uses ``https``.
        ack_body: Text shown in the browser after the redirect.
    """

    def __init__(
        self,
        exchanger: TokenExchanger,
        ssl_context: Optional[ssl.SSLContext] = None,
        ack_body: str = DEFAULT_ACK_BODY,
    ) -> None:
        self._exchanger = exchanger
        self._ssl_context = ssl_context
        self._ack_body = ack_body
        self._state = FlowState.IDLE
        self._consumed: set[str] = set()

    @property
    def state(self) -> FlowState:
        return self._state

    def _transition(self, new_state: FlowState) -> None:
        logger.debug("Authorization flow: %s -> %s", self._state.value, new_state.value)
        self._state = new_state

    def run(
        self,
        attempt: AuthorizationAttempt,
        on_listening: Optional[Callable[[str], None]] = None,
    ) -> FlowOutcome:
        """Drive *attempt* to a terminal state.

        Args:
            attempt: A fresh attempt; each attempt can be run only once.
            on_listening: Called with the redirect URI once the listener is
                bound and accepting. This is where the authorization URL
                should be opened, never earlier.

        Returns:
            The terminal :class:`~maconomy_auth.models.FlowOutcome`.

        Raises:
            InvalidUsageError: If *attempt* was already consumed.
            ListenerBusyError: If the redirect port is held by another
                listener. The controller stays ``idle``.
            ConfigError: If the redirect URI cannot be served.
        """
        if attempt.attempt_id in self._consumed:
            raise InvalidUsageError(
                "Authorization attempt already used; start a new attempt with fresh PKCE material"
            )

        self._state = FlowState.IDLE
        listener = RedirectListener.for_attempt(attempt, self._ssl_context, self._ack_body)
        listener.bind()
        self._consumed.add(attempt.attempt_id)
        self._transition(FlowState.AWAITING)

        try:
            if on_listening is not None:
                on_listening(attempt.redirect_uri)
            result = listener.await_redirect(attempt)
        finally:
            listener.close()

        if isinstance(result, AuthorizationError):
            logger.debug("Provider returned error '%s' on redirect", result.code)
            self._transition(FlowState.FAILED)
            return FlowOutcome(state=FlowState.FAILED, failure=result)
        if not isinstance(result, AuthorizationCode):
            self._transition(FlowState.TIMED_OUT)
            return FlowOutcome(state=FlowState.TIMED_OUT)

        self._transition(FlowState.EXCHANGING)
        exchanged = self._exchanger.exchange(
            result.value, attempt.pkce, attempt.client_id, attempt.redirect_uri
        )
        if isinstance(exchanged, TokenResponse):
            self._transition(FlowState.SUCCEEDED)
            return FlowOutcome(state=FlowState.SUCCEEDED, token=exchanged)

        self._transition(FlowState.FAILED)
        return FlowOutcome(state=FlowState.FAILED, failure=exchanged)
