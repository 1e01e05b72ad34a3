"""Authorization-code-for-token exchange against the provider's token endpoint."""

from __future__ import annotations

import logging
from typing import Any, Union

import httpx

from maconomy_auth.models import PkceMaterial, TokenErrorResponse, TokenResponse

logger = logging.getLogger(__name__)


class TokenExchanger:
    """Exchange an authorization code for a token in one HTTP round trip.

    The client is public, so no secret is sent; possession is proven by the
    PKCE ``code_verifier``. Provider failures are returned verbatim as a
    :class:`~maconomy_auth.models.TokenErrorResponse` and never retried.

    Args:
        token_endpoint: The provider's token URL.
        timeout: Seconds allowed for the HTTP request.
    """

    def __init__(self, token_endpoint: str, timeout: float = 30.0) -> None:
        self._token_endpoint = token_endpoint
        self._timeout = timeout

    @property
    def token_endpoint(self) -> str:
        return self._token_endpoint

    def exchange(
        self,
        code: str,
        pkce: PkceMaterial,
        client_id: str,
        redirect_uri: str,
    ) -> Union[TokenResponse, TokenErrorResponse]:
        """POST the ``authorization_code`` grant and parse the provider's answer.

        Args:
            code: The authorization code from the redirect.
            pkce: The attempt's PKCE material; only the verifier is sent.
            client_id: Public client id.
            redirect_uri: Must be byte-identical to the one used in the
                authorization request. A mismatch is rejected by the provider.

        Returns:
            A :class:`TokenResponse` on a 2xx JSON body with
            ``access_token``, otherwise a :class:`TokenErrorResponse`
            carrying the status and body verbatim (status ``None`` when the
            request never got a response).
        """
        data: dict[str, str] = {
            "grant_type": "authorization_code",
            "client_id": client_id,
            "code_verifier": pkce.verifier,
            "code": code,
            "redirect_uri": redirect_uri,
        }

        try:
            response = httpx.post(
                self._token_endpoint,
                data=data,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            logger.debug("Token request to %s failed: %s", self._token_endpoint, exc)
            return TokenErrorResponse(http_status=None, body=str(exc))

        if not response.is_success:
            logger.debug("Token endpoint answered %d", response.status_code)
            return TokenErrorResponse(http_status=response.status_code, body=response.text)

        try:
            payload: Any = response.json()
            return TokenResponse.from_provider(payload)
        except (ValueError, KeyError, TypeError):
            logger.debug("Token endpoint returned an unusable success body")
            return TokenErrorResponse(http_status=response.status_code, body=response.text)
