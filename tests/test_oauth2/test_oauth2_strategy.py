"""Tests for the oauth2_pkce credential strategy."""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional
from unittest.mock import patch
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from maconomy_auth.auth.base import Interaction
from maconomy_auth.exceptions import ConfigError, ProtocolError, TimeoutError_
from maconomy_auth.models import AuthSettings, TokenResponse
from maconomy_auth.plugins.oauth2_auth_code import OAuth2PkceStrategy

TOKEN_URL = "https://login.example.com/tenant/oauth2/token"
AUTHORIZE_URL = "https://login.example.com/tenant/oauth2/authorize"


class _ProviderInteraction(Interaction):
    """Plays the identity provider: redirects back with a code and the URL's state."""

    def __init__(self, code: Optional[str] = "C", error: Optional[str] = None) -> None:
        self.code = code
        self.error = error
        self.urls: list[Optional[str]] = []

    def authorization_ready(self, url: Optional[str], redirect_uri: str) -> None:
        self.urls.append(url)
        if url is None:
            return
        params = parse_qs(urlparse(url).query)
        query = f"state={params['state'][0]}"
        if self.code:
            query += f"&code={self.code}"
        if self.error:
            query += f"&error={self.error}"
        threading.Thread(
            target=lambda: httpx.get(f"{redirect_uri}/?{query}", verify=False, timeout=5.0),
            daemon=True,
        ).start()


def _settings(port: int, tls_files: tuple[Path, Path], **kwargs: object) -> AuthSettings:
    cert, key = tls_files
    values: dict[str, object] = {
        "client_id": "client",
        "authorize_endpoint": AUTHORIZE_URL,
        "token_endpoint": TOKEN_URL,
        "redirect_port": port,
        "tls_cert_file": cert,
        "tls_key_file": key,
        "flow_timeout": 5.0,
    }
    values.update(kwargs)
    return AuthSettings(**values)  # type: ignore[arg-type]


class TestOAuth2PkceStrategy:
    def test_name(self) -> None:
        assert OAuth2PkceStrategy().name == "oauth2_pkce"

    def test_acquire_success(self, free_port: int, tls_files: tuple[Path, Path]) -> None:
        interaction = _ProviderInteraction()
        token_response = httpx.Response(
            200, json={"access_token": "T"}, request=httpx.Request("POST", TOKEN_URL)
        )

        with patch(
            "maconomy_auth.plugins.oauth2_auth_code.exchanger.httpx.post",
            return_value=token_response,
        ):
            result = OAuth2PkceStrategy().acquire(_settings(free_port, tls_files), interaction)

        assert result.ok
        assert isinstance(result.credential, TokenResponse)
        assert result.credential.access_token == "T"
        url = interaction.urls[0]
        assert url is not None and url.startswith(AUTHORIZE_URL + "?")
        assert parse_qs(urlparse(url).query)["redirect_uri"] == [f"https://localhost:{free_port}"]

    def test_provider_error(self, free_port: int, tls_files: tuple[Path, Path]) -> None:
        interaction = _ProviderInteraction(code=None, error="access_denied")
        result = OAuth2PkceStrategy().acquire(_settings(free_port, tls_files), interaction)

        assert not result.ok
        assert isinstance(result.failure, ProtocolError)
        assert result.failure.error_code == "access_denied"

    def test_timeout_without_authorize_endpoint(
        self, free_port: int, tls_files: tuple[Path, Path]
    ) -> None:
        interaction = _ProviderInteraction()
        settings = _settings(free_port, tls_files, authorize_endpoint=None, flow_timeout=0.1)
        result = OAuth2PkceStrategy().acquire(settings, interaction)

        assert interaction.urls == [None]
        assert isinstance(result.failure, TimeoutError_)

    def test_missing_settings(self) -> None:
        strategy = OAuth2PkceStrategy()
        errors = strategy.validate_settings(AuthSettings())
        assert len(errors) == 3
        with pytest.raises(ConfigError, match="client_id"):
            strategy.acquire(AuthSettings())

    def test_http_redirect_needs_no_tls_files(self) -> None:
        settings = AuthSettings(client_id="c", token_endpoint=TOKEN_URL, redirect_scheme="http")
        assert OAuth2PkceStrategy().validate_settings(settings) == []
