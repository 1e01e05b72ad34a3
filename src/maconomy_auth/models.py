"""Canonical Pydantic models shared across all maconomy_auth modules.

This is the single source of truth for data shapes in the project. The models
fall into three groups:

**Configuration** -- :class:`AuthSettings`, loaded by
:mod:`maconomy_auth.config` from files and environment variables.

**OAuth2 PKCE flow** -- :class:`PkceMaterial`, :class:`AuthorizationAttempt`,
the :data:`AuthorizationResult` union (:class:`AuthorizationCode`,
:class:`AuthorizationError`, :class:`AuthorizationTimeout`),
:class:`TokenResponse`, :class:`TokenErrorResponse`, :class:`FlowState` and
:class:`FlowOutcome`.

**SSO cookie capture** -- :class:`InterceptedResponse`,
:class:`CapturedCookie`, :class:`CaptureMode`, :class:`CaptureStatus` and
:class:`CaptureOutcome`.

Values produced by the flow (attempts, results, credentials) are frozen so
that a result cannot be overwritten once produced.
"""

from __future__ import annotations

import base64
import enum
import hashlib
import secrets
import time
import uuid
from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Union
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, model_validator

from maconomy_auth.exceptions import (
    MaconomyAuthError,
    NotFoundError,
    ProtocolError,
    TimeoutError_,
)


# --- Settings ---


class CaptureMode(str, enum.Enum):
    """How the SSO capture detects the authentication cookie."""

    REACTIVE = "reactive"
    CHECKPOINT = "checkpoint"
    POLL = "poll"


class AuthSettings(BaseModel):
    """Effective configuration for both credential strategies.

    Built by :func:`maconomy_auth.config.load_settings`, which layers CLI
    overrides, ``MACONOMY_AUTH_*`` environment variables, and JSON config
    files over these defaults.

    Example::

        AuthSettings(
            client_id="b9c703b4-...",
            token_endpoint="https://login.microsoftonline.com/<tenant>/oauth2/token",
            tls_cert_file="certificate/certificate.pem",
            tls_key_file="certificate/private-key.pem",
        )
    """

    model_config = ConfigDict(extra="forbid")

    # OAuth2 PKCE
    client_id: Optional[str] = None
    authorize_endpoint: Optional[str] = None
    token_endpoint: Optional[str] = None
    redirect_host: str = "localhost"
    redirect_port: int = Field(default=8080, ge=1, le=65535)
    redirect_scheme: Literal["https", "http"] = "https"
    redirect_path: str = "/"
    scope: Optional[str] = "openid"
    enforce_state: bool = True
    tls_cert_file: Optional[Path] = None
    tls_key_file: Optional[Path] = None

    # SSO cookie capture
    cookie_name_prefix: str = Field(default="Maconomy-", min_length=1)
    sso_entry_url: Optional[str] = None
    capture_mode: CaptureMode = CaptureMode.REACTIVE
    cookie_poll_interval: float = Field(default=1.0, gt=0)
    browser: Literal["chromium", "firefox", "webkit"] = "chromium"
    headless: bool = False

    # Shared
    flow_timeout: float = Field(default=300.0, gt=0)
    handoff_path: Path = Path("maconomy_cookie")
    token_handoff_path: Path = Path("maconomy_token.json")
    handoff_format: Literal["text", "json"] = "text"

    @property
    def redirect_uri(self) -> str:
        """The redirect URI registered with the identity provider.

        The root path is omitted entirely so the value stays byte-identical
        to a registration such as ``https://localhost:8080``.
        """
        base = f"{self.redirect_scheme}://{self.redirect_host}:{self.redirect_port}"
        if self.redirect_path in ("", "/"):
            return base
        path = self.redirect_path if self.redirect_path.startswith("/") else f"/{self.redirect_path}"
        return f"{base}{path}"


# --- PKCE ---


class PkceMaterial(BaseModel):
    """A PKCE ``code_verifier`` and its S256 ``code_challenge`` (:rfc:`7636`).

    The verifier only ever travels in the token request body, the challenge
    only in the authorization URL. Always create a fresh instance per
    attempt with :meth:`generate`.
    """

    model_config = ConfigDict(frozen=True)

    verifier: str = Field(min_length=43, max_length=128)
    challenge: str
    method: Literal["S256"] = "S256"

    @model_validator(mode="after")
    def _check_challenge(self) -> PkceMaterial:
        if self.challenge != self.derive_challenge(self.verifier):
            raise ValueError("code_challenge does not match the code_verifier")
        return self

    @staticmethod
    def derive_challenge(verifier: str) -> str:
        """Return ``base64url(SHA256(verifier))`` without padding."""
        digest = hashlib.sha256(verifier.encode("ascii")).digest()
        return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")

    @classmethod
    def generate(cls) -> PkceMaterial:
        """Generate a new verifier/challenge pair.

        Returns:
            A :class:`PkceMaterial` whose verifier carries 512 bits of
            entropy encoded as 86 URL-safe characters.
        """
        # RFC 7636: 43-128 characters from the unreserved character set
        verifier = secrets.token_urlsafe(64)[:128]
        return cls(verifier=verifier, challenge=cls.derive_challenge(verifier))


class AuthorizationAttempt(BaseModel):
    """One in-flight authorization, from start until its redirect or deadline.

    An attempt is consumed exactly once by
    :class:`~maconomy_auth.plugins.oauth2_auth_code.controller.AuthCodeFlowController`.
    Retrying requires a new attempt (and therefore new PKCE material).

    Attributes:
        attempt_id: Random identifier used to detect reuse.
        client_id: Public OAuth client id registered with the provider.
        redirect_uri: Exact redirect URI sent in both the authorization
            request and the token exchange.
        expected_state: When set, redirects with a different ``state`` are
            ignored by the listener.
        scope: Space-separated scopes for the authorization URL.
        pkce: Verifier/challenge pair for this attempt.
        timeout: Seconds allowed for the redirect to arrive.
        deadline: ``time.monotonic()`` value after which the attempt times out.
    """

    model_config = ConfigDict(frozen=True)

    attempt_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    client_id: str
    redirect_uri: str
    expected_state: Optional[str] = None
    scope: Optional[str] = None
    pkce: PkceMaterial
    timeout: float = Field(gt=0)
    deadline: float

    @classmethod
    def begin(
        cls,
        client_id: str,
        redirect_uri: str,
        timeout: float,
        expected_state: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> AuthorizationAttempt:
        """Start a new attempt with fresh PKCE material and a deadline ``timeout`` seconds away."""
        return cls(
            client_id=client_id,
            redirect_uri=redirect_uri,
            expected_state=expected_state,
            scope=scope,
            pkce=PkceMaterial.generate(),
            timeout=timeout,
            deadline=time.monotonic() + timeout,
        )

    def remaining(self) -> float:
        """Seconds left before the deadline, never negative."""
        return max(0.0, self.deadline - time.monotonic())

    def authorization_url(self, authorize_endpoint: str) -> str:
        """Build the provider authorization URL consistent with this attempt."""
        params: dict[str, str] = {
            "client_id": self.client_id,
            "response_type": "code",
        }
        if self.expected_state:
            params["state"] = self.expected_state
        params["code_challenge"] = self.pkce.challenge
        params["code_challenge_method"] = self.pkce.method
        params["redirect_uri"] = self.redirect_uri
        if self.scope:
            params["scope"] = self.scope
        separator = "&" if "?" in authorize_endpoint else "?"
        return f"{authorize_endpoint}{separator}{urlencode(params)}"


class AuthorizationCode(BaseModel):
    """The redirect carried an authorization ``code``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["code"] = "code"
    value: str


class AuthorizationError(BaseModel):
    """The redirect carried an OAuth ``error`` instead of a code."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["error"] = "error"
    code: str
    description: str = ""


class AuthorizationTimeout(BaseModel):
    """No redirect arrived before the attempt deadline."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["timeout"] = "timeout"


AuthorizationResult = Annotated[
    Union[AuthorizationCode, AuthorizationError, AuthorizationTimeout],
    Field(discriminator="kind"),
]


class TokenResponse(BaseModel):
    """A successful token endpoint response.

    ``raw`` keeps the provider JSON verbatim; it is what the credential sink
    writes to the token handoff file.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_provider(cls, payload: dict[str, Any]) -> TokenResponse:
        """Build from the provider's JSON body.

        Raises:
            KeyError: If ``access_token`` is missing.
            ValueError: If a known field has an unusable type.
        """
        return cls(
            access_token=payload["access_token"],
            token_type=payload.get("token_type") or "Bearer",
            expires_in=payload.get("expires_in"),
            raw=payload,
        )


class TokenErrorResponse(BaseModel):
    """A failed token exchange. ``http_status`` is ``None`` when no response arrived."""

    model_config = ConfigDict(frozen=True)

    http_status: Optional[int] = None
    body: str = ""


class FlowState(str, enum.Enum):
    """States of the authorization-code flow controller."""

    IDLE = "idle"
    AWAITING = "awaiting"
    EXCHANGING = "exchanging"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class FlowOutcome(BaseModel):
    """Terminal result of one authorization-code flow run."""

    model_config = ConfigDict(frozen=True)

    state: FlowState
    token: Optional[TokenResponse] = None
    failure: Optional[Union[AuthorizationError, TokenErrorResponse]] = None

    @property
    def succeeded(self) -> bool:
        return self.state == FlowState.SUCCEEDED and self.token is not None

    def to_error(self) -> Optional[MaconomyAuthError]:
        """Map a failed or timed-out outcome to its exception, or ``None`` on success."""
        if self.state == FlowState.TIMED_OUT:
            return TimeoutError_("Timed out waiting for the authorization redirect")
        if isinstance(self.failure, AuthorizationError):
            message = f"Authorization failed: {self.failure.code}"
            if self.failure.description:
                message += f" - {self.failure.description}"
            return ProtocolError(
                message,
                error_code=self.failure.code,
                description=self.failure.description,
            )
        if isinstance(self.failure, TokenErrorResponse):
            status = self.failure.http_status
            if status is None:
                message = f"Token exchange failed: {self.failure.body}"
            else:
                message = f"Token exchange failed with status {status}: {self.failure.body}"
            return ProtocolError(message, http_status=status, body=self.failure.body)
        return None


# --- SSO cookie capture ---


class InterceptedResponse(BaseModel):
    """An HTTP response observed in the browser session."""

    model_config = ConfigDict(frozen=True)

    url: str
    status: int = 0
    set_cookie: Optional[str] = None


class CapturedCookie(BaseModel):
    """A session cookie whose name matched the configured prefix."""

    model_config = ConfigDict(frozen=True)

    name: str
    value: str

    def handoff_line(self) -> str:
        """Return the ``"<name> <value>"`` line written to the handoff file."""
        return f"{self.name} {self.value}"


Credential = Union[TokenResponse, CapturedCookie]


class CaptureStatus(str, enum.Enum):
    CAPTURED = "captured"
    NOT_FOUND = "not_found"
    TIMEOUT = "timeout"


class CaptureOutcome(BaseModel):
    """Terminal result of one cookie capture session."""

    model_config = ConfigDict(frozen=True)

    status: CaptureStatus
    cookie: Optional[CapturedCookie] = None

    @classmethod
    def captured(cls, cookie: CapturedCookie) -> CaptureOutcome:
        return cls(status=CaptureStatus.CAPTURED, cookie=cookie)

    @classmethod
    def not_found(cls) -> CaptureOutcome:
        return cls(status=CaptureStatus.NOT_FOUND)

    @classmethod
    def timed_out(cls) -> CaptureOutcome:
        return cls(status=CaptureStatus.TIMEOUT)

    def to_error(self, cookie_name_prefix: str) -> Optional[MaconomyAuthError]:
        """Map a failed outcome to its exception, or ``None`` when captured."""
        if self.status == CaptureStatus.TIMEOUT:
            return TimeoutError_("Timed out waiting for user to sign in")
        if self.status == CaptureStatus.NOT_FOUND:
            return NotFoundError(
                f"No cookie starting with '{cookie_name_prefix}' was found; "
                "finish signing in before confirming"
            )
        return None
