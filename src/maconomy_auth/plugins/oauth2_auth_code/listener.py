"""Single-attempt loopback listener for the OAuth2 redirect.

:class:`RedirectListener` binds the exact host and port of the registered
redirect URI, waits for the identity provider to redirect the browser back
with an authorization ``code`` (or an ``error``), and releases the port as
soon as a result is produced or the attempt deadline passes.

The listener is built on :class:`http.server.HTTPServer` and serves one
connection at a time on the calling thread. When an :class:`ssl.SSLContext`
is supplied, every accepted connection is wrapped server-side, so the
redirect URI can use the ``https`` scheme registered with the provider.
"""

from __future__ import annotations

import errno
import logging
import socket
import ssl
import threading
import time
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import parse_qs, urlparse

from maconomy_auth.exceptions import ConfigError, InvalidUsageError, ListenerBusyError
from maconomy_auth.models import (
    AuthorizationAttempt,
    AuthorizationCode,
    AuthorizationError,
    AuthorizationResult,
    AuthorizationTimeout,
)

logger = logging.getLogger(__name__)

DEFAULT_ACK_BODY = (
    "Sign-in complete. You can close this window and return to the terminal."
)

# Upper bound on one connection's TLS handshake and request read, clamped to
# the attempt deadline.
_CONNECTION_TIMEOUT = 10.0
_MIN_CONNECTION_TIMEOUT = 0.05

_active_ports: set[tuple[str, int]] = set()
_active_ports_lock = threading.Lock()


def build_ssl_context(cert_file: Union[str, Path], key_file: Union[str, Path]) -> ssl.SSLContext:
    """Create a server-side TLS context from a pre-provisioned PEM key pair.

    Raises:
        ConfigError: If the certificate or key cannot be loaded.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    try:
        context.load_cert_chain(certfile=str(cert_file), keyfile=str(key_file))
    except (OSError, ssl.SSLError) as exc:
        raise ConfigError(
            f"Cannot load TLS certificate '{cert_file}' / key '{key_file}': {exc}"
        ) from exc
    return context


class _RedirectServer(HTTPServer):
    """HTTPServer that records the first redirect matching the expected path and state."""

    def __init__(
        self,
        address: tuple[str, int],
        path: str,
        ssl_context: Optional[ssl.SSLContext],
        ack_body: str,
    ) -> None:
        self.expected_path = path
        self.expected_state: Optional[str] = None
        self.deadline: Optional[float] = None
        self.ssl_context = ssl_context
        self.ack_body = ack_body
        self.result: Optional[Union[AuthorizationCode, AuthorizationError]] = None
        super().__init__(address, _RedirectHandler)

    def connection_timeout(self) -> float:
        if self.deadline is None:
            return _CONNECTION_TIMEOUT
        remaining = self.deadline - time.monotonic()
        return max(_MIN_CONNECTION_TIMEOUT, min(_CONNECTION_TIMEOUT, remaining))

    def get_request(self) -> tuple[socket.socket, Any]:
        sock, client_address = self.socket.accept()
        sock.settimeout(self.connection_timeout())
        if self.ssl_context is not None:
            # Handshake failures raise ssl.SSLError (an OSError), which
            # socketserver treats as a dropped connection.
            try:
                sock = self.ssl_context.wrap_socket(sock, server_side=True)
            except OSError:
                sock.close()
                raise
        return sock, client_address


class _RedirectHandler(BaseHTTPRequestHandler):
    server: _RedirectServer

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        params = parse_qs(parsed.query)
        server = self.server

        if _normalise_path(parsed.path) != server.expected_path:
            logger.debug("Ignoring request for unexpected path %r", parsed.path)
            self._respond(404, "Not found.")
            return

        if server.expected_state is not None:
            state = params.get("state", [None])[0]
            if state != server.expected_state:
                logger.warning("Ignoring redirect with mismatched state parameter")
                self._respond(400, "Unexpected state parameter; request ignored.")
                return

        if server.result is None:
            server.result = _result_from_params(params)
        self._respond(200, server.ack_body)

    def _respond(self, status: int, body: str) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Connection", "close")
        self.end_headers()
        self.wfile.write(f"<html><body><h2>{body}</h2></body></html>".encode("utf-8"))

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug("redirect listener: " + format, *args)


def _normalise_path(path: str) -> str:
    return path if path else "/"


def _result_from_params(params: dict[str, list[str]]) -> Union[AuthorizationCode, AuthorizationError]:
    if "code" in params:
        return AuthorizationCode(value=params["code"][0])
    if "error" in params:
        return AuthorizationError(
            code=params["error"][0],
            description=params.get("error_description", [""])[0],
        )
    return AuthorizationError(
        code="invalid_request",
        description="Redirect carried neither 'code' nor 'error'",
    )


class RedirectListener:
    """Loopback listener whose lifetime is exactly one authorization attempt.

    Args:
        host: Loopback host from the redirect URI (e.g. ``"localhost"``).
        port: Port from the redirect URI.
        path: Path from the redirect URI; requests elsewhere are ignored.
        ssl_context: Server TLS context, or ``None`` for plain HTTP.
        ack_body: Text shown in the browser after the redirect.

    Example::

        listener = RedirectListener.for_attempt(attempt, ssl_context)
        listener.bind()
        webbrowser.open(attempt.authorization_url(authorize_endpoint))
        result = listener.await_redirect(attempt)
    """

    def __init__(
        self,
        host: str,
        port: int,
        path: str = "/",
        ssl_context: Optional[ssl.SSLContext] = None,
        ack_body: str = DEFAULT_ACK_BODY,
    ) -> None:
        self._host = host
        self._port = port
        self._path = _normalise_path(path)
        self._ssl_context = ssl_context
        self._ack_body = ack_body
        self._server: Optional[_RedirectServer] = None
        self._used = False

    @classmethod
    def for_attempt(
        cls,
        attempt: AuthorizationAttempt,
        ssl_context: Optional[ssl.SSLContext] = None,
        ack_body: str = DEFAULT_ACK_BODY,
    ) -> RedirectListener:
        """Build a listener for the host, port and path encoded in ``attempt.redirect_uri``.

        Raises:
            ConfigError: If the redirect URI lacks a host or port, or uses
                ``https`` without an SSL context.
        """
        parsed = urlparse(attempt.redirect_uri)
        if not parsed.hostname or parsed.port is None:
            raise ConfigError(
                f"Redirect URI '{attempt.redirect_uri}' must include an explicit host and port"
            )
        if parsed.scheme == "https" and ssl_context is None:
            raise ConfigError(
                "An https redirect URI requires a TLS certificate and key "
                "(tls_cert_file / tls_key_file)"
            )
        return cls(parsed.hostname, parsed.port, parsed.path or "/", ssl_context, ack_body)

    @property
    def is_bound(self) -> bool:
        return self._server is not None

    @property
    def address(self) -> tuple[str, int]:
        return self._host, self._port

    def bind(self) -> None:
        """Bind and start accepting on ``host:port``.

        Raises:
            ListenerBusyError: If another listener holds the port (in this
                process or elsewhere). Binding never waits.
            InvalidUsageError: If this listener has already been used.
        """
        if self._used:
            raise InvalidUsageError("A redirect listener serves exactly one attempt")
        key = (self._host, self._port)
        with _active_ports_lock:
            if key in _active_ports:
                raise ListenerBusyError(
                    f"A redirect listener is already active on {self._host}:{self._port}"
                )
            try:
                self._server = _RedirectServer(key, self._path, self._ssl_context, self._ack_body)
            except OSError as exc:
                if exc.errno == errno.EADDRINUSE:
                    raise ListenerBusyError(
                        f"Port {self._port} on {self._host} is already in use"
                    ) from exc
                raise
            _active_ports.add(key)
            self._used = True
        logger.debug("Redirect listener bound on %s:%d", self._host, self._port)

    def await_redirect(self, attempt: AuthorizationAttempt) -> AuthorizationResult:
        """Serve requests until the redirect arrives or the attempt deadline passes.

        Binds first if :meth:`bind` has not been called. The port is released
        before this method returns, whatever the outcome.

        Returns:
            :class:`AuthorizationCode`, :class:`AuthorizationError`, or
            :class:`AuthorizationTimeout`.
        """
        if self._server is None:
            self.bind()
        server = self._server
        assert server is not None
        server.expected_state = attempt.expected_state
        server.deadline = attempt.deadline

        try:
            while server.result is None:
                remaining = attempt.remaining()
                if remaining <= 0:
                    logger.debug("Redirect listener deadline reached")
                    return AuthorizationTimeout()
                server.timeout = remaining
                server.handle_request()
            return server.result
        finally:
            self.close()

    def close(self) -> None:
        """Stop accepting and release the port. Safe to call more than once."""
        server = self._server
        if server is None:
            return
        self._server = None
        server.server_close()
        with _active_ports_lock:
            _active_ports.discard((self._host, self._port))
        logger.debug("Redirect listener on %s:%d closed", self._host, self._port)

    def __enter__(self) -> RedirectListener:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
