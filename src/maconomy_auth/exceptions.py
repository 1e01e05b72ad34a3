"""Exception hierarchy for maconomy_auth.

All exceptions inherit from :class:`MaconomyAuthError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`maconomy_auth.exit_codes`. Controllers never raise these for
protocol outcomes; strategies wrap terminal failures in an
:class:`~maconomy_auth.auth.base.AcquisitionResult` and the entry point in
:func:`maconomy_auth.app.main` raises and maps them to exit codes.

Subclass hierarchy::

    MaconomyAuthError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- ConfigError         (exit 2)
    +-- ProtocolError       (exit 3)
    +-- TimeoutError_       (exit 4)
    +-- NotFoundError       (exit 5)
    +-- IoError             (exit 6)
    +-- ListenerBusyError   (exit 7)
"""

from __future__ import annotations

from maconomy_auth.exit_codes import (
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_IO_ERROR,
    EXIT_LISTENER_BUSY,
    EXIT_NOT_FOUND,
    EXIT_PROTOCOL_ERROR,
    EXIT_TIMEOUT,
)


class MaconomyAuthError(Exception):
    """Base exception for all maconomy_auth errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(MaconomyAuthError):
    """Raised for invalid arguments or misuse of a single-use object."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(MaconomyAuthError):
    """Raised for configuration problems (invalid JSON, bad values, missing fields)."""

    exit_code = EXIT_INVALID_USAGE


class ProtocolError(MaconomyAuthError):
    """The identity provider rejected the attempt.

    Covers an ``error`` parameter on the redirect as well as a non-2xx
    response from the token endpoint. Provider details are kept verbatim.

    Args:
        message: Human-readable summary.
        error_code: OAuth ``error`` value, when the redirect carried one.
        description: OAuth ``error_description`` value.
        http_status: Token endpoint status code, or ``None``.
        body: Token endpoint response body, verbatim.
    """

    exit_code = EXIT_PROTOCOL_ERROR

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        description: str | None = None,
        http_status: int | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.description = description
        self.http_status = http_status
        self.body = body


class TimeoutError_(MaconomyAuthError):
    """No redirect or matching cookie arrived before the deadline.

    Named with a trailing underscore to avoid shadowing the built-in
    ``TimeoutError``. Recoverable by retrying the whole attempt.
    """

    exit_code = EXIT_TIMEOUT


class NotFoundError(MaconomyAuthError):
    """No cookie matched the configured prefix after the user signalled completion."""

    exit_code = EXIT_NOT_FOUND


class IoError(MaconomyAuthError):
    """The credential handoff file could not be written or read."""

    exit_code = EXIT_IO_ERROR


class ListenerBusyError(MaconomyAuthError):
    """A redirect listener is already bound to the requested host and port."""

    exit_code = EXIT_LISTENER_BUSY
