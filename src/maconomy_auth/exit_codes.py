"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a failure class from the credential bootstrap and is
referenced by the corresponding
:class:`~maconomy_auth.exceptions.MaconomyAuthError` subclass. Wrapping
automation (cron jobs, shell wrappers around the timesheet CLI) can branch on
the exit code without parsing stderr.

Example::

    $ maconomy-auth sso --mode checkpoint
    $ echo $?
    5   # EXIT_NOT_FOUND -- no Maconomy cookie after the user signalled
"""

EXIT_SUCCESS = 0
"""A credential was acquired and written to the handoff file."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or incomplete configuration."""

EXIT_PROTOCOL_ERROR = 3
"""The identity provider returned an error on the redirect or the token endpoint."""

EXIT_TIMEOUT = 4
"""No redirect or matching cookie arrived before the deadline."""

EXIT_NOT_FOUND = 5
"""The user signalled completion but no matching session cookie was present."""

EXIT_IO_ERROR = 6
"""The credential could not be written to the handoff file."""

EXIT_LISTENER_BUSY = 7
"""The redirect listener port is already held by another listener."""

EXIT_INTERRUPTED = 130
"""The run was cancelled with Ctrl-C."""
