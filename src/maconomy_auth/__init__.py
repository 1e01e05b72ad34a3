"""maconomy_auth -- bootstrap credentials for the Maconomy timesheet backend.

When no stored session exists, this package obtains a credential that
authorizes calls to the Maconomy API using one of two strategies:

* **OAuth2 PKCE** -- an Authorization Code flow with PKCE where a local TLS
  listener captures the redirect and the code is exchanged for a token.
* **SSO cookie capture** -- the user signs in through an automated browser
  and the session cookie set by the backend is captured.

Either way, the resulting credential is written to a handoff file for the
downstream client to pick up.

Typical workflow::

    maconomy-auth sso --mode reactive   # capture the Maconomy session cookie
    maconomy-auth pkce                  # or obtain an OAuth2 access token

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware settings loading with env var precedence.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric process exit codes.
    output: stderr/stdout discipline with Rich support.
"""

__version__ = "0.1.0"
