"""Typer application and CLI entry point for maconomy-auth.

Commands:

- ``pkce`` -- OAuth2 Authorization Code flow with PKCE; writes the token
  response to ``token_handoff_path``.
- ``sso`` -- interactive SSO login in a browser; writes the Maconomy session
  cookie to ``handoff_path``.
- ``show`` -- prints the stored cookie handoff.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. Library failures arrive as
:class:`~maconomy_auth.exceptions.MaconomyAuthError` and become exit codes;
anything else is written to a crash log under the data directory.

See Also:
    :mod:`maconomy_auth.config`: Settings resolution.
    :mod:`maconomy_auth.output`: Output initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from maconomy_auth import __version__
from maconomy_auth.auth import CredentialSink, Interaction, create_default_manager
from maconomy_auth.config import load_settings
from maconomy_auth.exceptions import (
    ListenerBusyError,
    MaconomyAuthError,
    NotFoundError,
    TimeoutError_,
)
from maconomy_auth.exit_codes import EXIT_GENERIC_FAILURE, EXIT_INTERRUPTED
from maconomy_auth.models import AuthSettings, CaptureMode, Credential
from maconomy_auth.output import (
    OutputFormat,
    OutputManager,
    error,
    get_output,
    info,
    print_data,
    print_record,
    set_output,
    success,
    suggest,
    warning,
)

app = typer.Typer(
    name="maconomy-auth",
    help="Obtain Maconomy credentials via OAuth2 PKCE or an SSO browser login.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"maconomy-auth {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    """Send library logs to stderr through Rich; DEBUG with ``--verbose``."""
    package_logger = logging.getLogger("maconomy_auth")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    handler = RichHandler(console=Console(stderr=True), show_path=False, show_time=verbose)
    handler.setFormatter(logging.Formatter("%(message)s"))
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to a JSON settings file."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output for 'show'."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Initialise output and logging, and stash shared options in ``ctx.obj``."""
    output = OutputManager(
        format=OutputFormat.JSON if json_output else OutputFormat.PLAIN,
        no_color=no_color,
        quiet=quiet,
    )
    set_output(output)
    _configure_logging(verbose)

    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file


class CliInteraction(Interaction):
    """Interaction that reports progress on stderr.

    Args:
        open_browser: Open the authorization URL automatically. When
            ``False`` the URL is only printed.
    """

    def __init__(self, open_browser: bool = True) -> None:
        self._open_browser = open_browser

    def authorization_ready(self, url: Optional[str], redirect_uri: str) -> None:
        info(f"Listening for the sign-in redirect on {redirect_uri}")
        if url is None:
            warning("No authorize_endpoint configured; start the sign-in from your identity provider.")
            return
        info("Open this URL to sign in:")
        info(f"  {url}")
        if self._open_browser:
            super().authorization_ready(url, redirect_uri)

    def wait_for_login(self) -> None:
        typer.prompt(
            "Press Enter once you have finished signing in",
            default="",
            show_default=False,
            prompt_suffix=" ",
        )


def _settings(ctx: typer.Context, overrides: dict[str, Any]) -> AuthSettings:
    config_file = ctx.obj.get("config_file") if ctx.obj else None
    return load_settings(config_file=config_file, overrides=overrides)


def _acquire(strategy: str, settings: AuthSettings, interaction: Interaction) -> Credential:
    result = create_default_manager().acquire(strategy, settings, interaction)
    if not result.ok:
        assert result.failure is not None
        raise result.failure
    assert result.credential is not None
    return result.credential


def _fail(exc: MaconomyAuthError) -> typer.Exit:
    """Report *exc* with a hint and return the matching ``typer.Exit``."""
    error(str(exc))
    if isinstance(exc, TimeoutError_):
        suggest("Run the command again; a new attempt uses fresh PKCE material.")
    elif isinstance(exc, NotFoundError):
        suggest("Finish signing in before confirming, then run the command again.")
    elif isinstance(exc, ListenerBusyError):
        suggest("Stop the other process or set MACONOMY_AUTH_REDIRECT_PORT.")
    return typer.Exit(code=exc.exit_code)


@app.command("pkce")
def pkce_command(
    ctx: typer.Context,
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", min=0.001, help="Seconds to wait for the redirect."
    ),
    no_browser: bool = typer.Option(
        False, "--no-browser", help="Print the authorization URL without opening it."
    ),
) -> None:
    """Sign in with OAuth2 Authorization Code + PKCE and store the token.

    Example::

        maconomy-auth pkce --timeout 120
    """
    try:
        settings = _settings(ctx, {"flow_timeout": timeout})
        credential = _acquire("oauth2_pkce", settings, CliInteraction(open_browser=not no_browser))
        path = CredentialSink(settings.token_handoff_path).persist(credential)
    except MaconomyAuthError as exc:
        raise _fail(exc) from None
    success(f"Token written to {path}")


@app.command("sso")
def sso_command(
    ctx: typer.Context,
    mode: Optional[CaptureMode] = typer.Option(
        None, "--mode", "-m", help="How to detect the session cookie."
    ),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", min=0.001, help="Seconds to wait for the sign-in."
    ),
    headless: Optional[bool] = typer.Option(
        None, "--headless/--headed", help="Run the browser without a window."
    ),
) -> None:
    """Sign in through SSO in a browser and store the session cookie.

    Example::

        maconomy-auth sso --mode checkpoint
    """
    try:
        settings = _settings(
            ctx, {"capture_mode": mode, "flow_timeout": timeout, "headless": headless}
        )
        info("Sign in using the browser window that opens.")
        credential = _acquire("sso_cookie", settings, CliInteraction())
        path = CredentialSink(settings.handoff_path, settings.handoff_format).persist(credential)
    except MaconomyAuthError as exc:
        raise _fail(exc) from None
    success(f"Cookie written to {path}")


@app.command("show")
def show_command(ctx: typer.Context) -> None:
    """Print the stored cookie handoff.

    The default output is the ``"<name> <value>"`` line; ``--json`` prints an
    object with the handoff path.
    """
    try:
        settings = _settings(ctx, {})
        sink = CredentialSink(settings.handoff_path)
        cookie = sink.read_cookie()
        if cookie is None:
            raise NotFoundError(f"No cookie handoff at {sink.path}")
    except MaconomyAuthError as exc:
        error(str(exc))
        if isinstance(exc, NotFoundError):
            suggest("Run: maconomy-auth sso")
        raise typer.Exit(code=exc.exit_code) from None

    if get_output().format == OutputFormat.JSON:
        print_record({"name": cookie.name, "value": cookie.value, "path": str(sink.path)})
    else:
        print_data(cookie.handoff_line())


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback under the data directory and return its path."""
    from maconomy_auth.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """Console-script entry point.

    :class:`~maconomy_auth.exceptions.MaconomyAuthError` instances that
    escape a command exit with their ``exit_code``. Any other exception
    produces a crash log and a generic failure exit.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(EXIT_INTERRUPTED)
    except MaconomyAuthError as exc:
        error(str(exc))
        sys.exit(exc.exit_code)
    except Exception as exc:
        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
