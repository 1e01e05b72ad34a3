"""Terminal output with strict stdout/stderr separation.

* **stdout** -- only the data a script might consume (``show`` output).
* **stderr** -- everything else: progress, the authorization URL, warnings,
  errors. Secrets are never echoed there.
* **Colour** -- Rich markup on stderr unless ``NO_COLOR`` or ``TERM=dumb``
  is set or ``--no-color`` is passed.

:class:`OutputManager` holds the preferences and is installed once by
:func:`~maconomy_auth.app.main_callback` via :func:`set_output`; the
module-level helpers (:func:`info`, :func:`error`, ...) delegate to it.
"""

from __future__ import annotations

import json
import os
import sys
from enum import Enum
from typing import Any, Optional

from rich.console import Console


class OutputFormat(str, Enum):
    """Format for records written to stdout."""

    PLAIN = "plain"
    JSON = "json"


class OutputManager:
    """Route data to stdout and diagnostics to stderr.

    Args:
        format: Format for :meth:`print_record`.
        no_color: Disable colour and Rich markup.
        quiet: Suppress informational messages. Warnings and errors still
            appear.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.PLAIN,
        no_color: bool = False,
        quiet: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._format = format
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def no_color(self) -> bool:
        return self._no_color

    # ------------------------------------------------------------------ #
    # Data output (stdout)
    # ------------------------------------------------------------------ #

    def print_data(self, text: str) -> None:
        """Print raw text to stdout."""
        print(text, file=sys.stdout, flush=True)

    def print_record(self, record: dict[str, Any]) -> None:
        """Print a flat record: one JSON object in JSON mode, otherwise
        ``key<TAB>value`` lines.
        """
        if self._format == OutputFormat.JSON:
            self.print_data(json.dumps(record, indent=2, ensure_ascii=False, default=str))
        else:
            for key, value in record.items():
                self.print_data(f"{key}\t{value}")

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def _emit(self, plain: str, markup: str) -> None:
        if self._no_color:
            print(plain, file=sys.stderr, flush=True)
        else:
            self._stderr.print(markup)

    def info(self, message: str) -> None:
        """Informational message. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._emit(message, message)

    def success(self, message: str) -> None:
        """Green success message. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._emit(message, f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        """Yellow warning. Not suppressed by ``--quiet``."""
        self._emit(f"Warning: {message}", f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        """Bold-red error. Never suppressed."""
        self._emit(f"Error: {message}", f"[bold red]Error:[/bold red] {message}")

    def suggest(self, message: str) -> None:
        """Dimmed next-step hint. Suppressed by ``--quiet``."""
        if not self._quiet:
            formatted = f"→ {message}"
            self._emit(formatted, f"[dim]{formatted}[/dim]")


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    if os.environ.get("NO_COLOR") is not None:
        return True
    return os.environ.get("TERM") == "dumb"


# ------------------------------------------------------------------ #
# Global output instance (set during app startup)
# ------------------------------------------------------------------ #

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed :class:`OutputManager`, creating a default one lazily."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Drop the global manager. Used by the test suite between tests."""
    global _output
    _output = None


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_record(record: dict[str, Any]) -> None:
    get_output().print_record(record)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)


def suggest(message: str) -> None:
    get_output().suggest(message)
