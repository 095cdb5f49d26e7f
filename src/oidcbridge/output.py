"""Operator CLI output with stdout/stderr discipline.

* **stdout** -- command results only (settings, provider metadata, URLs),
  so they can be piped.
* **stderr** -- diagnostics: status, warnings, errors, and the log records
  shown with ``--verbose``.
* **Format** -- Rich when stdout is a terminal, tab-separated plain text when
  piped, JSON with ``--json``.
* **Colour** -- disabled by ``NO_COLOR``, ``TERM=dumb``, or ``--no-color``.

:class:`OutputManager` holds the preferences and is installed once per CLI
invocation with :func:`set_output`. The module-level helpers
(:func:`info`, :func:`error`, :func:`print_mapping`, ...) delegate to it.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from enum import Enum
from typing import Any, Mapping, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table


class OutputFormat(str, Enum):
    """Supported output formats. ``AUTO`` picks ``RICH`` on a colour terminal, ``PLAIN`` otherwise."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


class OutputManager:
    """Route CLI output to the right stream in the right format.

    Args:
        format: Desired output format.
        no_color: Disable colour and Rich markup.
        quiet: Suppress informational messages on stderr.
        verbose: Show DEBUG log records on stderr.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        if format == OutputFormat.AUTO:
            self._format = (
                OutputFormat.RICH if _is_tty() and not self._no_color else OutputFormat.PLAIN
            )
        else:
            self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=(self._format == OutputFormat.RICH),
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    # ------------------------------------------------------------------ #
    # Logging
    # ------------------------------------------------------------------ #

    def configure_logging(self) -> None:
        """Attach a stderr handler to the ``oidcbridge`` logger.

        DEBUG with ``--verbose``, WARNING otherwise. Calling it again
        replaces the handler installed by the previous call.
        """
        package_logger = logging.getLogger("oidcbridge")
        for handler in list(package_logger.handlers):
            if getattr(handler, "_oidcbridge_cli", False):
                package_logger.removeHandler(handler)

        handler: logging.Handler
        if self._no_color:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        else:
            handler = RichHandler(console=self._stderr, show_path=False, markup=False)
        handler._oidcbridge_cli = True  # type: ignore[attr-defined]
        package_logger.addHandler(handler)
        package_logger.setLevel(logging.DEBUG if self._verbose else logging.WARNING)

    # ------------------------------------------------------------------ #
    # Data output (stdout)
    # ------------------------------------------------------------------ #

    def print_data(self, text: str) -> None:
        """Print raw text to stdout."""
        print(text, file=sys.stdout, flush=True)

    def print_mapping(self, data: Mapping[str, Any], title: Optional[str] = None) -> None:
        """Print key/value data to stdout in the active format.

        * **Rich** -- a two-column table.
        * **JSON** -- a JSON object.
        * **Plain** -- ``key<TAB>value`` lines.

        Args:
            data: The values to print. Nested values are rendered as JSON.
            title: Optional table title (Rich mode only).
        """
        if self._format == OutputFormat.JSON:
            self.print_data(json.dumps(dict(data), indent=2, ensure_ascii=False, default=str))
            return

        rows = [(key, _render(value)) for key, value in data.items()]
        if self._format == OutputFormat.PLAIN:
            for key, value in rows:
                self.print_data(f"{key}\t{value}")
            return

        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("Key")
        table.add_column("Value")
        for key, value in rows:
            table.add_row(key, value)
        self._stdout.print(table)

    # ------------------------------------------------------------------ #
    # Diagnostics (stderr)
    # ------------------------------------------------------------------ #

    def info(self, message: str) -> None:
        """Print an informational message to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._emit(message, message)

    def success(self, message: str) -> None:
        """Print a green success message to stderr. Suppressed by ``--quiet``."""
        if not self._quiet:
            self._emit(message, f"[green]{message}[/green]")

    def warning(self, message: str) -> None:
        """Print a warning to stderr. NOT suppressed by ``--quiet``."""
        self._emit(f"Warning: {message}", f"[yellow]Warning:[/yellow] {message}")

    def error(self, message: str) -> None:
        """Print an error to stderr. Never suppressed."""
        self._emit(f"Error: {message}", f"[bold red]Error:[/bold red] {message}")

    def _emit(self, plain: str, markup: str) -> None:
        if self._no_color:
            print(plain, file=sys.stderr, flush=True)
        else:
            self._stderr.print(markup, highlight=False)


def _render(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def _is_tty() -> bool:
    return hasattr(sys.stdout, "isatty") and sys.stdout.isatty()


def _should_disable_color() -> bool:
    """``True`` when ``NO_COLOR`` is set (any value) or ``TERM=dumb``."""
    return os.environ.get("NO_COLOR") is not None or os.environ.get("TERM") == "dumb"


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
    """Forget the installed manager. Used by tests between CLI invocations."""
    global _output
    _output = None


def print_data(text: str) -> None:
    get_output().print_data(text)


def print_mapping(data: Mapping[str, Any], title: Optional[str] = None) -> None:
    get_output().print_mapping(data, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def warning(message: str) -> None:
    get_output().warning(message)


def error(message: str) -> None:
    get_output().error(message)
