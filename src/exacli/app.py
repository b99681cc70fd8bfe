"""Typer application and CLI entry point for exacli.

This module wires together the top-level Typer application and registers
the built-in commands (``search``, ``find``, ``content``, ``answer``,
``research``, ``status``, ``reset``, and the ``config`` group).

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. It installs signal handlers and invokes the Typer app.
Unhandled exceptions are written to a crash log under the data directory.

See Also:
    :mod:`exacli.config`: Global configuration resolution.
    :mod:`exacli.output`: Output formatting initialised in :func:`main_callback`.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from exacli import __version__
from exacli.commands.config import config_app
from exacli.commands.content import content_command
from exacli.commands.keys import reset_command, status_command
from exacli.commands.research import research_command
from exacli.commands.search import answer_command, find_command, search_command
from exacli.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="exa",
    help="AI-powered web search via the Exa API, with multi-key rotation and caching.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

app.command("search")(search_command)
app.command("find")(find_command)
app.command("content")(content_command)
app.command("answer")(answer_command)
app.command("research")(research_command)
app.command("status")(status_command)
app.command("reset")(reset_command)
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"exa {__version__}")
        raise typer.Exit()


def _setup_logging(verbose: bool, quiet: bool, no_color: bool) -> None:
    """Route library logging to stderr through Rich."""
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING

    handler = RichHandler(
        console=Console(stderr=True, no_color=no_color),
        show_time=verbose,
        show_path=verbose,
        markup=False,
    )
    logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _resolve_format(json_output: bool, compact: bool, tsv: bool) -> Any:
    """Pick the output format: CLI flag, then ``output.format`` from the config file."""
    from exacli.config import load_global_config
    from exacli.exceptions import ConfigError
    from exacli.output import OutputFormat

    if json_output:
        return OutputFormat.JSON
    if tsv:
        return OutputFormat.TSV
    if compact:
        return OutputFormat.COMPACT
    try:
        return OutputFormat(load_global_config().output.format)
    except (ConfigError, ValueError):
        # Reported by the command itself when it resolves the config.
        return OutputFormat.AUTO


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
    json_output: bool = typer.Option(
        False, "--json", help="JSON output (errors as {\"error\": ...})."
    ),
    compact: bool = typer.Option(
        False, "--compact", help="Terse line output (default when piped)."
    ),
    tsv: bool = typer.Option(
        False, "--tsv", help="Tab-separated title/url/date output."
    ),
    max_chars: Optional[int] = typer.Option(
        None, "--max-chars", help="Truncate text (default 300 compact, 500 otherwise)."
    ),
    fields: Optional[str] = typer.Option(
        None, "--fields", help="Fields to show: title,url,date,content,highlights."
    ),
    no_sources: bool = typer.Option(
        False, "--no-sources", help="Omit sources in answer/research output."
    ),
    no_cache: bool = typer.Option(
        False, "--no-cache", help="Bypass the response cache."
    ),
    cache_ttl: Optional[int] = typer.Option(
        None, "--cache-ttl", help="Cache TTL in minutes (default 60)."
    ),
    no_color: bool = typer.Option(
        False, "--no-color", help="Disable color output."
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable debug output."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Skip confirmations."
    ),
) -> None:
    """Root callback executed before every sub-command.

    Initialises logging and the global :class:`~exacli.output.OutputManager`
    from CLI flags, and stores shared options in the Typer context so that
    commands can read them via ``ctx.obj``.
    """
    from exacli.formatting import parse_fields
    from exacli.output import OutputManager, set_output

    _setup_logging(verbose, quiet, no_color)

    output = OutputManager(
        format=_resolve_format(json_output, compact, tsv),
        no_color=no_color,
        quiet=quiet,
        verbose=verbose,
    )
    set_output(output)

    ctx.ensure_object(dict)
    ctx.obj["no_cache"] = no_cache
    ctx.obj["cache_ttl"] = cache_ttl
    ctx.obj["max_chars"] = max_chars
    ctx.obj["fields"] = parse_fields(fields)
    ctx.obj["sources"] = not no_sources
    ctx.obj["force"] = force


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write a crash traceback to disk and return the log file path."""
    from exacli.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(traceback.format_exc())
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``exa`` console script.

    Unhandled :class:`~exacli.exceptions.ExaCliError` instances cause a
    clean exit with the error's ``exit_code``. All other exceptions produce
    a crash log and a generic failure exit.

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
        sys.exit(130)
    except Exception as exc:
        from exacli.exceptions import ExaCliError
        from exacli.output import error

        if isinstance(exc, ExaCliError):
            error(str(exc))
            sys.exit(exc.exit_code)
        else:
            log_path = _write_crash_log(exc)
            error(f"Unexpected error. Debug log: {log_path}")
            sys.exit(EXIT_GENERIC_FAILURE)
