"""Plumbing shared by the request commands.

Reads the global options stored on the Typer context by
:func:`~exacli.app.main_callback`, resolves the effective configuration,
runs one :class:`~exacli.models.UpstreamRequest` through the dispatcher
and renders the outcome.
"""

from __future__ import annotations

from typing import Any, Callable

import typer

from exacli.exceptions import ExaCliError
from exacli.formatting import RenderOptions, render_error, render_result
from exacli.models import GlobalConfig, UpstreamRequest
from exacli.output import OutputManager, get_output

Renderer = Callable[[OutputManager, dict[str, Any], RenderOptions], None]


def _obj(ctx: typer.Context) -> dict[str, Any]:
    return ctx.obj if isinstance(ctx.obj, dict) else {}


def render_options(ctx: typer.Context) -> RenderOptions:
    """Build :class:`RenderOptions` from the global ``--max-chars`` / ``--fields`` / ``--no-sources``."""
    obj = _obj(ctx)
    return RenderOptions(
        max_chars=obj.get("max_chars"),
        fields=obj.get("fields"),
        sources=obj.get("sources", True),
    )


def resolved_config(ctx: typer.Context) -> GlobalConfig:
    """Resolve the effective config with the CLI overrides from the context.

    Raises:
        ConfigError: If the config file or an environment override is invalid.
    """
    from exacli.config import resolve_config

    obj = _obj(ctx)
    return resolve_config(
        cli_no_cache=obj.get("no_cache", False),
        cli_cache_ttl=obj.get("cache_ttl"),
    )


def fail(exc: ExaCliError) -> None:
    """Report *exc* in the active format and exit with its code."""
    render_error(get_output(), str(exc))
    raise typer.Exit(code=exc.exit_code)


def run_request(
    ctx: typer.Context,
    request: UpstreamRequest,
    renderer: Renderer,
    empty_message: str = "No results found.",
) -> None:
    """Dispatch *request*, render the result, and exit non-zero on failure."""
    from exacli.runtime import open_dispatcher

    output = get_output()
    try:
        config = resolved_config(ctx)
        with open_dispatcher(config) as dispatcher:
            result = dispatcher.execute(request)
    except ExaCliError as exc:
        fail(exc)
        return

    if result.from_cache:
        output.debug(f"{request.command}: served from cache")
    code = render_result(output, result, renderer, render_options(ctx), empty_message)
    if code:
        raise typer.Exit(code=code)
