"""Key rotation commands -- ``exa status`` and ``exa reset``.

Neither command touches the network. ``status`` reads the rotation state
without modifying it; ``reset`` clears cooldowns, usage counters and the
scan position, leaving the configured keys and their validity alone.
"""

from __future__ import annotations

import typer

from exacli.commands.common import fail, resolved_config
from exacli.exceptions import ExaCliError
from exacli.output import get_output, success


def status_command(ctx: typer.Context) -> None:
    """Show every configured key (masked) with its health and usage.

    Example::

        exa status
        exa --json status
    """
    from exacli.formatting import render_status
    from exacli.runtime import build_cache, build_manager

    try:
        config = resolved_config(ctx)
        manager = build_manager(config)
        manager.pool.require()
    except ExaCliError as exc:
        fail(exc)
        return

    cache = build_cache(config)
    stats = cache.stats() if cache is not None else None
    if cache is not None:
        cache.close()
    render_status(get_output(), manager.status(), manager.next_index, stats)


def reset_command(ctx: typer.Context) -> None:
    """Clear all cooldowns and usage counters.

    Example::

        exa reset
    """
    from exacli.runtime import build_manager

    try:
        config = resolved_config(ctx)
        manager = build_manager(config)
    except ExaCliError as exc:
        fail(exc)
        return

    manager.reset()
    success(f"Rotation state reset for {len(manager.pool)} key(s).")
