"""Config commands -- view and modify global configuration.

Provides the ``exa config`` sub-command group for reading, updating, and
resetting the user's global configuration file
(:class:`~exacli.models.GlobalConfig`). Settings are persisted in the
exa config directory and control defaults such as output format, cache
TTL, request timeouts, and the key rotation policy.
"""

from __future__ import annotations

from typing import Any

import typer
from pydantic import ValidationError

from exacli.exceptions import ConfigError
from exacli.exit_codes import EXIT_INVALID_USAGE
from exacli.output import error, get_output, info, success


config_app = typer.Typer(no_args_is_help=True)


def _load() -> Any:
    from exacli.config import load_global_config

    try:
        return load_global_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None


@config_app.command("show")
def config_show() -> None:
    """Show current configuration.

    Prints the config directory path on stderr followed by the full
    configuration as JSON on stdout.

    Example::

        exa config show
    """
    from exacli.config import get_config_dir

    config = _load()
    info(f"Config directory: {get_config_dir()}")
    get_output().print_json(config.model_dump(mode="json"))


def _coerce(key: str, current: Any, value: str) -> Any:
    """Convert *value* to the type of the field it replaces."""
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes", "on")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    if isinstance(current, float):
        try:
            return float(value)
        except ValueError:
            error(f"Expected number for {key}, got: {value}")
            raise typer.Exit(code=EXIT_INVALID_USAGE) from None
    return value


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'cache.ttl_minutes')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Uses dot notation for nested keys. The value is coerced to match the
    existing field's type (bool, int, float, or str) and the updated
    config is validated against :class:`~exacli.models.GlobalConfig`
    before saving.

    Raises:
        typer.Exit: With code 2 if the key path is invalid, the value
            cannot be coerced, or Pydantic validation fails.

    Example::

        exa config set output.format compact
        exa config set cache.ttl_minutes 120
        exa config set rotation.default_cooldown_seconds 30
    """
    from exacli.config import save_global_config
    from exacli.models import GlobalConfig

    config = _load()
    data = config.model_dump(mode="json")

    # Navigate the dot-separated key path.
    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    coerced = _coerce(key, target[final_key], value)
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset configuration to defaults.

    Asks for confirmation unless ``--force`` is active.

    Example::

        exa config reset
        exa --force config reset
    """
    from exacli.config import save_global_config
    from exacli.models import GlobalConfig

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all config to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")
