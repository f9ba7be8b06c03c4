"""Config commands -- view and modify the settings file.

Provides the ``cacheproxy config`` sub-command group for reading, updating
and resetting the user's settings (:class:`~cacheproxy.models.Settings`).
Settings are persisted in the cacheproxy config directory and supply the
defaults for ``cacheproxy serve``.
"""

from __future__ import annotations

from typing import Any

import typer

from cacheproxy.output import error, format_response, info, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the stored settings.

    Example::

        cacheproxy config show
        cacheproxy --json config show
    """
    from cacheproxy.config import get_config_dir, load_settings

    settings = load_settings()
    info(f"Config directory: {get_config_dir()}")
    format_response(settings.model_dump(mode="json"))


def _coerce(current: Any, value: str) -> Any:
    """Coerce *value* towards the type of the *current* field value."""
    if value.lower() in ("null", "none"):
        return None
    if isinstance(current, bool):
        return value.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    return value


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'cache.ttl_seconds')."
    ),
    value: str = typer.Argument(help="Value to set ('null' clears optional values)."),
) -> None:
    """Set a configuration value.

    The value is coerced to the existing field's type and the updated
    settings are validated before saving.

    Example::

        cacheproxy config set cache.ttl_seconds 30
        cacheproxy config set server.port 8080
        cacheproxy config set server.api_url https://api.example.com/data
    """
    from cacheproxy.config import load_settings, save_settings
    from cacheproxy.models import Settings

    data = load_settings().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    try:
        coerced = _coerce(target[final_key], value)
    except ValueError:
        error(f"Expected a number for {key}, got: {value}")
        raise typer.Exit(code=2) from None
    target[final_key] = coerced

    try:
        new_settings = Settings.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_settings(new_settings)
    success(f"Set {key} = {coerced}")


@config_app.command("reset")
def config_reset(ctx: typer.Context) -> None:
    """Reset settings to defaults.  Asks for confirmation unless ``--force``."""
    from cacheproxy.config import save_settings
    from cacheproxy.models import Settings

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        if not typer.confirm("Reset all settings to defaults?"):
            info("Cancelled.")
            raise typer.Exit()

    save_settings(Settings())
    success("Configuration reset to defaults.")
