"""
Main CLI entry point for shipwright.

Provides the command-line interface using Click. Every command reads the
manifests repository configured by Settings (see `shipwright config show`).

Exit codes:
    0  success
    1  the manifest could not be produced (load, merge or verify error)
    2  usage error
"""

import json as _json
import logging as _logging
import os as _os
import pathlib as _pathlib
import sys as _sys
import typing as _typing

import click as _click
import pydantic as _pydantic
import rich.console as _rich_console
import rich.syntax as _rich_syntax
import rich.table as _rich_table
import yaml as _yaml

import shipwright
import shipwright.config as config
import shipwright.config.sources as config_sources
import shipwright.errors as errors

_logger = _logging.getLogger(__name__)

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}


def _configure_logging(level: str) -> None:
    _logging.basicConfig(format="%(levelname)s: %(message)s", stream=_sys.stderr)
    _logging.getLogger("shipwright").setLevel(level)


def _load_settings(manifests_dir: _pathlib.Path | None) -> config.Settings:
    kwargs: dict[str, _typing.Any] = {}
    if manifests_dir is not None:
        kwargs["manifests_dir"] = manifests_dir
    try:
        return config.Settings(**kwargs)
    except config.ConfigFileError as e:
        raise _click.ClickException(str(e)) from e
    except _pydantic.ValidationError as e:
        raise _click.ClickException(f"Invalid settings:\n{e}") from e


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(shipwright.__version__, "-V", "--version", prog_name="shipwright")
@_click.option(
    "-C",
    "--manifests-dir",
    type=_click.Path(file_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Manifests repository root (default: SHIPWRIGHT_MANIFESTS_DIR or the current directory)",
)
@_click.option(
    "-v",
    "--verbose",
    count=True,
    help="Log more (-v info, -vv debug)",
)
@_click.pass_context
def cli(ctx: _click.Context, manifests_dir: _pathlib.Path | None, verbose: int) -> None:
    """Shipwright - merge layered service manifests.

    A service manifest is built from five sources, lowest precedence first:
    the service base manifest, the service's environment and region
    overrides, global defaults and region defaults.
    """
    settings = _load_settings(manifests_dir)

    level = settings.log_level
    if verbose >= 2:
        level = "DEBUG"
    elif verbose == 1:
        level = "INFO"
    _configure_logging(level)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["manifests_dir_option"] = manifests_dir


# =============================================================================
# merge
# =============================================================================


@cli.command()
@_click.argument("service")
@_click.option("-e", "--environment", required=True, help="Environment to deploy to")
@_click.option("-r", "--region", required=True, help="Region to deploy to")
@_click.option("--version", "version_tag", default=None, help="Override the manifest version")
@_click.option("--namespace", default=None, help="Kubernetes namespace (default: environment)")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.option("--provenance", is_flag=True, help="Show which source set each field")
@_click.option(
    "--verify/--no-verify",
    "run_verify",
    default=None,
    help="Check the merged manifest (default: the `verify` setting)",
)
@_click.option(
    "--color/--no-color",
    "use_color",
    default=None,
    help="Enable/disable syntax highlighting (default: auto-detect TTY)",
)
@_click.pass_context
def merge(
    ctx: _click.Context,
    service: str,
    environment: str,
    region: str,
    version_tag: str | None,
    namespace: str | None,
    as_json: bool,
    provenance: bool,
    run_verify: bool | None,
    use_color: bool | None,
) -> None:
    """Merge the sources for SERVICE and print the manifest.

    Examples:
        shipwright merge webapp -e dev -r dev-uk
        shipwright merge webapp -e dev -r dev-uk --json
        shipwright merge webapp -e dev -r dev-uk --provenance
    """
    settings: config.Settings = ctx.obj["settings"]
    repo = settings.repository()
    verify = settings.verify if run_verify is None else run_verify

    try:
        manifest = repo.build(
            service,
            environment,
            region,
            version=version_tag,
            namespace=namespace,
            verify=verify,
        )
    except errors.ManifestError as e:
        _fail(e, as_json=as_json)

    if provenance:
        report = manifest.provenance_report()
        if as_json:
            _click.echo(_json.dumps(report, indent=2))
        else:
            _print_provenance(report)
        return

    if as_json:
        _click.echo(_json.dumps(manifest.to_dict(), indent=2))
        return

    color_enabled, force_color = _should_use_color(use_color)
    _print_yaml(manifest.to_yaml(), color=color_enabled, force_color=force_color)


def _fail(error: errors.ManifestError, *, as_json: bool) -> _typing.NoReturn:
    """Report a manifest error on stderr and exit 1."""
    _logger.debug("Manifest error", exc_info=error)
    if as_json:
        _click.echo(_json.dumps(error.to_dict(), indent=2), err=True)
    else:
        _click.echo(f"Error: {error}", err=True)
        if isinstance(error, errors.MergeConflict):
            for side in ("lower", "higher"):
                origin = getattr(error, f"{side}_origin")
                if origin:
                    _click.echo(f"  {side}: {origin}", err=True)
    raise SystemExit(1)


def _print_provenance(report: dict[str, str | None]) -> None:
    console = _rich_console.Console()
    table = _rich_table.Table("Field", "Source")
    for path, source in report.items():
        table.add_row(path, source or "(implicit)")
    console.print(table)


# =============================================================================
# list / policies
# =============================================================================


@cli.command(name="list")
@_click.option("--regions", "show_regions", is_flag=True, help="List regions instead of services")
@_click.pass_context
def list_cmd(ctx: _click.Context, show_regions: bool) -> None:
    """List services (or regions) in the manifests repository."""
    settings: config.Settings = ctx.obj["settings"]
    repo = settings.repository()
    names = repo.list_regions() if show_regions else repo.list_services()
    for name in names:
        _click.echo(name)


@cli.command()
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.pass_context
def policies(ctx: _click.Context, as_json: bool) -> None:
    """Show the effective field policy table.

    Fields not listed are replaced wholesale by higher-precedence sources.
    """
    settings: config.Settings = ctx.obj["settings"]
    table = settings.policy_table().to_dict()

    if as_json:
        _click.echo(_json.dumps(table, indent=2))
        return

    console = _rich_console.Console()
    output = _rich_table.Table("Field", "Policy")
    for path, mode in table.items():
        output.add_row(path, mode)
    console.print(output)


# =============================================================================
# config
# =============================================================================


@cli.group()
def config_cmd() -> None:
    """Configuration commands."""


# Register config_cmd with the name "config" to avoid shadowing the module
cli.add_command(config_cmd, name="config")


@config_cmd.command(name="show")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.option("--provenance", is_flag=True, help="Show where each setting came from")
@_click.option(
    "--color/--no-color",
    "use_color",
    default=None,
    help="Enable/disable syntax highlighting (default: auto-detect TTY)",
)
@_click.pass_context
def config_show(
    ctx: _click.Context,
    as_json: bool,
    provenance: bool,
    use_color: bool | None,
) -> None:
    """Show effective settings.

    Settings come from SHIPWRIGHT_* environment variables and
    shipwright.yaml in the manifests root.

    Examples:
        shipwright config show
        shipwright config show --json
        shipwright config show --provenance
    """
    settings: config.Settings = ctx.obj["settings"]
    data = settings.to_dict()

    for key in settings.get_extra_fields():
        _logger.warning("Unknown setting %r", key)

    if provenance:
        origins = _setting_origins(settings, data, ctx.obj.get("manifests_dir_option"))
        if as_json:
            _click.echo(_json.dumps(origins, indent=2))
        else:
            _print_setting_origins(data, origins)
        return

    if as_json:
        _click.echo(_json.dumps(data, indent=2))
        return

    color_enabled, force_color = _should_use_color(use_color)
    yaml_text = _yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    _print_yaml(yaml_text, color=color_enabled, force_color=force_color)


def _setting_origins(
    settings: config.Settings,
    data: dict[str, _typing.Any],
    manifests_dir_option: _pathlib.Path | None,
) -> dict[str, str]:
    """Map each setting to where its value came from.

    Sources are checked in precedence order: the -C option, a
    SHIPWRIGHT_* environment variable, shipwright.yaml (with the line of the
    key), and finally the built-in default.
    """
    # A fresh source re-reads the file to get at its line registry
    source = config_sources.YamlSettingsSource(config.Settings, settings.manifests_dir)
    env_names = {name.upper() for name in _os.environ}

    origins: dict[str, str] = {}
    for key in data:
        env_name = f"{config_sources.ENV_PREFIX}{key}".upper()
        nested = [name for name in sorted(env_names) if name.startswith(f"{env_name}__")]
        if key == "manifests_dir" and manifests_dir_option is not None:
            origins[key] = "--manifests-dir"
        elif env_name in env_names:
            origins[key] = env_name
        elif nested:
            origins[key] = ", ".join(nested)
        else:
            origins[key] = source.origin_of(key) or "default"
    return origins


def _print_setting_origins(data: dict[str, _typing.Any], origins: dict[str, str]) -> None:
    console = _rich_console.Console()
    table = _rich_table.Table("Setting", "Value", "Source")
    for key, value in data.items():
        table.add_row(key, _json.dumps(value), origins[key])
    console.print(table)


# =============================================================================
# Output helpers
# =============================================================================


def _should_use_color(cli_flag: bool | None) -> tuple[bool, bool]:
    """Determine whether to use color output.

    Priority:
    1. CLI flag (--color / --no-color) if specified
    2. NO_COLOR env var (if set, disable color) - standard convention
    3. Auto-detect: color if stdout is a TTY

    Returns:
        Tuple of (color_enabled, force_color).
        force_color is True when color was explicitly requested (not auto-detected).
    """
    if cli_flag is not None:
        return (cli_flag, cli_flag)

    # https://no-color.org/
    if _os.environ.get("NO_COLOR") is not None:
        return (False, False)

    return (_sys.stdout.isatty(), False)


def _print_yaml(yaml_text: str, *, color: bool = True, force_color: bool = False) -> None:
    """Print YAML text, optionally with syntax highlighting.

    Args:
        yaml_text: The YAML text to print
        color: Whether to use syntax highlighting
        force_color: Force color even when not a TTY (for piping with --color)
    """
    if not color:
        _click.echo(yaml_text, nl=False)
        return

    # force_terminal/no_color/color_system override NO_COLOR and FORCE_COLOR
    # when color was asked for explicitly
    console = _rich_console.Console(
        force_terminal=force_color,
        no_color=False if force_color else None,
        color_system="truecolor" if force_color else "auto",
    )
    syntax = _rich_syntax.Syntax(
        yaml_text,
        "yaml",
        theme="monokai",
        background_color="default",
    )
    console.print(syntax)


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="shipwright")


if __name__ == "__main__":
    main()
