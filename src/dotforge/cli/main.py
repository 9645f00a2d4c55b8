"""Main entry point for the dotforge CLI.

Commands:
    dotforge synth: Synthesize every stack into the output directory.
    dotforge plugins list: List configured plugins.
    dotforge plugins describe NAME: Describe one plugin and its config schema.

Example:
    $ dotforge synth --dry-run
    $ dotforge --log-level DEBUG synth --config .github/dotforge.yaml
    $ dotforge plugins describe ci --markdown
"""

from __future__ import annotations

import asyncio
import sys
from importlib.metadata import version as get_version
from pathlib import Path

import click

from dotforge.cli.utils import ExitCode, error, error_exit, info, success, warn
from dotforge.config import find_config_path, load_config, project_root_for
from dotforge.errors import ConfigFileError, ConfigValidationError, DotforgeError
from dotforge.logging import LOG_LEVELS, configure_logging
from dotforge.plugins.base import PluginDescription
from dotforge.plugins.describe import format_plugin_description, generate_plugin_markdown
from dotforge.plugins.manager import PluginManager
from dotforge.schemas import ProjectConfig
from dotforge.synthesizer import StackSynthesizer


def _get_version() -> str:
    try:
        return get_version("dotforge")
    except Exception:
        return "unknown"


def _load_project(config_path: Path | None) -> tuple[Path, ProjectConfig]:
    """Resolve and load the project config, exiting on failure."""
    try:
        path = config_path or find_config_path(Path.cwd())
        return path, load_config(path)
    except ConfigFileError as e:
        error_exit(str(e), exit_code=ExitCode.FILE_NOT_FOUND)
    except ConfigValidationError as e:
        error_exit(str(e), exit_code=ExitCode.VALIDATION_ERROR)


config_option = click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Project config file (default: discovered from the current directory).",
)


@click.group(
    name="dotforge",
    help="dotforge - generate CI workflow files from composable plugins.",
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(version=_get_version(), prog_name="dotforge", message="%(prog)s %(version)s")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Minimum log level.",
)
@click.option("--json-logs", is_flag=True, default=False, help="Emit logs as JSON lines.")
@click.pass_context
def cli(ctx: click.Context, log_level: str, json_logs: bool) -> None:
    """Root command group for the dotforge CLI."""
    ctx.ensure_object(dict)
    configure_logging(log_level=log_level, json_output=json_logs)


@cli.command(name="synth", help="Synthesize every stack and write the generated files.")
@config_option
@click.option(
    "--output",
    "output_dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Output directory (default: the config's output_dir under the project root).",
)
@click.option("--dry-run", is_flag=True, default=False, help="Print files instead of writing them.")
def synth_command(config_path: Path | None, output_dir: Path | None, dry_run: bool) -> None:
    path, config = _load_project(config_path)
    synthesizer = StackSynthesizer(
        config=config,
        project_root=project_root_for(path),
        output_dir=output_dir,
    )

    if not config.stacks:
        warn("No stacks configured", config=str(path))

    if dry_run:
        results = asyncio.run(synthesizer.synthesize_all())
        for result in results.results:
            for relative, content in result.files.items():
                success(f"--- {result.stack_config.name}: {relative}")
                success(content)
    else:
        results = asyncio.run(synthesizer.synthesize_and_write())
        for result in results.results:
            info(f"Synthesized stack '{result.stack_config.name}': {len(result.files)} file(s) in {result.output_path}")

    for stack_error in results.errors:
        error(str(stack_error.error), stack=stack_error.stack_name)

    if not results.success:
        sys.exit(ExitCode.SYNTHESIS_ERROR)


@cli.group(name="plugins", help="Inspect configured plugins.")
def plugins() -> None:
    """Plugin inspection command group."""


async def _loaded_manager(path: Path, config: ProjectConfig) -> PluginManager:
    manager = PluginManager(project_root_for(path))
    await manager.load_plugins(config.plugins)
    return manager


@plugins.command(name="list", help="List configured plugins and their descriptions.")
@config_option
def list_command(config_path: Path | None) -> None:
    path, config = _load_project(config_path)

    async def _list() -> list[tuple[str, PluginDescription | None]]:
        manager = await _loaded_manager(path, config)
        return await manager.list_plugins()

    try:
        listing = asyncio.run(_list())
    except DotforgeError as e:
        error_exit(str(e))

    if not listing:
        info("No plugins configured")
    for name, description in listing:
        summary = getattr(description, "description", None) or ""
        plugin_version = getattr(description, "version", None)
        label = f"{name} ({plugin_version})" if plugin_version else name
        success(f"{label}  {summary}".rstrip())


@plugins.command(name="describe", help="Describe a plugin and its configuration schema.")
@click.argument("name")
@config_option
@click.option("--markdown", is_flag=True, default=False, help="Render as markdown.")
def describe_command(name: str, config_path: Path | None, markdown: bool) -> None:
    path, config = _load_project(config_path)

    async def _describe() -> PluginDescription | None:
        manager = await _loaded_manager(path, config)
        return await manager.describe_plugin(name)

    try:
        description = asyncio.run(_describe())
    except DotforgeError as e:
        error_exit(str(e))

    if description is None:
        error_exit(f"Plugin '{name}' is not configured", exit_code=ExitCode.USAGE_ERROR)

    if markdown:
        success(generate_plugin_markdown(description))
    else:
        success(format_plugin_description(description))


def main(argv: list[str] | None = None) -> None:
    """Console script entry point.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
