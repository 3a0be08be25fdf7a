"""Command-line interface of dircli.

Commands:
    build   Compile a directory of modules into a single executable
    watch   Build, then rebuild whenever matching files change
    init    Write a starter dircli.toml

Every failure is reported as ``Error: <message>`` on stderr with exit code 1.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import click
from rich.console import Console

from dircli import __version__
from dircli.config import (
    DEFAULT_ENTRY,
    DEFAULT_NAME,
    BuildConfig,
    resolve_build_config,
    write_entry_config,
)
from dircli.errors import DircliError
from dircli.orchestrator import build_executable
from dircli.watcher import DEFAULT_DEBOUNCE_MS, watch as watch_and_rebuild

logger = logging.getLogger(__name__)

console = Console()


class DircliGroup(click.Group):
    """Click group whose usage errors exit with code 1 like every other failure."""

    def make_context(
        self,
        info_name: str | None,
        args: list[str],
        parent: click.Context | None = None,
        **extra: Any,
    ) -> click.Context:
        try:
            return super().make_context(info_name, args, parent=parent, **extra)
        except click.UsageError as e:
            e.exit_code = DircliError.exit_code
            raise

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except click.UsageError as e:
            e.exit_code = DircliError.exit_code
            raise


def _config_options(func: Any) -> Any:
    func = click.option("--name", default=None, help="Program and executable name (default: cli)")(func)
    func = click.option(
        "--baseDir",
        "--base-dir",
        "base_dir",
        default=None,
        type=click.Path(file_okay=False),
        help="Directory whose Python modules become commands",
    )(func)
    return func


def _fail(e: Exception) -> None:
    click.echo(f"Error: {e}", err=True)
    sys.exit(1)


@click.group(cls=DircliGroup, context_settings={"help_option_names": ["--help", "-h"]})
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(version=__version__)
def main(verbose: bool) -> None:
    """dircli - compile a directory of Python modules into a standalone CLI.

    \b
    Every public function becomes a command:
        src/greet.py::main       ->  cli greet
        src/db/index.py::seed    ->  cli db seed
        first parameter          ->  positional argument
        second parameter record  ->  --flags

    \b
    Configure with an entry file (dircli.toml):
        base_dir = "src"
        name = "mycli"
    or with --baseDir/--name flags, never both.
    """
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format="%(message)s")


@main.command()
@click.argument("entry", required=False)
@_config_options
def build(entry: str | None, base_dir: str | None, name: str | None) -> None:
    """Build a single-file executable.

    ENTRY is an optional entry file; without it ./dircli.toml (or
    [tool.dircli] in ./pyproject.toml) is used unless --baseDir is given.
    """
    try:
        config = resolve_build_config(entry, base_dir, name)
        build_executable(config, Path.cwd(), console=console)
    except DircliError as e:
        _fail(e)


@main.command()
@click.argument("pattern", metavar="GLOB")
@click.argument("entry", required=False)
@_config_options
@click.option(
    "--debounce",
    type=int,
    default=DEFAULT_DEBOUNCE_MS,
    show_default=True,
    help="Milliseconds to wait for changes to settle",
)
def watch(
    pattern: str, entry: str | None, base_dir: str | None, name: str | None, debounce: int
) -> None:
    """Build, then rebuild whenever files matching GLOB change.

    \b
    Example:
        dircli watch "src/**/*.py" --baseDir src
    """
    try:
        config = resolve_build_config(entry, base_dir, name)
    except DircliError as e:
        _fail(e)
        return

    cwd = Path.cwd()

    def rebuild() -> Path:
        return build_executable(config, cwd, console=console)

    try:
        watch_and_rebuild(pattern, rebuild, debounce_ms=debounce, cwd=cwd)
    except KeyboardInterrupt:
        click.echo("\nWatch stopped.")
        sys.exit(0)


@main.command()
@click.argument("entry", required=False, default=DEFAULT_ENTRY)
@_config_options
@click.option("--force", is_flag=True, help="Overwrite an existing entry file")
def init(entry: str, base_dir: str | None, name: str | None, force: bool) -> None:
    """Write a starter entry file (default: dircli.toml)."""
    config = BuildConfig(base_dir=Path(base_dir or "src"), name=name or DEFAULT_NAME)
    try:
        path = write_entry_config(entry, config, force=force)
    except DircliError as e:
        _fail(e)
        return
    console.print(f"[green]Wrote {path}[/green]")


__all__ = ["DircliGroup", "main"]


if __name__ == "__main__":
    main()
