"""Command-line interface for Kiln.

This module defines the CLI using the Click framework.

Commands:
- build: Build the site described by the project's site definition.

``run`` offers the same build to scripts that define their own ``setup``
function instead of a separate site definition file.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path

import click

from . import __version__
from .build import SetupFunc, build_site, load_definition
from .config import BuildConfig, ConfigError, load_config
from .site import BuildFailed, JobError


def format_report(errors: Iterable[JobError]) -> str:
    """Format failed jobs for the terminal.

    Each entry is the path, a highlighted ``error:`` marker and the message.
    Entries are separated by blank lines.

    Args:
        errors: Failed jobs.

    Returns:
        The report, with ANSI styles that click strips when not on a tty.
    """
    marker = click.style("error:", fg="red", bold=True)
    entries = [
        f"{click.style(str(error.path), bold=True)} {marker} {error.message}"
        for error in errors
    ]
    return "\n\n".join(entries)


def _io_error(exc: OSError, fallback: Path) -> JobError:
    path = Path(exc.filename) if exc.filename else fallback
    return JobError(path, exc.strerror or str(exc))


def _execute(config: BuildConfig, setup: SetupFunc) -> None:
    """Run a build and turn failures into a report and exit status."""
    try:
        result = build_site(config, setup)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from None
    except BuildFailed as exc:
        click.echo(format_report(exc.errors), err=True)
        raise SystemExit(1) from None
    except OSError as exc:
        click.echo(format_report([_io_error(exc, config.source)]), err=True)
        raise SystemExit(1) from None
    noun = "job" if result.jobs == 1 else "jobs"
    click.echo(f"Built {result.jobs} {noun} into {result.output_dir}")


def _overrides(source, output, workers, clean) -> dict:
    return {"source": source, "output": output, "workers": workers, "clean": clean}


def _load(overrides: dict) -> BuildConfig:
    try:
        return load_config(Path.cwd(), overrides)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from None


_source_option = click.option(
    "--source",
    type=click.Path(file_okay=False, path_type=Path),
    help="Source directory (overrides kiln.yaml)",
)
_output_option = click.option(
    "--output",
    type=click.Path(file_okay=False, path_type=Path),
    help="Output directory (overrides kiln.yaml)",
)
_workers_option = click.option(
    "--workers",
    type=click.IntRange(min=1),
    help="Number of worker threads",
)
_clean_option = click.option(
    "--clean/--no-clean",
    default=None,
    help="Wipe the output directory before building",
)


@click.group()
@click.version_option(version=__version__, prog_name="kiln")
def cli():
    """Kiln static site build pipeline."""


@cli.command()
@_source_option
@_output_option
@_workers_option
@_clean_option
def build(
    source: Path | None,
    output: Path | None,
    workers: int | None,
    clean: bool | None,
):
    """Build the site into the output directory."""
    config = _load(_overrides(source, output, workers, clean))
    try:
        setup = load_definition(config.definition)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from None
    _execute(config, setup)


def run(setup: SetupFunc, args: Sequence[str] | None = None) -> None:
    """Build a site from a script that defines its own ``setup``.

    Parses ``--source``, ``--output``, ``--workers`` and ``--clean`` from
    ``args`` (or ``sys.argv``) and exits the process with the build status.

    Args:
        setup: Registers the site's rules.
        args: Command line arguments, defaults to ``sys.argv[1:]``.
    """

    @click.command()
    @_source_option
    @_output_option
    @_workers_option
    @_clean_option
    def command(source, output, workers, clean):
        _execute(_load(_overrides(source, output, workers, clean)), setup)

    command(args=list(args) if args is not None else None, prog_name="kiln")


def main():
    """Entry point for the CLI application."""
    cli()
