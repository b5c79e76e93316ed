"""Command-line interface for pagebuild.

This module defines the CLI commands using the Click framework. Each
command runs one of the exported pipelines in the current directory.

Commands:
- clean: Delete the intermediate and output directories.
- build: Produce the production bundle in the output directory.
- dev: Compile, then serve with file watching and live reload.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import click

from . import __version__
from .config import load_config
from .tasks import TaskError

_config_option = click.option(
    "--config",
    "config_file",
    type=click.Path(path_type=Path, dir_okay=False),
    required=False,
    help="Configuration file (defaults to ./pagebuild.yaml)",
)


@click.group()
@click.version_option(version=__version__, prog_name="pagebuild")
def cli():
    """pagebuild front-end asset pipeline."""


def _run(name: str, config_file: Path | None, port: int | None = None, ws_port: int | None = None) -> None:
    from .pipeline import Pipeline

    project_root = Path.cwd()
    config = load_config(project_root, config_file).with_ports(port, ws_port)
    pipeline = Pipeline(config)
    try:
        asyncio.run(pipeline.get(name)())
    except TaskError as exc:
        click.echo(click.style(f"{name} failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  Task: {exc.task}", fg="yellow"), err=True)
        if exc.source_path is not None:
            source = exc.source_path
            if source.is_absolute() and source.is_relative_to(project_root):
                source = source.relative_to(project_root)
            click.echo(click.style(f"  File: {source}", fg="yellow"), err=True)
        click.echo(click.style(f"  Error: {exc.message}", fg="white"), err=True)
        raise SystemExit(1) from None
    except OSError as exc:
        click.echo(click.style(f"{name} failed:", fg="red", bold=True), err=True)
        click.echo(click.style(f"  Error: {exc}", fg="white"), err=True)
        raise SystemExit(1) from None


@cli.command()
@_config_option
def clean(config_file: Path | None):
    """Delete the intermediate and output directories."""
    _run("clean", config_file)


@cli.command()
@_config_option
def build(config_file: Path | None):
    """Build the production bundle into the output directory."""
    _run("build", config_file)
    click.echo("Build complete.")


@cli.command()
@_config_option
@click.option(
    "--port",
    type=int,
    required=False,
    help="Port for the preview server (overrides pagebuild.yaml)",
)
@click.option(
    "--ws-port",
    type=int,
    required=False,
    help="Port for the live reload websocket server (overrides pagebuild.yaml ws_port)",
)
def dev(config_file: Path | None, port: int | None, ws_port: int | None):
    """Compile, then serve with watching and live reload."""
    try:
        _run("dev", config_file, port, ws_port)
    except KeyboardInterrupt:  # pragma: no cover - interactive exit
        click.echo("Stopped.")


def main():
    """Entry point for the CLI application."""
    cli()
