"""Main CLI entry point for the widget catalog generator."""

import logging
import sys
from pathlib import Path

import click

from .config import Config
from .errors import CatalogError
from .pipeline import CatalogPipeline
from .version import StaticVersionProvider


@click.group()
def cli():
    """Widget Catalog - Generate a JSON catalog of Flutter widgets."""
    pass


@cli.command()
@click.option("--sdk", type=click.Path(file_okay=False), help="Flutter SDK root (defaults to FLUTTER_SDK_PATH)")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output file path")
@click.option("--workers", "-w", type=int, help="Threads used to resolve libraries")
@click.option("--flutter-version", help="Framework version to record instead of asking the SDK")
@click.option("--channel", help="Channel to record together with --flutter-version")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def generate(
    sdk: str | None,
    output: str | None,
    workers: int | None,
    flutter_version: str | None,
    channel: str | None,
    verbose: bool,
):
    """Generate the widget catalog from the Flutter framework sources.

    Examples:
        # Run from the tools_metadata repository root
        widget-catalog generate --sdk ~/flutter

        # Record an explicit version instead of running `flutter --version`
        widget-catalog generate --sdk ~/flutter --flutter-version 3.24.0 --channel stable
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = Config.from_env()
    updates = {}
    if sdk:
        updates["flutter_sdk_path"] = Path(sdk)
    if output:
        updates["output_path"] = Path(output)
    if workers is not None:
        updates["workers"] = workers
    if updates:
        config = config.model_copy(update=updates)

    if (flutter_version is None) != (channel is None):
        click.echo("Error: --flutter-version and --channel must be given together", err=True)
        sys.exit(1)
    version_provider = None
    if flutter_version is not None:
        version_provider = StaticVersionProvider(flutter_version, channel)

    pipeline = CatalogPipeline(config, version_provider=version_provider, echo=click.echo)
    try:
        pipeline.run()
    except CatalogError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    cli()
