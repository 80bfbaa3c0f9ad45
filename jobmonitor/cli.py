"""Command line interface for the job monitor."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click
import yaml

from jobmonitor.config.loader import ConfigLoaderError, load_config, load_config_data, parse_app_config
from jobmonitor.config.schema import AppConfig
from jobmonitor.monitor.component import build_component
from jobmonitor.utils.logging_config import configure_logging

CONFIG_ARGUMENT = click.argument("config_path", type=click.Path(path_type=Path))
OVERRIDE_OPTION = click.option(
    "--override", multiple=True, help="KEY=VALUE overrides, e.g. monitor.namespace=ort"
)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log at INFO level")
@click.option("--debug", is_flag=True, help="Log at DEBUG level")
def cli(verbose: bool, debug: bool) -> None:
    """Watch, reap and reconcile the worker jobs of a Kubernetes namespace."""
    configure_logging(verbose=verbose, debug=debug)


@cli.command()
@CONFIG_ARGUMENT
@OVERRIDE_OPTION
def run(config_path: Path, override: tuple[str, ...]) -> None:
    """Run the monitor until interrupted."""
    component = build_component(_load(config_path, override))
    try:
        asyncio.run(component.run_forever())
    except KeyboardInterrupt:
        click.echo("Job monitor stopped.")


@cli.command()
@CONFIG_ARGUMENT
@OVERRIDE_OPTION
def reap(config_path: Path, override: tuple[str, ...]) -> None:
    """Run a single reaper cycle and list the processed jobs."""
    component = build_component(_load(config_path, override))
    processed = component.reaper.reap()
    for name in processed:
        click.echo(name)
    click.echo(f"Processed {len(processed)} completed jobs.", err=True)


@cli.command(name="find-lost")
@CONFIG_ARGUMENT
@OVERRIDE_OPTION
@click.option("--json-output", is_flag=True, help="Emit JSON lines for each lost job")
def find_lost(config_path: Path, override: tuple[str, ...], json_output: bool) -> None:
    """Run a single lost jobs check and report the lost jobs."""
    component = build_component(_load(config_path, override))
    lost = component.lost_jobs_finder.check_for_lost_jobs()
    for worker, records in lost.items():
        for record in records:
            if json_output:
                click.echo(json.dumps({"worker": worker.value, **record.to_dict()}))
            else:
                click.echo(f"[{worker.value}] run={record.run_id} created_at={record.created_at.isoformat()}")


@cli.command(name="show-config")
@CONFIG_ARGUMENT
@OVERRIDE_OPTION
@click.option("--json-output", is_flag=True, help="Print JSON instead of YAML")
def show_config(config_path: Path, override: tuple[str, ...], json_output: bool) -> None:
    """Validate the configuration and print it with all overrides applied."""
    try:
        data = load_config_data(config_path, override)
        parse_app_config(data)
    except ConfigLoaderError as exc:
        raise click.ClickException(str(exc)) from exc
    if json_output:
        click.echo(json.dumps(data, indent=2, sort_keys=True))
    else:
        click.echo(yaml.safe_dump(data, sort_keys=True).rstrip())


def _load(config_path: Path, overrides: tuple[str, ...]) -> AppConfig:
    try:
        return load_config(config_path, overrides)
    except ConfigLoaderError as exc:
        raise click.ClickException(str(exc)) from exc


def main() -> None:  # pragma: no cover - exercised via CLI
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
