"""
kibana-exporter entry point.

Usage:
    kibana-exporter --kibana.uri http://localhost:5601          Serve /metrics
    kibana-exporter --kibana.uri http://localhost:5601 check    One-shot scrape
"""

from __future__ import annotations

import logging

import click
from prometheus_client import REGISTRY

from kibana_exporter import __version__
from kibana_exporter.collector.kibana_client import KibanaFetcher
from kibana_exporter.config import (
    DEFAULT_LISTEN_ADDRESS,
    DEFAULT_TELEMETRY_PATH,
    DEFAULT_TIMEOUT_SECONDS,
    ExporterConfig,
)
from kibana_exporter.errors import ConfigError, ScrapeError
from kibana_exporter.exporter import KibanaExporter, register
from kibana_exporter.server import serve as serve_forever


log = logging.getLogger("kibana_exporter")


def _build_config(ctx: click.Context) -> ExporterConfig:
    opts = ctx.obj
    try:
        return ExporterConfig.create(
            kibana_uri=opts["kibana_uri"],
            username=opts["username"],
            password=opts["password"],
            listen_address=opts["listen_address"],
            telemetry_path=opts["telemetry_path"],
            timeout_seconds=opts["timeout"],
        )
    except ConfigError as e:
        log.error("%s", e)
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="kibana-exporter")
@click.option("--web.listen-address", "listen_address", default=DEFAULT_LISTEN_ADDRESS,
              envvar="WEB_LISTEN_ADDRESS", show_default=True,
              help="The address to listen on for HTTP requests.")
@click.option("--web.telemetry-path", "telemetry_path", default=DEFAULT_TELEMETRY_PATH,
              envvar="WEB_TELEMETRY_PATH", show_default=True,
              help="The path under which to expose metrics.")
@click.option("--kibana.uri", "kibana_uri", default=None, envvar="KIBANA_URI",
              help="The Kibana API to fetch metrics from")
@click.option("--kibana.username", "username", default=None, envvar="KIBANA_USERNAME",
              help="The username to use for Kibana API")
@click.option("--kibana.password", "password", default=None, envvar="KIBANA_PASSWORD",
              help="The password to use for Kibana API")
@click.option("--kibana.timeout", "timeout", default=DEFAULT_TIMEOUT_SECONDS, type=float,
              envvar="KIBANA_TIMEOUT", show_default=True,
              help="Timeout in seconds for each Kibana status request")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging")
@click.pass_context
def cli(ctx, listen_address: str, telemetry_path: str, kibana_uri: str, username: str,
        password: str, timeout: float, verbose: bool):
    """Kibana exporter - Kibana status as Prometheus metrics."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    ctx.ensure_object(dict)
    ctx.obj["listen_address"] = listen_address
    ctx.obj["telemetry_path"] = telemetry_path
    ctx.obj["kibana_uri"] = kibana_uri
    ctx.obj["username"] = username
    ctx.obj["password"] = password
    ctx.obj["timeout"] = timeout

    if ctx.invoked_subcommand is None:
        ctx.invoke(serve)


@cli.command()
@click.pass_context
def serve(ctx):
    """Serve metrics over HTTP (the default)."""
    config = _build_config(ctx)
    log.info("using Kibana URL: %s", config.kibana_uri)

    fetcher = KibanaFetcher(config)
    try:
        register(KibanaExporter(fetcher, namespace=config.namespace), REGISTRY)
        serve_forever(config, REGISTRY)
    finally:
        fetcher.close()


@cli.command()
@click.pass_context
def check(ctx):
    """Scrape Kibana once and print the values that would be exported."""
    from rich.console import Console
    from rich.markup import escape
    from rich.table import Table

    config = _build_config(ctx)
    fetcher = KibanaFetcher(config)
    console = Console()

    try:
        snapshot = fetcher.scrape()
    except ScrapeError as e:
        console.print(f"[bold red]Scrape failed:[/bold red] {escape(str(e))}")
        raise SystemExit(1)
    finally:
        fetcher.close()

    state_color = "green" if snapshot.healthy else "red"
    console.print(f"\n[bold]{fetcher.name()}[/bold]")
    console.print(f"Overall state: [{state_color}]{escape(snapshot.overall_state) or 'unknown'}[/{state_color}]\n")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    for name, value in KibanaExporter.map_snapshot(snapshot).items():
        table.add_row(f"[cyan]{config.namespace}_{name}[/cyan]", str(value))
    console.print(table)

    raw = Table(title="Decoded status fields", show_header=True, header_style="bold")
    raw.add_column("Field")
    raw.add_column("Value", justify="right")
    for field_name, value in snapshot.summary().items():
        raw.add_row(field_name, escape(str(value)))
    console.print(raw)
    console.print()


if __name__ == "__main__":
    cli()
