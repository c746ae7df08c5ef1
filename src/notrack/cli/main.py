"""CLI entry point — the `notrack` command."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from notrack.core.base import DetectedTracker, OptOutType
from notrack.core.catalog import CatalogError, get_supported_trackers
from notrack.core.config import get_settings
from notrack.core.detector import ScanInProgressError
from notrack.core.service import NoTrack
from notrack.enforcement.client import client_data, opt_in_writes, opt_out_writes
from notrack.enforcement.head import OPT_OUT_COOKIE

console = Console()

METHOD_COLORS = {
    "file": "cyan",
    "header": "magenta",
    "external_html": "yellow",
}


def _run_async(coro: Any) -> Any:
    """Run an async coroutine from sync Click commands."""
    return asyncio.run(coro)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _app(ctx: click.Context) -> NoTrack:
    """Build the service from the --config file and environment."""
    try:
        return NoTrack(get_settings(ctx.obj.get("config")))
    except ValueError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        sys.exit(1)


def _format_time(timestamp: int | None) -> str:
    if timestamp is None:
        return "never"
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def _parse_params(values: tuple[str, ...]) -> dict[str, str]:
    params: dict[str, str] = {}
    for item in values:
        name, sep, value = item.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"expected NAME=VALUE, got '{item}'", param_hint="--param")
        params[name.strip()] = value.strip()
    return params


def _render_detections(trackers: list[DetectedTracker], last_scan: int | None) -> None:
    catalog = get_supported_trackers()
    console.print(Panel("[bold]Tracking Tools Detected[/bold]", style="blue"))
    console.print(f"Last scan: {_format_time(last_scan)}")

    if not trackers:
        console.print("\n[green]No tracking tools detected.[/green]")
        return

    table = Table()
    table.add_column("Service", style="bold")
    table.add_column("Method")
    table.add_column("ID")
    table.add_column("Found in", style="dim")

    for detection in trackers:
        definition = catalog.get(detection.service_id)
        label = definition.label if definition else detection.service_id
        color = METHOD_COLORS.get(detection.detection_method.value, "white")
        table.add_row(
            label,
            f"[{color}]{detection.detection_method.value}[/{color}]",
            detection.extracted_id or "-",
            detection.location,
        )

    console.print(table)


@click.group()
@click.version_option(package_name="notrack")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to a notrack TOML config file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """notrack — detect tracking tools on a site and manage visitor opt-out."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config_path


@cli.command()
@click.option("--format", "output_format", type=click.Choice(["rich", "json"]), default="rich")
def trackers(output_format: str) -> None:
    """List the tracking services NoTrack knows about."""
    try:
        catalog = get_supported_trackers()
    except CatalogError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if output_format == "json":
        click.echo(
            json.dumps([d.model_dump(mode="json") for d in catalog.values()], indent=2)
        )
        return

    table = Table(title="Supported Trackers")
    table.add_column("Service ID", style="bold")
    table.add_column("Name")
    table.add_column("Opt-out")
    table.add_column("Parameters", style="dim")

    for definition in catalog.values():
        table.add_row(
            definition.service_id,
            definition.label,
            definition.opt_out_type.value,
            ", ".join(definition.parameters) or "-",
        )

    console.print(table)


@cli.command()
@click.option("--force", is_flag=True, help="Ignore the cached result and rescan now.")
@click.option("--format", "output_format", type=click.Choice(["rich", "json"]), default="rich")
@click.pass_context
def scan(ctx: click.Context, force: bool, output_format: str) -> None:
    """Scan theme files, response headers and page HTML for tracking tools."""
    app = _app(ctx)

    try:
        if output_format == "rich":
            with console.status("Scanning site for tracking tools..."):
                snapshot = _run_async(app.scan(force=force))
        else:
            snapshot = _run_async(app.scan(force=force))
    except ScanInProgressError:
        console.print("[red]A scan is already in progress. Try again later.[/red]")
        sys.exit(1)
    except CatalogError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)

    if output_format == "json":
        click.echo(json.dumps(snapshot.model_dump(mode="json"), indent=2))
        return

    _render_detections(snapshot.trackers, snapshot.last_scan_time)


@cli.command()
@click.option("--format", "output_format", type=click.Choice(["rich", "json"]), default="rich")
@click.pass_context
def status(ctx: click.Context, output_format: str) -> None:
    """Show scan schedule and the trackers found by the last scan."""
    app = _app(ctx)
    scan_status = app.get_scan_status()
    snapshot = app.get_snapshot()

    if output_format == "json":
        data = scan_status.model_dump(mode="json")
        data["detected"] = sorted(snapshot.service_ids)
        click.echo(json.dumps(data, indent=2))
        return

    console.print(f"Last scan:   {_format_time(scan_status.last_scan)}")
    console.print(f"Next scan:   {_format_time(scan_status.next_scan)}")
    running = "[yellow]yes[/yellow]" if scan_status.in_progress else "no"
    console.print(f"In progress: {running}")
    console.print(f"Detected:    {', '.join(sorted(snapshot.service_ids)) or 'none'}")


@cli.command()
@click.pass_context
def install(ctx: click.Context) -> None:
    """Run the first scan, start the weekly schedule and enable detected trackers."""
    app = _app(ctx)
    try:
        with console.status("Running initial scan..."):
            snapshot = _run_async(app.install())
    except ScanInProgressError:
        console.print("[red]A scan is already in progress. Try again later.[/red]")
        sys.exit(1)

    _render_detections(snapshot.trackers, snapshot.last_scan_time)
    enabled = [sid for sid, c in app.get_config().items() if c.enabled]
    console.print(f"\nOpt-out enabled for: {', '.join(enabled) or 'none'}")
    console.print(f"Next scan: {_format_time(app.scheduler.next_scan())}")


@cli.command()
@click.pass_context
def cron(ctx: click.Context) -> None:
    """Run the scheduled scan if it is due. Meant for cron or a systemd timer."""
    app = _app(ctx)
    try:
        detected = _run_async(app.scheduler.run_due())
    except ScanInProgressError:
        console.print("[yellow]Skipping: a scan is already in progress.[/yellow]")
        return

    if detected is None:
        console.print(f"No scan due. Next scan: {_format_time(app.scheduler.next_scan())}")
        return
    console.print(f"[green]Scheduled scan complete: {len(detected)} trackers detected.[/green]")


@cli.command()
@click.option("--opted-out", is_flag=True, help="Render as seen by an opted-out visitor.")
@click.pass_context
def head(ctx: click.Context, opted_out: bool) -> None:
    """Print the <head> markup the site should emit for a visitor."""
    app = _app(ctx)
    cookies = {OPT_OUT_COOKIE: "true"} if opted_out else {}
    markup = app.render_head(cookies)
    if not markup:
        console.print("[dim]Nothing to emit.[/dim]")
        return
    click.echo(markup, nl=False)


@cli.command()
@click.option("--script-url", default=None, help="Link the runtime instead of inlining it.")
@click.pass_context
def footer(ctx: click.Context, script_url: str | None) -> None:
    """Print the footer markup that loads the opt-out runtime."""
    click.echo(_app(ctx).render_footer(script_url=script_url), nl=False)


@cli.command("client-data")
@click.option("--secure", is_flag=True, help="Mark cookies as Secure (HTTPS sites).")
@click.pass_context
def client_data_cmd(ctx: click.Context, secure: bool) -> None:
    """Show the cookie writes performed on opt-out and opt-in."""
    app = _app(ctx)
    config = app.get_config()
    data = client_data(config, app.options.get_custom_triggers())
    data["opt_out"] = [w.header() for w in opt_out_writes(config, secure=secure)]
    data["opt_in"] = [w.header() for w in opt_in_writes(config, secure=secure)]
    click.echo(json.dumps(data, indent=2))


@cli.group()
def config() -> None:
    """View and change per-tracker opt-out settings."""


@config.command("show")
@click.option("--format", "output_format", type=click.Choice(["rich", "json"]), default="rich")
@click.pass_context
def config_show(ctx: click.Context, output_format: str) -> None:
    """Show opt-out settings for every supported tracker."""
    app = _app(ctx)
    current = app.get_config()
    triggers = app.options.get_custom_triggers()

    if output_format == "json":
        data = {sid: c.model_dump(mode="json") for sid, c in current.items()}
        click.echo(json.dumps({"trackers": data, "custom_triggers": triggers}, indent=2))
        return

    catalog = get_supported_trackers()
    detected = app.get_snapshot().service_ids

    table = Table(title="Tracker Opt-out Settings")
    table.add_column("Service", style="bold")
    table.add_column("Enabled", justify="center")
    table.add_column("Detected", justify="center")
    table.add_column("Opt-out")
    table.add_column("ID")

    for service_id, tracker_config in current.items():
        definition = catalog[service_id]
        enabled = "[green]yes[/green]" if tracker_config.enabled else "[dim]no[/dim]"
        found = "[yellow]yes[/yellow]" if service_id in detected else "[dim]-[/dim]"
        kind = definition.opt_out_type.value
        if definition.opt_out_type == OptOutType.COOKIE and definition.opt_out_cookie:
            kind = f"cookie ({definition.opt_out_cookie.name})"
        table.add_row(
            definition.label, enabled, found, kind, tracker_config.effective_id or "-"
        )

    console.print(table)
    console.print(f"Custom triggers: {', '.join(triggers) or 'none'}")


@config.command("enable")
@click.argument("service_id")
@click.option("--id", "tracker_id", default=None, help="Tracking id for this service.")
@click.option("--param", "params", multiple=True, help="Service parameter as NAME=VALUE.")
@click.pass_context
def config_enable(
    ctx: click.Context, service_id: str, tracker_id: str | None, params: tuple[str, ...]
) -> None:
    """Enable opt-out enforcement for a tracker."""
    app = _app(ctx)
    updated = app.options.update_tracker(
        service_id, enabled=True, tracker_id=tracker_id, parameters=_parse_params(params)
    )
    if updated is None:
        console.print(f"[red]Unknown tracker: {service_id}[/red]")
        sys.exit(1)
    suffix = f" (id {updated.effective_id})" if updated.effective_id else ""
    console.print(f"[green]Enabled opt-out for {service_id}{suffix}.[/green]")


@config.command("disable")
@click.argument("service_id")
@click.pass_context
def config_disable(ctx: click.Context, service_id: str) -> None:
    """Disable opt-out enforcement for a tracker."""
    if _app(ctx).options.update_tracker(service_id, enabled=False) is None:
        console.print(f"[red]Unknown tracker: {service_id}[/red]")
        sys.exit(1)
    console.print(f"[green]Disabled opt-out for {service_id}.[/green]")


@config.command("import-detected")
@click.pass_context
def config_import_detected(ctx: click.Context) -> None:
    """Enable every tracker found by the last scan."""
    enabled = _app(ctx).options.enable_detected_trackers()
    if not enabled:
        console.print("[yellow]No newly detected trackers to enable.[/yellow]")
        return
    console.print(f"[green]Enabled opt-out for: {', '.join(enabled)}[/green]")


@config.command("triggers")
@click.argument("selectors", required=False)
@click.option("--clear", is_flag=True, help="Remove all custom triggers.")
@click.pass_context
def config_triggers(ctx: click.Context, selectors: str | None, clear: bool) -> None:
    """Show or set comma-separated CSS selectors that also trigger opt-out."""
    app = _app(ctx)
    if clear:
        app.options.set_custom_triggers("")
        console.print("[green]Custom triggers cleared.[/green]")
        return
    if selectors is None:
        current = app.options.get_custom_triggers()
        console.print(f"Custom triggers: {', '.join(current) or 'none'}")
        return
    saved = app.options.set_custom_triggers(selectors)
    console.print(f"[green]Saved {len(saved)} custom triggers.[/green]")
