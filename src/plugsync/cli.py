"""
Command-line interface for plugsync.

Provides commands to run the reconciliation loop, discover plugs on the
network and inspect the effective configuration.
"""

import logging
import signal
import sys
import threading
from pathlib import Path

import click
import yaml

from plugsync import __version__
from plugsync.core.config import Config, load_config, save_config
from plugsync.core.errors import (
    ConfigurationError,
    DeviceIOError,
    DiscoveryError,
    LabelReadError,
)
from plugsync.core.manager import PlugManager
from plugsync.health.alerts import AlertManager, LogAlertHandler, LoggingAlertHandler
from plugsync.health.report import format_discovery_table, format_status_table
from plugsync.power.discovery import build_discovery

logger = logging.getLogger(__name__)


def _setup_logging(level: str) -> None:
    lvl = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("plugsync").setLevel(lvl)


def _build_alerts(config: Config) -> AlertManager:
    """Create the alert manager for the configured alert outputs."""
    alerts = AlertManager([LoggingAlertHandler()])
    if config.alert_log:
        alerts.add_handler(LogAlertHandler(config.alert_log))
    return alerts


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="plugsync")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "-c", "--config", "config_path", type=click.Path(exists=True, path_type=Path),
    help="Path to config file"
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, config_path: Path | None) -> None:
    """plugsync - Keep smart plugs at their requested power state."""
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        _fail(str(e))
    ctx.obj["verbose"] = verbose
    ctx.obj["config"] = config
    _setup_logging("DEBUG" if verbose else config.log_level)


@main.command("run")
@click.option("--label", "-l", "labels", multiple=True, help="Manage this plug (repeatable)")
@click.option("--on", "on_labels", multiple=True, help="Keep this plug switched on (repeatable)")
@click.option("--off", "off_labels", multiple=True, help="Keep this plug switched off (repeatable)")
@click.option("--interval", "-i", type=float, help="Poll interval in seconds")
@click.pass_context
def run_cmd(
    ctx: click.Context,
    labels: tuple[str, ...],
    on_labels: tuple[str, ...],
    off_labels: tuple[str, ...],
    interval: float | None,
) -> None:
    """Reconcile plug states until interrupted."""
    config: Config = ctx.obj["config"]

    conflicting = set(on_labels) & set(off_labels)
    if conflicting:
        _fail(f"Plugs cannot be both --on and --off: {', '.join(sorted(conflicting))}")

    devices = dict(config.devices)
    for label in labels:
        devices.setdefault(label, None)
    for label in on_labels:
        devices[label] = True
    for label in off_labels:
        devices[label] = False

    if not devices:
        _fail("No plugs to manage. Use --label/--on/--off or the 'devices' config section.")

    poll_interval = interval if interval is not None else config.manager.poll_interval
    try:
        manager = PlugManager(
            build_discovery(config),
            list(devices),
            poll_interval=poll_interval,
            device_timeout=config.manager.device_timeout,
            discovery_timeout=config.discovery.timeout + config.manager.device_timeout,
            max_workers=config.manager.max_workers,
            discovery_backoff_max=config.manager.discovery_backoff_max,
            alerts=_build_alerts(config),
        )
    except ConfigurationError as e:
        _fail(str(e))

    manager.set_desired_states(
        {label: on for label, on in devices.items() if on is not None}
    )

    stop_event = threading.Event()

    # Set up signal handlers for graceful shutdown
    def signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, stopping after current tick...")
        stop_event.set()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    click.echo(
        f"Managing {len(devices)} plug(s), polling every {poll_interval}s. "
        "Press Ctrl+C to stop."
    )
    manager.run(stop_event)
    click.echo(format_status_table(manager.status()))


@main.command("discover")
@click.pass_context
def discover_cmd(ctx: click.Context) -> None:
    """Discover plugs and show their labels and power state."""
    config: Config = ctx.obj["config"]

    try:
        handles = build_discovery(config)()
    except (ConfigurationError, DiscoveryError) as e:
        _fail(str(e))

    rows = []
    for handle in handles:
        try:
            label = handle.get_label()
        except LabelReadError:
            label = None
        try:
            state = handle.is_on()
        except DeviceIOError:
            state = None
        rows.append((handle.address, label, state))

    click.echo(format_discovery_table(rows))
    if ctx.obj.get("verbose") and rows:
        click.echo(f"\n{len(rows)} outlet(s) found")


@main.command("config")
@click.option(
    "--write", "-w", "output", type=click.Path(dir_okay=False, path_type=Path),
    help="Also save the effective configuration to this file"
)
@click.pass_context
def config_cmd(ctx: click.Context, output: Path | None) -> None:
    """Show the effective configuration."""
    config: Config = ctx.obj["config"]
    click.echo(yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=False))

    if output:
        save_config(config, output)
        click.echo(f"Configuration written to {output}")


if __name__ == "__main__":
    main()
