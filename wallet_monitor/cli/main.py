"""Command-line interface for the wallet monitor."""

import sys
import asyncio
import signal
import threading
from typing import Optional
import click
import structlog
from dotenv import load_dotenv

from wallet_monitor.models.config import MonitorConfig
from wallet_monitor.core.monitor import COMMAND_HELP, WalletMonitor
from wallet_monitor.core.registry import AddressRegistry, RegistryError
from wallet_monitor.utils.formatting import parse_wallet_label
from wallet_monitor.utils.logging import setup_logging

logger = structlog.get_logger(__name__)


@click.group()
@click.option('--config-file', '-c', type=click.Path(exists=True),
              help='Path to .env configuration file')
@click.option('--log-level', '-l', default=None,
              type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Logging level')
@click.pass_context
def cli(ctx, config_file: Optional[str], log_level: Optional[str]):
    """Wallet burst monitor CLI."""
    ctx.ensure_object(dict)
    load_dotenv(config_file)

    try:
        config = MonitorConfig(_env_file=config_file) if config_file else MonitorConfig()
        if log_level:
            config.log_level = log_level
        ctx.obj['config'] = config
    except Exception as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    setup_logging(config)


def _start_console_listener(loop: asyncio.AbstractEventLoop, monitor: WalletMonitor) -> threading.Thread:
    """Read console commands on a daemon thread and run them on the loop."""

    def listen():
        for line in sys.stdin:
            if not line.strip():
                continue
            future = asyncio.run_coroutine_threadsafe(monitor.handle_command(line), loop)
            try:
                click.echo(future.result())
            except Exception as e:
                click.echo(f"❌ Command failed: {e}", err=True)

    thread = threading.Thread(target=listen, name="console-commands", daemon=True)
    thread.start()
    return thread


async def _run_monitor(monitor: WalletMonitor, interactive: bool) -> None:
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            pass

    if interactive:
        _start_console_listener(loop, monitor)
        click.echo(COMMAND_HELP)

    await monitor.run(stop_event)


@cli.command()
@click.option('--interactive/--no-interactive', default=True,
              help='Accept !status and !add commands on stdin')
@click.pass_context
def run(ctx, interactive: bool):
    """Start monitoring tracked addresses."""
    config = ctx.obj['config']

    try:
        monitor = WalletMonitor(config)
        count = monitor.initialize()

        click.echo(f"🔄 Starting wallet monitoring ({count} addresses, poll interval: {config.poll_interval}s)")
        click.echo("Press Ctrl+C to stop...")
        asyncio.run(_run_monitor(monitor, interactive))
        click.echo("🛑 Monitoring stopped")

    except KeyboardInterrupt:
        click.echo("\n🛑 Monitoring interrupted by user")
    except Exception as e:
        click.echo(f"❌ Monitoring failed: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx):
    """List tracked addresses."""
    config = ctx.obj['config']

    registry = AddressRegistry(config.registry_file)
    entries = registry.load()

    click.echo(f"📊 Tracked addresses ({len(entries)})")
    click.echo("=" * 40)
    for address, label in entries.items():
        short_name, description = parse_wallet_label(label)
        click.echo(f"{short_name:<10} {address}" + (f"  {description}" if description else ""))

    click.echo("\n⚙️  Configuration")
    click.echo("=" * 40)
    for key, value in config.get_source_info().items():
        click.echo(f"{key}: {value}")


@cli.command()
@click.argument('address')
@click.option('--description', '-d', default=None, help='Description shown in alerts')
@click.pass_context
def add(ctx, address: str, description: Optional[str]):
    """Add a contract address to monitor."""
    config = ctx.obj['config']

    registry = AddressRegistry(config.registry_file)
    registry.load()

    try:
        label = registry.add(address, description)
    except RegistryError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    click.echo(f"✅ Added new contract: {label}")
    click.echo(f"Address: {address}")


@cli.command('normalize-labels')
@click.pass_context
def normalize_labels(ctx):
    """Rewrite registry labels into the canonical format."""
    config = ctx.obj['config']

    registry = AddressRegistry(config.registry_file)
    registry.load()
    entries = registry.normalize_labels()
    click.echo(f"✅ Normalized {len(entries)} labels")


@cli.command()
def version():
    """Show version information."""
    from wallet_monitor import __version__, __description__

    click.echo(f"Wallet Burst Monitor v{__version__}")
    click.echo(__description__)


if __name__ == '__main__':
    cli()
