import asyncio

import click
from rich.console import Console
from rich.table import Table

from firewatch.config import settings
from firewatch.core.services import ServiceContainer
from firewatch.utils.schedule import Schedule

from .utils import fail, handle_async_command

console = Console()


@click.group(name='poller')
def poller_cli():
    """Device polling commands."""
    pass


@poller_cli.command()
@click.option('--interval', type=float, default=None, help='Polling interval in seconds.')
@handle_async_command
async def run(interval):
    """Runs the poller until interrupted."""
    services = ServiceContainer(settings)
    if interval is not None:
        await services.engine.set_polling_interval(interval)
    await services.start(start_poller=True)
    console.print(
        f"[bold blue]Polling {len(services.engine.devices)} device(s) {services.engine.schedule}[/bold blue]"
    )
    try:
        await asyncio.Event().wait()
    finally:
        await services.stop()


@poller_cli.command(name='poll-once')
@handle_async_command
async def poll_once():
    """Polls every active device once and exits."""
    services = ServiceContainer(settings)
    await services.start(start_poller=False)
    try:
        await services.engine.reload_devices()
        summary = await services.engine.poll_all_devices()
    finally:
        await services.stop()

    console.print("[bold blue]Polling Cycle[/bold blue]")
    for key, value in summary.to_dict().items():
        console.print(f"[cyan]{key.replace('_', ' ').title()}[/cyan]: {value}")


@poller_cli.command()
@click.argument('interval')
def schedule(interval):
    """Shows the schedule for an INTERVAL such as 30, 90, 15s, 10m or 1h."""
    try:
        parsed = Schedule.parse(interval)
    except ValueError as e:
        fail(str(e))

    table = Table(title="Polling Schedule")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Schedule", str(parsed))
    table.add_row("Seconds", str(parsed.seconds))
    table.add_row("Cron", parsed.cron_expression)
    console.print(table)
