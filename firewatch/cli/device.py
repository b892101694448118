import click
from rich.console import Console

from firewatch.config import settings
from firewatch.core.secrets import get_encryptor
from firewatch.database.engine import ensure_schema, init_db
from firewatch.database.repository import FirewallRepository

from .utils import handle_async_command

console = Console()


@click.group(name='device')
def device_cli():
    """Device registry commands."""
    pass


@device_cli.command()
@click.option('--tenant', required=True, help='Tenant id owning the device.')
@click.option('--serial', required=True, help='Device serial number.')
@click.option('--address', required=True, help='Management IP or URL.')
@click.option('--username', required=True, help='API username.')
@click.option('--password', prompt=True, hide_input=True, help='API password.')
@click.option('--model', default=None, help='Device model.')
@handle_async_command
async def add(tenant, serial, address, username, password, model):
    """Registers a device for polling."""
    encryptor = get_encryptor()
    init_db(settings.DATABASE_URL)
    ensure_schema()
    device = await FirewallRepository().register_device(
        tenant_id=tenant,
        serial_number=serial,
        management_ip=address,
        api_username=username,
        api_password=password,
        encryptor=encryptor,
        model=model,
    )
    console.print(f"[green]Registered device {device.id} ({serial}) for tenant {tenant}[/green]")


@device_cli.command(name='list')
@handle_async_command
async def list_devices():
    """Lists the active devices."""
    init_db(settings.DATABASE_URL)
    ensure_schema()
    devices = await FirewallRepository().list_active_devices()
    if not devices:
        console.print("[yellow]No active devices[/yellow]")
        return
    for device in devices:
        last_seen = device.last_seen_at.isoformat() if device.last_seen_at else "never"
        console.print(
            f"[cyan]{device.id}[/cyan] {device.serial_number} {device.management_ip} "
            f"tenant={device.tenant_id} last_seen={last_seen}"
        )
