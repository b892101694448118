import click
from rich.console import Console

from firewatch import __version__
from firewatch.config import settings
from firewatch.core.health import SystemHealthChecker
from firewatch.core.services import ServiceContainer

from .utils import handle_async_command

console = Console()


@click.group(name='system')
def system_cli():
    """System status and health commands."""
    pass


@system_cli.command()
@handle_async_command
async def health():
    """Checks the system health."""
    console.print("[bold blue]System Health Check[/bold blue]")
    services = ServiceContainer(settings)
    await services.start(start_poller=False)
    try:
        report = await SystemHealthChecker(services).check_overall_health()
    finally:
        await services.stop()

    colors = {"healthy": "green", "degraded": "yellow", "critical": "red"}
    console.print(f"[cyan]Version[/cyan]: {__version__}")
    console.print(f"[cyan]Overall[/cyan]: [{colors[report['status']]}]{report['status']}[/]")
    for name, component in report["components"].items():
        color = colors.get(component["status"], "white")
        message = component.get("message", "")
        console.print(f"[cyan]{name.replace('_', ' ').title()}[/cyan]: [{color}]{component['status']}[/] {message}")
