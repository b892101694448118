import click
from rich.console import Console

from firewatch.utils.logging import setup_logging

from .device import device_cli
from .poller import poller_cli
from .ratelimit import ratelimit_cli
from .system import system_cli

console = Console()


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enables verbose mode.')
@click.option('--quiet', '-q', is_flag=True, help='Enables quiet mode.')
@click.pass_context
def app(ctx, verbose, quiet):
    """
    firewatch firewall polling and alerting CLI.
    """
    ctx.ensure_object(dict)
    ctx.obj['VERBOSE'] = verbose
    ctx.obj['QUIET'] = quiet

    if verbose:
        setup_logging(force=True, level="DEBUG")
    elif quiet:
        setup_logging(force=True, level="ERROR")
    else:
        setup_logging()


# Add subcommands
app.add_command(poller_cli, name='poller')
app.add_command(ratelimit_cli, name='ratelimit')
app.add_command(device_cli, name='device')
app.add_command(system_cli, name='system')

if __name__ == '__main__':
    app()
