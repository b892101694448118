import datetime

import click
from rich.console import Console

from firewatch.config import settings
from firewatch.ratelimit.limiter import SlidingWindowLimiter
from firewatch.ratelimit.policies import POLICIES, get_policy
from firewatch.store.redis import StoreHandle

from .utils import handle_async_command

console = Console()


@click.group(name='ratelimit')
def ratelimit_cli():
    """Rate limit inspection commands."""
    pass


@ratelimit_cli.command(name='policies')
def list_policies():
    """Lists the configured policies."""
    for policy in POLICIES.values():
        block = f"{policy.block_duration:.0f}s" if policy.block_duration else "none"
        console.print(
            f"[cyan]{policy.name}[/cyan]: {policy.max_requests} per {policy.window:.0f}s, block {block}"
        )


@ratelimit_cli.command()
@click.argument('policy_name')
@click.argument('identifier')
@click.option('--consume', is_flag=True, help='Count this check as a request.')
@handle_async_command
async def check(policy_name, identifier, consume):
    """Shows the window for IDENTIFIER under POLICY_NAME."""
    policy = get_policy(policy_name)
    async with StoreHandle(settings.REDIS_URL) as handle:
        limiter = SlidingWindowLimiter(handle)
        if consume:
            result = await limiter.check(identifier, policy)
        else:
            result = await limiter.status(identifier, policy)

    status = "[green]allowed[/green]" if result.allowed else "[red]denied[/red]"
    reset = datetime.datetime.fromtimestamp(result.reset_at, tz=datetime.timezone.utc).isoformat()
    console.print(f"[cyan]Status[/cyan]: {status}")
    console.print(f"[cyan]Remaining[/cyan]: {result.remaining}/{policy.max_requests}")
    console.print(f"[cyan]Reset At[/cyan]: {reset}")
    if result.retry_after is not None:
        console.print(f"[cyan]Retry After[/cyan]: {result.retry_after}s")


@ratelimit_cli.command()
@click.argument('policy_name')
@click.argument('identifier')
@handle_async_command
async def reset(policy_name, identifier):
    """Clears the window and block for IDENTIFIER under POLICY_NAME."""
    policy = get_policy(policy_name)
    async with StoreHandle(settings.REDIS_URL) as handle:
        await SlidingWindowLimiter(handle).reset(identifier, policy)
    console.print(f"[green]Reset {identifier} under '{policy.name}'[/green]")
